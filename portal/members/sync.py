"""
Caspio member cache sync.

Pulls member rows from the Caspio members table into MEMBER# items so
visit eligibility checks never call Caspio on the request path. The
highest Date_Modified seen becomes the cursor for the next incremental
run. Rows are read oldest first so a run cut short by the page limit
never moves the cursor past rows it has not seen.
"""

from datetime import datetime
from typing import Any

import structlog

from portal.shared.config import get_settings
from portal.shared.models.dynamo import MemberRecord
from portal.shared.timeutil import iso_from_ts, now_ts
from portal.shared.tools import dynamodb
from portal.shared.tools.caspio import MAX_PAGES, CaspioClient

log = structlog.get_logger()

SYNC_SETTINGS_DOCUMENT = "caspio_members_sync"
UPDATED_FIELD = "Date_Modified"

MEMBER_FIELDS: dict[str, str] = {
    "Client_ID2": "member_id",
    "Senior_First": "first_name",
    "Senior_Last": "last_name",
    "CalAIM_MCO": "health_plan",
    "CalAIM_Status": "calaim_status",
    "Hold_For_Social_Worker": "hold_for_social_worker",
    "Authorization_End_Date_T2038": "authorization_end_date",
    "Social_Worker_Assigned": "social_worker_assigned",
    "RCFE_Name": "rcfe_name",
    "Date_Modified": "date_modified",
}


def _caspio_timestamp(value: Any) -> datetime | None:
    """Caspio timestamps without milliseconds or zone suffix."""
    raw = str(value or "").strip()[:19]
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def to_member(row: dict[str, Any], *, synced_at: int) -> MemberRecord | None:
    """Map a Caspio row to a cached member; rows without a client id are skipped."""
    values = {
        target: str(row.get(source) or "").strip()
        for source, target in MEMBER_FIELDS.items()
    }
    if not values["member_id"]:
        return None
    if values["calaim_status"].lower() == "authorized":
        values["calaim_status"] = "Authorized"
    return MemberRecord(**values, synced_at=synced_at)


def sync_members(
    *,
    mode: str = "incremental",
    max_pages: int | None = None,
    client: CaspioClient | None = None,
    actor_uid: str | None = None,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Copy Caspio members into the member cache.

    An incremental run without a stored cursor runs as a full sync.

    Raises:
        ConfigurationError: Caspio credentials are missing
        CaspioError: Caspio rejected a request
    """
    now = now if now is not None else now_ts()
    settings = get_settings()
    client = client or CaspioClient.from_settings(settings)

    state = dynamodb.load_settings_document(SYNC_SETTINGS_DOCUMENT)
    cursor = str(state.get("last_date_modified") or "").strip() or None
    since = cursor if mode == "incremental" else None
    effective_mode = "incremental" if since else "full"

    log.info("member_sync_started", mode=effective_mode, since=since)

    rows = client.fetch_records(
        settings.caspio_members_table,
        where=f"{UPDATED_FIELD}>'{since}'" if since else None,
        select=list(MEMBER_FIELDS),
        order_by=f"{UPDATED_FIELD} ASC",
        max_pages=max_pages or MAX_PAGES,
    )

    members: list[MemberRecord] = []
    skipped_missing_id = 0
    newest = _caspio_timestamp(cursor)
    for row in rows:
        member = to_member(row, synced_at=now)
        if member is None:
            skipped_missing_id += 1
            continue
        members.append(member)
        modified = _caspio_timestamp(member.date_modified)
        if modified and (newest is None or modified > newest):
            newest = modified

    upserted = dynamodb.put_members(members) if members else 0
    next_cursor = newest.isoformat(timespec="seconds") if newest else None

    dynamodb.save_settings_document(
        SYNC_SETTINGS_DOCUMENT,
        {
            **({"last_date_modified": next_cursor} if next_cursor else {}),
            "last_run_at": iso_from_ts(now),
            "last_mode": effective_mode,
            "last_run_by_uid": actor_uid or "",
            "last_run_summary": {
                "fetched": len(rows),
                "upserted": upserted,
                "skipped_missing_id": skipped_missing_id,
            },
        },
    )

    log.info(
        "member_sync_completed",
        mode=effective_mode,
        fetched=len(rows),
        upserted=upserted,
        skipped_missing_id=skipped_missing_id,
        cursor=next_cursor,
    )
    return {
        "mode": effective_mode,
        "since": since,
        "last_date_modified": next_cursor,
        "fetched": len(rows),
        "upserted": upserted,
        "skipped_missing_id": skipped_missing_id,
    }
