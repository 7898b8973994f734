"""
Visit Tools

Draft questionnaires saved by social workers and admin deletion of
visit records.
"""

from datetime import date
from typing import Any
from uuid import uuid4

import structlog

from portal.claims.tools import owns, version_guard
from portal.shared.auth import AdminIdentity, Identity, can_delete_visits
from portal.shared.billing import FeeSchedule, compute_claim_totals
from portal.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    DynamoDBError,
    NotFoundError,
)
from portal.shared.models.dynamo import (
    DeletionAudit,
    ItemKey,
    MemberRecord,
    VisitRecord,
    monthly_lock_key,
)
from portal.shared.models.requests import DeleteVisitRequest, SaveVisitDraftRequest
from portal.shared.state_machine import VisitStatus
from portal.shared.timeutil import iso_from_ts, now_ts, parse_calendar_date, utc_now
from portal.shared.tools import dynamodb

log = structlog.get_logger()

HOLD_VALUES = frozenset({"1", "true", "yes", "y", "x", "on"})

EDITABLE_DRAFT_CONDITION = (
    "attribute_not_exists(PK) OR "
    "(#st = :draft AND (attribute_not_exists(#so) OR #so = :false))"
)


# =====================================================
# Member eligibility
# =====================================================


def _is_authorized(calaim_status: str) -> bool:
    value = calaim_status.strip().lower()
    return value == "authorized" or value.startswith("authorized ")


def is_on_hold(value: str) -> bool:
    value = value.strip().lower()
    return "hold" in value or value in HOLD_VALUES


def check_member_eligibility(member: MemberRecord, *, today: date | None = None) -> None:
    """
    Monthly questionnaires are only allowed for authorized members who are
    not on hold, and for Kaiser members only until their authorization ends.

    Raises:
        AuthorizationError: The member is not eligible
    """
    today = today or utc_now().date()

    if not _is_authorized(member.calaim_status):
        raise AuthorizationError(
            "Monthly questionnaires are only allowed for Authorized members.",
            member_id=member.member_id,
        )

    if is_on_hold(member.hold_for_social_worker):
        raise AuthorizationError(
            "This member is currently on hold for SW visits and cannot be saved.",
            member_id=member.member_id,
        )

    if "kaiser" in member.health_plan.lower():
        end = parse_calendar_date(member.authorization_end_date)
        if end is not None and end < today:
            raise AuthorizationError(
                f"This member's Kaiser authorization ended on {end.isoformat()}. "
                "SW visits are suspended after the authorization end date.",
                member_id=member.member_id,
            )


# =====================================================
# Drafts
# =====================================================


def _normalize_name(value: str) -> str:
    return " ".join(value.lower().split())


def _same_facility(visit: VisitRecord, request: SaveVisitDraftRequest) -> bool:
    if visit.rcfe_id == request.rcfe_id:
        return True
    # legacy generated facility ids only match by name
    return (
        visit.rcfe_id.startswith("rcfe-")
        and bool(request.rcfe_name)
        and _normalize_name(visit.rcfe_name) == _normalize_name(request.rcfe_name)
    )


def _find_existing_draft(identity: Identity, request: SaveVisitDraftRequest) -> VisitRecord | None:
    """
    Reuse the newest draft for the same member, facility and day.

    Older duplicates are deleted best-effort.
    """
    candidates = [
        visit
        for visit in dynamodb.list_social_worker_visits(identity.email)
        if visit.status == VisitStatus.DRAFT
        and not visit.signed_off
        and visit.member_id == request.member_id
        and visit.visit_date == request.visit_date
        and _same_facility(visit, request)
    ]
    if not candidates:
        return None

    candidates.sort(key=lambda v: max(v.updated_at or 0, v.created_at or 0), reverse=True)
    canonical, duplicates = candidates[0], candidates[1:]

    for duplicate in duplicates:
        try:
            dynamodb.delete_item(
                duplicate.key(),
                condition="#st = :draft",
                names={"#st": "status"},
                values={":draft": VisitStatus.DRAFT.value},
            )
            log.info("duplicate_draft_deleted", visit_id=duplicate.visit_id, kept=canonical.visit_id)
        except DynamoDBError as e:
            log.warning("duplicate_draft_delete_failed", visit_id=duplicate.visit_id, error=str(e))

    return canonical


def _check_editable(identity: Identity, visit: VisitRecord) -> None:
    if not owns(identity, visit):
        raise AuthorizationError("Visit does not belong to this social worker", visit_id=visit.visit_id)
    if visit.signed_off:
        raise ConflictError("This visit has been signed off and cannot be edited.", visit_id=visit.visit_id)
    if visit.is_claimed:
        raise ConflictError(
            "This visit is already tied to a submitted/paid claim and cannot be edited.",
            visit_id=visit.visit_id,
        )
    if visit.status != VisitStatus.DRAFT:
        raise ConflictError(
            f"This visit is already {visit.status.value} and cannot be edited as a draft.",
            visit_id=visit.visit_id,
        )


def save_visit_draft(
    identity: Identity,
    request: SaveVisitDraftRequest,
    *,
    now: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Create or update a social worker's draft visit.

    Raises:
        AuthorizationError: Ineligible member or a visit owned by someone else
        ConflictError: The visit is signed off, claimed or no longer a draft
    """
    now = now if now is not None else now_ts()

    if request.member_id:
        member = dynamodb.load_member(request.member_id)
        if member is not None:
            check_member_eligibility(member, today=today)

    existing = dynamodb.load_visit(request.visit_id)
    if existing is None and request.member_id and request.rcfe_id:
        existing = _find_existing_draft(identity, request)
    if existing is not None:
        _check_editable(identity, existing)

    visit = VisitRecord(
        visit_id=existing.visit_id if existing else request.visit_id,
        status=VisitStatus.DRAFT,
        social_worker_uid=identity.uid,
        social_worker_email=identity.email,
        social_worker_name=request.social_worker_name or identity.name,
        member_id=request.member_id,
        member_name=request.member_name,
        member_room_number=request.member_room_number,
        rcfe_id=request.rcfe_id,
        rcfe_name=request.rcfe_name,
        rcfe_address=request.rcfe_address,
        visit_date=request.visit_date,
        visit_month=request.visit_month,
        flagged=request.flagged,
        total_score=request.total_score,
        answers=request.answers,
        claim_id=existing.claim_id if existing else None,
        claim_status=existing.claim_status if existing else None,
        created_at=(existing.created_at if existing else None) or now,
        updated_at=now,
    )

    saved = dynamodb.put_record(
        visit,
        condition=EDITABLE_DRAFT_CONDITION,
        names={"#st": "status", "#so": "signed_off"},
        values={":draft": VisitStatus.DRAFT.value, ":false": False},
    )
    if not saved:
        raise ConflictError("This visit changed while saving. Please refresh.", visit_id=visit.visit_id)

    log.info(
        "visit_draft_saved",
        visit_id=visit.visit_id,
        member_id=visit.member_id,
        claim_day=visit.visit_date,
        created=existing is None,
    )
    return {
        "visit_id": visit.visit_id,
        "status": VisitStatus.DRAFT.value,
        "claim_day": visit.visit_date,
        "visit_month": visit.visit_month,
    }


# =====================================================
# Deletion
# =====================================================


def _release_lock(lock_key: str | None, visit: VisitRecord) -> bool:
    """Delete the monthly lock only while it still names this visit."""
    if not lock_key:
        return False
    try:
        return dynamodb.delete_item(
            ItemKey.monthly_lock(visit.member_id, visit.visit_month).to_key(),
            condition="#vid = :vid",
            names={"#vid": "visit_id"},
            values={":vid": visit.visit_id},
        )
    except DynamoDBError as e:
        log.warning("monthly_lock_release_failed", lock_key=lock_key, error=str(e))
        return False


def delete_visit(
    admin: AdminIdentity,
    request: DeleteVisitRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Delete a visit with an audit snapshot.

    The owning claim loses the visit and its totals are recomputed in the
    same transaction. The member's monthly lock is released afterwards if
    it still names the deleted visit.
    """
    now = now if now is not None else now_ts()
    if not can_delete_visits(admin):
        raise AuthorizationError(
            'Delete permission required. Enable "SW visit delete" for this staff user in Staff Management.',
            uid=admin.uid,
        )

    item = dynamodb.load_visit_item(request.visit_id)
    if item is None:
        raise NotFoundError("visit", request.visit_id)
    visit = VisitRecord.from_dynamodb(item)
    lock_key = (
        monthly_lock_key(visit.member_id, visit.visit_month)
        if visit.member_id and visit.visit_month
        else None
    )

    audit = DeletionAudit(
        audit_id=uuid4().hex,
        entity="visit",
        entity_id=visit.visit_id,
        reason=request.reason,
        actor_uid=admin.uid,
        actor_email=admin.email,
        actor_name=admin.actor_label,
        deleted_at_iso=iso_from_ts(now),
        snapshot=item,
        claim_id=visit.claim_id or None,
        lock_key=lock_key,
    )
    entries = [
        dynamodb.tx_put(audit),
        dynamodb.tx_delete(visit.key(), condition="attribute_exists(PK)"),
    ]

    claim_totals = None
    claim = dynamodb.load_claim(visit.claim_id) if visit.claim_id else None
    if claim is not None:
        remaining_ids = [v for v in claim.visit_ids if v != visit.visit_id]
        remaining_visits = [mv for mv in claim.member_visits if mv.visit_id != visit.visit_id]
        totals = compute_claim_totals(remaining_ids, FeeSchedule.for_claim(claim))
        claim_totals = totals.to_fields()
        entries.append(
            dynamodb.tx_update(
                claim.key(),
                dynamodb.build_update(
                    {
                        "visit_ids": remaining_ids,
                        "member_visits": [mv.model_dump() for mv in remaining_visits],
                        **claim_totals,
                        "updated_at": now,
                        "version": claim.version + 1,
                    }
                ),
                **version_guard(claim),
            )
        )

    dynamodb.transact_write(entries, operation="delete_visit")
    lock_released = _release_lock(lock_key, visit)

    log.info(
        "visit_deleted",
        visit_id=visit.visit_id,
        claim_id=visit.claim_id,
        audit_id=audit.audit_id,
        lock_released=lock_released,
        actor=admin.actor_label,
    )
    return {
        "visit_id": visit.visit_id,
        "claim_id": visit.claim_id or None,
        "audit_id": audit.audit_id,
        "claim_totals": claim_totals,
        "lock_released": lock_released,
    }
