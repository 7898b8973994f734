"""
Admin monthly visit reports.

Social workers are matched across the member cache, visits and claims
by a normalized name key: members carry only the assigned social
worker's name, so visits and claims are keyed by name too, falling
back to email and then uid when the name is blank.
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from portal.shared.exceptions import ValidationError
from portal.shared.models.dynamo import ClaimRecord, MemberRecord, VisitRecord
from portal.shared.state_machine import VisitStatus
from portal.shared.tools import dynamodb
from portal.visits.tools import is_on_hold

log = structlog.get_logger()

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

VISIT_LOOKUP_FIELDS = frozenset({
    "visit_id",
    "status",
    "member_id",
    "member_name",
    "rcfe_id",
    "rcfe_name",
    "visit_date",
    "visit_month",
    "social_worker_name",
    "social_worker_email",
    "signed_off",
    "claim_id",
    "claim_status",
    "total_score",
    "flagged",
})


def require_month(month: str | None) -> str:
    """
    >>> require_month(" 2025-02 ")
    '2025-02'
    """
    value = (month or "").strip()
    if not MONTH_PATTERN.match(value):
        raise ValidationError("month must be YYYY-MM", month=month)
    return value


def social_worker_key(value: str) -> str:
    """
    Matching key for a social worker name.

    >>> social_worker_key("  O'Brien,  Sam ")
    'o brien sam'
    """
    return " ".join(re.sub(r"[^a-z0-9]+", " ", (value or "").lower()).split())


def _record_key(record: VisitRecord | ClaimRecord) -> str:
    return social_worker_key(
        record.social_worker_name or record.social_worker_email or record.social_worker_uid
    )


def _is_completed(visit: VisitRecord) -> bool:
    return visit.signed_off or visit.status == VisitStatus.SIGNED_OFF


@dataclass
class _SocialWorkerMonth:
    key: str
    name: str = ""
    members: list[MemberRecord] = field(default_factory=list)
    completed: dict[str, VisitRecord] = field(default_factory=dict)
    claims: list[ClaimRecord] = field(default_factory=list)

    def name_from(self, raw: str) -> None:
        if not self.name and raw.strip():
            self.name = raw.strip()

    @property
    def active(self) -> list[MemberRecord]:
        return [m for m in self.members if not is_on_hold(m.hold_for_social_worker)]

    @property
    def on_hold(self) -> list[MemberRecord]:
        return [m for m in self.members if is_on_hold(m.hold_for_social_worker)]

    @property
    def outstanding(self) -> list[MemberRecord]:
        return [m for m in self.active if m.member_id not in self.completed]

    @property
    def claims_total(self) -> Decimal:
        return sum((c.total_amount for c in self.claims), Decimal("0"))

    def summary(self) -> dict[str, Any]:
        active = len(self.active)
        return {
            "key": self.key,
            "social_worker_name": self.name or self.key,
            "assigned_total": len(self.members),
            "assigned_active": active,
            "on_hold": len(self.on_hold),
            "completed": len(self.completed),
            "outstanding": max(0, active - len(self.completed)),
            "claims_count": len(self.claims),
            "claims_total_amount": self.claims_total,
        }


def _collect(month: str) -> tuple[dict[str, _SocialWorkerMonth], dict[str, int]]:
    rows: dict[str, _SocialWorkerMonth] = {}

    def row(key: str) -> _SocialWorkerMonth:
        if key not in rows:
            rows[key] = _SocialWorkerMonth(key=key)
        return rows[key]

    members = sorted(dynamodb.list_members(), key=lambda m: m.member_id)
    for member in members:
        key = social_worker_key(member.social_worker_assigned)
        if not key:
            continue
        entry = row(key)
        entry.name_from(member.social_worker_assigned)
        entry.members.append(member)

    visits = sorted(dynamodb.list_month_visits(month), key=lambda v: (v.visit_date, v.visit_id))
    for visit in visits:
        key = _record_key(visit)
        if not key or not visit.member_id or not _is_completed(visit):
            continue
        entry = row(key)
        entry.name_from(visit.social_worker_name)
        entry.completed.setdefault(visit.member_id, visit)

    claims = dynamodb.list_month_claims(month)
    for claim in claims:
        key = _record_key(claim)
        if not key or claim.archived:
            continue
        entry = row(key)
        entry.name_from(claim.social_worker_name)
        entry.claims.append(claim)

    scanned = {"members": len(members), "visits": len(visits), "claims": len(claims)}
    return rows, scanned


def monthly_summary(month: str) -> dict[str, Any]:
    """
    Per social worker: assigned members, completed visits and claims for a month.

    Rows with the most outstanding visits come first.

    Raises:
        ValidationError: month is not YYYY-MM
    """
    month = require_month(month)
    rows, scanned = _collect(month)

    summaries = [entry.summary() for entry in rows.values()]
    summaries.sort(
        key=lambda r: (
            -r["outstanding"],
            -r["assigned_active"],
            -r["claims_total_amount"],
            r["social_worker_name"].lower(),
        )
    )

    totals: dict[str, Any] = defaultdict(int)
    for summary in summaries:
        for name in ("assigned_total", "assigned_active", "on_hold", "completed", "outstanding", "claims_count"):
            totals[name] += summary[name]
    totals["claims_total_amount"] = sum(
        (s["claims_total_amount"] for s in summaries), Decimal("0")
    )
    totals.update({f"{name}_scanned": count for name, count in scanned.items()})

    log.info("sw_monthly_summary_built", month=month, social_workers=len(summaries))
    return {"month": month, "rows": summaries, "totals": dict(totals)}


def _member_line(member: MemberRecord) -> dict[str, Any]:
    return {
        "member_id": member.member_id,
        "member_name": f"{member.first_name} {member.last_name}".strip(),
        "rcfe_name": member.rcfe_name,
        "on_hold": is_on_hold(member.hold_for_social_worker),
    }


def _visit_line(visit: VisitRecord) -> dict[str, Any]:
    return {
        "visit_id": visit.visit_id,
        "member_id": visit.member_id,
        "member_name": visit.member_name,
        "rcfe_name": visit.rcfe_name,
        "visit_date": visit.visit_date,
    }


def monthly_detail(month: str, sw_key: str) -> dict[str, Any]:
    """
    Member lists behind one row of the monthly summary.

    Raises:
        ValidationError: month is not YYYY-MM, or swKey is missing
    """
    month = require_month(month)
    key = social_worker_key(sw_key)
    if not key:
        raise ValidationError("swKey is required")

    rows, _ = _collect(month)
    entry = rows.get(key) or _SocialWorkerMonth(key=key)
    return {
        "month": month,
        "key": key,
        "social_worker_name": entry.name or key,
        "assigned_total": [_member_line(m) for m in entry.members],
        "assigned_active": [_member_line(m) for m in entry.active],
        "on_hold": [_member_line(m) for m in entry.on_hold],
        "completed": [_visit_line(v) for v in entry.completed.values()],
        "outstanding": [_member_line(m) for m in entry.outstanding],
        "claims_count": len(entry.claims),
        "claims_total_amount": entry.claims_total,
    }


def visits_by_ids(visit_ids: list[str]) -> dict[str, Any]:
    """Selected fields of the requested visits; unknown ids are listed separately."""
    found = dynamodb.load_visits(visit_ids)
    visits = [
        found[visit_id].model_dump(include=VISIT_LOOKUP_FIELDS)
        for visit_id in visit_ids
        if visit_id in found
    ]
    missing = [visit_id for visit_id in visit_ids if visit_id not in found]
    return {"visits": visits, "missing": missing}
