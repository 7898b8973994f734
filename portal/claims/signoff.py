"""
Facility sign-off of social worker visits.

A sign-off turns a social worker's draft visits at one facility on one
day into a submitted claim. Monthly locks keep a member to one billable
visit per month.
"""

import hashlib
from collections import defaultdict
from typing import Any
from uuid import uuid4

import structlog

from portal.claims.tools import new_claim_event, owns
from portal.shared.auth import AdminIdentity, Identity
from portal.shared.billing import FeeSchedule, compute_claim_totals
from portal.shared.exceptions import ConflictError, DynamoDBError, NotFoundError
from portal.shared.models.dynamo import (
    ClaimRecord,
    MemberVisit,
    MonthlyLock,
    SignOffRecord,
    VisitRecord,
    monthly_lock_key,
)
from portal.shared.models.requests import OverrideSignOffRequest, SubmitSignOffRequest
from portal.shared.state_machine import ClaimStatus, VisitStatus
from portal.shared.timeutil import iso_from_ts, now_ts
from portal.shared.tools import dynamodb

log = structlog.get_logger()

ATTESTATION_TEMPLATE = (
    "I acknowledge that {social_worker} is at this location to visit the below members."
)
OVERRIDE_SIGNATURE = "ADMIN_OVERRIDE"
UNKNOWN_RCFE = "unknown-rcfe"

DRAFT_VISIT_CONDITION = (
    "attribute_exists(PK) AND #st = :draft AND (attribute_not_exists(#so) OR #so = :false)"
)


def build_claim_id(owner_key: str, claim_day: str, rcfe_id: str) -> str:
    """
    Deterministic claim id for one social worker, facility and day.

    >>> build_claim_id("sw1", "2026-03-05", "rcfe-9")[:21]
    'swClaim_sw1_20260305_'
    """
    rcfe_hash = hashlib.sha1(str(rcfe_id or "").encode("utf-8")).hexdigest()[:10]
    return f"swClaim_{owner_key or 'unknown'}_{claim_day.replace('-', '')}_{rcfe_hash}"


def _eligibility_problems(
    identity: Identity,
    request: SubmitSignOffRequest,
    visits: list[VisitRecord],
) -> list[dict[str, str]]:
    problems = []
    for visit in visits:
        reason = None
        if not owns(identity, visit):
            reason = "not_owned"
        elif visit.rcfe_id != request.rcfe_id:
            reason = "different_rcfe"
        elif visit.visit_date != request.claim_day:
            reason = "different_day"
        elif visit.signed_off or visit.status != VisitStatus.DRAFT:
            reason = "already_signed_off"
        elif visit.is_claimed:
            reason = "already_claimed"
        elif not visit.member_id:
            reason = "missing_member"
        if reason:
            problems.append({"visit_id": visit.visit_id, "reason": reason})
    return problems


def _lock_conflicts(visits: list[VisitRecord], visit_month: str) -> list[dict[str, str]]:
    """Members already billed this month by another visit, including within the batch."""
    existing = dynamodb.load_monthly_locks([(v.member_id, visit_month) for v in visits])
    conflicts = []
    claimed_in_batch: dict[str, str] = {}
    for visit in visits:
        key = monthly_lock_key(visit.member_id, visit_month)
        lock = existing.get(key)
        holder = claimed_in_batch.get(key) or (lock.visit_id if lock else None)
        if holder and holder != visit.visit_id:
            conflicts.append(
                {
                    "member_id": visit.member_id,
                    "member_name": visit.member_name,
                    "existing_visit_id": holder,
                }
            )
        claimed_in_batch.setdefault(key, visit.visit_id)
    return conflicts


def submit_signoff(
    identity: Identity,
    request: SubmitSignOffRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Record facility staff sign-off and create the day's claim.

    The claim, the sign-off record, the monthly locks and the finalized
    visits are written in one transaction.

    Raises:
        NotFoundError: A selected visit does not exist
        ConflictError: Ineligible visits, lock conflicts or an existing claim
    """
    now = now if now is not None else now_ts()
    found = dynamodb.load_visits(request.selected_visit_ids)
    missing = [v for v in request.selected_visit_ids if v not in found]
    if missing:
        raise NotFoundError("visit", ", ".join(missing))
    visits = [found[v] for v in request.selected_visit_ids]

    problems = _eligibility_problems(identity, request, visits)
    if problems:
        raise ConflictError(
            "One or more selected visits are no longer eligible to submit. Please refresh.",
            details=problems,
        )

    claim_id = build_claim_id(identity.uid or identity.email, request.claim_day, request.rcfe_id)
    existing = dynamodb.load_claim(claim_id)
    if existing is not None:
        raise ConflictError(
            f"A claim already exists for this facility and day ({existing.status.value})",
            claim_id=claim_id,
        )

    visit_month = request.claim_day[:7]
    conflicts = _lock_conflicts(visits, visit_month)
    if conflicts:
        raise ConflictError(
            "Member already has a completed visit this month",
            details=conflicts,
        )

    fees = FeeSchedule.default()
    totals = compute_claim_totals([v.visit_id for v in visits], fees)
    first = visits[0]
    social_worker_name = request.social_worker_name or identity.name or first.social_worker_name
    signed_at_iso = request.signed_at or iso_from_ts(now)
    member_names = list(dict.fromkeys(v.member_name for v in visits if v.member_name))

    signoff = SignOffRecord(
        signoff_id=uuid4().hex,
        source="social_worker",
        social_worker_uid=identity.uid,
        social_worker_email=identity.email,
        rcfe_id=request.rcfe_id,
        rcfe_name=first.rcfe_name,
        claim_day=request.claim_day,
        claim_id=claim_id,
        visit_ids=[v.visit_id for v in visits],
        member_names=member_names,
        staff_name=request.staff_name,
        staff_title=request.staff_title,
        signature=request.signature,
        signed_at_iso=signed_at_iso,
        attestation=ATTESTATION_TEMPLATE.format(social_worker=social_worker_name or "the social worker"),
        geolocation=request.geolocation.model_dump(exclude_none=True) if request.geolocation else None,
        created_at=now,
    )

    claim = ClaimRecord(
        claim_id=claim_id,
        status=ClaimStatus.SUBMITTED,
        social_worker_uid=identity.uid,
        social_worker_email=identity.email,
        social_worker_name=social_worker_name,
        rcfe_id=request.rcfe_id,
        rcfe_name=first.rcfe_name,
        rcfe_address=first.rcfe_address,
        claim_day=request.claim_day,
        claim_month=visit_month,
        visit_ids=[v.visit_id for v in visits],
        member_visits=[
            MemberVisit(
                visit_id=v.visit_id,
                member_id=v.member_id,
                member_name=v.member_name,
                member_room_number=v.member_room_number or "",
                visit_date=request.claim_day,
                flagged=v.flagged,
            )
            for v in visits
        ],
        visit_count=totals.visit_count,
        visit_fee_rate=totals.visit_fee_rate,
        gas_rate=fees.gas_amount,
        gas_amount=totals.gas_amount,
        total_member_visit_fees=totals.total_member_visit_fees,
        total_amount=totals.total_amount,
        submitted_at=now,
        signoff_by_id={
            signoff.signoff_id: {
                "rcfe_id": request.rcfe_id,
                "claim_day": request.claim_day,
                "visit_ids": signoff.visit_ids,
                "member_names": member_names,
                "signed_by_name": request.staff_name,
                "signed_by_title": request.staff_title,
                "signed_at": signed_at_iso,
                "location_verified": signoff.location_verified,
            }
        },
        created_at=now,
        updated_at=now,
        version=1,
    )

    entries = [
        dynamodb.tx_put(claim, condition="attribute_not_exists(PK)"),
        dynamodb.tx_put(signoff, condition="attribute_not_exists(PK)"),
    ]
    for visit in visits:
        lock = MonthlyLock(
            member_id=visit.member_id,
            visit_month=visit_month,
            visit_id=visit.visit_id,
            claim_id=claim_id,
            social_worker_uid=identity.uid,
            created_at=now,
        )
        entries.append(
            dynamodb.tx_put(
                lock,
                condition="attribute_not_exists(PK) OR #vid = :vid",
                names={"#vid": "visit_id"},
                values={":vid": visit.visit_id},
            )
        )
        entries.append(
            dynamodb.tx_update(
                visit.key(),
                dynamodb.build_update(
                    {
                        "status": VisitStatus.SIGNED_OFF.value,
                        "signed_off": True,
                        "sign_off_id": signoff.signoff_id,
                        "signed_off_at": now,
                        "claim_id": claim_id,
                        "claim_status": ClaimStatus.SUBMITTED.value,
                        "claim_submitted": True,
                        "claim_submitted_at": now,
                        "updated_at": now,
                    }
                ),
                condition=DRAFT_VISIT_CONDITION,
                names={"#st": "status", "#so": "signed_off"},
                values={":draft": VisitStatus.DRAFT.value, ":false": False},
            )
        )

    dynamodb.transact_write(entries, operation="submit_signoff")

    event = new_claim_event(
        claim,
        identity,
        now=now,
        event_type="created",
        to_status=ClaimStatus.SUBMITTED.value,
        notes=f"Signed off by {request.staff_name}",
    )
    try:
        dynamodb.put_record(event)
    except DynamoDBError as e:
        log.warning("claim_event_write_failed", claim_id=claim_id, error=str(e))

    log.info(
        "signoff_submitted",
        claim_id=claim_id,
        signoff_id=signoff.signoff_id,
        visit_count=totals.visit_count,
        total_amount=str(totals.total_amount),
        location_verified=signoff.location_verified,
    )
    return {
        "claim_id": claim_id,
        "signoff_id": signoff.signoff_id,
        "visit_count": totals.visit_count,
        "total_amount": totals.total_amount,
        "location_verified": signoff.location_verified,
    }


def override_signoff(
    admin: AdminIdentity,
    request: OverrideSignOffRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Admin attestation for visits the facility could not sign.

    Visits are grouped by facility with one sign-off record per group.
    Missing and already signed-off visits are skipped and reported.

    Raises:
        NotFoundError: None of the visits exist
    """
    now = now if now is not None else now_ts()
    found = dynamodb.load_visits(request.visit_ids)
    if not found:
        raise NotFoundError("visit", ", ".join(request.visit_ids))

    missing = [v for v in request.visit_ids if v not in found]
    already_signed = [v.visit_id for v in found.values() if v.signed_off]

    by_rcfe: dict[str, list[VisitRecord]] = defaultdict(list)
    for visit_id in request.visit_ids:
        visit = found.get(visit_id)
        if visit is None or visit.signed_off:
            continue
        by_rcfe[visit.rcfe_id or UNKNOWN_RCFE].append(visit)

    staff_name = request.rcfe_staff_name or admin.actor_label
    staff_title = request.rcfe_staff_title or "Admin"
    signoff_ids: list[str] = []
    signed: list[str] = []

    for rcfe_id, group in by_rcfe.items():
        # sign-off record + one update per visit
        for start in range(0, len(group), dynamodb.TRANSACTION_ITEM_LIMIT - 1):
            chunk = group[start : start + dynamodb.TRANSACTION_ITEM_LIMIT - 1]
            signoff = SignOffRecord(
                signoff_id=uuid4().hex,
                source="admin_override",
                social_worker_uid=chunk[0].social_worker_uid,
                social_worker_email=chunk[0].social_worker_email,
                rcfe_id=rcfe_id,
                rcfe_name=chunk[0].rcfe_name,
                claim_day=chunk[0].visit_date,
                visit_ids=[v.visit_id for v in chunk],
                member_names=list(dict.fromkeys(v.member_name for v in chunk if v.member_name)),
                staff_name=staff_name,
                staff_title=staff_title,
                signature=OVERRIDE_SIGNATURE,
                signed_at_iso=iso_from_ts(now),
                attestation="Admin override sign-off",
                override_reason=request.reason or None,
                created_at=now,
            )
            update = dynamodb.build_update(
                {
                    "status": VisitStatus.SIGNED_OFF.value,
                    "signed_off": True,
                    "sign_off_id": signoff.signoff_id,
                    "signed_off_at": now,
                    "updated_at": now,
                }
            )
            dynamodb.transact_write(
                [
                    dynamodb.tx_put(signoff, condition="attribute_not_exists(PK)"),
                    *(
                        dynamodb.tx_update(
                            visit.key(),
                            update,
                            condition="attribute_exists(PK) AND (attribute_not_exists(#so) OR #so = :false)",
                            names={"#so": "signed_off"},
                            values={":false": False},
                        )
                        for visit in chunk
                    ),
                ],
                operation="override_signoff",
            )
            signoff_ids.append(signoff.signoff_id)
            signed.extend(v.visit_id for v in chunk)

    log.info(
        "signoff_overridden",
        signed=len(signed),
        skipped_signed=len(already_signed),
        missing=len(missing),
        signoff_count=len(signoff_ids),
        actor=admin.actor_label,
    )
    return {
        "signed_visit_ids": signed,
        "signoff_ids": signoff_ids,
        "already_signed_visit_ids": already_signed,
        "missing_visit_ids": missing,
    }
