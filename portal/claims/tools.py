"""
Claim Tools

Status changes, submission and deletion of claims. Every write that
touches a claim together with its visits or its audit trail goes through
a single DynamoDB transaction guarded by the claim's version.
"""

from typing import Any
from uuid import uuid4

import structlog

from portal.shared.auth import AdminIdentity, Identity
from portal.shared.billing import FeeSchedule, compute_claim_totals
from portal.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    DynamoDBError,
    NotFoundError,
    PortalError,
)
from portal.shared.models.dynamo import (
    ClaimEventRecord,
    ClaimRecord,
    DeletionAudit,
    ItemKey,
    VisitRecord,
)
from portal.shared.models.requests import DeleteClaimsRequest, UpdateClaimStatusRequest
from portal.shared.state_machine import (
    ClaimStatus,
    PaymentStatus,
    VisitStatus,
    build_status_updates,
    validate_transition,
)
from portal.shared.timeutil import iso_from_ts, now_ts
from portal.shared.tools import dynamodb

log = structlog.get_logger()

Actor = Identity | AdminIdentity

# Visit fields that tie a visit to a claim
CLAIM_LINK_FIELDS = (
    "claim_id",
    "claim_status",
    "claim_submitted",
    "claim_submitted_at",
    "claim_paid",
    "claim_paid_at",
)

VERSION_CONDITION = "attribute_exists(PK) AND (#ver = :expected_version OR attribute_not_exists(#ver))"

# A visit may be mirrored only while it is unlinked or linked to this claim
VISIT_LINK_CONDITION = (
    "attribute_exists(PK) AND "
    "(attribute_not_exists(#cid) OR #cid = :cid OR #cid = :empty)"
)


def version_guard(claim: ClaimRecord) -> dict[str, Any]:
    return {
        "condition": VERSION_CONDITION,
        "names": {"#ver": "version"},
        "values": {":expected_version": claim.version},
    }


def owns(actor: Actor, record: ClaimRecord | VisitRecord) -> bool:
    """Whether the caller is the social worker on a claim or visit."""
    if record.social_worker_uid and record.social_worker_uid == actor.uid:
        return True
    email = (actor.email or "").lower()
    return bool(email) and record.social_worker_email.lower() == email


def new_claim_event(
    claim: ClaimRecord,
    actor: Actor,
    *,
    now: int,
    event_type: str = "status_change",
    from_status: str | None = None,
    to_status: str | None = None,
    notes: str = "",
) -> ClaimEventRecord:
    return ClaimEventRecord(
        event_id=uuid4().hex,
        claim_id=claim.claim_id,
        event_type=event_type,
        claim_month=claim.claim_month or None,
        social_worker_email=claim.social_worker_email or None,
        rcfe_id=claim.rcfe_id or None,
        rcfe_name=claim.rcfe_name or None,
        from_status=from_status,
        to_status=to_status,
        notes=notes,
        actor_uid=actor.uid,
        actor_email=actor.email,
        actor_name=actor.name,
        created_at_iso=iso_from_ts(now),
        timestamp_ms=now * 1000,
    )


def visit_mirror_fields(
    claim_id: str,
    status: ClaimStatus,
    now: int,
) -> tuple[dict[str, Any], list[str]]:
    """Claim fields copied onto each visit of the claim, plus removals."""
    set_fields: dict[str, Any] = {
        "claim_id": claim_id,
        "claim_status": status.value,
        "claim_submitted": status != ClaimStatus.DRAFT,
        "updated_at": now,
    }
    remove_fields: list[str] = []
    if status == ClaimStatus.SUBMITTED:
        set_fields["claim_submitted_at"] = now
    if status == ClaimStatus.PAID:
        set_fields["claim_paid"] = True
        set_fields["claim_paid_at"] = now
    else:
        set_fields["claim_paid"] = False
        remove_fields.append("claim_paid_at")
    return set_fields, remove_fields


def _mirror_entries(claim: ClaimRecord, status: ClaimStatus, now: int) -> list[dict[str, Any]]:
    """
    Transaction updates mirroring a claim status onto its visits.

    Visits that no longer exist or that were re-linked to another claim
    are left alone.
    """
    visits = dynamodb.load_visits(claim.linked_visit_ids())
    set_fields, remove_fields = visit_mirror_fields(claim.claim_id, status, now)
    update = dynamodb.build_update(set_fields, remove_fields)

    entries = []
    for visit in visits.values():
        if visit.claim_id and visit.claim_id != claim.claim_id:
            log.info(
                "visit_linked_elsewhere_skipped",
                claim_id=claim.claim_id,
                visit_id=visit.visit_id,
                linked_claim_id=visit.claim_id,
            )
            continue
        entries.append(
            dynamodb.tx_update(
                visit.key(),
                update,
                condition=VISIT_LINK_CONDITION,
                names={"#cid": "claim_id"},
                values={":cid": claim.claim_id, ":empty": ""},
            )
        )
    return entries


def _check_transaction_size(claim: ClaimRecord, entries: list[dict[str, Any]], reserved: int) -> None:
    if len(entries) + reserved > dynamodb.TRANSACTION_ITEM_LIMIT:
        raise ConflictError(
            "Claim has too many visits to update atomically",
            claim_id=claim.claim_id,
            visit_count=len(entries),
        )


def _require_claim(claim_id: str) -> ClaimRecord:
    claim = dynamodb.load_claim(claim_id)
    if claim is None:
        raise NotFoundError("claim", claim_id)
    return claim


# =====================================================
# Admin review
# =====================================================


def update_claim_status(
    admin: AdminIdentity,
    request: UpdateClaimStatusRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Move a claim to a new review status.

    The claim update, its audit event and the status mirrored onto every
    linked visit are written in one transaction.

    Raises:
        NotFoundError: Unknown claim
        ConditionalWriteError: The claim or a visit changed concurrently
    """
    now = now if now is not None else now_ts()
    claim = _require_claim(request.claim_id)
    from_status = claim.status
    new_status = request.new_status

    changes = build_status_updates(
        new_status,
        actor_label=admin.actor_label,
        notes=request.review_notes,
        now=now,
    )
    changes.set_fields["version"] = claim.version + 1
    claim_update = dynamodb.build_update(changes.set_fields, changes.remove_fields)

    event = new_claim_event(
        claim,
        admin,
        now=now,
        from_status=from_status.value,
        to_status=new_status.value,
        notes=request.review_notes,
    )
    visit_entries = _mirror_entries(claim, new_status, now)
    _check_transaction_size(claim, visit_entries, reserved=2)

    dynamodb.transact_write(
        [
            dynamodb.tx_update(claim.key(), claim_update, **version_guard(claim)),
            dynamodb.tx_put(event, condition="attribute_not_exists(PK)"),
            *visit_entries,
        ],
        operation="update_claim_status",
    )

    log.info(
        "claim_status_updated",
        claim_id=claim.claim_id,
        from_status=from_status.value,
        to_status=new_status.value,
        visits_updated=len(visit_entries),
        actor=admin.actor_label,
    )

    return {
        "claim_id": claim.claim_id,
        "from_status": from_status.value,
        "to_status": new_status.value,
        "event_id": event.event_id,
        "visits_updated": len(visit_entries),
    }


def list_events(claim_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
    """Audit events of a claim, newest first."""
    events = dynamodb.list_claim_events(claim_id, limit=limit)
    return [
        event.model_dump(exclude_none=True)
        for event in events
    ]


LOOKUP_FIELDS = (
    "claim_id",
    "status",
    "payment_status",
    "claim_day",
    "claim_month",
    "rcfe_id",
    "rcfe_name",
    "rcfe_address",
    "total_amount",
    "visit_count",
)


def lookup_claim(identity: Identity, claim_id: str) -> dict[str, Any]:
    """
    Status summary of one of the caller's own claims.

    Raises:
        NotFoundError: Claim missing
        AuthorizationError: The claim belongs to another social worker
    """
    claim = _require_claim(claim_id)
    if not owns(identity, claim):
        raise AuthorizationError(
            "Claim does not belong to this social worker", claim_id=claim_id, uid=identity.uid
        )
    return {"claim": claim.model_dump(include=set(LOOKUP_FIELDS))}


# =====================================================
# Social worker submission
# =====================================================


def submit_claim(identity: Identity, claim_id: str, *, now: int | None = None) -> dict[str, Any]:
    """
    Submit a draft claim owned by the caller.

    Totals are recomputed from the claim's visit ids before submission.
    """
    now = now if now is not None else now_ts()
    claim = _require_claim(claim_id)

    if not owns(identity, claim):
        raise AuthorizationError("You can only submit your own claims", claim_id=claim_id)
    if claim.status != ClaimStatus.DRAFT:
        raise ConflictError(f"Claim is already {claim.status.value}", claim_id=claim_id)
    validate_transition(claim.status, ClaimStatus.SUBMITTED)

    totals = compute_claim_totals(claim.linked_visit_ids(), FeeSchedule.for_claim(claim))
    claim_update = dynamodb.build_update(
        {
            "status": ClaimStatus.SUBMITTED.value,
            "submitted_at": now,
            "submitted_by": identity.actor_label,
            "submitted_by_admin": False,
            "claim_paid": False,
            "payment_status": PaymentStatus.UNPAID.value,
            "updated_at": now,
            "version": claim.version + 1,
            **totals.to_fields(),
        }
    )
    event = new_claim_event(
        claim,
        identity,
        now=now,
        from_status=claim.status.value,
        to_status=ClaimStatus.SUBMITTED.value,
    )
    visit_entries = _mirror_entries(claim, ClaimStatus.SUBMITTED, now)
    _check_transaction_size(claim, visit_entries, reserved=2)

    dynamodb.transact_write(
        [
            dynamodb.tx_update(claim.key(), claim_update, **version_guard(claim)),
            dynamodb.tx_put(event, condition="attribute_not_exists(PK)"),
            *visit_entries,
        ],
        operation="submit_claim",
    )

    log.info(
        "claim_submitted",
        claim_id=claim_id,
        visit_count=totals.visit_count,
        total_amount=str(totals.total_amount),
    )
    return {
        "claim_id": claim_id,
        "status": ClaimStatus.SUBMITTED.value,
        "visits_updated": len(visit_entries),
        "total_amount": totals.total_amount,
    }


# =====================================================
# Deletion
# =====================================================


def _unlink_visits(claim_id: str, visit_ids: list[str], now: int) -> int:
    """
    Clear the claim link from visits that still point at the claim.

    Best effort: a failed visit is logged and skipped.
    """
    update = dynamodb.build_update({"updated_at": now}, CLAIM_LINK_FIELDS)
    unlinked = 0
    for visit_id in visit_ids:
        try:
            changed = dynamodb.update_item(
                ItemKey.visit(visit_id).to_key(),
                update,
                condition="attribute_exists(PK) AND #cid = :cid",
                names={"#cid": "claim_id"},
                values={":cid": claim_id},
            )
        except DynamoDBError as e:
            log.warning("visit_unlink_failed", claim_id=claim_id, visit_id=visit_id, error=str(e))
            continue
        if changed:
            unlinked += 1
    return unlinked


def delete_claims(
    admin: AdminIdentity,
    request: DeleteClaimsRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Delete claims, keeping an audit snapshot of each.

    Visits are never deleted; only those still pointing at a deleted
    claim are unlinked. Failures are collected per claim.
    """
    now = now if now is not None else now_ts()
    deleted: list[str] = []
    errors: list[dict[str, str]] = []
    visits_unlinked = 0

    for claim_id in request.claim_ids:
        try:
            item = dynamodb.load_claim_item(claim_id)
            if item is None:
                raise NotFoundError("claim", claim_id)
            claim = ClaimRecord.from_dynamodb(item)
            visit_ids = claim.linked_visit_ids()

            audit = DeletionAudit(
                audit_id=uuid4().hex,
                entity="claim",
                entity_id=claim_id,
                reason=request.reason,
                actor_uid=admin.uid,
                actor_email=admin.email,
                actor_name=admin.name,
                deleted_at_iso=iso_from_ts(now),
                snapshot=item,
                visit_ids=visit_ids,
            )
            dynamodb.transact_write(
                [
                    dynamodb.tx_put(audit),
                    dynamodb.tx_delete(claim.key(), **version_guard(claim)),
                ],
                operation="delete_claim",
            )
        except PortalError as e:
            log.warning("claim_delete_failed", claim_id=claim_id, error=str(e))
            errors.append({"claim_id": claim_id, "error": e.message})
            continue

        deleted.append(claim_id)
        visits_unlinked += _unlink_visits(claim_id, visit_ids, now)

    log.info(
        "claims_deleted",
        requested=len(request.claim_ids),
        deleted=len(deleted),
        errors=len(errors),
        visits_unlinked=visits_unlinked,
        actor=admin.actor_label,
    )
    return {
        "deleted": len(deleted),
        "deleted_claim_ids": deleted,
        "errors": errors,
        "visits_unlinked": visits_unlinked,
    }


def delete_draft_claim(identity: Identity, claim_id: str) -> dict[str, Any]:
    """
    Delete the caller's draft claim together with its draft visits.

    Raises:
        ConflictError: The claim left draft, carries sign-offs, or a visit
            is signed off, submitted or linked to another claim
    """
    claim = _require_claim(claim_id)
    if not owns(identity, claim):
        raise AuthorizationError("You can only delete your own claims", claim_id=claim_id)
    if claim.status != ClaimStatus.DRAFT:
        raise ConflictError("Only draft claims can be deleted", claim_id=claim_id)
    if claim.signoff_by_id:
        raise ConflictError("Claims with sign-offs cannot be deleted", claim_id=claim_id)

    visits = dynamodb.load_visits(claim.linked_visit_ids())
    blocked = []
    for visit in visits.values():
        if visit.signed_off or visit.status != VisitStatus.DRAFT or visit.claim_submitted:
            blocked.append({"visit_id": visit.visit_id, "reason": "finalized"})
        elif visit.claim_id and visit.claim_id != claim_id:
            blocked.append({"visit_id": visit.visit_id, "reason": "linked_to_other_claim"})
    if blocked:
        raise ConflictError(
            "Claim has visits that cannot be deleted",
            claim_id=claim_id,
            details=blocked,
        )
    if len(visits) + 1 > dynamodb.TRANSACTION_ITEM_LIMIT:
        raise ConflictError("Claim has too many visits to delete atomically", claim_id=claim_id)

    visit_deletes = [
        dynamodb.tx_delete(
            visit.key(),
            condition="attribute_exists(PK) AND #st = :draft AND (attribute_not_exists(#so) OR #so = :false)",
            names={"#st": "status", "#so": "signed_off"},
            values={":draft": VisitStatus.DRAFT.value, ":false": False},
        )
        for visit in visits.values()
    ]
    dynamodb.transact_write(
        [dynamodb.tx_delete(claim.key(), **version_guard(claim)), *visit_deletes],
        operation="delete_draft_claim",
    )

    log.info("draft_claim_deleted", claim_id=claim_id, visits_deleted=len(visit_deletes))
    return {"claim_id": claim_id, "visits_deleted": len(visit_deletes)}
