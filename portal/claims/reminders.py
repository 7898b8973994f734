"""
Claim reminder digests.

Admins nudge social workers about claims awaiting their action: one
email per social worker listing their claims, and a `reminder_sent`
event on each listed claim.
"""

from collections import defaultdict
from typing import Any

import structlog

from portal.claims.tools import new_claim_event
from portal.shared.auth import AdminIdentity
from portal.shared.config import get_settings
from portal.shared.exceptions import PortalError
from portal.shared.models.dynamo import ClaimRecord
from portal.shared.models.requests import SendClaimRemindersRequest
from portal.shared.state_machine import ClaimStatus
from portal.shared.timeutil import now_ts
from portal.shared.tools import dynamodb
from portal.shared.tools.email import send_ses_email
from portal.shared.tools.templates import render_email

log = structlog.get_logger()

CLAIMS_PAGE_PATH = "/sw-portal/status-log"


def _digest_line(claim: ClaimRecord) -> dict[str, Any]:
    return {
        "claim_id": claim.claim_id,
        "claim_day": claim.claim_day or claim.claim_month,
        "rcfe_id": claim.rcfe_id,
        "rcfe_name": claim.rcfe_name,
        "visit_count": claim.visit_count,
        "total_amount": claim.total_amount,
        "status": claim.status.value,
    }


def _notify_social_worker(
    admin: AdminIdentity,
    email: str,
    claims: list[ClaimRecord],
    message: str,
    now: int,
) -> str:
    settings = get_settings()
    rendered = render_email(
        "claim_reminder",
        {
            "social_worker_name": claims[0].social_worker_name or "Social Worker",
            "claims": [_digest_line(c) for c in claims],
            "message": message,
            "link": f"{settings.portal_base_url.rstrip('/')}{CLAIMS_PAGE_PATH}",
        },
    )
    message_id = send_ses_email(email, rendered)

    for claim in claims:
        event = new_claim_event(
            claim,
            admin,
            now=now,
            event_type="reminder_sent",
            notes=message or f"Reminder sent to {email}",
        )
        try:
            dynamodb.put_record(event)
        except PortalError as e:
            log.warning("claim_event_write_failed", claim_id=claim.claim_id, error=str(e))
    return message_id


def send_claim_reminders(
    admin: AdminIdentity,
    request: SendClaimRemindersRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Email each social worker a digest of the requested claims.

    Draft claims only unless `only_draft` is false. A failed email is
    reported for its recipient and the rest continue.
    """
    now = now if now is not None else now_ts()
    claims = dynamodb.load_claims(request.claim_ids)
    eligible = [
        claim
        for claim in (claims[c] for c in request.claim_ids if c in claims)
        if not request.only_draft or claim.status == ClaimStatus.DRAFT
    ]

    by_social_worker: dict[str, list[ClaimRecord]] = defaultdict(list)
    for claim in eligible:
        email = claim.social_worker_email.strip().lower()
        if email:
            by_social_worker[email].append(claim)

    sent: list[dict[str, Any]] = []
    errors: list[dict[str, str]] = []
    for email, sw_claims in by_social_worker.items():
        try:
            message_id = _notify_social_worker(admin, email, sw_claims, request.message, now)
        except (PortalError, ValueError) as e:
            log.warning("claim_reminder_failed", to=email, error=str(e))
            errors.append({"to": email, "error": getattr(e, "message", str(e))})
            continue
        sent.append({"to": email, "item_count": len(sw_claims), "message_id": message_id})

    log.info(
        "claim_reminders_sent",
        requested=len(request.claim_ids),
        eligible=len(eligible),
        notified=len(sent),
        errors=len(errors),
        actor=admin.actor_label,
    )
    return {
        "requested": len(request.claim_ids),
        "eligible": len(eligible),
        "social_workers_notified": len(sent),
        "sent": sent,
        "errors": errors,
    }
