"""
Notification Tools

Staff notification fan-out: one in-portal notification per recipient,
optionally mirrored by email. Each recipient succeeds or fails on its
own; one failure never stops the rest.
"""

from dataclasses import asdict, dataclass
from typing import Any
from uuid import uuid4

import structlog

from portal.shared.exceptions import PortalError
from portal.shared.models.dynamo import NotificationRecord
from portal.shared.models.requests import NotifyStaffRequest, Recipient
from portal.shared.timeutil import iso_from_ts, now_ts
from portal.shared.tools import dynamodb
from portal.shared.tools.email import send_ses_email, validate_email_address
from portal.shared.tools.templates import render_email

log = structlog.get_logger()


@dataclass
class RecipientOutcome:
    """Delivery result for one recipient."""

    recipient: str
    success: bool
    notification_id: str | None = None
    email_status: str | None = None
    error: str | None = None


def _send_copy(recipient: Recipient, request: NotifyStaffRequest) -> tuple[str, str | None, str | None]:
    """Email a copy of the notification. Returns (status, message_id, error)."""
    if not recipient.email:
        return "skipped", None, "Recipient has no email address"
    try:
        address = validate_email_address(recipient.email)
        rendered = render_email(
            "staff_notification",
            {"title": request.title, "message": request.message, "link": request.link},
        )
        message_id = send_ses_email(address, rendered)
    except PortalError as e:
        log.warning("notification_email_failed", recipient=recipient.key, error=str(e))
        return "failed", None, e.message
    return "sent", message_id, None


def fan_out(
    request: NotifyStaffRequest,
    *,
    sender_uid: str | None = None,
    sender_name: str | None = None,
    now: int | None = None,
) -> list[RecipientOutcome]:
    """Write a notification for every recipient and optionally email each."""
    now = now if now is not None else now_ts()
    outcomes: list[RecipientOutcome] = []

    for offset, recipient in enumerate(request.recipients):
        email_status = message_id = email_error = None
        if request.send_email:
            email_status, message_id, email_error = _send_copy(recipient, request)

        record = NotificationRecord(
            notification_id=uuid4().hex,
            recipient=recipient.key,
            recipient_email=recipient.email,
            title=request.title,
            message=request.message,
            kind=request.kind,
            link=request.link,
            application_id=request.application_id,
            sender_uid=sender_uid,
            sender_name=sender_name,
            email_status=email_status,
            email_message_id=message_id,
            created_at_iso=iso_from_ts(now),
            # keeps sort keys distinct within one fan-out
            timestamp_ms=now * 1000 + offset,
        )
        try:
            dynamodb.put_notification(record)
        except PortalError as e:
            log.error("notification_write_failed", recipient=recipient.key, error=str(e))
            outcomes.append(
                RecipientOutcome(
                    recipient=recipient.key,
                    success=False,
                    email_status=email_status,
                    error=e.message,
                )
            )
            continue

        outcomes.append(
            RecipientOutcome(
                recipient=recipient.key,
                success=email_status != "failed",
                notification_id=record.notification_id,
                email_status=email_status,
                error=email_error,
            )
        )

    log.info(
        "staff_notified",
        recipients=len(outcomes),
        succeeded=sum(1 for o in outcomes if o.success),
        kind=request.kind,
    )
    return outcomes


def outcomes_payload(outcomes: list[RecipientOutcome]) -> dict[str, Any]:
    return {
        "sent": sum(1 for o in outcomes if o.success),
        "failed": sum(1 for o in outcomes if not o.success),
        "results": [asdict(o) for o in outcomes],
    }
