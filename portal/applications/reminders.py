"""
Application reminder emails.

Referrers are reminded about missing documents and about the CS member
summary. The daily scan and the admin "send now" actions share the
per-kind policy and the outcome bookkeeping defined here; only the scan
applies the cooldown and the reminder cap.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlencode

import structlog

from portal.applications.documents import has_completed_cs_summary, missing_required_documents
from portal.shared.auth import AdminIdentity
from portal.shared.config import get_settings
from portal.shared.exceptions import NotFoundError, PortalError, ValidationError
from portal.shared.models.dynamo import ApplicationRecord
from portal.shared.state_machine import ApplicationStatus
from portal.shared.timeutil import now_ts
from portal.shared.tools import dynamodb
from portal.shared.tools.email import send_ses_email
from portal.shared.tools.templates import render_email

log = structlog.get_logger()


class ReminderKind(str, Enum):
    """Reminder job, matching the `jobs` list of the scheduled event."""

    DOCUMENTS = "documents"
    CS_SUMMARY = "cs_summary"


@dataclass(frozen=True)
class ReminderPolicy:
    """
    Per-job configuration.

    The *_field names are the application attributes the job reads and
    writes.
    """

    kind: ReminderKind
    template: str
    last_sent_field: str
    count_field: str
    status_field: str
    message_id_field: str
    error_field: str
    cooldown_days: int
    max_reminders: int

    def cooldown_for(self, application: ApplicationRecord) -> int:
        """
        Days between reminders for this application.

        A per-application document frequency may lengthen the cooldown
        but never shorten it.
        """
        if self.kind == ReminderKind.DOCUMENTS and application.document_reminder_frequency_days:
            return max(self.cooldown_days, application.document_reminder_frequency_days)
        return self.cooldown_days

    def last_sent(self, application: ApplicationRecord) -> int | None:
        return getattr(application, self.last_sent_field)

    def sent_count(self, application: ApplicationRecord) -> int:
        return int(getattr(application, self.count_field) or 0)


def build_policies(*, cooldown_days: int, max_reminders: int) -> dict[ReminderKind, ReminderPolicy]:
    return {
        ReminderKind.DOCUMENTS: ReminderPolicy(
            kind=ReminderKind.DOCUMENTS,
            template="document_reminder",
            last_sent_field="last_document_reminder",
            count_field="document_reminder_count",
            status_field="document_reminder_status",
            message_id_field="document_reminder_message_id",
            error_field="document_reminder_error",
            cooldown_days=cooldown_days,
            max_reminders=max_reminders,
        ),
        ReminderKind.CS_SUMMARY: ReminderPolicy(
            kind=ReminderKind.CS_SUMMARY,
            template="cs_summary_reminder",
            last_sent_field="last_cs_summary_reminder",
            count_field="cs_summary_reminder_count",
            status_field="cs_summary_reminder_status",
            message_id_field="cs_summary_reminder_message_id",
            error_field="cs_summary_reminder_error",
            cooldown_days=cooldown_days,
            max_reminders=max_reminders,
        ),
    }


def policy_for(kind: ReminderKind) -> ReminderPolicy:
    """The configured policy for one kind."""
    settings = get_settings()
    policies = build_policies(
        cooldown_days=settings.reminder_cooldown_days,
        max_reminders=settings.max_reminders,
    )
    return policies[kind]


def reminder_link(base_url: str, application: ApplicationRecord, kind: ReminderKind) -> str:
    """
    Portal link placed in the reminder email.

    >>> app = ApplicationRecord(application_id="a1", user_id="u1")
    >>> reminder_link("https://portal.test", app, ReminderKind.DOCUMENTS)
    'https://portal.test/pathway?applicationId=a1'
    """
    base = base_url.rstrip("/")
    if kind == ReminderKind.DOCUMENTS:
        return f"{base}/pathway?{urlencode({'applicationId': application.application_id})}"
    query = {"applicationId": application.application_id}
    if application.user_id:
        query["userId"] = application.user_id
    return f"{base}/forms/cs-summary-form/review?{urlencode(query)}"


def email_context(
    application: ApplicationRecord, kind: ReminderKind, missing_documents: list[str]
) -> dict[str, Any]:
    settings = get_settings()
    return {
        "referrer_name": application.referrer_name,
        "member_name": application.member_name or "your member",
        "missing_documents": missing_documents,
        "link": reminder_link(settings.portal_base_url, application, kind),
    }


def record_outcome(
    application: ApplicationRecord,
    policy: ReminderPolicy,
    now: int,
    *,
    message_id: str | None = None,
    error: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Write the send outcome; only a successful send counts toward the cap."""
    if error is None:
        update = dynamodb.build_update(
            {
                policy.last_sent_field: now,
                policy.status_field: "sent",
                policy.message_id_field: message_id,
                **(extra or {}),
            },
            remove_fields=[policy.error_field],
            add_fields={policy.count_field: 1},
        )
    else:
        update = dynamodb.build_update(
            {
                policy.status_field: "failed",
                policy.error_field: error,
                f"{policy.status_field}_at": now,
            }
        )
    dynamodb.update_item(application.key(), update)


def deliver(
    application: ApplicationRecord,
    policy: ReminderPolicy,
    missing_documents: list[str],
    now: int,
    *,
    extra: dict[str, Any] | None = None,
) -> str:
    """
    Send one reminder and record the outcome.

    The failure is recorded on the application before the error is re-raised.

    Returns:
        SES message id

    Raises:
        PortalError: If rendering, the send or the outcome write fails
    """
    try:
        rendered = render_email(
            policy.template, email_context(application, policy.kind, missing_documents)
        )
    except ValueError as e:
        raise PortalError(str(e), application_id=application.application_id) from e

    try:
        message_id = send_ses_email(application.referrer_email, rendered)
    except Exception as e:
        error = e.message if isinstance(e, PortalError) else str(e)
        record_outcome(application, policy, now, error=error)
        raise

    record_outcome(application, policy, now, message_id=message_id, extra=extra)
    return message_id


# =====================================================
# Admin "send now" actions
# =====================================================


def _load_for_reminder(application_id: str) -> ApplicationRecord:
    application = dynamodb.load_application(application_id)
    if application is None or application.deleted:
        raise NotFoundError("Application", application_id)
    if not application.referrer_email:
        raise ValidationError(
            "Referrer email is missing for this application", application_id=application_id
        )
    return application


def send_document_reminder(
    admin: AdminIdentity, application_id: str, *, now: int | None = None
) -> dict[str, Any]:
    """
    Email the referrer the list of missing documents right away.

    Cooldown and cap do not apply, but the send still counts.

    Raises:
        NotFoundError: Application missing or deleted
        ValidationError: Nothing missing, or no referrer email
        SESError: The send failed (recorded on the application)
    """
    now = now if now is not None else now_ts()
    application = _load_for_reminder(application_id)

    missing = missing_required_documents(application)
    if not missing:
        raise ValidationError(
            "No missing documents found for this application", application_id=application_id
        )

    message_id = deliver(application, policy_for(ReminderKind.DOCUMENTS), missing, now)
    log.info(
        "document_reminder_sent_manually",
        application_id=application_id,
        admin_uid=admin.uid,
        missing_count=len(missing),
    )
    return {"application_id": application_id, "missing_items": missing, "message_id": message_id}


def send_cs_summary_reminder(
    admin: AdminIdentity, application_id: str, *, now: int | None = None
) -> dict[str, Any]:
    """
    Email the referrer a CS member summary reminder right away.

    Raises:
        NotFoundError: Application missing or deleted
        ValidationError: Summary already confirmed, application not In
            Progress, or no referrer email
        SESError: The send failed (recorded on the application)
    """
    now = now if now is not None else now_ts()
    application = _load_for_reminder(application_id)

    if has_completed_cs_summary(application):
        raise ValidationError("CS Summary is already confirmed", application_id=application_id)
    if application.status != ApplicationStatus.IN_PROGRESS:
        raise ValidationError(
            'Application must be in "In Progress" status to send reminder',
            application_id=application_id,
            status=application.status.value,
        )

    message_id = deliver(
        application,
        policy_for(ReminderKind.CS_SUMMARY),
        [],
        now,
        extra={"last_reminder_type": "cs_summary"},
    )
    log.info("cs_summary_reminder_sent_manually", application_id=application_id, admin_uid=admin.uid)
    return {"application_id": application_id, "message_id": message_id}
