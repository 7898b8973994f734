"""
Reminder Predicates

Decides which applications are due a reminder email.

An application qualifies when:
- reminders are enabled, it has a referrer email and is not deleted
- the job's condition holds (missing documents, or CS summary not complete)
- it has been idle for at least the cooldown
- no reminder of this kind was sent within the cooldown
- fewer than the maximum reminders of this kind were sent
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog

from portal.applications import has_completed_cs_summary, missing_required_documents
from portal.applications.reminders import (
    ReminderKind,
    ReminderPolicy,
    build_policies,
    reminder_link,
)
from portal.shared.models.dynamo import ApplicationRecord

log = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60

__all__ = [
    "SECONDS_PER_DAY",
    "ReminderDecision",
    "ReminderKind",
    "ReminderPolicy",
    "SkipReason",
    "build_policies",
    "evaluate",
    "reminder_link",
]


class SkipReason(str, Enum):
    DISABLED = "reminders_disabled"
    NO_RECIPIENT = "no_referrer_email"
    DELETED = "deleted"
    NOTHING_MISSING = "nothing_missing"
    RECENT_ACTIVITY = "recent_activity"
    COOLDOWN = "cooldown"
    MAX_REMINDERS = "max_reminders"


@dataclass
class ReminderDecision:
    """Whether an application is due, and what is missing."""

    application: ApplicationRecord
    due: bool
    skip_reason: SkipReason | None = None
    missing_documents: list[str] = field(default_factory=list)


def evaluate(application: ApplicationRecord, policy: ReminderPolicy, now: int) -> ReminderDecision:
    """Apply a job's predicate and cooldown to one application."""

    def skip(reason: SkipReason) -> ReminderDecision:
        return ReminderDecision(application=application, due=False, skip_reason=reason)

    if application.deleted:
        return skip(SkipReason.DELETED)
    if not application.email_reminders_enabled:
        return skip(SkipReason.DISABLED)
    if not application.referrer_email:
        return skip(SkipReason.NO_RECIPIENT)

    missing: list[str] = []
    if policy.kind == ReminderKind.DOCUMENTS:
        missing = missing_required_documents(application)
        if not missing:
            return skip(SkipReason.NOTHING_MISSING)
    elif has_completed_cs_summary(application):
        return skip(SkipReason.NOTHING_MISSING)

    if policy.sent_count(application) >= policy.max_reminders:
        return skip(SkipReason.MAX_REMINDERS)

    threshold = now - policy.cooldown_for(application) * SECONDS_PER_DAY
    last_activity = application.last_activity_at
    if last_activity is None or last_activity > threshold:
        return skip(SkipReason.RECENT_ACTIVITY)

    last_sent = policy.last_sent(application)
    if last_sent is not None and last_sent > threshold:
        return skip(SkipReason.COOLDOWN)

    return ReminderDecision(application=application, due=True, missing_documents=missing)
