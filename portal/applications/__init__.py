"""Community-support applications."""

from portal.applications.documents import (
    application_progress,
    default_required_forms,
    has_completed_cs_summary,
    missing_required_documents,
)
from portal.applications.reminders import send_cs_summary_reminder, send_document_reminder
from portal.applications.review import confirm_cs_summary

__all__ = [
    "application_progress",
    "confirm_cs_summary",
    "default_required_forms",
    "has_completed_cs_summary",
    "missing_required_documents",
    "send_cs_summary_reminder",
    "send_document_reminder",
]
