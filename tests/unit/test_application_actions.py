"""
Unit tests for admin application actions: CS summary confirmation and
the "send now" reminder triggers.
"""

from unittest.mock import patch

import pytest

from portal.applications import (
    confirm_cs_summary,
    send_cs_summary_reminder,
    send_document_reminder,
)
from portal.applications.review import confirmed_forms
from portal.shared.exceptions import NotFoundError, SESError, ValidationError
from portal.shared.models.requests import ConfirmCsSummaryRequest
from tests.utils.records import make_application


def _confirm(application_id: str = "app-1", **extra) -> ConfirmCsSummaryRequest:
    return ConfirmCsSummaryRequest.model_validate({"applicationId": application_id, **extra})


# ============================================================================
# CS summary confirmation
# ============================================================================


class TestConfirmedForms:
    """Tests for confirmed_forms."""

    def test_required_forms_for_pathway(self):
        forms = confirmed_forms(make_application(pathway="SNF Transition", forms=[]))
        names = [form.name for form in forms]
        assert names[0] == "CS Member Summary"
        assert names[-1] == "SNF Facesheet"
        assert forms[0].status == "Completed"
        assert {form.status for form in forms[1:]} == {"Pending"}

    def test_keeps_recorded_statuses_and_extra_forms(self):
        forms = {form.name: form for form in confirmed_forms(make_application())}
        assert forms["CS Member Summary"].status == "Completed"
        assert forms["Medicine List"].status == "Completed"
        assert forms["Proof of Income"].status == "Pending"
        assert forms["Program Overview"].type == "Info"
        assert "Declaration of Eligibility" in forms


class TestConfirmCsSummary:
    """Tests for confirm_cs_summary."""

    def test_confirms(self, put_records, get_raw, admin_identity, frozen_time):
        put_records(make_application(status="Requires Revision"))

        result = confirm_cs_summary(admin_identity, _confirm(confirmedBy="Dana Lead"), now=frozen_time)

        assert result == {"application_id": "app-1", "confirmed_by": "Dana Lead"}
        item = get_raw("APPLICATION#app-1")
        assert item["status"] == "In Progress"
        assert item["cs_summary_complete"] is True
        assert item["cs_summary_completed_at"] == frozen_time
        assert item["cs_summary_confirmed_by"] == "Dana Lead"
        assert item["cs_summary_confirmed_by_admin"] is True
        assert item["last_updated"] == frozen_time
        summary = [f for f in item["forms"] if f["name"] == "CS Member Summary"]
        assert summary == [{"name": "CS Member Summary", "status": "Completed"}]

    def test_defaults_to_admin_name(self, put_records, get_raw, admin_identity):
        put_records(make_application())
        result = confirm_cs_summary(admin_identity, _confirm(confirmedBy=None))
        assert result["confirmed_by"] == "Ada Admin"

    def test_missing_application(self, portal_table, admin_identity):
        with pytest.raises(NotFoundError, match="Application not found"):
            confirm_cs_summary(admin_identity, _confirm("ghost"))

    def test_deleted_application(self, put_records, admin_identity):
        put_records(make_application(deleted=True))
        with pytest.raises(NotFoundError):
            confirm_cs_summary(admin_identity, _confirm())

    def test_application_id_required(self):
        with pytest.raises(ValueError, match="Application ID is required"):
            ConfirmCsSummaryRequest.model_validate({"applicationId": None})


# ============================================================================
# Manual reminders
# ============================================================================


class TestSendDocumentReminder:
    """Tests for send_document_reminder."""

    def test_sends_and_counts(self, put_records, get_raw, mock_aws_all, admin_identity, frozen_time):
        put_records(make_application(document_reminder_count=1))

        result = send_document_reminder(admin_identity, "app-1", now=frozen_time)

        assert result["missing_items"] == ["Proof of Income"]
        assert result["message_id"]
        item = get_raw("APPLICATION#app-1")
        assert item["last_document_reminder"] == frozen_time
        assert item["document_reminder_count"] == 2
        assert item["document_reminder_status"] == "sent"
        assert int(mock_aws_all["ses"].get_send_quota()["SentLast24Hours"]) == 1

    def test_ignores_cooldown_and_cap(self, put_records, get_raw, admin_identity, frozen_time):
        put_records(
            make_application(
                document_reminder_count=5,
                last_document_reminder=frozen_time - 60,
                last_updated=frozen_time - 60,
            )
        )
        send_document_reminder(admin_identity, "app-1", now=frozen_time)
        assert get_raw("APPLICATION#app-1")["document_reminder_count"] == 6

    def test_nothing_missing(self, put_records, admin_identity):
        put_records(make_application(forms=[{"name": "Proof of Income", "status": "Completed"}]))
        with pytest.raises(ValidationError, match="No missing documents"):
            send_document_reminder(admin_identity, "app-1")

    def test_no_referrer_email(self, put_records, admin_identity):
        put_records(make_application(referrer_email=None))
        with pytest.raises(ValidationError, match="Referrer email is missing"):
            send_document_reminder(admin_identity, "app-1")

    def test_missing_application(self, portal_table, admin_identity):
        with pytest.raises(NotFoundError):
            send_document_reminder(admin_identity, "ghost")

    @patch("portal.applications.reminders.send_ses_email")
    def test_send_failure_recorded(self, mock_send, put_records, get_raw, admin_identity, frozen_time):
        mock_send.side_effect = SESError("send", "referrer@example.com", "MessageRejected")
        put_records(make_application())

        with pytest.raises(SESError):
            send_document_reminder(admin_identity, "app-1", now=frozen_time)

        item = get_raw("APPLICATION#app-1")
        assert item["document_reminder_status"] == "failed"
        assert item["document_reminder_count"] == 0


class TestSendCsSummaryReminder:
    """Tests for send_cs_summary_reminder."""

    def test_sends(self, put_records, get_raw, mock_aws_all, admin_identity, frozen_time):
        put_records(make_application())

        result = send_cs_summary_reminder(admin_identity, "app-1", now=frozen_time)

        assert result["application_id"] == "app-1"
        item = get_raw("APPLICATION#app-1")
        assert item["last_cs_summary_reminder"] == frozen_time
        assert item["cs_summary_reminder_count"] == 1
        assert item["cs_summary_reminder_status"] == "sent"
        assert item["last_reminder_type"] == "cs_summary"

    def test_already_confirmed(self, put_records, admin_identity):
        put_records(make_application(cs_summary_complete=True))
        with pytest.raises(ValidationError, match="already confirmed"):
            send_cs_summary_reminder(admin_identity, "app-1")

    def test_requires_in_progress(self, put_records, admin_identity):
        put_records(make_application(status="Approved"))
        with pytest.raises(ValidationError, match='must be in "In Progress" status'):
            send_cs_summary_reminder(admin_identity, "app-1")
