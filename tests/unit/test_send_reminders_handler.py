"""
Unit tests for the SendReminders Lambda handler.

Tests cover:
- Scheduled event parsing
- Sending through moto SES and recording outcomes on applications
- Dry runs, job selection and failure isolation
"""

import json
from unittest.mock import patch

from botocore.exceptions import EndpointConnectionError
import pytest

from lambdas.send_reminders.handler import _parse_scheduled_event, lambda_handler
from lambdas.send_reminders.predicates import ReminderKind
from portal.shared.exceptions import SESError
from tests.utils.records import make_application


class TestParseScheduledEvent:
    """Tests for _parse_scheduled_event."""

    def test_defaults(self):
        config = _parse_scheduled_event({})
        assert config == {"jobs": [ReminderKind.DOCUMENTS, ReminderKind.CS_SUMMARY], "dry_run": False}

    def test_detail_dict(self):
        config = _parse_scheduled_event({"detail": {"jobs": ["cs_summary"], "dry_run": True}})
        assert config == {"jobs": [ReminderKind.CS_SUMMARY], "dry_run": True}

    def test_detail_json_string(self):
        config = _parse_scheduled_event({"detail": json.dumps({"jobs": ["documents", "bogus"]})})
        assert config["jobs"] == [ReminderKind.DOCUMENTS]

    def test_unreadable_detail(self):
        assert _parse_scheduled_event({"detail": "{oops"})["dry_run"] is False


class TestLambdaHandler:
    """Tests for lambda_handler."""

    @pytest.fixture
    def applications(self, put_records):
        put_records(
            make_application("due"),
            make_application("done", forms=[{"name": "CS Summary", "status": "Completed"}]),
            make_application("gone", deleted=True),
        )

    def test_sends_and_records(self, applications, get_raw, mock_aws_all, frozen_time):
        response = lambda_handler({}, None, now=frozen_time)

        assert response["statusCode"] == 200
        body = response["body"]
        assert body["errors"] is None
        assert body["jobs"]["documents"] == {
            "scanned": 2,
            "due": 1,
            "sent": 1,
            "failed": 0,
            "errors": [],
        }
        assert body["jobs"]["cs_summary"]["sent"] == 1

        item = get_raw("APPLICATION#due")
        assert item["last_document_reminder"] == frozen_time
        assert item["document_reminder_count"] == 1
        assert item["document_reminder_status"] == "sent"
        assert item["document_reminder_message_id"]
        assert item["cs_summary_reminder_count"] == 1

        quota = mock_aws_all["ses"].get_send_quota()
        assert int(quota["SentLast24Hours"]) == 2

    def test_second_run_respects_cooldown(self, applications, frozen_time):
        lambda_handler({}, None, now=frozen_time)
        response = lambda_handler({}, None, now=frozen_time + 3600)
        assert response["body"]["jobs"]["documents"]["sent"] == 0
        assert response["body"]["jobs"]["cs_summary"]["sent"] == 0

    def test_dry_run_records_nothing(self, applications, get_raw, frozen_time):
        response = lambda_handler({"detail": {"dry_run": True}}, None, now=frozen_time)

        assert response["body"]["dry_run"] is True
        assert response["body"]["jobs"]["documents"]["due"] == 1
        assert response["body"]["jobs"]["documents"]["sent"] == 0
        assert "last_document_reminder" not in get_raw("APPLICATION#due")

    def test_job_selection(self, applications, frozen_time):
        response = lambda_handler({"detail": {"jobs": ["documents"]}}, None, now=frozen_time)
        assert list(response["body"]["jobs"]) == ["documents"]

    @patch("portal.applications.reminders.send_ses_email")
    def test_send_failure_recorded_without_counting(
        self, mock_send, applications, get_raw, frozen_time
    ):
        mock_send.side_effect = SESError("send", "referrer@example.com", "MessageRejected")

        response = lambda_handler({"detail": {"jobs": ["documents"]}}, None, now=frozen_time)

        job = response["body"]["jobs"]["documents"]
        assert job["failed"] == 1
        assert job["errors"][0]["application_id"] == "due"
        assert response["statusCode"] == 200

        item = get_raw("APPLICATION#due")
        assert item["document_reminder_status"] == "failed"
        assert "MessageRejected" in item["document_reminder_error"]
        assert item["document_reminder_count"] == 0
        assert "last_document_reminder" not in item

    def test_critical_error(self, applications):
        with patch(
            "portal.shared.tools.dynamodb.list_applications",
            side_effect=RuntimeError("scan exploded"),
        ):
            response = lambda_handler({}, None)
        assert response["statusCode"] == 500
        assert response["body"]["errors"] == ["Critical error: scan exploded"]

    @patch("portal.applications.reminders.send_ses_email")
    def test_unexpected_send_error_does_not_halt_scan(
        self, mock_send, put_records, get_raw, frozen_time
    ):
        put_records(make_application("a1"), make_application("a2"))
        mock_send.side_effect = [
            EndpointConnectionError(endpoint_url="https://email.us-east-1.amazonaws.com"),
            "msg-2",
        ]

        response = lambda_handler({"detail": {"jobs": ["documents"]}}, None, now=frozen_time)

        assert response["statusCode"] == 200
        assert response["body"]["errors"] is None
        job = response["body"]["jobs"]["documents"]
        assert job["due"] == 2
        assert job["sent"] == 1
        assert job["failed"] == 1
        assert "Could not connect" in job["errors"][0]["error"]

        statuses = sorted(
            get_raw(f"APPLICATION#{app_id}")["document_reminder_status"] for app_id in ("a1", "a2")
        )
        assert statuses == ["failed", "sent"]
