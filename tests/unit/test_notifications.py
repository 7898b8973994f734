"""
Test Notification Tools

Unit tests for staff notification fan-out and per-recipient outcomes.
"""

from unittest.mock import patch

from portal.shared.exceptions import DynamoDBError, SESError
from portal.shared.models.requests import NotifyStaffRequest
from portal.shared.tools import dynamodb
from portal.shared.tools.notifications import RecipientOutcome, fan_out, outcomes_payload


def _request(recipients, **overrides) -> NotifyStaffRequest:
    body = {
        "recipients": recipients,
        "title": "New document uploaded",
        "message": "Proof of Income was uploaded for Maria Lopez.",
        "kind": "document_upload",
        "link": "https://portal.test/admin/applications/app-1",
        "applicationId": "app-1",
    }
    body.update(overrides)
    return NotifyStaffRequest.model_validate(body)


class TestFanOut:
    """Tests for fan_out."""

    def test_writes_one_notification_per_recipient(self, portal_table, frozen_time):
        request = _request([{"uid": "staff-1"}, {"email": "Staff2@Example.com", "name": "Staff Two"}])

        outcomes = fan_out(request, sender_uid="admin-uid-1", sender_name="Ada Admin", now=frozen_time)

        assert [o.recipient for o in outcomes] == ["staff-1", "staff2@example.com"]
        assert all(o.success for o in outcomes)
        assert all(o.email_status is None for o in outcomes)

        first = dynamodb.list_notifications("staff-1")
        assert len(first) == 1
        assert first[0].title == "New document uploaded"
        assert first[0].application_id == "app-1"
        assert first[0].sender_name == "Ada Admin"
        assert first[0].read is False
        assert first[0].timestamp_ms == frozen_time * 1000

        second = dynamodb.list_notifications("staff2@example.com")
        assert second[0].timestamp_ms == frozen_time * 1000 + 1

    def test_email_copies(self, mock_aws_all):
        request = _request(
            [{"uid": "staff-1", "email": "staff1@example.com"}, {"uid": "staff-2"}],
            sendEmail=True,
        )
        outcomes = fan_out(request)

        sent, skipped = outcomes
        assert sent.success is True
        assert sent.email_status == "sent"
        assert skipped.success is True
        assert skipped.email_status == "skipped"
        assert skipped.error == "Recipient has no email address"

        stored = dynamodb.list_notifications("staff-1")[0]
        assert stored.email_status == "sent"
        assert stored.email_message_id

        quota = mock_aws_all["ses"].get_send_quota()
        assert int(quota["SentLast24Hours"]) == 1

    def test_email_failure_is_isolated(self, portal_table):
        request = _request(
            [{"uid": "staff-1", "email": "staff1@example.com"}, {"uid": "staff-2", "email": "not-an-email"}],
            sendEmail=True,
        )
        with patch(
            "portal.shared.tools.notifications.send_ses_email",
            side_effect=[SESError("send", "staff1@example.com", "Throttling")],
        ) as mock_send:
            outcomes = fan_out(request)

        mock_send.assert_called_once()
        first, second = outcomes
        assert first.success is False
        assert first.email_status == "failed"
        assert "Throttling" in first.error
        # notification still written for the failed email
        assert first.notification_id is not None
        assert dynamodb.list_notifications("staff-1")[0].email_status == "failed"

        assert second.email_status == "failed"
        assert second.error.startswith("Invalid email format")

    def test_write_failure_does_not_stop_others(self, portal_table):
        request = _request([{"uid": "staff-1"}, {"uid": "staff-2"}])
        original = dynamodb.put_notification

        def flaky(record):
            if record.recipient == "staff-1":
                raise DynamoDBError("put", "TestCalAIMPortal", "throttled")
            original(record)

        with patch("portal.shared.tools.dynamodb.put_notification", side_effect=flaky):
            outcomes = fan_out(request)

        assert outcomes[0].success is False
        assert outcomes[0].notification_id is None
        assert outcomes[1].success is True
        assert len(dynamodb.list_notifications("staff-2")) == 1


def test_outcomes_payload():
    payload = outcomes_payload(
        [
            RecipientOutcome(recipient="a", success=True, notification_id="n1"),
            RecipientOutcome(recipient="b", success=False, error="boom"),
        ]
    )
    assert payload["sent"] == 1
    assert payload["failed"] == 1
    assert payload["results"][1] == {
        "recipient": "b",
        "success": False,
        "notification_id": None,
        "email_status": None,
        "error": "boom",
    }
