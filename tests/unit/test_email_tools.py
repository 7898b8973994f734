"""
Test Email Tools

Unit tests for Jinja2 email templates, SES sending and address
validation.
"""

from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError
import pytest

from portal.shared.exceptions import InvalidEmailFormatError, SESError
from portal.shared.tools.email import send_ses_email, validate_email_address
from portal.shared.tools.templates import TEMPLATE_KINDS, RenderedEmail, render_email


class TestRenderEmail:
    """Tests for render_email."""

    def test_known_kinds(self):
        assert TEMPLATE_KINDS == frozenset(
            {"document_reminder", "cs_summary_reminder", "claim_reminder", "staff_notification"}
        )

    def test_document_reminder_lists_missing(self):
        rendered = render_email(
            "document_reminder",
            {
                "referrer_name": "Rob Ref",
                "member_name": "Maria Lopez",
                "missing_documents": ["Proof of Income", "Medicine List"],
                "link": "https://portal.test/pathway?applicationId=a1",
            },
        )
        assert rendered.subject == "Document Reminder: Maria Lopez - CalAIM Application"
        assert "Hello Rob Ref," in rendered.text
        assert "  - Proof of Income" in rendered.text
        assert "<li>Medicine List</li>" in rendered.html
        assert 'href="https://portal.test/pathway?applicationId=a1"' in rendered.html

    def test_html_escapes_values(self):
        rendered = render_email(
            "staff_notification",
            {"title": "Heads up", "message": "<script>x</script>", "link": None},
        )
        assert "&lt;script&gt;" in rendered.html
        assert "<script>x</script>" in rendered.text
        assert "Open in the portal" not in rendered.text

    def test_claim_reminder_pluralizes_subject(self):
        claim = {
            "claim_day": "2025-02-05",
            "rcfe_name": "Sunrise",
            "rcfe_id": "rcfe-1",
            "visit_count": 2,
            "total_amount": 110,
            "status": "draft",
        }
        context = {"social_worker_name": "Sam", "message": "", "link": "https://portal.test/x"}
        one = render_email("claim_reminder", {**context, "claims": [claim]})
        two = render_email("claim_reminder", {**context, "claims": [claim, claim]})
        assert one.subject == "Reminder: 1 claim awaiting your action"
        assert two.subject == "Reminder: 2 claims awaiting your action"
        assert "2025-02-05 at Sunrise: 2 visit(s), $110 (draft)" in one.text

    def test_missing_variable_raises(self):
        with pytest.raises(ValueError, match="Template render failed"):
            render_email("cs_summary_reminder", {"member_name": "Maria"})

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown email kind"):
            render_email("welcome", {})


class TestSendSESEmail:
    """Tests for send_ses_email."""

    @pytest.fixture
    def rendered(self) -> RenderedEmail:
        return RenderedEmail(subject="Subject", text="Body", html="<p>Body</p>")

    def test_send_through_moto(self, mock_ses, rendered):
        message_id = send_ses_email("sw@example.com", rendered)
        assert message_id
        quota = mock_ses.get_send_quota()
        assert int(quota["SentLast24Hours"]) == 1

    @patch("portal.shared.tools.email._get_client")
    def test_send_params(self, mock_get_client):
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "msg-1"}
        mock_get_client.return_value = client

        send_ses_email("to@example.com", RenderedEmail(subject="Hi", text="Text", html=""))

        params = client.send_email.call_args.kwargs
        assert params["Source"] == "CalAIM Pathfinder <test@example.com>"
        assert params["Destination"] == {"ToAddresses": ["to@example.com"]}
        assert params["Message"]["Subject"]["Data"] == "Hi"
        assert "Html" not in params["Message"]["Body"]
        assert "ReplyToAddresses" not in params
        assert "ConfigurationSetName" not in params

    @patch("portal.shared.tools.email._get_client")
    def test_configuration_set_from_settings(self, mock_get_client, monkeypatch, rendered):
        monkeypatch.setenv("CALAIM_SES_CONFIGURATION_SET", "portal-events")
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "msg-1"}
        mock_get_client.return_value = client

        send_ses_email("to@example.com", rendered)

        params = client.send_email.call_args.kwargs
        assert params["ConfigurationSetName"] == "portal-events"
        assert params["Message"]["Body"]["Html"]["Data"] == "<p>Body</p>"

    @patch("portal.shared.tools.email._get_client")
    def test_send_failure_raises(self, mock_get_client, rendered):
        client = MagicMock()
        client.send_email.side_effect = ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
            "SendEmail",
        )
        mock_get_client.return_value = client

        with pytest.raises(SESError) as exc_info:
            send_ses_email("to@example.com", rendered)
        assert exc_info.value.status_code == 502
        assert "MessageRejected" in exc_info.value.message

    @patch("portal.shared.tools.email._get_client")
    def test_connection_failure_raises_ses_error(self, mock_get_client, rendered):
        client = MagicMock()
        client.send_email.side_effect = EndpointConnectionError(
            endpoint_url="https://email.us-east-1.amazonaws.com"
        )
        mock_get_client.return_value = client

        with pytest.raises(SESError) as exc_info:
            send_ses_email("to@example.com", rendered)
        assert exc_info.value.recipient == "to@example.com"
        assert "Could not connect" in exc_info.value.message


class TestValidateEmailAddress:
    """Tests for validate_email_address."""

    def test_valid_address_normalized(self):
        assert validate_email_address("Staff@Example.COM") == "Staff@example.com"

    def test_invalid_address(self):
        with pytest.raises(InvalidEmailFormatError) as exc_info:
            validate_email_address("not-an-email")
        assert exc_info.value.status_code == 400
