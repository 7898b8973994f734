"""
Email Tools

SES delivery of rendered portal emails and address validation.
"""

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from email_validator import EmailNotValidError, validate_email
import structlog

from portal.shared.config import get_settings
from portal.shared.exceptions import InvalidEmailFormatError, SESError
from portal.shared.tools.templates import RenderedEmail

log = structlog.get_logger()

CHARSET = "UTF-8"


def _get_client():
    """Get SES client."""
    settings = get_settings()
    return boto3.client("ses", **settings.ses_config)


def _source() -> str:
    settings = get_settings()
    if settings.ses_from_name:
        return f"{settings.ses_from_name} <{settings.ses_from_address}>"
    return settings.ses_from_address


def _message(email: RenderedEmail) -> dict:
    body = {"Text": {"Data": email.text, "Charset": CHARSET}}
    if email.html:
        body["Html"] = {"Data": email.html, "Charset": CHARSET}
    return {"Subject": {"Data": email.subject, "Charset": CHARSET}, "Body": body}


def send_ses_email(to_address: str, email: RenderedEmail) -> str:
    """
    Deliver a rendered email to one recipient from the portal sender.

    Returns:
        SES message ID

    Raises:
        SESError: If SES rejects the message or cannot be reached
    """
    settings = get_settings()
    params = {
        "Source": _source(),
        "Destination": {"ToAddresses": [to_address]},
        "Message": _message(email),
    }
    if settings.ses_configuration_set:
        params["ConfigurationSetName"] = settings.ses_configuration_set

    log.info("sending_ses_email", to=to_address, subject=email.subject[:50])

    try:
        response = _get_client().send_email(**params)
    except ClientError as e:
        error = e.response["Error"]
        log.error(
            "ses_send_failed",
            to=to_address,
            error_code=error["Code"],
            error_message=error["Message"],
        )
        raise SESError("send", to_address, f"{error['Code']}: {error['Message']}") from e
    except BotoCoreError as e:
        log.error("ses_unreachable", to=to_address, error=str(e))
        raise SESError("send", to_address, str(e)) from e

    message_id = response["MessageId"]
    log.info("ses_email_sent", message_id=message_id, to=to_address)
    return message_id


def validate_email_address(email: str) -> str:
    """
    Validate an email address and return its normalized form.

    Raises:
        InvalidEmailFormatError: If invalid
    """
    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidEmailFormatError(
            email_address=email,
            expected_pattern="RFC 5321",
        ) from e
    return result.normalized
