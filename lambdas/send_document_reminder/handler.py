"""
SendDocumentReminder Lambda Handler

Emails the referrer the missing documents of one application now,
outside the daily reminder scan.

Trigger: API Gateway POST /admin/send-document-reminder
Body: {"applicationId"}
"""

from typing import Any

from portal.applications import send_document_reminder
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import ApplicationIdRequest

configure_logging()


@api_handler("send_document_reminder")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(ApplicationIdRequest)
    admin = require_admin(identity)
    return send_document_reminder(admin, body.application_id)
