"""
SendClaimReminders Lambda Handler

Admin emails social workers a digest of claims awaiting their action.

Trigger: API Gateway POST /admin/sw-claims/send-reminders
Body: {"claimIds": [...], "onlyDraft": true, "message"}
"""

from typing import Any

from portal.claims import send_claim_reminders
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import SendClaimRemindersRequest

configure_logging()


@api_handler("send_claim_reminders")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(SendClaimRemindersRequest)
    admin = require_admin(identity)
    return send_claim_reminders(admin, body)
