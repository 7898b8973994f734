"""
ConfirmCsSummary Lambda Handler

Admin confirmation that a member's CS summary is complete.

Trigger: API Gateway POST /admin/confirm-cs-summary
Body: {"applicationId", "confirmedBy"?}
"""

from typing import Any

from portal.applications import confirm_cs_summary
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import ConfirmCsSummaryRequest

configure_logging()


@api_handler("confirm_cs_summary")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(ConfirmCsSummaryRequest)
    admin = require_admin(identity)
    return confirm_cs_summary(admin, body)
