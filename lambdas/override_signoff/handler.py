"""
OverrideSignOff Lambda Handler

Admin signs off visits a facility could not sign.

Trigger: API Gateway POST /admin/sw-visits/override-signoff
Body: {"visitIds": [...], "reason", "rcfeStaffName", "rcfeStaffTitle"}
"""

from typing import Any

from portal.claims import override_signoff
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import OverrideSignOffRequest

configure_logging()


@api_handler("override_signoff")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(OverrideSignOffRequest)
    admin = require_admin(identity)
    return override_signoff(admin, body)
