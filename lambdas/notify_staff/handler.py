"""
NotifyStaff Lambda Handler

Admin sends a notification to staff members.

Trigger: API Gateway POST /admin/notifications/send
Body: {"recipients": [{"uid", "email", "name"}], "title", "message", "sendEmail", ...}

Every recipient gets an in-portal notification; with sendEmail, an
email copy too. Outcomes are reported per recipient.
"""

from typing import Any

from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import NotifyStaffRequest
from portal.shared.tools.notifications import fan_out, outcomes_payload

configure_logging()


@api_handler("notify_staff")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(NotifyStaffRequest)
    admin = require_admin(identity)
    outcomes = fan_out(body, sender_uid=admin.uid, sender_name=admin.actor_label)
    return outcomes_payload(outcomes)
