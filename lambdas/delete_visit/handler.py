"""
DeleteVisit Lambda Handler

Admin deletion of a social worker visit record.

Trigger: API Gateway POST /admin/sw-visits/delete
Body: {"visitId", "reason"}

Requires super admin or the "SW visit delete" staff permission.
"""

from typing import Any

from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import DeleteVisitRequest
from portal.visits import delete_visit

configure_logging()


@api_handler("delete_visit")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(DeleteVisitRequest)
    admin = require_admin(identity)
    return delete_visit(admin, body)
