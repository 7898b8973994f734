"""
VisitsByIds Lambda Handler

Trigger: API Gateway POST /admin/sw-visits/by-ids
Body: {"visitIds": [...]} (at most 500 are looked up)
"""

from typing import Any

from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import VisitIdsRequest
from portal.visits import visits_by_ids

configure_logging()


@api_handler("visits_by_ids")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(VisitIdsRequest)
    require_admin(identity)
    return visits_by_ids(body.visit_ids)
