"""
SwMonthlyDetail Lambda Handler

Trigger: API Gateway GET /admin/sw-monthly-detail?month=YYYY-MM&swKey=...
"""

from typing import Any

from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.visits import monthly_detail

configure_logging()


@api_handler("sw_monthly_detail")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    require_admin(identity)
    return monthly_detail(request.query_param("month"), request.query_param("swKey") or "")
