"""
SwMonthlySummary Lambda Handler

Per social worker counts of assigned members, signed-off visits and
claims for one month.

Trigger: API Gateway GET /admin/sw-monthly-summary?month=YYYY-MM
"""

from typing import Any

from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.visits import monthly_summary

configure_logging()


@api_handler("sw_monthly_summary")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    require_admin(identity)
    return monthly_summary(request.query_param("month"))
