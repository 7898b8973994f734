"""
SubmitSignOff Lambda Handler

Facility staff sign off a social worker's visits for one day, which
creates the day's claim.

Trigger: API Gateway POST /sw-visits/rcfe-signoff-submit
Body: {"rcfeId", "claimDay", "selectedVisitIds", "staffName", "signature", ...}
"""

from typing import Any

from portal.claims import submit_signoff
from portal.shared.auth import authenticate
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import SubmitSignOffRequest

configure_logging()


@api_handler("submit_signoff")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(SubmitSignOffRequest)
    return submit_signoff(identity, body)
