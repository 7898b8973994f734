"""
SubmitClaim Lambda Handler

Social worker submits one of their draft claims for review.

Trigger: API Gateway POST /sw-claims/submit
Body: {"claimId"}
"""

from typing import Any

from portal.claims import submit_claim
from portal.shared.auth import authenticate
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import ClaimIdRequest

configure_logging()


@api_handler("submit_claim")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(ClaimIdRequest)
    return submit_claim(identity, body.claim_id)
