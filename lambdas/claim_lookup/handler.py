"""
ClaimLookup Lambda Handler

Lets a social worker check the status of one of their own claims.

Trigger: API Gateway GET /sw-claims/lookup?claimId=...
"""

from typing import Any

from portal.claims import lookup_claim
from portal.shared.auth import authenticate
from portal.shared.exceptions import ValidationError
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging

configure_logging()


@api_handler("claim_lookup")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    claim_id = request.query_param("claimId") or request.query_param("claim_id")
    if not claim_id:
        raise ValidationError("claimId is required")
    return lookup_claim(identity, claim_id)
