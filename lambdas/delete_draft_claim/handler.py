"""
DeleteDraftClaim Lambda Handler

Social worker deletes one of their draft claims and its draft visits.

Trigger: API Gateway POST /sw-claims/delete-draft
Body: {"claimId"}
"""

from typing import Any

from portal.claims import delete_draft_claim
from portal.shared.auth import authenticate
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import ClaimIdRequest

configure_logging()


@api_handler("delete_draft_claim")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(ClaimIdRequest)
    return delete_draft_claim(identity, body.claim_id)
