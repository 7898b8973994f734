"""
UpdateClaimStatus Lambda Handler

Admin review of a social worker claim.

Trigger: API Gateway POST /admin/sw-claims/update-status
Body: {"claimId", "newStatus", "reviewNotes"}

The claim status, the audit event and the status mirrored onto every
linked visit are written atomically. A correction request without a
reason is rejected before anything is read or written.
"""

from typing import Any

from portal.claims import update_claim_status
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import UpdateClaimStatusRequest

configure_logging()


@api_handler("update_claim_status")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(UpdateClaimStatusRequest)
    admin = require_admin(identity)
    return update_claim_status(admin, body)
