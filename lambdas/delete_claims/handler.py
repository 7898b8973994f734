"""
DeleteClaims Lambda Handler

Super-admin deletion of claims.

Trigger: API Gateway POST /admin/sw-claims/delete
Body: {"claimIds": [...], "reason"}

Each claim is snapshotted into a deletion audit and deleted in one
transaction; visits that still point at a deleted claim are unlinked,
never deleted.
"""

from typing import Any

from portal.claims import delete_claims
from portal.shared.auth import authenticate, require_admin, require_super_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import DeleteClaimsRequest

configure_logging()


@api_handler("delete_claims")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(DeleteClaimsRequest)
    admin = require_super_admin(require_admin(identity))
    return delete_claims(admin, body)
