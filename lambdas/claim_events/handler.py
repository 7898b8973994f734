"""
ClaimEvents Lambda Handler

Lists a claim's audit events, newest first.

Trigger: API Gateway GET /admin/sw-claims/events?claimId=...&limit=50
"""

from typing import Any

from portal.claims import list_events
from portal.shared.auth import authenticate, require_admin
from portal.shared.exceptions import ValidationError
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging

configure_logging()

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _parse_limit(raw: str | None) -> int:
    if raw is None:
        return DEFAULT_LIMIT
    try:
        limit = int(raw)
    except ValueError as e:
        raise ValidationError("limit must be an integer", limit=raw) from e
    if not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", limit=raw)
    return limit


@api_handler("claim_events")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    claim_id = request.query_param("claimId") or request.query_param("claim_id")
    if not claim_id:
        raise ValidationError("claimId is required")
    limit = _parse_limit(request.query_param("limit"))
    require_admin(identity)

    events = list_events(claim_id, limit=limit)
    return {"claim_id": claim_id, "events": events}
