"""
SaveVisitDraft Lambda Handler

Social worker saves a monthly visit questionnaire as a draft.

Trigger: API Gateway POST /sw-visits/draft
Body: {"visitId", "visitDate", "memberId", "rcfeId", "answers", ...}
"""

from typing import Any

from portal.shared.auth import authenticate
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import SaveVisitDraftRequest
from portal.visits import save_visit_draft

configure_logging()


@api_handler("save_visit_draft")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(SaveVisitDraftRequest)
    return save_visit_draft(identity, body)
