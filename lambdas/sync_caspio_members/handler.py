"""
SyncCaspioMembers Lambda Handler

Admin-triggered copy of Caspio member rows into the member cache.

Trigger: API Gateway POST /caspio/members-cache/sync
Body: {"mode": "incremental" | "full", "maxPages"}
"""

from typing import Any

from portal.members import sync_members
from portal.shared.auth import authenticate, require_admin
from portal.shared.http import ApiRequest, api_handler
from portal.shared.log_config import configure_logging
from portal.shared.models.requests import SyncMembersRequest

configure_logging()


@api_handler("sync_caspio_members")
def lambda_handler(request: ApiRequest) -> dict[str, Any]:
    identity = authenticate(request.headers)
    body = request.parse(SyncMembersRequest)
    admin = require_admin(identity)
    return sync_members(mode=body.mode, max_pages=body.max_pages, actor_uid=admin.uid)
