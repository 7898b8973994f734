"""
Claim lifecycle: admin review, social worker submission, sign-off and deletion.
"""

from portal.claims.reminders import send_claim_reminders
from portal.claims.signoff import build_claim_id, override_signoff, submit_signoff
from portal.claims.tools import (
    delete_claims,
    delete_draft_claim,
    list_events,
    lookup_claim,
    submit_claim,
    update_claim_status,
)

__all__ = [
    "build_claim_id",
    "delete_claims",
    "delete_draft_claim",
    "list_events",
    "lookup_claim",
    "override_signoff",
    "send_claim_reminders",
    "submit_claim",
    "submit_signoff",
    "update_claim_status",
]
