"""DeleteDraftClaim Lambda: social worker draft cleanup."""

from lambdas.delete_draft_claim.handler import lambda_handler

__all__ = ["lambda_handler"]
