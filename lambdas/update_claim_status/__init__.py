"""UpdateClaimStatus Lambda: admin claim review."""

from lambdas.update_claim_status.handler import lambda_handler

__all__ = ["lambda_handler"]
