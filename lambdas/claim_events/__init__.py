"""ClaimEvents Lambda: claim audit trail."""

from lambdas.claim_events.handler import lambda_handler

__all__ = ["lambda_handler"]
