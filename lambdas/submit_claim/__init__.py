"""SubmitClaim Lambda: social worker claim submission."""

from lambdas.submit_claim.handler import lambda_handler

__all__ = ["lambda_handler"]
