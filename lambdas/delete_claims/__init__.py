"""DeleteClaims Lambda: audited claim deletion."""

from lambdas.delete_claims.handler import lambda_handler

__all__ = ["lambda_handler"]
