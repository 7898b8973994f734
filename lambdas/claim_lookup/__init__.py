"""ClaimLookup Lambda: social worker claim status lookup."""

from lambdas.claim_lookup.handler import lambda_handler

__all__ = ["lambda_handler"]
