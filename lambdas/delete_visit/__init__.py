"""DeleteVisit Lambda: audited visit deletion."""

from lambdas.delete_visit.handler import lambda_handler

__all__ = ["lambda_handler"]
