"""VisitsByIds Lambda: admin visit lookup by id."""

from lambdas.visits_by_ids.handler import lambda_handler

__all__ = ["lambda_handler"]
