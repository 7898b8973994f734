"""ConfirmCsSummary Lambda: admin confirmation of the CS member summary."""

from lambdas.confirm_cs_summary.handler import lambda_handler

__all__ = ["lambda_handler"]
