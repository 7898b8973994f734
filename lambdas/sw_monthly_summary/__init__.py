"""SwMonthlySummary Lambda: per social worker monthly visit report."""

from lambdas.sw_monthly_summary.handler import lambda_handler

__all__ = ["lambda_handler"]
