"""SwMonthlyDetail Lambda: member lists behind one monthly report row."""

from lambdas.sw_monthly_detail.handler import lambda_handler

__all__ = ["lambda_handler"]
