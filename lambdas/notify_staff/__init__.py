"""NotifyStaff Lambda: staff notification fan-out."""

from lambdas.notify_staff.handler import lambda_handler

__all__ = ["lambda_handler"]
