"""SendCsReminder Lambda: admin-triggered CS summary reminder."""

from lambdas.send_cs_reminder.handler import lambda_handler

__all__ = ["lambda_handler"]
