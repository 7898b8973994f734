"""SendClaimReminders Lambda: social worker claim digests."""

from lambdas.send_claim_reminders.handler import lambda_handler

__all__ = ["lambda_handler"]
