"""SendDocumentReminder Lambda: admin-triggered missing document email."""

from lambdas.send_document_reminder.handler import lambda_handler

__all__ = ["lambda_handler"]
