"""SaveVisitDraft Lambda: social worker visit drafts."""

from lambdas.save_visit_draft.handler import lambda_handler

__all__ = ["lambda_handler"]
