"""SubmitSignOff Lambda: facility sign-off and claim creation."""

from lambdas.submit_signoff.handler import lambda_handler

__all__ = ["lambda_handler"]
