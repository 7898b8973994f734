"""OverrideSignOff Lambda: admin sign-off attestation."""

from lambdas.override_signoff.handler import lambda_handler

__all__ = ["lambda_handler"]
