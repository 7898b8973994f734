"""SyncCaspioMembers Lambda: Caspio member cache refresh."""

from lambdas.sync_caspio_members.handler import lambda_handler

__all__ = ["lambda_handler"]
