"""Member cache backed by Caspio."""

from portal.members.sync import sync_members, to_member

__all__ = ["sync_members", "to_member"]
