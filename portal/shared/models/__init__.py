# Shared Models
"""
Pydantic models for portal table items and request bodies.
"""

from portal.shared.models.dynamo import (
    ApplicationRecord,
    ClaimEventRecord,
    ClaimRecord,
    DeletionAudit,
    FormEntry,
    ItemKey,
    MemberRecord,
    MemberVisit,
    MonthlyLock,
    NotificationRecord,
    SignOffRecord,
    VisitRecord,
    monthly_lock_key,
)

__all__ = [
    "ApplicationRecord",
    "ClaimEventRecord",
    "ClaimRecord",
    "DeletionAudit",
    "FormEntry",
    "ItemKey",
    "MemberRecord",
    "MemberVisit",
    "MonthlyLock",
    "NotificationRecord",
    "SignOffRecord",
    "VisitRecord",
    "monthly_lock_key",
]
