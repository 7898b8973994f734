"""
DynamoDB Models

Pydantic models for items in the single CalAIM portal table.
Every model knows its PK/SK and converts to and from raw items.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from portal.shared.exceptions import RecordFormatError
from portal.shared.state_machine import (
    ApplicationStatus,
    ClaimStatus,
    PaymentStatus,
    VisitStatus,
)


def _to_item_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _to_item_value(value.model_dump())
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_item_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_to_item_value(v) for v in value]
    return value


class PortalRecord(BaseModel):
    """
    Base for table records.

    Unknown attributes on stored items (keys, index attributes, legacy
    fields) are ignored when parsing.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def pk(self) -> str:
        raise NotImplementedError

    @property
    def sk(self) -> str:
        return "METADATA"

    def key(self) -> dict[str, str]:
        return {"PK": self.pk, "SK": self.sk}

    def index_attributes(self) -> dict[str, Any]:
        """Extra GSI attributes written with the item."""
        return {}

    def to_dynamodb(self) -> dict[str, Any]:
        """Convert to DynamoDB item, dropping unset optional fields."""
        item = {
            name: _to_item_value(getattr(self, name))
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }
        item.update(self.key())
        item.update(self.index_attributes())
        return item

    @classmethod
    def from_dynamodb(cls, item: dict[str, Any]):
        """
        Parse from DynamoDB item.

        Raises:
            RecordFormatError: If the item does not fit the model
        """
        try:
            return cls.model_validate({k: v for k, v in item.items() if v is not None})
        except ValidationError as e:
            key = f"{item.get('PK', '?')}/{item.get('SK', '?')}"
            first = e.errors()[0]
            detail = f"{'.'.join(str(p) for p in first['loc'])}: {first['msg']}"
            raise RecordFormatError(cls.__name__, key, detail) from e


# =====================================================
# Claims and visits
# =====================================================


class MemberVisit(BaseModel):
    """Per-visit summary embedded in a claim."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    visit_id: str
    member_id: str = ""
    member_name: str = ""
    member_room_number: str = ""
    visit_date: str = ""
    flagged: bool = False


class ClaimRecord(PortalRecord):
    """
    Social worker claim for one RCFE and one day.

    PK: CLAIM#<claim_id>
    SK: METADATA
    GSI1PK: SW_CLAIMS#<social_worker_email>
    GSI2PK: CLAIM_MONTH#<claim_month>
    """

    claim_id: str = Field(..., description="Claim identifier")
    status: ClaimStatus = Field(default=ClaimStatus.DRAFT, description="Claim status")
    social_worker_uid: str = Field(default="", description="Owning social worker uid")
    social_worker_email: str = Field(default="", description="Owning social worker email")
    social_worker_name: str = Field(default="", description="Display name")
    rcfe_id: str = Field(default="", description="Residential care facility id")
    rcfe_name: str = Field(default="", description="Facility name")
    rcfe_address: str = Field(default="", description="Facility address")
    claim_day: str = Field(default="", description="Visit day, YYYY-MM-DD")
    claim_month: str = Field(default="", description="Visit month, YYYY-MM")

    visit_ids: list[str] = Field(default_factory=list, description="Visits billed on this claim")
    member_visits: list[MemberVisit] = Field(default_factory=list)
    visit_count: int = 0
    visit_fee_rate: Decimal = Decimal("0")
    gas_rate: Decimal | None = Field(default=None, description="Configured gas amount at creation")
    gas_amount: Decimal = Decimal("0")
    gas_policy: str = "perDayIfAnyVisit"
    total_member_visit_fees: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")

    review_notes: str | None = None
    correction_reason: str | None = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    claim_paid: bool = False
    paid_at: int | None = None
    submitted_at: int | None = None
    reviewed_at: int | None = None
    archived: bool = False
    signoff_by_id: dict[str, Any] = Field(default_factory=dict)

    created_at: int | None = None
    updated_at: int | None = None
    version: int = Field(default=1, description="Optimistic locking version")

    @property
    def pk(self) -> str:
        return f"CLAIM#{self.claim_id}"

    def index_attributes(self) -> dict[str, Any]:
        attributes = {"GSI1PK": f"SW_CLAIMS#{self.social_worker_email}"}
        if self.claim_month:
            attributes["GSI2PK"] = f"CLAIM_MONTH#{self.claim_month}"
        return attributes

    def linked_visit_ids(self, limit: int = 500) -> list[str]:
        """Visit ids from both the id list and the embedded summaries."""
        seen: dict[str, None] = {}
        for visit_id in [*self.visit_ids, *(mv.visit_id for mv in self.member_visits)]:
            value = str(visit_id or "").strip()
            if value:
                seen.setdefault(value, None)
        return list(seen)[:limit]


class VisitRecord(PortalRecord):
    """
    Monthly member visit recorded by a social worker.

    PK: VISIT#<visit_id>
    SK: METADATA
    GSI1PK: SW#<social_worker_email>
    GSI2PK: VISIT_MONTH#<visit_month>
    """

    visit_id: str
    status: VisitStatus = VisitStatus.DRAFT
    social_worker_uid: str = ""
    social_worker_email: str = ""
    social_worker_name: str = ""
    member_id: str = ""
    member_name: str = ""
    member_room_number: str | None = None
    rcfe_id: str = ""
    rcfe_name: str = ""
    rcfe_address: str = ""
    visit_date: str = ""
    visit_month: str = ""
    flagged: bool = False
    total_score: int = 0
    answers: dict[str, Any] = Field(default_factory=dict, description="Questionnaire answers")

    signed_off: bool = False
    sign_off_id: str | None = None
    signed_off_at: int | None = None

    claim_id: str | None = None
    claim_status: ClaimStatus | None = None
    claim_submitted: bool = False
    claim_submitted_at: int | None = None
    claim_paid: bool = False
    claim_paid_at: int | None = None

    created_at: int | None = None
    updated_at: int | None = None

    @property
    def pk(self) -> str:
        return f"VISIT#{self.visit_id}"

    def index_attributes(self) -> dict[str, Any]:
        attributes = {"GSI1PK": f"SW#{self.social_worker_email}"}
        if self.visit_month:
            attributes["GSI2PK"] = f"VISIT_MONTH#{self.visit_month}"
        return attributes

    @property
    def is_claimed(self) -> bool:
        """Tied to a claim that has left draft."""
        if self.claim_submitted or self.claim_paid:
            return True
        return self.claim_status is not None and self.claim_status != ClaimStatus.DRAFT


class ClaimEventRecord(PortalRecord):
    """
    Audit event for a claim.

    PK: CLAIM_EVENTS#<claim_id>
    SK: EVT#<timestamp_ms>#<event_id>
    """

    event_id: str
    claim_id: str
    event_type: str = "status_change"
    claim_month: str | None = None
    social_worker_email: str | None = None
    rcfe_id: str | None = None
    rcfe_name: str | None = None
    from_status: str | None = None
    to_status: str | None = None
    notes: str = ""
    actor_uid: str = ""
    actor_email: str = ""
    actor_name: str = ""
    created_at_iso: str
    timestamp_ms: int

    @property
    def pk(self) -> str:
        return f"CLAIM_EVENTS#{self.claim_id}"

    @property
    def sk(self) -> str:
        return f"EVT#{self.timestamp_ms:015d}#{self.event_id}"


class DeletionAudit(PortalRecord):
    """
    Snapshot of a claim or visit taken just before it is deleted.

    PK: CLAIM_DELETION#<id> or VISIT_DELETION#<id>
    SK: AUDIT#<audit_id>
    """

    audit_id: str
    entity: str  # "claim" or "visit"
    entity_id: str
    reason: str
    actor_uid: str = ""
    actor_email: str = ""
    actor_name: str = ""
    deleted_at_iso: str
    snapshot: dict[str, Any] = Field(default_factory=dict)
    visit_ids: list[str] = Field(default_factory=list)
    claim_id: str | None = None
    lock_key: str | None = None

    @property
    def pk(self) -> str:
        return f"{self.entity.upper()}_DELETION#{self.entity_id}"

    @property
    def sk(self) -> str:
        return f"AUDIT#{self.audit_id}"


class MonthlyLock(PortalRecord):
    """
    One billable visit per member per month.

    PK: MONTHLY_LOCK#<member_id>_<YYYY-MM>
    SK: LOCK
    """

    member_id: str
    visit_month: str
    visit_id: str
    claim_id: str | None = None
    social_worker_uid: str | None = None
    created_at: int | None = None

    @property
    def lock_key(self) -> str:
        return monthly_lock_key(self.member_id, self.visit_month)

    @property
    def pk(self) -> str:
        return f"MONTHLY_LOCK#{self.lock_key}"

    @property
    def sk(self) -> str:
        return "LOCK"


def monthly_lock_key(member_id: str, visit_month: str) -> str:
    return f"{member_id}_{visit_month}"


class SignOffRecord(PortalRecord):
    """
    Facility staff attestation that the listed visits took place.

    PK: SIGNOFF#<signoff_id>
    SK: METADATA
    """

    signoff_id: str
    source: str = "social_worker"  # or "admin_override"
    social_worker_uid: str = ""
    social_worker_email: str = ""
    rcfe_id: str = ""
    rcfe_name: str = ""
    claim_day: str = ""
    claim_id: str | None = None
    visit_ids: list[str] = Field(default_factory=list)
    member_names: list[str] = Field(default_factory=list)
    staff_name: str = ""
    staff_title: str = ""
    signature: str = ""
    signed_at_iso: str = ""
    attestation: str = ""
    geolocation: dict[str, Decimal] | None = None
    override_reason: str | None = None
    created_at: int | None = None

    @property
    def pk(self) -> str:
        return f"SIGNOFF#{self.signoff_id}"

    @property
    def location_verified(self) -> bool:
        return bool(self.geolocation)


# =====================================================
# Applications
# =====================================================


class FormEntry(BaseModel):
    """One form or document slot on an application."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    status: str = "Pending"
    type: str | None = None


class ApplicationRecord(PortalRecord):
    """
    Community-support application.

    Applications are never hard-deleted; `deleted` flags removal.

    PK: APPLICATION#<application_id>
    SK: METADATA
    GSI1PK: APPLICATIONS
    """

    application_id: str
    user_id: str = ""
    status: ApplicationStatus = ApplicationStatus.IN_PROGRESS
    member_first_name: str = ""
    member_last_name: str = ""
    referrer_first_name: str = ""
    referrer_last_name: str = ""
    referrer_email: str | None = None
    pathway: str = ""
    health_plan: str = ""
    forms: list[FormEntry] = Field(default_factory=list)
    deleted: bool = False

    email_reminders_enabled: bool = True
    document_reminder_frequency_days: int | None = None
    last_document_reminder: int | None = None
    document_reminder_count: int = 0
    last_cs_summary_reminder: int | None = None
    cs_summary_reminder_count: int = 0
    cs_summary_complete: bool = False
    cs_summary_completed_at: int | None = None
    cs_summary_confirmed_by: str | None = None

    last_updated: int | None = None
    created_at: int | None = None

    @property
    def pk(self) -> str:
        return f"APPLICATION#{self.application_id}"

    def index_attributes(self) -> dict[str, Any]:
        return {"GSI1PK": "APPLICATIONS"}

    @property
    def member_name(self) -> str:
        return f"{self.member_first_name} {self.member_last_name}".strip()

    @property
    def referrer_name(self) -> str:
        return f"{self.referrer_first_name} {self.referrer_last_name}".strip()

    @property
    def last_activity_at(self) -> int | None:
        return self.last_updated or self.created_at


# =====================================================
# Notifications and members
# =====================================================


class NotificationRecord(PortalRecord):
    """
    In-portal notification for one staff recipient.

    PK: NOTIFICATIONS#<recipient>
    SK: NOTIF#<timestamp_ms>#<notification_id>
    """

    notification_id: str
    recipient: str
    recipient_email: str | None = None
    title: str
    message: str
    kind: str = "general"
    link: str | None = None
    application_id: str | None = None
    sender_uid: str | None = None
    sender_name: str | None = None
    read: bool = False
    email_status: str | None = None
    email_message_id: str | None = None
    created_at_iso: str
    timestamp_ms: int

    @property
    def pk(self) -> str:
        return f"NOTIFICATIONS#{self.recipient}"

    @property
    def sk(self) -> str:
        return f"NOTIF#{self.timestamp_ms:015d}#{self.notification_id}"


class MemberRecord(PortalRecord):
    """
    Cached Caspio member.

    PK: MEMBER#<member_id>
    SK: METADATA
    GSI1PK: MEMBERS
    """

    member_id: str
    first_name: str = ""
    last_name: str = ""
    health_plan: str = ""
    calaim_status: str = ""
    hold_for_social_worker: str = ""
    authorization_end_date: str = ""
    social_worker_assigned: str = ""
    rcfe_name: str = ""
    date_modified: str = ""
    synced_at: int | None = None

    @property
    def pk(self) -> str:
        return f"MEMBER#{self.member_id}"

    def index_attributes(self) -> dict[str, Any]:
        return {"GSI1PK": "MEMBERS"}


@dataclass(frozen=True)
class ItemKey:
    """
    DynamoDB key for a METADATA-style item.

    Utility class for key construction.
    """

    prefix: str
    entity_id: str
    sort_key: str = "METADATA"

    @property
    def pk(self) -> str:
        return f"{self.prefix}#{self.entity_id}"

    def to_key(self) -> dict[str, str]:
        """Return DynamoDB key dict."""
        return {"PK": self.pk, "SK": self.sort_key}

    @classmethod
    def claim(cls, claim_id: str) -> "ItemKey":
        return cls("CLAIM", claim_id)

    @classmethod
    def visit(cls, visit_id: str) -> "ItemKey":
        return cls("VISIT", visit_id)

    @classmethod
    def application(cls, application_id: str) -> "ItemKey":
        return cls("APPLICATION", application_id)

    @classmethod
    def member(cls, member_id: str) -> "ItemKey":
        return cls("MEMBER", member_id)

    @classmethod
    def monthly_lock(cls, member_id: str, visit_month: str) -> "ItemKey":
        return cls("MONTHLY_LOCK", monthly_lock_key(member_id, visit_month), "LOCK")

    @classmethod
    def settings(cls, name: str) -> "ItemKey":
        return cls("SETTINGS", name)
