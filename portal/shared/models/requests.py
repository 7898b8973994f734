"""
Request Models

Pydantic models for the JSON bodies accepted by the HTTP handlers.
Bodies may use the portal's camelCase keys or snake_case keys.
"""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from portal.shared.state_machine import ClaimStatus
from portal.shared.timeutil import to_day_key

MAX_CLAIMS_PER_DELETE = 250
# claim + sign-off + (lock + visit) per selected visit must fit one transaction
MAX_SIGNOFF_VISITS = 49
MAX_VISITS_PER_LOOKUP = 500


class RequestBody(BaseModel):
    """Base for request bodies."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @model_validator(mode="before")
    @classmethod
    def null_text_as_missing(cls, data: Any) -> Any:
        """Let an explicit null fall back to the default of optional text fields."""
        if not isinstance(data, dict):
            return data
        blank: set[str] = set()
        for name, info in cls.model_fields.items():
            if info.default == "":
                blank.update({name, to_camel(name)})
        return {k: v for k, v in data.items() if not (v is None and k in blank)}


def _clean_ids(values: list[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values or []:
        text = str(value or "").strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


class UpdateClaimStatusRequest(RequestBody):
    """Admin review status change."""

    claim_id: str = Field(..., min_length=1, description="Claim to update")
    new_status: ClaimStatus = Field(..., description="Target status")
    review_notes: str = Field(default="", description="Reviewer notes")

    @field_validator("new_status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return str(v or "").strip().lower()

    @model_validator(mode="after")
    def require_correction_reason(self) -> "UpdateClaimStatusRequest":
        if self.new_status == ClaimStatus.NEEDS_CORRECTION and not self.review_notes:
            raise ValueError("A correction reason is required")
        return self


class DeleteClaimsRequest(RequestBody):
    claim_ids: list[str] = Field(..., description="Claims to delete")
    reason: str = Field(..., min_length=1, description="Why the claims are deleted")

    @field_validator("claim_ids", mode="before")
    @classmethod
    def clean_claim_ids(cls, v: Any) -> list[str]:
        ids = _clean_ids(v if isinstance(v, list) else [])
        if not ids:
            raise ValueError("claimIds is required")
        if len(ids) > MAX_CLAIMS_PER_DELETE:
            raise ValueError(f"At most {MAX_CLAIMS_PER_DELETE} claims can be deleted per request")
        return ids


class DeleteVisitRequest(RequestBody):
    visit_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


class ClaimIdRequest(RequestBody):
    """Body naming a single claim."""

    claim_id: str = Field(..., min_length=1)


class SaveVisitDraftRequest(RequestBody):
    """Social worker questionnaire draft for one member visit."""

    visit_id: str = Field(..., min_length=1)
    visit_date: str = Field(..., description="Visit day, YYYY-MM-DD")
    member_id: str = ""
    member_name: str = ""
    member_room_number: str | None = None
    rcfe_id: str = ""
    rcfe_name: str = ""
    rcfe_address: str = ""
    social_worker_name: str = ""
    flagged: bool = False
    total_score: int = 0
    answers: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def accept_claim_day(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("visitDate") or data.get("visit_date")):
            day = data.get("claimDay") or data.get("claim_day")
            if day:
                data = {**data, "visit_date": day}
        return data

    @field_validator("visit_date", mode="before")
    @classmethod
    def normalize_day(cls, v: Any) -> str:
        day = to_day_key(v)
        if not day:
            raise ValueError("visitDate (YYYY-MM-DD) is required")
        return day

    @property
    def visit_month(self) -> str:
        return self.visit_date[:7]


class Geolocation(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: Decimal
    longitude: Decimal
    accuracy: Decimal | None = None


class SubmitSignOffRequest(RequestBody):
    """RCFE staff sign-off of a social worker's visits for one day."""

    rcfe_id: str = Field(..., min_length=1)
    claim_day: str
    selected_visit_ids: list[str]
    staff_name: str = Field(..., min_length=1)
    staff_title: str = ""
    signature: str = Field(..., min_length=1)
    signed_at: str | None = None
    geolocation: Geolocation | None = None
    social_worker_name: str = ""

    @field_validator("claim_day", mode="before")
    @classmethod
    def normalize_day(cls, v: Any) -> str:
        day = to_day_key(v)
        if not day:
            raise ValueError("claimDay (YYYY-MM-DD) is required")
        return day

    @field_validator("selected_visit_ids", mode="before")
    @classmethod
    def clean_visit_ids(cls, v: Any) -> list[str]:
        ids = _clean_ids(v if isinstance(v, list) else [])
        if not ids:
            raise ValueError("selectedVisitIds is required")
        if len(ids) > MAX_SIGNOFF_VISITS:
            raise ValueError(f"At most {MAX_SIGNOFF_VISITS} visits can be signed off at once")
        return ids

    @field_validator("geolocation", mode="before")
    @classmethod
    def drop_unusable_geolocation(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return None
        if v.get("latitude") is None or v.get("longitude") is None:
            return None
        return v


class OverrideSignOffRequest(RequestBody):
    """Admin attestation for visits a facility could not sign."""

    visit_ids: list[str]
    reason: str = ""
    rcfe_staff_name: str = ""
    rcfe_staff_title: str = ""

    @field_validator("visit_ids", mode="before")
    @classmethod
    def clean_visit_ids(cls, v: Any) -> list[str]:
        ids = _clean_ids(v if isinstance(v, list) else [])
        if not ids:
            raise ValueError("visitIds is required")
        if len(ids) > MAX_CLAIMS_PER_DELETE:
            raise ValueError(f"At most {MAX_CLAIMS_PER_DELETE} visits per request")
        return ids


class SendClaimRemindersRequest(RequestBody):
    claim_ids: list[str]
    only_draft: bool = True
    message: str = ""

    @field_validator("claim_ids", mode="before")
    @classmethod
    def clean_claim_ids(cls, v: Any) -> list[str]:
        ids = _clean_ids(v if isinstance(v, list) else [])
        if not ids:
            raise ValueError("claimIds is required")
        return ids[:MAX_CLAIMS_PER_DELETE]


class Recipient(RequestBody):
    uid: str | None = None
    email: str | None = None
    name: str | None = None

    @model_validator(mode="after")
    def require_identifier(self) -> "Recipient":
        if not (self.uid or self.email):
            raise ValueError("Each recipient needs a uid or an email")
        return self

    @property
    def key(self) -> str:
        return self.uid or (self.email or "").lower()


class NotifyStaffRequest(RequestBody):
    recipients: list[Recipient] = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    kind: str = "general"
    link: str | None = None
    application_id: str | None = None
    send_email: bool = False


class SyncMembersRequest(RequestBody):
    mode: Literal["incremental", "full"] = "incremental"
    max_pages: int | None = Field(default=None, ge=1, le=50)


class ApplicationIdRequest(RequestBody):
    """Body naming a single application."""

    application_id: str = Field(default="", validate_default=True)

    @field_validator("application_id")
    @classmethod
    def require_id(cls, v: str) -> str:
        if not v:
            raise ValueError("Application ID is required")
        return v


class ConfirmCsSummaryRequest(ApplicationIdRequest):
    confirmed_by: str = ""


class VisitIdsRequest(RequestBody):
    visit_ids: list[str] = Field(default_factory=list, validate_default=True)

    @field_validator("visit_ids", mode="before")
    @classmethod
    def clean_visit_ids(cls, v: Any) -> list[str]:
        ids = _clean_ids(v if isinstance(v, list) else [])
        if not ids:
            raise ValueError("visitIds[] is required")
        return ids[:MAX_VISITS_PER_LOOKUP]
