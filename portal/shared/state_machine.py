"""
Claim and Visit State Machine

Defines claim, visit and application statuses, the transitions a social
worker may perform on their own claims, and the field changes every
admin review transition writes onto a claim.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

import structlog

from portal.shared.exceptions import InvalidStateTransitionError, ValidationError

log = structlog.get_logger()


class ClaimStatus(str, Enum):
    """
    Claim status enum.

    A claim is created by a social worker and then moved through
    admin review until it is paid or rejected.
    """

    DRAFT = "draft"
    """Assembled by the social worker, not yet submitted."""

    SUBMITTED = "submitted"
    """Submitted for admin review."""

    NEEDS_CORRECTION = "needs_correction"
    """Returned to the social worker with a correction reason."""

    REVIEWED = "reviewed"
    """Checked by an admin."""

    READY_FOR_PAYMENT = "ready_for_payment"
    """Queued for the next payment run."""

    APPROVED = "approved"
    """Approved for payment."""

    PAID = "paid"
    """Payment issued."""

    REJECTED = "rejected"
    """Will not be paid."""

    @property
    def is_terminal(self) -> bool:
        """Terminal claims are archived."""
        return self in TERMINAL_CLAIM_STATUSES

    @classmethod
    def from_string(cls, value: str) -> "ClaimStatus":
        """Convert string to ClaimStatus enum."""
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise ValidationError(
                f"Invalid claim status: '{value}'. "
                f"Valid values are: {[s.value for s in cls]}",
                status=value,
            ) from e


class VisitStatus(str, Enum):
    """Visit record status."""

    DRAFT = "draft"
    SIGNED_OFF = "signed_off"


class PaymentStatus(str, Enum):
    """Payment marker mirrored onto claims."""

    UNPAID = "unpaid"
    PAID = "paid"


class ApplicationStatus(str, Enum):
    """Community-support application status."""

    IN_PROGRESS = "In Progress"
    COMPLETED_AND_SUBMITTED = "Completed & Submitted"
    REQUIRES_REVISION = "Requires Revision"
    APPROVED = "Approved"


TERMINAL_CLAIM_STATUSES: Final[frozenset[ClaimStatus]] = frozenset({
    ClaimStatus.PAID,
    ClaimStatus.REJECTED,
})

# Transitions a social worker may perform on claims they own.
# Admin review may set any status and is not checked against this map.
SOCIAL_WORKER_TRANSITIONS: Final[dict[ClaimStatus, frozenset[ClaimStatus]]] = {
    ClaimStatus.DRAFT: frozenset({ClaimStatus.SUBMITTED}),
    ClaimStatus.SUBMITTED: frozenset(),
    ClaimStatus.NEEDS_CORRECTION: frozenset(),
    ClaimStatus.REVIEWED: frozenset(),
    ClaimStatus.READY_FOR_PAYMENT: frozenset(),
    ClaimStatus.APPROVED: frozenset(),
    ClaimStatus.PAID: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}

REVIEWED_STATUSES: Final[frozenset[ClaimStatus]] = frozenset({
    ClaimStatus.REVIEWED,
    ClaimStatus.NEEDS_CORRECTION,
    ClaimStatus.READY_FOR_PAYMENT,
    ClaimStatus.APPROVED,
    ClaimStatus.REJECTED,
    ClaimStatus.PAID,
})

CORRECTION_CLEARING_STATUSES: Final[frozenset[ClaimStatus]] = frozenset({
    ClaimStatus.REVIEWED,
    ClaimStatus.READY_FOR_PAYMENT,
    ClaimStatus.PAID,
})


def validate_transition(
    current_status: ClaimStatus | str,
    new_status: ClaimStatus | str,
    *,
    raise_on_invalid: bool = True,
) -> bool:
    """
    Validate that a social-worker transition is allowed.

    Args:
        current_status: Current claim status
        new_status: Desired next status
        raise_on_invalid: If True, raise exception on invalid transition

    Returns:
        True if transition is valid

    Raises:
        InvalidStateTransitionError: If transition is invalid and raise_on_invalid=True
    """
    if isinstance(current_status, str):
        current_status = ClaimStatus.from_string(current_status)
    if isinstance(new_status, str):
        new_status = ClaimStatus.from_string(new_status)

    allowed = SOCIAL_WORKER_TRANSITIONS.get(current_status, frozenset())
    is_valid = new_status in allowed

    if not is_valid and raise_on_invalid:
        log.warning(
            "invalid_state_transition",
            current_status=current_status.value,
            new_status=new_status.value,
            allowed_transitions=[s.value for s in allowed],
        )
        raise InvalidStateTransitionError(
            current_status=current_status.value,
            new_status=new_status.value,
            allowed_transitions=sorted(s.value for s in allowed),
        )

    return is_valid


@dataclass
class StatusUpdate:
    """Attribute writes and removals for one claim status change."""

    set_fields: dict[str, Any] = field(default_factory=dict)
    remove_fields: list[str] = field(default_factory=list)


def build_status_updates(
    new_status: ClaimStatus,
    *,
    actor_label: str,
    notes: str,
    now: int,
) -> StatusUpdate:
    """
    Build the claim field changes for an admin status change.

    Any status other than paid resets the payment markers, so moving a
    paid claim back into review un-pays it.
    """
    update = StatusUpdate()
    fields = update.set_fields
    fields["status"] = new_status.value
    fields["review_notes"] = notes
    fields["updated_at"] = now
    fields["archived"] = new_status.is_terminal

    if new_status == ClaimStatus.PAID:
        fields["claim_paid"] = True
        fields["payment_status"] = PaymentStatus.PAID.value
        fields["paid_at"] = now
        fields["paid_by"] = actor_label
    else:
        fields["claim_paid"] = False
        fields["payment_status"] = PaymentStatus.UNPAID.value
        update.remove_fields.extend(["paid_at", "paid_by"])

    if new_status == ClaimStatus.SUBMITTED:
        fields["submitted_at"] = now
        fields["submitted_by"] = actor_label
        fields["submitted_by_admin"] = True

    if new_status in REVIEWED_STATUSES:
        fields["reviewed_at"] = now
        fields["reviewed_by"] = actor_label

    if new_status == ClaimStatus.NEEDS_CORRECTION:
        fields["correction_reason"] = notes
        fields["correction_requested_at"] = now
        fields["correction_requested_by"] = actor_label
    elif new_status in CORRECTION_CLEARING_STATUSES:
        update.remove_fields.extend(
            ["correction_reason", "correction_requested_at", "correction_requested_by"]
        )

    if new_status == ClaimStatus.READY_FOR_PAYMENT:
        fields["ready_for_payment_at"] = now
        fields["ready_for_payment_by"] = actor_label

    return update
