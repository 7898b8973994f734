"""
Claim billing math.

Claim totals are always derived from the claim's current visit ids and
its fee schedule. Totals sent by a client are never stored.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from portal.shared.config import get_settings


@dataclass(frozen=True)
class FeeSchedule:
    """Per-visit rate and flat per-day gas reimbursement."""

    visit_fee_rate: Decimal
    gas_amount: Decimal

    @classmethod
    def default(cls) -> "FeeSchedule":
        settings = get_settings()
        return cls(
            visit_fee_rate=Decimal(settings.visit_fee_rate),
            gas_amount=Decimal(settings.gas_amount),
        )

    @classmethod
    def for_claim(cls, claim: Any) -> "FeeSchedule":
        """
        Rates snapshotted on the claim when it was created, else the defaults.

        A zero visit fee means the claim predates the snapshot; a zero gas
        rate is a real snapshot and is kept.
        """
        defaults = cls.default()
        rate = getattr(claim, "visit_fee_rate", None)
        gas = getattr(claim, "gas_rate", None)
        return cls(
            visit_fee_rate=Decimal(rate) if rate else defaults.visit_fee_rate,
            gas_amount=Decimal(gas) if gas is not None else defaults.gas_amount,
        )


@dataclass(frozen=True)
class ClaimTotals:
    """Derived claim amounts."""

    visit_count: int
    visit_fee_rate: Decimal
    gas_amount: Decimal
    total_member_visit_fees: Decimal
    total_amount: Decimal

    def to_fields(self) -> dict[str, Any]:
        return {
            "visit_count": self.visit_count,
            "visit_fee_rate": self.visit_fee_rate,
            "gas_amount": self.gas_amount,
            "gas_reimbursement": self.gas_amount,
            "total_member_visit_fees": self.total_member_visit_fees,
            "total_amount": self.total_amount,
        }


def unique_ids(ids: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for raw in ids:
        value = str(raw or "").strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def compute_claim_totals(visit_ids: Iterable[str], fees: FeeSchedule) -> ClaimTotals:
    """
    Compute claim totals from the visit ids currently on the claim.

    Gas is reimbursed once per claim when it has at least one visit.

    >>> fees = FeeSchedule(Decimal("45"), Decimal("20"))
    >>> compute_claim_totals(["v1", "v2", "v3"], fees).total_amount
    Decimal('155')
    """
    count = len(unique_ids(visit_ids))
    member_fees = fees.visit_fee_rate * count
    gas = fees.gas_amount if count > 0 else Decimal("0")
    return ClaimTotals(
        visit_count=count,
        visit_fee_rate=fees.visit_fee_rate,
        gas_amount=gas,
        total_member_visit_fees=member_fees,
        total_amount=member_fees + gas,
    )
