"""Payment milestone kinds, statuses and the fee schedule."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class MilestoneKind(str, Enum):
    """Fee obligations that gate specific status transitions."""

    DOCUMENT_REVIEW = "DOCUMENT_REVIEW"
    ASSESSMENT = "ASSESSMENT"
    CERTIFICATE_ISSUANCE = "CERTIFICATE_ISSUANCE"
    REVISION = "REVISION"          # Charged only past the free revision quota

    @property
    def repeatable(self) -> bool:
        """A new milestone of this kind is raised every time it is due."""
        return self is MilestoneKind.REVISION


class MilestoneStatus(str, Enum):
    """Lifecycle of a single payment milestone."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# Statuses after which a milestone can no longer be confirmed
SETTLED_STATUSES = {
    MilestoneStatus.CONFIRMED,
    MilestoneStatus.REFUNDED,
    MilestoneStatus.CANCELLED,
}

# Statuses from which a confirmation is accepted
CONFIRMABLE_STATUSES = {
    MilestoneStatus.PENDING,
    MilestoneStatus.FAILED,
}

DEFAULT_CURRENCY = "THB"

# Amounts are stored as Numeric(12, 2)
CENTS = Decimal("0.01")


def to_amount(value: object) -> Decimal:
    """Money value rounded to the two places it is stored with."""
    return Decimal(str(value)).quantize(CENTS)


DEFAULT_FEES: Dict[MilestoneKind, Decimal] = {
    MilestoneKind.DOCUMENT_REVIEW: to_amount(5000),
    MilestoneKind.ASSESSMENT: to_amount(25000),
    MilestoneKind.CERTIFICATE_ISSUANCE: to_amount(2000),
    MilestoneKind.REVISION: to_amount(5000),
}

MILESTONE_TITLES: Dict[MilestoneKind, str] = {
    MilestoneKind.DOCUMENT_REVIEW: "document review fee",
    MilestoneKind.ASSESSMENT: "assessment fee",
    MilestoneKind.CERTIFICATE_ISSUANCE: "certificate issuance fee",
    MilestoneKind.REVISION: "revision fee",
}


@dataclass(frozen=True)
class FeeSchedule:
    """Amount charged per milestone kind."""

    fees: Dict[MilestoneKind, Decimal] = field(default_factory=lambda: dict(DEFAULT_FEES))
    currency: str = DEFAULT_CURRENCY

    def amount_for(self, kind: MilestoneKind) -> Decimal:
        try:
            return to_amount(self.fees[kind])
        except KeyError:
            return DEFAULT_FEES[kind]

    @classmethod
    def from_mapping(
        cls,
        overrides: Optional[Dict[str, object]] = None,
        currency: str = DEFAULT_CURRENCY,
    ) -> "FeeSchedule":
        """Build a schedule from ``{"ASSESSMENT": 30000, ...}`` style overrides."""
        fees = dict(DEFAULT_FEES)
        for name, amount in (overrides or {}).items():
            fees[MilestoneKind(str(name).upper())] = to_amount(amount)
        return cls(fees=fees, currency=currency)
