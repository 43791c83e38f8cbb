"""
SAP Server — Domain Records
Immutable values passed between the tracking service, the aggregate
store, and the durable store.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

# Prompts are stored for audit only; anything past this is dropped.
PROMPT_MAX_CHARS = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SourceTag(str, Enum):
    """How a tracked prompt was detected on the client."""
    FORM_SUBMISSION = "form_submission"
    BUTTON_CLICK = "button_click"
    INPUT_CHANGE = "input_change"


class PaymentType(str, Enum):
    STAMP = "stamp"
    MEMBERSHIP = "membership"
    CREDITS = "credits"


@dataclass(frozen=True)
class TrackedEvent:
    """One prompt as it is written to the audit log.

    energy and co2 hold the deltas this event contributed, whether they
    were supplied by the client or estimated from the token count.
    """
    prompt: str
    model: str
    tokens: int
    energy: float
    co2: float
    user_id: Optional[str] = None
    source: Optional[SourceTag] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class GlobalSnapshot:
    """Running totals across every tracked prompt."""
    total_prompts: int = 0
    total_energy: float = 0.0
    total_co2: float = 0.0
    last_updated: datetime = field(default_factory=utcnow)

    def advance(self, energy: float, co2: float, at: Optional[datetime] = None) -> "GlobalSnapshot":
        """Return the snapshot after one more prompt with the given deltas."""
        return replace(
            self,
            total_prompts=self.total_prompts + 1,
            total_energy=self.total_energy + energy,
            total_co2=self.total_co2 + co2,
            last_updated=at or utcnow(),
        )


@dataclass(frozen=True)
class PaymentRecord:
    """A completed checkout, appended by the Stripe webhook."""
    user_id: str
    type: str
    amount: float
    external_ref: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


@dataclass(frozen=True)
class UserStatus:
    has_stamp: bool
    has_membership: bool
    credits: float

    @classmethod
    def from_payments(cls, payments: Iterable[PaymentRecord]) -> "UserStatus":
        payments = list(payments)
        return cls(
            has_stamp=any(p.type == PaymentType.STAMP.value for p in payments),
            has_membership=any(p.type == PaymentType.MEMBERSHIP.value for p in payments),
            credits=sum((p.amount for p in payments if p.type == PaymentType.CREDITS.value), 0.0),
        )
