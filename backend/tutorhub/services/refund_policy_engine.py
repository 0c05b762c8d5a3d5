from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ..core.config import SchedulingPolicy
from .timezone_service import TimezoneService

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RefundPolicyResult:
    hours_until: float
    fraction: Decimal
    amount: Decimal
    currency: str
    policy_basis: str

    def to_payload(self) -> dict[str, object]:
        return {
            "hours_until": round(self.hours_until, 4),
            "fraction": str(self.fraction),
            "amount": str(self.amount),
            "currency": self.currency,
            "policy_basis": self.policy_basis,
        }


class RefundPolicyEngine:
    """Maps time remaining before a session to a refund fraction of its price."""

    def __init__(self, policy: SchedulingPolicy | None = None):
        self.policy = policy or SchedulingPolicy.from_settings()

    def refund_fraction(self, hours_until: float) -> Decimal:
        """Both tier boundaries are inclusive."""
        if hours_until >= self.policy.full_refund_hours:
            return Decimal("1")
        if hours_until >= self.policy.partial_refund_hours:
            return Decimal(str(self.policy.partial_refund_fraction))
        return Decimal("0")

    def evaluate(
        self,
        price: Decimal | float | int,
        scheduled_at: datetime,
        now: datetime,
        currency: str = "USD",
    ) -> RefundPolicyResult:
        hours_until = TimezoneService.hours_until(
            TimezoneService.ensure_utc(scheduled_at), TimezoneService.ensure_utc(now)
        )
        fraction = self.refund_fraction(hours_until)
        amount = (Decimal(str(price)) * fraction).quantize(CENT, rounding=ROUND_HALF_UP)

        if fraction == 1:
            policy_basis = f">={self.policy.full_refund_hours:g} hours before session: full refund"
        elif fraction > 0:
            policy_basis = (
                f"{self.policy.partial_refund_hours:g}-{self.policy.full_refund_hours:g} hours "
                f"before session: {float(fraction) * 100:g}% refund"
            )
        else:
            policy_basis = f"<{self.policy.partial_refund_hours:g} hours before session: no refund"

        return RefundPolicyResult(
            hours_until=hours_until,
            fraction=fraction,
            amount=amount,
            currency=currency,
            policy_basis=policy_basis,
        )
