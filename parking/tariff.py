"""Tariff calculation: elapsed time -> billable duration -> charge.

Every function here is pure. Durations are handled as integer seconds
internally so the round-up rule stays exact.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from parking.errors import ValidationError

CENTS = Decimal("0.01")
ZERO = timedelta(0)


def _seconds(value: timedelta) -> int:
    # timedelta keeps days/seconds/microseconds as ints, no float round trip
    return value.days * 86400 + value.seconds


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


@dataclass(frozen=True)
class PricingPolicy:
    effective_from: datetime
    effective_to: Optional[datetime]
    grace_period: timedelta
    initial_block: timedelta
    initial_block_value: Decimal
    increment_unit: timedelta
    increment_value: Decimal

    def __post_init__(self):
        for name in ("grace_period", "initial_block", "increment_unit"):
            value = getattr(self, name)
            if value < ZERO:
                raise ValidationError(f"{name} must not be negative, got {value}")
            if value.microseconds:
                raise ValidationError(f"{name} must be a whole number of seconds, got {value}")
        if self.increment_unit == ZERO:
            raise ValidationError("increment_unit must be greater than zero")
        for name in ("initial_block_value", "increment_value"):
            amount = Decimal(getattr(self, name))
            if not amount.is_finite() or amount < 0:
                raise ValidationError(f"{name} must be a finite, non-negative amount, got {amount}")
            object.__setattr__(self, name, amount.quantize(CENTS))
        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise ValidationError("effective_to must be later than effective_from")

    def is_effective_at(self, instant: datetime) -> bool:
        if instant < self.effective_from:
            return False
        return self.effective_to is None or instant < self.effective_to


def compute_elapsed(entry_time: datetime, reference_time: datetime) -> timedelta:
    elapsed = reference_time - entry_time
    if elapsed < ZERO:
        raise ValidationError(
            f"Reference time {reference_time.isoformat()} is before entry time {entry_time.isoformat()}"
        )
    return timedelta(seconds=_seconds(elapsed))


def compute_billable_duration(elapsed: timedelta, policy: PricingPolicy) -> timedelta:
    """Grace is free. Past it the initial block is billed whole and started units round up."""
    elapsed_s = _seconds(elapsed)
    if elapsed_s < 0:
        raise ValidationError(f"Elapsed time must not be negative, got {elapsed}")

    grace_s = _seconds(policy.grace_period)
    if elapsed_s <= grace_s:
        return ZERO

    block_s = _seconds(policy.initial_block)
    over_s = elapsed_s - grace_s
    if over_s <= block_s:
        return policy.initial_block

    unit_s = _seconds(policy.increment_unit)
    units = _ceil_div(over_s - block_s, unit_s)
    return timedelta(seconds=block_s + units * unit_s)


def compute_charge(billable: timedelta, policy: PricingPolicy) -> Decimal:
    billable_s = _seconds(billable)
    if billable_s == 0:
        return Decimal("0.00")

    block_s = _seconds(policy.initial_block)
    if billable_s == block_s:
        return policy.initial_block_value

    units, remainder = divmod(billable_s - block_s, _seconds(policy.increment_unit))
    if billable_s < block_s or remainder:
        raise ValidationError(
            f"Billable duration {billable} is not the initial block plus whole increment units"
        )
    return (policy.initial_block_value + units * policy.increment_value).quantize(CENTS)


def evaluate(
    entry_time: datetime, reference_time: datetime, policy: PricingPolicy
) -> Tuple[timedelta, timedelta, Decimal]:
    elapsed = compute_elapsed(entry_time, reference_time)
    billable = compute_billable_duration(elapsed, policy)
    return elapsed, billable, compute_charge(billable, policy)
