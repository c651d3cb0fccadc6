from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, Union


Frequency = Literal["weekly", "biweekly", "monthly", "annual"]
AmountLike = Union[Decimal, int, float, str]

# Average month length used to compare weekly cadences against monthly ones.
AVG_DAYS_PER_MONTH = Decimal("30.44")

FREQUENCIES = ("weekly", "biweekly", "monthly", "annual")
_ALIASES = {"yearly": "annual"}
_CENT = Decimal("0.01")


class InvalidAmount(ValueError):
    """Negative or non-numeric recurring amount."""


class InvalidFrequency(ValueError):
    """Frequency outside weekly/biweekly/monthly/annual."""


def normalize_frequency(value: str) -> Frequency:
    key = str(value or "").strip().lower()
    key = _ALIASES.get(key, key)
    if key not in FREQUENCIES:
        raise InvalidFrequency(f"Unsupported frequency: {value!r}")
    return key  # type: ignore[return-value]


def to_decimal(amount: AmountLike) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmount(f"Invalid amount: {amount!r}")
    try:
        # str() first so floats keep their shortest repr (0.1 stays 0.1)
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise InvalidAmount(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidAmount(f"Invalid amount: {amount!r}")
    return value


def to_monthly(amount: AmountLike, frequency: str) -> Decimal:
    """Monthly-equivalent of a recurring amount, unrounded.

    - weekly:   amount * 30.44 / 7
    - biweekly: amount * 30.44 / 14
    - monthly:  amount
    - annual:   amount / 12

    Negative amounts raise InvalidAmount; they are never clamped to zero.
    """
    value = to_decimal(amount)
    if value < 0:
        raise InvalidAmount(f"Amount must be non-negative, got {value}")
    freq = normalize_frequency(frequency)
    if value == 0:
        return Decimal(0)
    if freq == "weekly":
        return value * AVG_DAYS_PER_MONTH / 7
    if freq == "biweekly":
        return value * AVG_DAYS_PER_MONTH / 14
    if freq == "annual":
        return value / 12
    return value


def round_money(value: Decimal) -> Decimal:
    """Half-up to cents, for display only."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
