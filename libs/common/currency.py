"""Money and token conversion utilities.

Internal storage units:
  USD amounts  - ``Decimal`` with 2 places (cents) for payouts and commissions.
  Earnings     - ``Decimal`` with 4 places; per-use accrual is sub-cent.
  Tokens       - ``int``; the platform usage credit.

Conversion chain
----------------
USD ÷ token_to_usd_rate → Tokens (rounded UP, the user never gets a free fraction)
Tokens × token_to_usd_rate → USD
"""

from __future__ import annotations

import math
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

# ─── constants ───────────────────────────────────────────────────────────────

CENTS = Decimal("0.01")
EARNINGS_PLACES = Decimal("0.0001")
ZERO = Decimal("0")

# Largest values the Numeric(12, 2) and Numeric(14, 4) columns hold.
MAX_USD = Decimal("9999999999.99")
MAX_EARNINGS = Decimal("9999999999.9999")

Number = Union[Decimal, int, float, str]


# ─── helpers ─────────────────────────────────────────────────────────────────


def to_decimal(value: Number) -> Decimal:
    """Coerce ``value`` to a finite Decimal without float artefacts (0.1 -> '0.1').

    Raises ``ValueError`` for anything that is not a finite number.
    """
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite amount: {value}")
        value = repr(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Non-finite amount: {value}")
    return result


def _quantize(value: Number, places: Decimal) -> Decimal:
    try:
        return to_decimal(value).quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value}") from exc


def quantize_usd(value: Number) -> Decimal:
    """Round to cents, half-up."""
    return _quantize(value, CENTS)


def quantize_earnings(value: Number) -> Decimal:
    """Round to 4 decimal places, half-up."""
    return _quantize(value, EARNINGS_PLACES)


def usd_to_tokens(usd: Number, token_to_usd_rate: Number) -> int:
    """Tokens needed to cover ``usd`` at ``token_to_usd_rate`` USD per token."""
    rate = to_decimal(token_to_usd_rate)
    if rate <= ZERO:
        raise ValueError("token_to_usd_rate must be positive")
    return int((to_decimal(usd) / rate).to_integral_value(rounding=ROUND_CEILING))


def percent_of(amount: Number, percent: Number) -> Decimal:
    """``percent``% of ``amount`` in cents."""
    return quantize_usd(to_decimal(amount) * to_decimal(percent) / Decimal("100"))
