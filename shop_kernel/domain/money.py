"""
Money helpers -- Decimal arithmetic and display formatting.

Responsibility:
    Normalizes user-supplied amounts to two-place ``Decimal`` values and
    renders them with the site's currency symbol.  The symbol is a display
    prefix only; no conversion or tax rules are applied.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - ValueError if an amount cannot be parsed as a finite decimal.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")


def to_amount(value: Decimal | int | str) -> Decimal:
    """Parse ``value`` into a Decimal rounded half-up to cents.

    Floats are rejected; pass a string to avoid binary rounding artifacts.
    """
    if isinstance(value, float):
        raise ValueError(f"Refusing float amount {value!r}; use str or Decimal")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, symbol: str = "$") -> str:
    """Render ``amount`` as ``$1,234.50`` (negative as ``-$12.00``)."""
    quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    return f"{sign}{symbol}{abs(quantized):,.2f}"
