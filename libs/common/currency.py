"""Money helpers.

Internal representation: ``Decimal`` with two decimal places.
Provider wire unit: minor units (cents, kobo), an ``int``.

Conversion
----------
Amount × 100 → minor units (round half-up)
Minor units ÷ 100 → amount
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

MINOR_UNITS_PER_MAJOR: int = 100
CENT = Decimal("0.01")


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_money(value) -> Decimal:
    """Coerce ``value`` to a two-place Decimal (round half-up).

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.10")``.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Convert an amount to minor units. 1.00 = 100."""
    return int(
        (to_money(amount) * MINOR_UNITS_PER_MAJOR).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )


def from_minor_units(minor: int) -> Decimal:
    """Convert minor units back to an amount. 100 = 1.00."""
    return to_money(Decimal(minor) / MINOR_UNITS_PER_MAJOR)


def format_money(amount, currency: str = "USD") -> str:
    """Format for display, e.g. ``USD 1,500.00``."""
    return f"{currency.upper()} {to_money(amount):,.2f}"
