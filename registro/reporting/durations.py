"""Minute/hour conversion and the single rounding policy for reports.

Totals are always computed by summing raw ``duration_minutes`` first and
converting once at the level being displayed. Rounding happens only when a
value is formatted.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

MINUTES_PER_HOUR = Decimal("60")
ZERO = Decimal("0.00")
Q2 = Decimal("0.01")
HUNDRED = Decimal("100")


class HasDuration(Protocol):
    @property
    def duration_minutes(self) -> int: ...


def _as_decimal(value: Decimal | int | float) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def minutes_to_hours(minutes: int) -> Decimal:
    """Convert minutes to hours without intermediate rounding."""

    return Decimal(minutes) / MINUTES_PER_HOUR


def round_hours(hours: Decimal | int | float) -> Decimal:
    return _as_decimal(hours).quantize(Q2, rounding=ROUND_HALF_UP)


def format_hours(hours: Decimal | int | float, decimal_separator: str = ".") -> str:
    """Render hours with exactly two decimals, half-up."""

    rendered = f"{round_hours(hours):.2f}"
    if decimal_separator != ".":
        rendered = rendered.replace(".", decimal_separator)
    return rendered


def format_minutes(minutes: int, decimal_separator: str = ".") -> str:
    return format_hours(minutes_to_hours(minutes), decimal_separator)


def format_duration_clock(minutes: int) -> str:
    """``H:MM`` rendering used in the consultant monthly export."""

    hours, remainder = divmod(minutes, 60)
    return f"{hours}:{remainder:02d}"


def sum_minutes(items: Iterable[HasDuration]) -> int:
    return sum(item.duration_minutes for item in items)


def safe_div(numerator: Decimal, denominator: Decimal | int) -> Decimal:
    """Divide, defining the result as zero when the denominator is zero."""

    denominator = _as_decimal(denominator)
    if denominator == 0:
        return ZERO
    return numerator / denominator


def percentage(part: Decimal | int, whole: Decimal | int) -> Decimal:
    return safe_div(_as_decimal(part) * HUNDRED, whole)


def round_percentage(value: Decimal | int | float) -> Decimal:
    return _as_decimal(value).quantize(Q2, rounding=ROUND_HALF_UP)
