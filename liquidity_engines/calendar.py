"""
Module: liquidity_engines.calendar
Responsibility:
    Compute epoch boundaries: the start of the pay period following a
    timestamp, in UTC, for DAY or MONTH units.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Time is always passed in.

Failure modes:
    - ValueError for a non-positive period length.
"""

from __future__ import annotations

from datetime import datetime, timezone

from liquidity_kernel.domain.terms import PayPeriodUnit
from liquidity_kernel.domain.values import SECONDS_IN_A_DAY


def start_of_day(ts: int) -> int:
    return ts - ts % SECONDS_IN_A_DAY


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def start_of_next_period(unit: PayPeriodUnit, length: int, ts: int) -> int:
    """
    First instant of the period after the one containing ``ts``.

    DAY periods start at midnight UTC; MONTH periods on the first of the
    month. ``length`` counts units per period, measured from the start of
    the current unit.

    Examples:
        2024-01-15T12:00Z, DAY, 1   -> 2024-01-16T00:00Z
        2024-01-15T12:00Z, MONTH, 1 -> 2024-02-01T00:00Z
        2024-11-30T00:00Z, MONTH, 3 -> 2025-02-01T00:00Z
    """
    if length <= 0:
        raise ValueError(f"Period length must be positive, got {length}")
    if unit == PayPeriodUnit.DAY:
        return start_of_day(ts) + length * SECONDS_IN_A_DAY

    current = datetime.fromtimestamp(ts, tz=timezone.utc)
    year, month = _add_months(current.year, current.month, length)
    return int(datetime(year, month, 1, tzinfo=timezone.utc).timestamp())
