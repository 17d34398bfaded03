"""
Values -- Fixed-point integer value types and checked arithmetic.

Responsibility:
    Provides the tranche indices, the two-element tranche vectors, the
    profit/loss/recovery triple and the integer helpers every calculator
    uses. All amounts are non-negative Python ints constrained to the
    documented fixed-width ranges (96-bit amounts, 64-bit timestamps and
    epoch ids) so results match a 96-bit reference ledger exactly.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    FIXED_WIDTH_RANGES -- ``require_uint`` rejects values outside range.
    NO_LEAKAGE         -- ``mul_div`` floors; callers assign the remainder.

Failure modes:
    - AmountOutOfRangeError when a value is negative or too wide.
    - ArithmeticUnderflowError from ``checked_sub``.
    - UnknownTrancheError for tranche indices other than 0 and 1.
"""

from __future__ import annotations

from dataclasses import dataclass

from liquidity_kernel.exceptions import (
    AmountOutOfRangeError,
    ArithmeticUnderflowError,
    UnknownTrancheError,
)

SENIOR_TRANCHE = 0
JUNIOR_TRANCHE = 1
TRANCHES: tuple[int, int] = (SENIOR_TRANCHE, JUNIOR_TRANCHE)
TRANCHE_NAMES: dict[int, str] = {SENIOR_TRANCHE: "senior", JUNIOR_TRANCHE: "junior"}

HUNDRED_PERCENT_IN_BPS = 10_000
SECONDS_IN_A_DAY = 86_400
SECONDS_IN_A_YEAR = 365 * SECONDS_IN_A_DAY

MAX_UINT96 = 2**96 - 1
MAX_UINT64 = 2**64 - 1
MAX_UINT256 = 2**256 - 1


def require_uint(value: int, field: str, max_value: int = MAX_UINT96) -> int:
    """Validate that ``value`` is an int within ``[0, max_value]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field} must be int, got {type(value).__name__}")
    if value < 0 or value > max_value:
        raise AmountOutOfRangeError(field, value, max_value)
    return value


def require_uint64(value: int, field: str) -> int:
    """Timestamps and epoch ids: ``[0, 2**64 - 1]``."""
    return require_uint(value, field, MAX_UINT64)


def require_tranche(tranche: int) -> int:
    if tranche not in TRANCHES:
        raise UnknownTrancheError(tranche)
    return tranche


def tranche_name(tranche: int) -> str:
    return TRANCHE_NAMES[require_tranche(tranche)]


def mul_div(a: int, b: int, denominator: int) -> int:
    """Floor of ``a * b / denominator`` without intermediate rounding."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return (a * b) // denominator


def ceil_div(a: int, b: int) -> int:
    """Ceiling of ``a / b`` for non-negative integers."""
    if b == 0:
        raise ZeroDivisionError("ceil_div divisor is zero")
    return 0 if a == 0 else (a - 1) // b + 1


def checked_sub(minuend: int, subtrahend: int, field: str) -> int:
    """Subtract, refusing to go below zero."""
    if subtrahend > minuend:
        raise ArithmeticUnderflowError(field, minuend, subtrahend)
    return minuend - subtrahend


@dataclass(frozen=True, slots=True)
class TranchePair:
    """
    Two-element ``[senior, junior]`` vector of non-negative 96-bit amounts.

    Used both for tranche assets and for the losses each tranche has taken
    that remain unrecovered.
    """

    senior: int
    junior: int

    def __post_init__(self) -> None:
        require_uint(self.senior, "senior")
        require_uint(self.junior, "junior")

    @classmethod
    def zero(cls) -> TranchePair:
        return cls(0, 0)

    @classmethod
    def from_list(cls, values: list[int] | tuple[int, int]) -> TranchePair:
        if len(values) != 2:
            raise ValueError(f"Expected [senior, junior], got {len(values)} values")
        return cls(values[SENIOR_TRANCHE], values[JUNIOR_TRANCHE])

    def __getitem__(self, tranche: int) -> int:
        return self.senior if require_tranche(tranche) == SENIOR_TRANCHE else self.junior

    def with_value(self, tranche: int, value: int) -> TranchePair:
        if require_tranche(tranche) == SENIOR_TRANCHE:
            return TranchePair(value, self.junior)
        return TranchePair(self.senior, value)

    def as_list(self) -> list[int]:
        return [self.senior, self.junior]

    @property
    def total(self) -> int:
        return self.senior + self.junior


TrancheAssets = TranchePair
TrancheLosses = TranchePair


@dataclass(frozen=True, slots=True)
class ProfitLossRecovery:
    """Accrued figures read (and reset) from the credit source."""

    profit: int = 0
    loss: int = 0
    loss_recovery: int = 0

    def __post_init__(self) -> None:
        require_uint(self.profit, "profit", MAX_UINT256)
        require_uint(self.loss, "loss", MAX_UINT256)
        require_uint(self.loss_recovery, "loss_recovery", MAX_UINT256)

    @property
    def is_empty(self) -> bool:
        return self.profit == 0 and self.loss == 0 and self.loss_recovery == 0
