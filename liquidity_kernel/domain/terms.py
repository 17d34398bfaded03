"""
Terms -- Frozen runtime pool terms consumed by kernel services.

Responsibility:
    Defines the immutable parameter objects the kernel services read:
    liquidity terms (caps, ratios, yields, lockout), first-loss cover terms,
    admin requirements and the epoch calendar. ``liquidity_config`` compiles
    YAML configuration into a ``PoolTerms``; tests construct them directly.

Architecture position:
    Kernel > Domain -- pure data, zero I/O. The kernel never imports the
    configuration package; it only sees these objects.

Invariants enforced:
    FIXED_WIDTH_RANGES -- amounts validated with ``require_uint``.

Failure modes:
    - AmountOutOfRangeError / ValueError on construction with invalid values.
    - KeyError from ``PoolTerms.cover`` for an unknown cover id.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

from liquidity_kernel.domain.values import (
    HUNDRED_PERCENT_IN_BPS,
    SECONDS_IN_A_DAY,
    mul_div,
    require_uint,
)

MAX_COVER_PROVIDERS = 100


class TranchesPolicyKind(str, Enum):
    """Which profit split the pool uses."""

    RISK_ADJUSTED = "risk_adjusted"
    FIXED_SENIOR_YIELD = "fixed_senior_yield"


class PayPeriodUnit(str, Enum):
    """Calendar unit for epoch boundaries."""

    DAY = "DAY"
    MONTH = "MONTH"


def _require_bps(value: int, name: str) -> None:
    if value < 0 or value > HUNDRED_PERCENT_IN_BPS:
        raise ValueError(f"{name} must be within [0, {HUNDRED_PERCENT_IN_BPS}] bps, got {value}")


@dataclass(frozen=True)
class LiquidityTerms:
    """Tranche capacity, pricing and redemption parameters."""

    liquidity_cap: int
    max_senior_junior_ratio: int
    tranches_policy: TranchesPolicyKind = TranchesPolicyKind.RISK_ADJUSTED
    fixed_senior_yield_in_bps: int = 0
    tranches_risk_adjustment_in_bps: int = 0
    withdrawal_lockout_period_in_days: int = 0
    allow_redemption_cancellation: bool = True
    min_deposit_amount: int = 0
    max_lenders_per_tranche: int = 100

    def __post_init__(self) -> None:
        require_uint(self.liquidity_cap, "liquidity_cap")
        require_uint(self.min_deposit_amount, "min_deposit_amount")
        if self.max_senior_junior_ratio < 0:
            raise ValueError("max_senior_junior_ratio must be non-negative")
        if self.fixed_senior_yield_in_bps < 0:
            raise ValueError("fixed_senior_yield_in_bps must be non-negative")
        _require_bps(self.tranches_risk_adjustment_in_bps, "tranches_risk_adjustment_in_bps")
        if self.withdrawal_lockout_period_in_days < 0:
            raise ValueError("withdrawal_lockout_period_in_days must be non-negative")
        if self.max_lenders_per_tranche <= 0:
            raise ValueError("max_lenders_per_tranche must be positive")

    @property
    def withdrawal_lockout_seconds(self) -> int:
        return self.withdrawal_lockout_period_in_days * SECONDS_IN_A_DAY

    def to_record(self) -> dict[str, Any]:
        """JSON-safe form stored on the pool row."""
        record = asdict(self)
        record["tranches_policy"] = self.tranches_policy.value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> LiquidityTerms:
        values = dict(record)
        values["tranches_policy"] = TranchesPolicyKind(values["tranches_policy"])
        return cls(**values)


@dataclass(frozen=True)
class CoverTerms:
    """Parameters of one first-loss cover reserve."""

    cover_id: str
    cover_rate_per_loss_in_bps: int
    cover_cap_per_loss: int
    max_liquidity: int
    max_percent_of_pool_value_in_bps: int = 0
    min_liquidity: int = 0
    risk_yield_multiplier_in_bps: int = 0
    min_deposit_amount: int = 0
    max_providers: int = MAX_COVER_PROVIDERS

    def __post_init__(self) -> None:
        if not self.cover_id:
            raise ValueError("cover_id must be non-empty")
        _require_bps(self.cover_rate_per_loss_in_bps, "cover_rate_per_loss_in_bps")
        require_uint(self.cover_cap_per_loss, "cover_cap_per_loss")
        require_uint(self.max_liquidity, "max_liquidity")
        require_uint(self.min_liquidity, "min_liquidity")
        require_uint(self.min_deposit_amount, "min_deposit_amount")
        if self.max_percent_of_pool_value_in_bps < 0:
            raise ValueError("max_percent_of_pool_value_in_bps must be non-negative")
        if self.risk_yield_multiplier_in_bps < 0:
            raise ValueError("risk_yield_multiplier_in_bps must be non-negative")
        if not 0 < self.max_providers <= MAX_COVER_PROVIDERS:
            raise ValueError(f"max_providers must be within (0, {MAX_COVER_PROVIDERS}]")

    def capacity(self, pool_assets: int) -> int:
        """Ceiling of the reserve: the larger of the fixed cap and the pool-relative cap."""
        relative = mul_div(pool_assets, self.max_percent_of_pool_value_in_bps, HUNDRED_PERCENT_IN_BPS)
        return max(self.max_liquidity, relative)


@dataclass(frozen=True)
class AdminTerms:
    """Pool-owner and evaluation-agent obligations."""

    pool_owner_treasury: str
    evaluation_agent: str
    admin_cover_id: str
    liquidity_rate_in_bps_by_pool_owner: int = 0
    liquidity_rate_in_bps_by_ea: int = 0
    pool_owner_min_cover_assets: int = 0
    ea_min_cover_assets: int = 0

    def __post_init__(self) -> None:
        if not self.pool_owner_treasury or not self.evaluation_agent:
            raise ValueError("pool_owner_treasury and evaluation_agent are required")
        _require_bps(self.liquidity_rate_in_bps_by_pool_owner, "liquidity_rate_in_bps_by_pool_owner")
        _require_bps(self.liquidity_rate_in_bps_by_ea, "liquidity_rate_in_bps_by_ea")

    def required_junior_assets(self, account: str, liquidity_cap: int) -> int:
        """Junior-tranche assets ``account`` must keep, zero for non-admins."""
        if account == self.pool_owner_treasury:
            return mul_div(liquidity_cap, self.liquidity_rate_in_bps_by_pool_owner, HUNDRED_PERCENT_IN_BPS)
        if account == self.evaluation_agent:
            return mul_div(liquidity_cap, self.liquidity_rate_in_bps_by_ea, HUNDRED_PERCENT_IN_BPS)
        return 0


@dataclass(frozen=True)
class CalendarTerms:
    pay_period_unit: PayPeriodUnit = PayPeriodUnit.MONTH
    pay_period_length: int = 1

    def __post_init__(self) -> None:
        if self.pay_period_length <= 0:
            raise ValueError("pay_period_length must be positive")


@dataclass(frozen=True)
class PoolTerms:
    """
    Everything a pool's services need to know about its configuration.

    Contract:
        Covers are ordered most-junior first; losses walk them in this order
        and recoveries walk them in reverse.
    """

    pool_id: str
    liquidity: LiquidityTerms
    admin: AdminTerms
    covers: tuple[CoverTerms, ...] = ()
    calendar: CalendarTerms = field(default_factory=CalendarTerms)
    platform_fee_in_bps: int = 0

    def __post_init__(self) -> None:
        if not self.pool_id:
            raise ValueError("pool_id must be non-empty")
        ids = [c.cover_id for c in self.covers]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate cover ids: {ids}")
        if self.covers and self.admin.admin_cover_id not in ids:
            raise ValueError(f"admin_cover_id {self.admin.admin_cover_id!r} is not a configured cover")
        _require_bps(self.platform_fee_in_bps, "platform_fee_in_bps")

    def cover(self, cover_id: str) -> CoverTerms:
        for c in self.covers:
            if c.cover_id == cover_id:
                return c
        raise KeyError(cover_id)

    @property
    def cover_ids(self) -> tuple[str, ...]:
        return tuple(c.cover_id for c in self.covers)

    def with_liquidity(self, liquidity: LiquidityTerms) -> PoolTerms:
        return replace(self, liquidity=liquidity)
