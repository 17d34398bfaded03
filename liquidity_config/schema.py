"""
PoolConfig schema.

Defines the human-authored, reviewable source artifact for a pool's
configuration.  YAML is parsed into these types by the loader, checked by
the validator, and compiled into the kernel's ``PoolTerms`` by the
compiler.

Key distinction:
  PoolConfig = source artifact (human-authored, versioned)
  PoolTerms  = runtime artifact (validated, frozen, kernel-owned)
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Pool settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolSettings:
    """Identity and calendar of the pool."""

    pool_id: str
    pay_period_unit: str = "MONTH"  # DAY | MONTH
    pay_period_length: int = 1
    min_deposit_amount: int = 0
    max_lenders_per_tranche: int = 100


# ---------------------------------------------------------------------------
# Liquidity provider terms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LPConfig:
    """Tranche capacity, profit split and redemption rules."""

    liquidity_cap: int
    max_senior_junior_ratio: int
    tranches_policy: str = "risk_adjusted"  # risk_adjusted | fixed_senior_yield
    fixed_senior_yield_in_bps: int = 0
    tranches_risk_adjustment_in_bps: int = 0
    withdrawal_lockout_period_in_days: int = 0
    allow_redemption_cancellation: bool = True


# ---------------------------------------------------------------------------
# First-loss covers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FirstLossCoverConfig:
    """One first-loss cover; the list in PoolConfig is most junior first."""

    cover_id: str
    cover_rate_per_loss_in_bps: int
    cover_cap_per_loss: int
    max_liquidity: int
    max_percent_of_pool_value_in_bps: int = 0
    min_liquidity: int = 0
    risk_yield_multiplier_in_bps: int = 0
    min_deposit_amount: int = 0


# ---------------------------------------------------------------------------
# Admin requirements and fees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdminRequirements:
    """What the pool owner treasury and the evaluation agent must keep in."""

    pool_owner_treasury: str
    evaluation_agent: str
    admin_cover_id: str | None = None
    liquidity_rate_in_bps_by_pool_owner: int = 0
    liquidity_rate_in_bps_by_ea: int = 0
    pool_owner_min_cover_assets: int = 0
    ea_min_cover_assets: int = 0


@dataclass(frozen=True)
class FeeConfig:
    platform_fee_in_bps: int = 0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolConfig:
    """
    Complete configuration for one pool.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML
    and identifies the exact configuration a pool was built from.
    """

    config_id: str
    version: int
    pool: PoolSettings
    lp: LPConfig
    admin: AdminRequirements
    covers: tuple[FirstLossCoverConfig, ...] = ()
    fees: FeeConfig = field(default_factory=FeeConfig)
    checksum: str = ""

    @property
    def pool_id(self) -> str:
        return self.pool.pool_id

    @property
    def cover_ids(self) -> tuple[str, ...]:
        return tuple(c.cover_id for c in self.covers)
