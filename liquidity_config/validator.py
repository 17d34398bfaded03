"""
Configuration Validator (``liquidity_config.validator``).

Responsibility
--------------
Checks a parsed ``PoolConfig`` for structural and economic consistency
before it is compiled into kernel terms.

Invariants enforced
-------------------
* Basis-point fields are within [0, 10000] where the kernel requires it.
* Amounts are non-negative and fit in 96 bits.
* Cover ids are unique; the admin cover id names a configured cover.
* The tranche policy and pay period unit are known values.

Failure modes
-------------
* Errors  -> configuration MUST NOT be compiled.
* Warnings  -> configuration may be compiled but should be reviewed
  (for example a fixed senior yield configured under the risk-adjusted
  policy, where it is ignored).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from liquidity_config.schema import PoolConfig
from liquidity_kernel.domain.values import HUNDRED_PERCENT_IN_BPS, MAX_UINT96

TRANCHES_POLICIES = ("risk_adjusted", "fixed_senior_yield")
PAY_PERIOD_UNITS = ("DAY", "MONTH")
MAX_COVER_COUNT = 16


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block compilation.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_pool_config(config: PoolConfig) -> ConfigValidationResult:
    """
    Validate a parsed pool configuration.

    Postconditions:
        Returns a result whose ``errors`` list every problem found; the
        validator never stops at the first error.
    """
    result = ConfigValidationResult()
    _validate_pool(config, result)
    _validate_lp(config, result)
    _validate_covers(config, result)
    _validate_admin(config, result)
    _check_bps(result, "fees.platform_fee_in_bps", config.fees.platform_fee_in_bps)
    return result


def _check_amount(result: ConfigValidationResult, name: str, value: int) -> None:
    if value < 0:
        result.add_error(f"{name} must be non-negative, got {value}")
    elif value > MAX_UINT96:
        result.add_error(f"{name} exceeds the 96-bit amount range")


def _check_bps(result: ConfigValidationResult, name: str, value: int) -> None:
    if not 0 <= value <= HUNDRED_PERCENT_IN_BPS:
        result.add_error(f"{name} must be within [0, {HUNDRED_PERCENT_IN_BPS}] bps, got {value}")


def _validate_pool(config: PoolConfig, result: ConfigValidationResult) -> None:
    pool = config.pool
    if not pool.pool_id:
        result.add_error("pool.pool_id is required")
    if pool.pay_period_unit not in PAY_PERIOD_UNITS:
        result.add_error(
            f"pool.pay_period_unit must be one of {PAY_PERIOD_UNITS}, got {pool.pay_period_unit!r}"
        )
    if pool.pay_period_length <= 0:
        result.add_error("pool.pay_period_length must be positive")
    _check_amount(result, "pool.min_deposit_amount", pool.min_deposit_amount)
    if pool.max_lenders_per_tranche <= 0:
        result.add_error("pool.max_lenders_per_tranche must be positive")


def _validate_lp(config: PoolConfig, result: ConfigValidationResult) -> None:
    lp = config.lp
    _check_amount(result, "lp_config.liquidity_cap", lp.liquidity_cap)
    if lp.liquidity_cap == 0:
        result.add_warning("lp_config.liquidity_cap is 0; no deposits will be accepted")
    if lp.max_senior_junior_ratio < 0:
        result.add_error("lp_config.max_senior_junior_ratio must be non-negative")
    if lp.tranches_policy not in TRANCHES_POLICIES:
        result.add_error(
            f"lp_config.tranches_policy must be one of {TRANCHES_POLICIES}, "
            f"got {lp.tranches_policy!r}"
        )
    if lp.fixed_senior_yield_in_bps < 0:
        result.add_error("lp_config.fixed_senior_yield_in_bps must be non-negative")
    _check_bps(result, "lp_config.tranches_risk_adjustment_in_bps", lp.tranches_risk_adjustment_in_bps)
    if lp.withdrawal_lockout_period_in_days < 0:
        result.add_error("lp_config.withdrawal_lockout_period_in_days must be non-negative")

    if lp.tranches_policy == "risk_adjusted" and lp.fixed_senior_yield_in_bps:
        result.add_warning(
            "lp_config.fixed_senior_yield_in_bps is ignored by the risk_adjusted policy"
        )
    if lp.tranches_policy == "fixed_senior_yield" and lp.tranches_risk_adjustment_in_bps:
        result.add_warning(
            "lp_config.tranches_risk_adjustment_in_bps is ignored by the fixed_senior_yield policy"
        )


def _validate_covers(config: PoolConfig, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    if len(config.covers) > MAX_COVER_COUNT:
        result.add_error(f"at most {MAX_COVER_COUNT} first-loss covers are supported")
    for index, cover in enumerate(config.covers):
        prefix = f"first_loss_covers[{index}]"
        if not cover.cover_id:
            result.add_error(f"{prefix}.cover_id is required")
        elif cover.cover_id in seen:
            result.add_error(f"{prefix}.cover_id {cover.cover_id!r} is duplicated")
        seen.add(cover.cover_id)

        _check_bps(result, f"{prefix}.cover_rate_per_loss_in_bps", cover.cover_rate_per_loss_in_bps)
        _check_amount(result, f"{prefix}.cover_cap_per_loss", cover.cover_cap_per_loss)
        _check_amount(result, f"{prefix}.max_liquidity", cover.max_liquidity)
        _check_amount(result, f"{prefix}.min_liquidity", cover.min_liquidity)
        _check_amount(result, f"{prefix}.min_deposit_amount", cover.min_deposit_amount)
        if cover.max_percent_of_pool_value_in_bps < 0:
            result.add_error(f"{prefix}.max_percent_of_pool_value_in_bps must be non-negative")
        if cover.risk_yield_multiplier_in_bps < 0:
            result.add_error(f"{prefix}.risk_yield_multiplier_in_bps must be non-negative")
        if cover.min_liquidity > cover.max_liquidity and cover.max_percent_of_pool_value_in_bps == 0:
            result.add_warning(
                f"{prefix}.min_liquidity exceeds max_liquidity; providers can never redeem "
                "before the pool is ready for cover withdrawal"
            )


def _validate_admin(config: PoolConfig, result: ConfigValidationResult) -> None:
    admin = config.admin
    if not admin.pool_owner_treasury:
        result.add_error("admin.pool_owner_treasury is required")
    if not admin.evaluation_agent:
        result.add_error("admin.evaluation_agent is required")
    _check_bps(
        result,
        "admin.liquidity_rate_in_bps_by_pool_owner",
        admin.liquidity_rate_in_bps_by_pool_owner,
    )
    _check_bps(result, "admin.liquidity_rate_in_bps_by_ea", admin.liquidity_rate_in_bps_by_ea)
    _check_amount(result, "admin.pool_owner_min_cover_assets", admin.pool_owner_min_cover_assets)
    _check_amount(result, "admin.ea_min_cover_assets", admin.ea_min_cover_assets)

    if config.covers:
        admin_cover = admin.admin_cover_id or config.covers[0].cover_id
        if admin_cover not in config.cover_ids:
            result.add_error(f"admin.admin_cover_id {admin_cover!r} is not a configured cover")
    elif admin.pool_owner_min_cover_assets or admin.ea_min_cover_assets:
        result.add_error("admin cover minimums are set but no first-loss cover is configured")
