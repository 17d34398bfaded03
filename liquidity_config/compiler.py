"""
Configuration Compiler (``liquidity_config.compiler``).

Responsibility
--------------
Translates a validated ``PoolConfig`` into the kernel's frozen
``PoolTerms``.  This is the only bridge between configuration and the
kernel; the kernel never imports this package.

Invariants enforced
-------------------
* A config with validation errors is never compiled
  (``InvalidPoolConfigError``).
* The pool-level ``min_deposit_amount`` and ``max_lenders_per_tranche``
  land in ``LiquidityTerms``; the admin cover defaults to the most junior
  cover when not named.
"""

from __future__ import annotations

from liquidity_config.schema import FirstLossCoverConfig, PoolConfig
from liquidity_config.validator import validate_pool_config
from liquidity_kernel.domain.terms import (
    AdminTerms,
    CalendarTerms,
    CoverTerms,
    LiquidityTerms,
    PayPeriodUnit,
    PoolTerms,
    TranchesPolicyKind,
)
from liquidity_kernel.exceptions import InvalidPoolConfigError
from liquidity_kernel.logging_config import get_logger

logger = get_logger("config.compiler")


def compile_liquidity_terms(config: PoolConfig) -> LiquidityTerms:
    lp = config.lp
    return LiquidityTerms(
        liquidity_cap=lp.liquidity_cap,
        max_senior_junior_ratio=lp.max_senior_junior_ratio,
        tranches_policy=TranchesPolicyKind(lp.tranches_policy),
        fixed_senior_yield_in_bps=lp.fixed_senior_yield_in_bps,
        tranches_risk_adjustment_in_bps=lp.tranches_risk_adjustment_in_bps,
        withdrawal_lockout_period_in_days=lp.withdrawal_lockout_period_in_days,
        allow_redemption_cancellation=lp.allow_redemption_cancellation,
        min_deposit_amount=config.pool.min_deposit_amount,
        max_lenders_per_tranche=config.pool.max_lenders_per_tranche,
    )


def compile_cover_terms(cover: FirstLossCoverConfig) -> CoverTerms:
    return CoverTerms(
        cover_id=cover.cover_id,
        cover_rate_per_loss_in_bps=cover.cover_rate_per_loss_in_bps,
        cover_cap_per_loss=cover.cover_cap_per_loss,
        max_liquidity=cover.max_liquidity,
        max_percent_of_pool_value_in_bps=cover.max_percent_of_pool_value_in_bps,
        min_liquidity=cover.min_liquidity,
        risk_yield_multiplier_in_bps=cover.risk_yield_multiplier_in_bps,
        min_deposit_amount=cover.min_deposit_amount,
    )


def compile_pool_terms(config: PoolConfig) -> PoolTerms:
    """
    Validate ``config`` and compile it into ``PoolTerms``.

    Raises:
        InvalidPoolConfigError: listing every validation error.
    """
    validation = validate_pool_config(config)
    for warning in validation.warnings:
        logger.warning("pool_config_warning", extra={"config_id": config.config_id, "warning": warning})
    if not validation.is_valid:
        raise InvalidPoolConfigError(validation.errors)

    admin = config.admin
    admin_cover_id = admin.admin_cover_id or (config.covers[0].cover_id if config.covers else "")
    terms = PoolTerms(
        pool_id=config.pool_id,
        liquidity=compile_liquidity_terms(config),
        admin=AdminTerms(
            pool_owner_treasury=admin.pool_owner_treasury,
            evaluation_agent=admin.evaluation_agent,
            admin_cover_id=admin_cover_id,
            liquidity_rate_in_bps_by_pool_owner=admin.liquidity_rate_in_bps_by_pool_owner,
            liquidity_rate_in_bps_by_ea=admin.liquidity_rate_in_bps_by_ea,
            pool_owner_min_cover_assets=admin.pool_owner_min_cover_assets,
            ea_min_cover_assets=admin.ea_min_cover_assets,
        ),
        covers=tuple(compile_cover_terms(c) for c in config.covers),
        calendar=CalendarTerms(
            pay_period_unit=PayPeriodUnit(config.pool.pay_period_unit),
            pay_period_length=config.pool.pay_period_length,
        ),
        platform_fee_in_bps=config.fees.platform_fee_in_bps,
    )
    logger.info(
        "LIQUIDITY_CONFIG_COMPILED",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
            "pool_id": terms.pool_id,
            "covers": list(terms.cover_ids),
        },
    )
    return terms
