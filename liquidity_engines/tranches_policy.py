"""
Module: liquidity_engines.tranches_policy
Responsibility:
    Split a profit, a loss or a loss recovery between the senior and junior
    tranches, and compute the first-loss cover parts of the waterfall.
    Two profit policies are provided: risk-adjusted (a fixed share of the
    senior pro-rata profit moves to junior) and fixed-senior-yield (senior
    earns a contractually accruing yield first).

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access. The
    current time reaches the fixed-senior-yield policy only as an explicit
    ``AccruedSeniorYield`` token produced by ``SeniorYieldTracker.accrue``.

Invariants enforced:
    - WATERFALL_PRECEDENCE: junior absorbs loss first and recovers first.
    - NO_LEAKAGE: every split sums exactly to its input; integer-division
      remainders go to junior.

Failure modes:
    - ArithmeticUnderflowError if a tracker is accrued backwards in time.
    - AmountOutOfRangeError if a resulting tranche figure exceeds 96 bits.

Usage:
    tracker = SeniorYieldTracker(total_assets=200_000, unpaid_yield=0, last_updated_ts=t0)
    accrued = tracker.accrue(now=t0 + SECONDS_IN_A_YEAR, yield_in_bps=1_000)
    policy = FixedSeniorYieldTranchesPolicy(accrued)
    split = policy.distribute_profit(50_000, TranchePair(200_000, 100_000))
    split.tracker.unpaid_yield  # 0; senior received 20_000
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from liquidity_engines.tracer import traced_engine
from liquidity_kernel.domain.values import (
    HUNDRED_PERCENT_IN_BPS,
    SECONDS_IN_A_YEAR,
    TranchePair,
    checked_sub,
    mul_div,
)
from liquidity_kernel.logging_config import get_logger

logger = get_logger("engines.tranches_policy")


# ---------------------------------------------------------------------------
# Loss and loss recovery (shared by both policies)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LossRecoveryResult:
    remaining_recovery: int
    assets: TranchePair
    losses: TranchePair


@traced_engine("tranches_policy.loss", "1.0", fingerprint_fields=("loss", "assets"))
def distribute_loss(loss: int, assets: TranchePair) -> tuple[TranchePair, TranchePair]:
    """
    Apply ``loss`` junior first.

    Returns:
        (new_assets, loss_applied) where ``loss_applied`` is the amount each
        tranche absorbed. Any loss beyond both tranches' assets is dropped,
        since nothing remains to absorb it.
    """
    junior_loss = min(loss, assets.junior)
    senior_loss = min(loss - junior_loss, assets.senior)
    new_assets = TranchePair(assets.senior - senior_loss, assets.junior - junior_loss)
    return new_assets, TranchePair(senior_loss, junior_loss)


@traced_engine(
    "tranches_policy.loss_recovery",
    "1.0",
    fingerprint_fields=("recovery", "assets", "losses"),
)
def distribute_loss_recovery(
    recovery: int, assets: TranchePair, losses: TranchePair
) -> LossRecoveryResult:
    """
    Restore previously applied tranche losses, junior first, then senior.

    Postconditions:
        remaining_recovery + recovered == recovery, and no tranche recovers
        more than its recorded loss.
    """
    junior_recovery = min(recovery, losses.junior)
    remaining = recovery - junior_recovery
    senior_recovery = min(remaining, losses.senior)
    remaining -= senior_recovery

    return LossRecoveryResult(
        remaining_recovery=remaining,
        assets=TranchePair(
            assets.senior + senior_recovery, assets.junior + junior_recovery
        ),
        losses=TranchePair(
            losses.senior - senior_recovery, losses.junior - junior_recovery
        ),
    )


# ---------------------------------------------------------------------------
# First-loss cover steps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CoverLossStep:
    covered: int
    remaining_loss: int


def cover_loss_amount(
    loss: int,
    cover_rate_per_loss_in_bps: int,
    cover_cap_per_loss: int,
    cover_assets: int,
) -> CoverLossStep:
    """
    How much of ``loss`` one cover absorbs.

    ``available = min(loss * rate / 100%, cap_per_loss, cover_assets)`` and
    ``covered = min(available, loss)``.
    """
    available = min(
        mul_div(loss, cover_rate_per_loss_in_bps, HUNDRED_PERCENT_IN_BPS),
        cover_cap_per_loss,
        cover_assets,
    )
    covered = min(available, loss)
    return CoverLossStep(covered=covered, remaining_loss=loss - covered)


@dataclass(frozen=True)
class CoverWeight:
    """A cover's claim on junior profit: its assets scaled by risk multiplier."""

    cover_id: str
    cover_assets: int
    risk_yield_multiplier_in_bps: int

    @property
    def risk_adjusted_assets(self) -> int:
        return mul_div(
            self.cover_assets, self.risk_yield_multiplier_in_bps, HUNDRED_PERCENT_IN_BPS
        )


@traced_engine(
    "tranches_policy.cover_profit",
    "1.0",
    fingerprint_fields=("junior_profit", "junior_assets", "covers"),
)
def split_junior_profit_with_covers(
    junior_profit: int,
    junior_assets: int,
    covers: Sequence[CoverWeight],
) -> tuple[int, tuple[tuple[str, int], ...]]:
    """
    Share junior profit between the junior tranche and first-loss covers.

    Each cover is weighted by its risk-adjusted assets, junior by its
    assets. Rounding remainders stay with junior.

    Returns:
        (junior_profit_kept, ((cover_id, cover_profit), ...)) in input order.
    """
    weights = [c.risk_adjusted_assets for c in covers]
    total_weight = junior_assets + sum(weights)
    if junior_profit == 0 or total_weight == 0:
        return junior_profit, tuple((c.cover_id, 0) for c in covers)

    kept = junior_profit
    shares: list[tuple[str, int]] = []
    for cover, weight in zip(covers, weights):
        amount = mul_div(junior_profit, weight, total_weight)
        kept -= amount
        shares.append((cover.cover_id, amount))
    return kept, tuple(shares)


# ---------------------------------------------------------------------------
# Senior yield tracker (fixed-senior-yield policy)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SeniorYieldTracker:
    """
    Senior yield owed but not yet paid.

    Contract:
        Time reaches the tracker only through ``accrue(now, ...)``, which
        returns an ``AccruedSeniorYield`` token. Paying yield requires that
        token, so accrual can never be skipped before a payout.

    Guarantees:
        - ``last_updated_ts`` never decreases.
        - ``unpaid_yield`` decreases only through ``AccruedSeniorYield.pay``.
    """

    total_assets: int
    unpaid_yield: int
    last_updated_ts: int

    def accrue(self, now: int, yield_in_bps: int) -> AccruedSeniorYield:
        elapsed = checked_sub(now, self.last_updated_ts, "senior_yield_elapsed")
        accrued = mul_div(
            self.total_assets * yield_in_bps,
            elapsed,
            SECONDS_IN_A_YEAR * HUNDRED_PERCENT_IN_BPS,
        )
        return AccruedSeniorYield(
            SeniorYieldTracker(
                total_assets=self.total_assets,
                unpaid_yield=self.unpaid_yield + accrued,
                last_updated_ts=now,
            ),
            as_of=now,
        )


@dataclass(frozen=True)
class AccruedSeniorYield:
    """A tracker brought up to ``as_of``; the only thing profit split accepts."""

    tracker: SeniorYieldTracker
    as_of: int

    def pay(self, profit: int) -> tuple[int, AccruedSeniorYield]:
        """Pay as much unpaid yield as ``profit`` allows. Returns (paid, token)."""
        paid = min(profit, self.tracker.unpaid_yield)
        return paid, AccruedSeniorYield(
            SeniorYieldTracker(
                total_assets=self.tracker.total_assets,
                unpaid_yield=self.tracker.unpaid_yield - paid,
                last_updated_ts=self.tracker.last_updated_ts,
            ),
            as_of=self.as_of,
        )

    def with_total_assets(self, senior_assets: int) -> AccruedSeniorYield:
        """Re-base future accrual on the authoritative senior assets."""
        return AccruedSeniorYield(
            SeniorYieldTracker(
                total_assets=senior_assets,
                unpaid_yield=self.tracker.unpaid_yield,
                last_updated_ts=self.tracker.last_updated_ts,
            ),
            as_of=self.as_of,
        )


# ---------------------------------------------------------------------------
# Profit policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProfitSplit:
    assets: TranchePair
    senior_profit: int
    junior_profit: int
    accrued_yield: AccruedSeniorYield | None = None


class TranchesPolicy(ABC):
    """
    Profit split between tranches.

    Contract:
        ``distribute_profit`` is pure with respect to its arguments. Loss
        and recovery handling is shared by all policies.

    Non-goals:
        Does NOT handle first-loss covers or platform fees; PoolService
        applies those around the policy.
    """

    name: str = "abstract"

    @abstractmethod
    def distribute_profit(self, profit: int, assets: TranchePair) -> ProfitSplit: ...

    def distribute_loss(self, loss: int, assets: TranchePair) -> tuple[TranchePair, TranchePair]:
        return distribute_loss(loss, assets)

    def distribute_loss_recovery(
        self, recovery: int, assets: TranchePair, losses: TranchePair
    ) -> LossRecoveryResult:
        return distribute_loss_recovery(recovery, assets, losses)


class RiskAdjustedTranchesPolicy(TranchesPolicy):
    """
    Senior gets its pro-rata profit share minus a risk adjustment.

    ``senior = profit * S * (100% - adj) / (100% * (S + J))`` in a single
    division; junior receives the remainder.
    """

    name = "risk_adjusted"

    def __init__(self, risk_adjustment_in_bps: int):
        self.risk_adjustment_in_bps = risk_adjustment_in_bps

    def distribute_profit(self, profit: int, assets: TranchePair) -> ProfitSplit:
        return _risk_adjusted_split(
            profit=profit,
            assets=assets,
            risk_adjustment_in_bps=self.risk_adjustment_in_bps,
        )


@traced_engine(
    "tranches_policy.risk_adjusted_profit",
    "1.0",
    fingerprint_fields=("profit", "assets", "risk_adjustment_in_bps"),
)
def _risk_adjusted_split(
    profit: int, assets: TranchePair, risk_adjustment_in_bps: int
) -> ProfitSplit:
    total = assets.total
    if total == 0:
        senior_profit = 0
    else:
        senior_profit = (
            profit
            * assets.senior
            * (HUNDRED_PERCENT_IN_BPS - risk_adjustment_in_bps)
            // (HUNDRED_PERCENT_IN_BPS * total)
        )
    junior_profit = profit - senior_profit
    return ProfitSplit(
        assets=TranchePair(assets.senior + senior_profit, assets.junior + junior_profit),
        senior_profit=senior_profit,
        junior_profit=junior_profit,
    )


class FixedSeniorYieldTranchesPolicy(TranchesPolicy):
    """
    Senior receives accrued fixed yield first, junior the rest.

    Built for one refresh from an ``AccruedSeniorYield`` token; the token in
    the returned split carries the tracker to persist.
    """

    name = "fixed_senior_yield"

    def __init__(self, accrued: AccruedSeniorYield):
        self.accrued = accrued

    def distribute_profit(self, profit: int, assets: TranchePair) -> ProfitSplit:
        senior_profit, accrued = self.accrued.pay(profit)
        junior_profit = profit - senior_profit
        self.accrued = accrued
        logger.debug(
            "senior_yield_paid",
            extra={
                "senior_profit": senior_profit,
                "unpaid_yield": accrued.tracker.unpaid_yield,
            },
        )
        return ProfitSplit(
            assets=TranchePair(assets.senior + senior_profit, assets.junior + junior_profit),
            senior_profit=senior_profit,
            junior_profit=junior_profit,
            accrued_yield=accrued,
        )
