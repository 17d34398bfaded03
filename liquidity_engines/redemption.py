"""
Module: liquidity_engines.redemption
Responsibility:
    Settle an epoch's queued redemption shares against available liquidity,
    and bring a lender's redemption record up to date from the epoch
    summaries closed since it was last touched.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - EPOCH_CONSERVATION: shares processed never exceed shares requested;
      the unprocessed remainder is reported verbatim for rollover.
    - Senior is settled before junior, and junior may only redeem down to
      the level that keeps the senior/junior ratio within bounds.
    - Lender catch-up rounds the lender's processed shares UP (ceiling),
      so remaining shares round down in favour of the pool.

Failure modes:
    - ValueError if summaries are not supplied in ascending epoch order.

Usage:
    plan = plan_epoch_settlement(
        requested=TranchePair(10_000, 0),
        total_supply=TranchePair(200_000, 100_000),
        tranche_assets=TranchePair(200_000, 100_000),
        available_liquidity=4_000,
        max_senior_junior_ratio=4,
    )
    plan.outcomes[SENIOR_TRANCHE].shares_processed  # 4_000
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from liquidity_engines.tracer import traced_engine
from liquidity_kernel.domain.dtos import LenderRedemptionRecordInfo, RedemptionSummaryInfo
from liquidity_kernel.domain.values import (
    JUNIOR_TRANCHE,
    SENIOR_TRANCHE,
    TranchePair,
    ceil_div,
    mul_div,
)


@dataclass(frozen=True)
class RedemptionOutcome:
    shares_requested: int
    shares_processed: int
    amount_processed: int

    @property
    def shares_unprocessed(self) -> int:
        return self.shares_requested - self.shares_processed


@dataclass(frozen=True)
class EpochSettlementPlan:
    """Result of settling one epoch for both tranches."""

    outcomes: dict[int, RedemptionOutcome]
    tranche_assets: TranchePair
    remaining_liquidity: int

    @property
    def total_amount_processed(self) -> int:
        return sum(o.amount_processed for o in self.outcomes.values())


def process_tranche_redemptions(
    shares_requested: int,
    total_supply: int,
    tranche_assets: int,
    available_amount: int,
) -> RedemptionOutcome:
    """
    Redeem as many requested shares as ``available_amount`` buys at the
    current price.

    ``affordable = available * supply / assets`` (floor),
    ``shares = min(requested, affordable)``,
    ``amount = shares * assets / supply`` (floor).
    """
    if shares_requested == 0 or total_supply == 0 or available_amount == 0:
        return RedemptionOutcome(shares_requested, 0, 0)
    if tranche_assets == 0:
        # Worthless shares: redeem them all for nothing.
        return RedemptionOutcome(shares_requested, shares_requested, 0)

    affordable = mul_div(available_amount, total_supply, tranche_assets)
    shares = min(shares_requested, affordable)
    amount = mul_div(shares, tranche_assets, total_supply)
    return RedemptionOutcome(shares_requested, shares, amount)


def max_redeemable_junior_assets(
    senior_assets: int, junior_assets: int, max_senior_junior_ratio: int
) -> int:
    """
    Junior assets that may leave while keeping ``senior <= ratio * junior``.
    """
    if senior_assets == 0:
        return junior_assets
    if max_senior_junior_ratio == 0:
        return 0
    min_junior = ceil_div(senior_assets, max_senior_junior_ratio)
    return junior_assets - min_junior if junior_assets > min_junior else 0


@traced_engine(
    "redemption.epoch_settlement",
    "1.0",
    fingerprint_fields=(
        "requested",
        "total_supply",
        "tranche_assets",
        "available_liquidity",
        "max_senior_junior_ratio",
    ),
)
def plan_epoch_settlement(
    requested: TranchePair,
    total_supply: TranchePair,
    tranche_assets: TranchePair,
    available_liquidity: int,
    max_senior_junior_ratio: int,
    enforce_ratio: bool = True,
) -> EpochSettlementPlan:
    """
    Settle senior first, then junior with what liquidity remains.

    Args:
        enforce_ratio: When False (pool closure) junior is not held back by
            the senior/junior ratio.
    """
    senior = process_tranche_redemptions(
        requested.senior, total_supply.senior, tranche_assets.senior, available_liquidity
    )
    senior_assets = tranche_assets.senior - senior.amount_processed
    remaining = available_liquidity - senior.amount_processed

    junior_budget = remaining
    if enforce_ratio:
        junior_budget = min(
            remaining,
            max_redeemable_junior_assets(
                senior_assets, tranche_assets.junior, max_senior_junior_ratio
            ),
        )
    junior = process_tranche_redemptions(
        requested.junior, total_supply.junior, tranche_assets.junior, junior_budget
    )
    junior_assets = tranche_assets.junior - junior.amount_processed
    remaining -= junior.amount_processed

    return EpochSettlementPlan(
        outcomes={SENIOR_TRANCHE: senior, JUNIOR_TRANCHE: junior},
        tranche_assets=TranchePair(senior_assets, junior_assets),
        remaining_liquidity=remaining,
    )


def catch_up_lender_record(
    record: LenderRedemptionRecordInfo,
    summaries: Iterable[RedemptionSummaryInfo],
    current_epoch_id: int,
) -> LenderRedemptionRecordInfo:
    """
    Apply every closed epoch from ``record.next_epoch_id_to_process`` up to
    (not including) ``current_epoch_id``.

    For each epoch with processed shares, the lender's share of that epoch is
    ``n / totalRequested`` where ``n`` is the lender's outstanding shares:
    ``shares = ceil(totalProcessed * n / totalRequested)``,
    ``amount = totalAmount * n / totalRequested`` (floor), and principal is
    reduced in proportion to shares.

    Args:
        summaries: Summaries for the epochs in range, ascending. Epochs with
            no summary had no requests and are skipped.
    """
    if record.next_epoch_id_to_process >= current_epoch_id:
        return record

    num_shares = record.num_shares_requested
    principal = record.principal_requested
    processed_amount = record.total_amount_processed
    last_epoch = -1

    for summary in summaries:
        if summary.epoch_id <= last_epoch:
            raise ValueError("Redemption summaries must be in ascending epoch order")
        last_epoch = summary.epoch_id
        if summary.epoch_id < record.next_epoch_id_to_process:
            continue
        if summary.epoch_id >= current_epoch_id:
            break
        if num_shares == 0:
            break
        if summary.total_shares_processed == 0:
            continue

        shares_processed = ceil_div(
            summary.total_shares_processed * num_shares, summary.total_shares_requested
        )
        amount = mul_div(
            summary.total_amount_processed, num_shares, summary.total_shares_requested
        )
        principal_processed = mul_div(principal, shares_processed, num_shares)

        num_shares -= shares_processed
        principal -= principal_processed
        processed_amount += amount

    return LenderRedemptionRecordInfo(
        next_epoch_id_to_process=current_epoch_id,
        num_shares_requested=num_shares,
        principal_requested=principal,
        total_amount_processed=processed_amount,
        total_amount_withdrawn=record.total_amount_withdrawn,
    )
