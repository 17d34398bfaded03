"""
Liquidity Engines - pure calculators.

Every function here is deterministic and free of I/O and clock access:
- shares: proportional share/asset conversion
- tranches_policy: loss, loss-recovery and profit waterfalls
- redemption: epoch settlement and lender record catch-up
- calendar: epoch boundaries
"""

from liquidity_engines.calendar import start_of_next_period
from liquidity_engines.redemption import (
    EpochSettlementPlan,
    RedemptionOutcome,
    catch_up_lender_record,
    max_redeemable_junior_assets,
    plan_epoch_settlement,
    process_tranche_redemptions,
)
from liquidity_engines.shares import convert_to_assets, convert_to_shares
from liquidity_engines.tranches_policy import (
    AccruedSeniorYield,
    CoverLossStep,
    CoverWeight,
    FixedSeniorYieldTranchesPolicy,
    LossRecoveryResult,
    ProfitSplit,
    RiskAdjustedTranchesPolicy,
    SeniorYieldTracker,
    TranchesPolicy,
    cover_loss_amount,
    distribute_loss,
    distribute_loss_recovery,
    split_junior_profit_with_covers,
)

__all__ = [
    "AccruedSeniorYield",
    "CoverLossStep",
    "CoverWeight",
    "EpochSettlementPlan",
    "FixedSeniorYieldTranchesPolicy",
    "LossRecoveryResult",
    "ProfitSplit",
    "RedemptionOutcome",
    "RiskAdjustedTranchesPolicy",
    "SeniorYieldTracker",
    "TranchesPolicy",
    "catch_up_lender_record",
    "convert_to_assets",
    "convert_to_shares",
    "cover_loss_amount",
    "distribute_loss",
    "distribute_loss_recovery",
    "max_redeemable_junior_assets",
    "plan_epoch_settlement",
    "process_tranche_redemptions",
    "split_junior_profit_with_covers",
    "start_of_next_period",
]
