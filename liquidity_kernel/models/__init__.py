"""ORM models for the liquidity kernel."""

from liquidity_kernel.models.custody import (
    AssetAccountModel,
    PnLAccrualModel,
    UnprocessedProfitModel,
)
from liquidity_kernel.models.epoch import EpochModel
from liquidity_kernel.models.first_loss_cover import (
    CoverProviderModel,
    CoverShareBalanceModel,
    FirstLossCoverStateModel,
)
from liquidity_kernel.models.pool import PoolStateModel, SeniorYieldTrackerModel
from liquidity_kernel.models.tranche import (
    ApprovedLenderModel,
    EpochRedemptionSummaryModel,
    LenderDepositRecordModel,
    LenderRedemptionRecordModel,
    TrancheShareBalanceModel,
    TrancheStateModel,
)

__all__ = [
    "ApprovedLenderModel",
    "AssetAccountModel",
    "CoverProviderModel",
    "CoverShareBalanceModel",
    "EpochModel",
    "EpochRedemptionSummaryModel",
    "FirstLossCoverStateModel",
    "LenderDepositRecordModel",
    "LenderRedemptionRecordModel",
    "PnLAccrualModel",
    "PoolStateModel",
    "SeniorYieldTrackerModel",
    "TrancheShareBalanceModel",
    "TrancheStateModel",
    "UnprocessedProfitModel",
    "import_all_models",
]


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete."""
    # Importing this package already registers every model.
    return None
