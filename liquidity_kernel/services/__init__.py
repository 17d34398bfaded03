"""Services for the liquidity kernel (write side)."""

from liquidity_kernel.services.credit_source_service import LedgerCreditSource
from liquidity_kernel.services.custody_service import (
    AssetLedgerService,
    PoolSafeService,
    cover_account,
    fee_account,
    safe_account,
    tranche_vault_account,
)
from liquidity_kernel.services.epoch_service import EpochService
from liquidity_kernel.services.first_loss_cover_service import FirstLossCoverService
from liquidity_kernel.services.pool_components import (
    PoolComponents,
    build_pool_components,
    grant_internal_roles,
    internal_identities,
)
from liquidity_kernel.services.pool_service import PoolService
from liquidity_kernel.services.tranche_vault_service import TrancheVaultService

__all__ = [
    "AssetLedgerService",
    "EpochService",
    "FirstLossCoverService",
    "LedgerCreditSource",
    "PoolComponents",
    "PoolSafeService",
    "PoolService",
    "TrancheVaultService",
    "build_pool_components",
    "cover_account",
    "fee_account",
    "grant_internal_roles",
    "internal_identities",
    "safe_account",
    "tranche_vault_account",
]
