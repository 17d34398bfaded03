"""
Module: liquidity_kernel.models.custody
Responsibility: ORM persistence for the reference custody ledger -- underlying
    asset balances per account, per-tranche unprocessed profit reserved in the
    pool safe, and the accrual buffer of the reference credit source.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Balances are non-negative (AmountString rejects negatives on bind).
    - Reserved unprocessed profit never exceeds the safe balance (enforced by
      PoolSafeService).
"""

from sqlalchemy import Boolean, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from liquidity_kernel.db.base import TrackedBase
from liquidity_kernel.db.types import AccountId, Amount, PoolId


class AssetAccountModel(TrackedBase):
    """Underlying-asset balance of one account in a pool's ledger."""

    __tablename__ = "asset_accounts"

    __table_args__ = (UniqueConstraint("pool_id", "account", name="uq_asset_account"),)

    pool_id: Mapped[PoolId]
    account: Mapped[AccountId]
    balance: Mapped[Amount]

    # Blocked accounts reject incoming transfers
    blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class UnprocessedProfitModel(TrackedBase):
    """Tranche profit sitting in the safe, not yet paid out to lenders."""

    __tablename__ = "unprocessed_profits"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", name="uq_unprocessed_profit"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Amount]


class PnLAccrualModel(TrackedBase):
    """Profit, loss and recovery reported by lending since the last read."""

    __tablename__ = "pnl_accruals"

    __table_args__ = (UniqueConstraint("pool_id", name="uq_pnl_accrual"),)

    pool_id: Mapped[PoolId]
    profit: Mapped[Amount]
    loss: Mapped[Amount]
    loss_recovery: Mapped[Amount]
    outstanding_principal: Mapped[Amount]
