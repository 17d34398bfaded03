"""
Module: liquidity_kernel.models.tranche
Responsibility: ORM persistence for tranche share ledgers -- total supply,
    per-holder share balances, lender deposit records, the lender approval
    list, per-epoch redemption summaries and per-lender redemption records.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    EPOCH_IMMUTABILITY -- a redemption summary with processed shares is
        closed; db/immutability.py rejects any later change to it.
    Deposit records are never deleted, so principal history survives the
        lender's removal from the approval list.
"""

from sqlalchemy import Boolean, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from liquidity_kernel.db.base import TrackedBase
from liquidity_kernel.db.types import AccountId, Amount, PoolId, Timestamp


class TrancheStateModel(TrackedBase):
    """Total share supply of one tranche."""

    __tablename__ = "tranche_state"

    __table_args__ = (UniqueConstraint("pool_id", "tranche", name="uq_tranche_state"),)

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    total_supply: Mapped[Amount]


class TrancheShareBalanceModel(TrackedBase):
    """Shares held by one account (lender or the vault's escrow)."""

    __tablename__ = "tranche_share_balances"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", "holder", name="uq_tranche_share_holder"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    holder: Mapped[AccountId]
    shares: Mapped[Amount]


class ApprovedLenderModel(TrackedBase):
    __tablename__ = "approved_lenders"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", "lender", name="uq_approved_lender"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    lender: Mapped[AccountId]


class LenderDepositRecordModel(TrackedBase):
    """
    Principal a lender has deposited and not yet requested back.

    Guarantees:
        - Created on first deposit, never deleted.
    """

    __tablename__ = "lender_deposit_records"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", "lender", name="uq_lender_deposit_record"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    lender: Mapped[AccountId]
    principal: Mapped[Amount]
    reinvest_yield: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_deposit_ts: Mapped[Timestamp]


class EpochRedemptionSummaryModel(TrackedBase):
    """
    Aggregate redemption requests for one tranche in one epoch.

    Guarantees:
        - total_shares_processed <= total_shares_requested.
        - Rows are created lazily, on the first request (or rollover) in
          an epoch, and closed exactly once at epoch close.
    """

    __tablename__ = "epoch_redemption_summaries"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", "epoch_id", name="uq_epoch_redemption_summary"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    epoch_id: Mapped[int]
    total_shares_requested: Mapped[Amount]
    total_shares_processed: Mapped[Amount]
    total_amount_processed: Mapped[Amount]

    def __repr__(self) -> str:
        return (
            f"<RedemptionSummary {self.pool_id} t{self.tranche} e{self.epoch_id}: "
            f"{self.total_shares_processed}/{self.total_shares_requested}>"
        )

    @property
    def is_closed(self) -> bool:
        return (self.total_shares_processed or 0) > 0


class LenderRedemptionRecordModel(TrackedBase):
    """
    A lender's redemption position, brought up to date lazily.

    Guarantees:
        - total_amount_withdrawn <= total_amount_processed.
    """

    __tablename__ = "lender_redemption_records"

    __table_args__ = (
        UniqueConstraint("pool_id", "tranche", "lender", name="uq_lender_redemption_record"),
    )

    pool_id: Mapped[PoolId]
    tranche: Mapped[int] = mapped_column(Integer, nullable=False)
    lender: Mapped[AccountId]
    next_epoch_id_to_process: Mapped[int]
    num_shares_requested: Mapped[Amount]
    principal_requested: Mapped[Amount]
    total_amount_processed: Mapped[Amount]
    total_amount_withdrawn: Mapped[Amount]
