"""
Module: liquidity_kernel.models.pool
Responsibility: ORM persistence for the pool's authoritative state -- status,
    tranche assets and unrecovered tranche losses, the refresh sequence, and
    the fixed-senior-yield tracker.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    SINGLE_WRITER_TRANCHE_ASSETS -- only PoolService writes these rows;
        ``refresh_seq`` increments on every refresh and guards explicit
        tranche asset updates.
    FIXED_WIDTH_RANGES -- tranche figures pass through TranchePair, which
        rejects values outside 96 bits.

Failure modes:
    - AmountOutOfRangeError when assigning an out-of-range TranchePair.
"""

from sqlalchemy import JSON, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from liquidity_kernel.db.base import TrackedBase
from liquidity_kernel.db.types import Amount, PoolId, Timestamp
from liquidity_kernel.domain.dtos import PoolStatus
from liquidity_kernel.domain.values import TranchePair


class PoolStateModel(TrackedBase):
    """
    One row per pool.

    Guarantees:
        - pool_id is unique (uq_pool_state_pool).
        - status moves OFF -> ON -> CLOSED only (enforced by PoolService).
    """

    __tablename__ = "pool_state"

    __table_args__ = (UniqueConstraint("pool_id", name="uq_pool_state_pool"),)

    pool_id: Mapped[PoolId]

    status: Mapped[PoolStatus] = mapped_column(
        String(20),
        default=PoolStatus.OFF,
        nullable=False,
    )

    senior_assets: Mapped[Amount]
    junior_assets: Mapped[Amount]

    # Losses taken by each tranche and not yet recovered
    senior_loss: Mapped[Amount]
    junior_loss: Mapped[Amount]

    ready_for_cover_withdrawal: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    refresh_seq: Mapped[int] = mapped_column(default=0, nullable=False)

    current_epoch_id: Mapped[int | None] = mapped_column(nullable=True)

    last_refreshed_ts: Mapped[Timestamp]

    # LP config written by update_lp_config; NULL means the configured terms apply
    liquidity_terms: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
        default=None,
    )

    def __repr__(self) -> str:
        return (
            f"<PoolState {self.pool_id}: {self.status} "
            f"senior={self.senior_assets} junior={self.junior_assets}>"
        )

    @property
    def is_on(self) -> bool:
        return self.status == PoolStatus.ON

    @property
    def is_closed(self) -> bool:
        return self.status == PoolStatus.CLOSED

    @property
    def tranche_assets(self) -> TranchePair:
        return TranchePair(self.senior_assets, self.junior_assets)

    @tranche_assets.setter
    def tranche_assets(self, assets: TranchePair) -> None:
        self.senior_assets = assets.senior
        self.junior_assets = assets.junior

    @property
    def tranche_losses(self) -> TranchePair:
        return TranchePair(self.senior_loss, self.junior_loss)

    @tranche_losses.setter
    def tranche_losses(self, losses: TranchePair) -> None:
        self.senior_loss = losses.senior
        self.junior_loss = losses.junior


class SeniorYieldTrackerModel(TrackedBase):
    """
    Fixed-senior-yield accrual state, one row per pool.

    Guarantees:
        - last_updated_ts never decreases (accrual refuses to go backwards).
    """

    __tablename__ = "senior_yield_trackers"

    __table_args__ = (UniqueConstraint("pool_id", name="uq_senior_yield_tracker_pool"),)

    pool_id: Mapped[PoolId]
    total_assets: Mapped[Amount]
    unpaid_yield: Mapped[Amount]
    last_updated_ts: Mapped[Timestamp]

    def __repr__(self) -> str:
        return f"<SeniorYieldTracker {self.pool_id}: unpaid={self.unpaid_yield}>"
