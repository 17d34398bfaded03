"""
Module: liquidity_kernel.models.first_loss_cover
Responsibility: ORM persistence for first-loss cover reserves -- share supply
    and cumulative covered loss, the provider allow-list with per-provider
    minimum assets, and provider share balances.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - covered_loss only grows by covering losses and only shrinks by
      recovering them.
    - A provider row is deleted only when its share balance is zero
      (enforced by FirstLossCoverService).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from liquidity_kernel.db.base import TrackedBase
from liquidity_kernel.db.types import AccountId, Amount, PoolId


class FirstLossCoverStateModel(TrackedBase):
    __tablename__ = "first_loss_cover_state"

    __table_args__ = (UniqueConstraint("pool_id", "cover_id", name="uq_cover_state"),)

    pool_id: Mapped[PoolId]
    cover_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_shares: Mapped[Amount]
    covered_loss: Mapped[Amount]

    def __repr__(self) -> str:
        return f"<FirstLossCover {self.pool_id}/{self.cover_id}: shares={self.total_shares}>"


class CoverProviderModel(TrackedBase):
    """An allow-listed provider and the assets it must keep in the cover."""

    __tablename__ = "cover_providers"

    __table_args__ = (
        UniqueConstraint("pool_id", "cover_id", "account", name="uq_cover_provider"),
    )

    pool_id: Mapped[PoolId]
    cover_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account: Mapped[AccountId]
    min_required_assets: Mapped[Amount]


class CoverShareBalanceModel(TrackedBase):
    __tablename__ = "cover_share_balances"

    __table_args__ = (
        UniqueConstraint("pool_id", "cover_id", "holder", name="uq_cover_share_holder"),
    )

    pool_id: Mapped[PoolId]
    cover_id: Mapped[str] = mapped_column(String(64), nullable=False)
    holder: Mapped[AccountId]
    shares: Mapped[Amount]
