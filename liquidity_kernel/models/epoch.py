"""
Module: liquidity_kernel.models.epoch
Responsibility: ORM persistence for redemption epochs.  Epoch ids increase
    monotonically per pool; only the latest epoch is open.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped

from liquidity_kernel.db.base import TrackedBase
from liquidity_kernel.db.types import PoolId, Timestamp


class EpochModel(TrackedBase):
    """A redemption epoch and the time after which it may be closed."""

    __tablename__ = "epochs"

    __table_args__ = (
        UniqueConstraint("pool_id", "epoch_id", name="uq_epoch_pool_id"),
    )

    pool_id: Mapped[PoolId]
    epoch_id: Mapped[int]
    end_time: Mapped[Timestamp]

    def __repr__(self) -> str:
        return f"<Epoch {self.pool_id}#{self.epoch_id} ends {self.end_time}>"
