"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable snapshots returned by services and selectors: pool state,
    refresh outcomes, epochs, redemption summaries and lender records,
    deposit records, cover state and provider positions, yield payout
    results. Domain logic and callers see these, never ORM rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O. ``from_model``
    converters are invoked only from the service and selector layers.

Invariants enforced:
    - LenderRedemptionRecordInfo: total_amount_withdrawn <= total_amount_processed
    - RedemptionSummaryInfo: total_shares_processed <= total_shares_requested

Failure modes:
    - ValueError on construction of a record violating the above.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from liquidity_kernel.domain.values import TranchePair

if TYPE_CHECKING:
    from liquidity_kernel.models.epoch import EpochModel
    from liquidity_kernel.models.tranche import (
        EpochRedemptionSummaryModel,
        LenderDepositRecordModel,
        LenderRedemptionRecordModel,
    )


class PoolStatus(str, Enum):
    """Pool lifecycle: OFF until enabled, ON while lending, CLOSED terminally."""

    OFF = "off"
    ON = "on"
    CLOSED = "closed"


@dataclass(frozen=True)
class PoolStateInfo:
    """
    Authoritative pool snapshot.

    Contract:
        ``tranche_assets`` is the figure all share pricing uses until the
        next refresh. ``refresh_seq`` identifies the refresh that produced it.
    """

    pool_id: str
    status: PoolStatus
    tranche_assets: TranchePair
    tranche_losses: TranchePair
    ready_for_cover_withdrawal: bool
    refresh_seq: int
    current_epoch_id: int | None = None

    @property
    def is_on(self) -> bool:
        return self.status == PoolStatus.ON

    @property
    def is_closed(self) -> bool:
        return self.status == PoolStatus.CLOSED


@dataclass(frozen=True)
class CoverMovement:
    """Amount moved between custody and one cover during a refresh."""

    cover_id: str
    amount: int


@dataclass(frozen=True)
class RefreshResult:
    """
    Outcome of one refresh cycle.

    ``refresh_seq`` is the token required by ``set_tranche_assets`` until
    the next refresh.
    """

    tranche_assets: TranchePair
    tranche_losses: TranchePair
    refresh_seq: int
    profit: int = 0
    loss: int = 0
    loss_recovery: int = 0
    profit_after_fees: int = 0
    covered_losses: tuple[CoverMovement, ...] = ()
    cover_recoveries: tuple[CoverMovement, ...] = ()
    cover_profits: tuple[CoverMovement, ...] = ()
    tranche_profit: TranchePair = field(default_factory=TranchePair.zero)

    @property
    def total_covered_loss(self) -> int:
        return sum(m.amount for m in self.covered_losses)


@dataclass(frozen=True)
class SeniorYieldTrackerInfo:
    total_assets: int
    unpaid_yield: int
    last_updated_ts: int


@dataclass(frozen=True)
class EpochInfo:
    epoch_id: int
    end_time: int

    @classmethod
    def from_model(cls, model: EpochModel) -> EpochInfo:
        return cls(epoch_id=model.epoch_id, end_time=model.end_time)


@dataclass(frozen=True)
class RedemptionSummaryInfo:
    """Per-tranche, per-epoch aggregate of redemption requests."""

    tranche: int
    epoch_id: int
    total_shares_requested: int
    total_shares_processed: int = 0
    total_amount_processed: int = 0

    def __post_init__(self) -> None:
        if self.total_shares_processed > self.total_shares_requested:
            raise ValueError(
                f"Epoch {self.epoch_id}: processed {self.total_shares_processed} "
                f"exceeds requested {self.total_shares_requested}"
            )

    @property
    def is_closed(self) -> bool:
        return self.total_shares_processed > 0

    @classmethod
    def from_model(cls, model: EpochRedemptionSummaryModel) -> RedemptionSummaryInfo:
        return cls(
            tranche=model.tranche,
            epoch_id=model.epoch_id,
            total_shares_requested=model.total_shares_requested,
            total_shares_processed=model.total_shares_processed,
            total_amount_processed=model.total_amount_processed,
        )


@dataclass(frozen=True)
class LenderRedemptionRecordInfo:
    """
    A lender's redemption position in one tranche.

    Guarantees:
        ``withdrawable_amount`` is never negative.
    """

    next_epoch_id_to_process: int
    num_shares_requested: int = 0
    principal_requested: int = 0
    total_amount_processed: int = 0
    total_amount_withdrawn: int = 0

    def __post_init__(self) -> None:
        if self.total_amount_withdrawn > self.total_amount_processed:
            raise ValueError(
                f"withdrawn {self.total_amount_withdrawn} exceeds processed "
                f"{self.total_amount_processed}"
            )

    @property
    def withdrawable_amount(self) -> int:
        return self.total_amount_processed - self.total_amount_withdrawn

    @classmethod
    def from_model(cls, model: LenderRedemptionRecordModel) -> LenderRedemptionRecordInfo:
        return cls(
            next_epoch_id_to_process=model.next_epoch_id_to_process,
            num_shares_requested=model.num_shares_requested,
            principal_requested=model.principal_requested,
            total_amount_processed=model.total_amount_processed,
            total_amount_withdrawn=model.total_amount_withdrawn,
        )


@dataclass(frozen=True)
class DepositRecordInfo:
    principal: int
    reinvest_yield: bool
    last_deposit_ts: int

    @classmethod
    def from_model(cls, model: LenderDepositRecordModel) -> DepositRecordInfo:
        return cls(
            principal=model.principal,
            reinvest_yield=model.reinvest_yield,
            last_deposit_ts=model.last_deposit_ts,
        )


@dataclass(frozen=True)
class TrancheSupplyInfo:
    tranche: int
    total_supply: int
    total_assets: int


@dataclass(frozen=True)
class CoverStateInfo:
    cover_id: str
    total_shares: int
    total_assets: int
    covered_loss: int
    capacity: int


@dataclass(frozen=True)
class CoverProviderInfo:
    cover_id: str
    account: str
    shares: int
    assets: int
    min_required_assets: int

    @property
    def is_sufficient(self) -> bool:
        return self.assets >= self.min_required_assets


@dataclass(frozen=True)
class Payout:
    account: str
    amount: int
    shares: int = 0


@dataclass(frozen=True)
class PayoutFailure:
    """One recipient that could not be paid; the others were still attempted."""

    account: str
    amount: int
    code: str
    reason: str


@dataclass(frozen=True)
class YieldPayoutResult:
    paid: tuple[Payout, ...] = ()
    failed: tuple[PayoutFailure, ...] = ()

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.paid)

    @property
    def total_failed(self) -> int:
        return sum(f.amount for f in self.failed)


@dataclass(frozen=True)
class TrancheEpochOutcome:
    tranche: int
    epoch_id: int
    shares_requested: int
    shares_processed: int
    amount_processed: int

    @property
    def shares_unprocessed(self) -> int:
        return self.shares_requested - self.shares_processed


@dataclass(frozen=True)
class EpochProcessingResult:
    closed_epoch_id: int
    next_epoch: EpochInfo
    outcomes: tuple[TrancheEpochOutcome, ...]
    tranche_assets: TranchePair
