"""
Module: liquidity_kernel.selectors.pool_selector
Responsibility: Read-only access to one pool's persisted state: pool snapshot,
    senior yield tracker, epochs, redemption summaries and records, deposit
    records, share balances, approval lists and cover providers.
Architecture position: Kernel > Selectors.  Used by services for reads so that
    services never need to import each other just to look at state.

Invariants enforced:
    - Read-only: no add, delete, flush or commit.
    - Redemption summaries come back in ascending epoch order, the order
      lender catch-up requires.

Failure modes:
    - PoolStateNotFoundError from ``pool_state`` for an unknown pool.
"""

from __future__ import annotations

from sqlalchemy import func, select

from liquidity_kernel.domain.dtos import (
    DepositRecordInfo,
    EpochInfo,
    LenderRedemptionRecordInfo,
    PoolStateInfo,
    PoolStatus,
    RedemptionSummaryInfo,
    SeniorYieldTrackerInfo,
)
from liquidity_kernel.exceptions import PoolStateNotFoundError
from liquidity_kernel.models.epoch import EpochModel
from liquidity_kernel.models.first_loss_cover import (
    CoverProviderModel,
    CoverShareBalanceModel,
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
from liquidity_kernel.selectors.base import BaseSelector


class PoolSelector(BaseSelector[PoolStateModel]):
    """Read-side queries for one pool."""

    # -- pool ---------------------------------------------------------------

    def pool_state_model(self) -> PoolStateModel | None:
        return self.session.execute(
            select(PoolStateModel).where(PoolStateModel.pool_id == self.pool_id)
        ).scalar_one_or_none()

    def pool_state(self) -> PoolStateInfo:
        model = self.pool_state_model()
        if model is None:
            raise PoolStateNotFoundError(self.pool_id)
        return PoolStateInfo(
            pool_id=model.pool_id,
            status=PoolStatus(model.status),
            tranche_assets=model.tranche_assets,
            tranche_losses=model.tranche_losses,
            ready_for_cover_withdrawal=model.ready_for_cover_withdrawal,
            refresh_seq=model.refresh_seq,
            current_epoch_id=model.current_epoch_id,
        )

    def senior_yield_tracker(self) -> SeniorYieldTrackerInfo | None:
        model = self.session.execute(
            select(SeniorYieldTrackerModel).where(
                SeniorYieldTrackerModel.pool_id == self.pool_id
            )
        ).scalar_one_or_none()
        if model is None:
            return None
        return SeniorYieldTrackerInfo(
            total_assets=model.total_assets,
            unpaid_yield=model.unpaid_yield,
            last_updated_ts=model.last_updated_ts,
        )

    # -- epochs -------------------------------------------------------------

    def epoch(self, epoch_id: int) -> EpochInfo | None:
        model = self.session.execute(
            select(EpochModel).where(
                EpochModel.pool_id == self.pool_id,
                EpochModel.epoch_id == epoch_id,
            )
        ).scalar_one_or_none()
        return EpochInfo.from_model(model) if model is not None else None

    def current_epoch(self) -> EpochInfo | None:
        model = self.session.execute(
            select(EpochModel)
            .where(EpochModel.pool_id == self.pool_id)
            .order_by(EpochModel.epoch_id.desc())
            .limit(1)
        ).scalar_one_or_none()
        return EpochInfo.from_model(model) if model is not None else None

    def epochs(self) -> list[EpochInfo]:
        rows = self.session.execute(
            select(EpochModel)
            .where(EpochModel.pool_id == self.pool_id)
            .order_by(EpochModel.epoch_id)
        ).scalars()
        return [EpochInfo.from_model(m) for m in rows]

    # -- redemption ---------------------------------------------------------

    def redemption_summary_model(
        self, tranche: int, epoch_id: int
    ) -> EpochRedemptionSummaryModel | None:
        return self.session.execute(
            select(EpochRedemptionSummaryModel).where(
                EpochRedemptionSummaryModel.pool_id == self.pool_id,
                EpochRedemptionSummaryModel.tranche == tranche,
                EpochRedemptionSummaryModel.epoch_id == epoch_id,
            )
        ).scalar_one_or_none()

    def redemption_summary(self, tranche: int, epoch_id: int) -> RedemptionSummaryInfo | None:
        model = self.redemption_summary_model(tranche, epoch_id)
        return RedemptionSummaryInfo.from_model(model) if model is not None else None

    def redemption_summaries(
        self, tranche: int, from_epoch_id: int = 0, to_epoch_id: int | None = None
    ) -> list[RedemptionSummaryInfo]:
        """Summaries with ``from_epoch_id <= epoch_id < to_epoch_id``, ascending."""
        stmt = select(EpochRedemptionSummaryModel).where(
            EpochRedemptionSummaryModel.pool_id == self.pool_id,
            EpochRedemptionSummaryModel.tranche == tranche,
            EpochRedemptionSummaryModel.epoch_id >= from_epoch_id,
        )
        if to_epoch_id is not None:
            stmt = stmt.where(EpochRedemptionSummaryModel.epoch_id < to_epoch_id)
        rows = self.session.execute(
            stmt.order_by(EpochRedemptionSummaryModel.epoch_id)
        ).scalars()
        return [RedemptionSummaryInfo.from_model(m) for m in rows]

    def lender_redemption_record_model(
        self, tranche: int, lender: str
    ) -> LenderRedemptionRecordModel | None:
        return self.session.execute(
            select(LenderRedemptionRecordModel).where(
                LenderRedemptionRecordModel.pool_id == self.pool_id,
                LenderRedemptionRecordModel.tranche == tranche,
                LenderRedemptionRecordModel.lender == lender,
            )
        ).scalar_one_or_none()

    def lender_redemption_record(
        self, tranche: int, lender: str
    ) -> LenderRedemptionRecordInfo | None:
        """The record as last persisted, without catching up on closed epochs."""
        model = self.lender_redemption_record_model(tranche, lender)
        return LenderRedemptionRecordInfo.from_model(model) if model is not None else None

    def lenders_with_redemption_records(self, tranche: int) -> list[str]:
        rows = self.session.execute(
            select(LenderRedemptionRecordModel.lender)
            .where(
                LenderRedemptionRecordModel.pool_id == self.pool_id,
                LenderRedemptionRecordModel.tranche == tranche,
            )
            .order_by(LenderRedemptionRecordModel.lender)
        ).scalars()
        return list(rows)

    # -- tranche ledger -----------------------------------------------------

    def deposit_record_model(self, tranche: int, lender: str) -> LenderDepositRecordModel | None:
        return self.session.execute(
            select(LenderDepositRecordModel).where(
                LenderDepositRecordModel.pool_id == self.pool_id,
                LenderDepositRecordModel.tranche == tranche,
                LenderDepositRecordModel.lender == lender,
            )
        ).scalar_one_or_none()

    def deposit_record(self, tranche: int, lender: str) -> DepositRecordInfo | None:
        model = self.deposit_record_model(tranche, lender)
        return DepositRecordInfo.from_model(model) if model is not None else None

    def tranche_state_model(self, tranche: int) -> TrancheStateModel | None:
        return self.session.execute(
            select(TrancheStateModel).where(
                TrancheStateModel.pool_id == self.pool_id,
                TrancheStateModel.tranche == tranche,
            )
        ).scalar_one_or_none()

    def total_supply(self, tranche: int) -> int:
        model = self.tranche_state_model(tranche)
        return model.total_supply if model is not None else 0

    def share_balance_model(self, tranche: int, holder: str) -> TrancheShareBalanceModel | None:
        return self.session.execute(
            select(TrancheShareBalanceModel).where(
                TrancheShareBalanceModel.pool_id == self.pool_id,
                TrancheShareBalanceModel.tranche == tranche,
                TrancheShareBalanceModel.holder == holder,
            )
        ).scalar_one_or_none()

    def share_balance(self, tranche: int, holder: str) -> int:
        model = self.share_balance_model(tranche, holder)
        return model.shares if model is not None else 0

    def share_holders(self, tranche: int) -> list[tuple[str, int]]:
        """(holder, shares) for holders with a positive balance, by holder."""
        rows = self.session.execute(
            select(TrancheShareBalanceModel)
            .where(
                TrancheShareBalanceModel.pool_id == self.pool_id,
                TrancheShareBalanceModel.tranche == tranche,
            )
            .order_by(TrancheShareBalanceModel.holder)
        ).scalars()
        return [(m.holder, m.shares) for m in rows if m.shares > 0]

    def approved_lenders(self, tranche: int) -> list[str]:
        rows = self.session.execute(
            select(ApprovedLenderModel.lender)
            .where(
                ApprovedLenderModel.pool_id == self.pool_id,
                ApprovedLenderModel.tranche == tranche,
            )
            .order_by(ApprovedLenderModel.lender)
        ).scalars()
        return list(rows)

    def is_approved_lender(self, tranche: int, lender: str) -> bool:
        count = self.session.execute(
            select(func.count())
            .select_from(ApprovedLenderModel)
            .where(
                ApprovedLenderModel.pool_id == self.pool_id,
                ApprovedLenderModel.tranche == tranche,
                ApprovedLenderModel.lender == lender,
            )
        ).scalar_one()
        return count > 0

    # -- first-loss covers --------------------------------------------------

    def cover_provider_model(self, cover_id: str, account: str) -> CoverProviderModel | None:
        return self.session.execute(
            select(CoverProviderModel).where(
                CoverProviderModel.pool_id == self.pool_id,
                CoverProviderModel.cover_id == cover_id,
                CoverProviderModel.account == account,
            )
        ).scalar_one_or_none()

    def cover_providers(self, cover_id: str) -> list[str]:
        rows = self.session.execute(
            select(CoverProviderModel.account)
            .where(
                CoverProviderModel.pool_id == self.pool_id,
                CoverProviderModel.cover_id == cover_id,
            )
            .order_by(CoverProviderModel.account)
        ).scalars()
        return list(rows)

    def cover_share_balance_model(self, cover_id: str, holder: str) -> CoverShareBalanceModel | None:
        return self.session.execute(
            select(CoverShareBalanceModel).where(
                CoverShareBalanceModel.pool_id == self.pool_id,
                CoverShareBalanceModel.cover_id == cover_id,
                CoverShareBalanceModel.holder == holder,
            )
        ).scalar_one_or_none()

    def cover_share_balance(self, cover_id: str, holder: str) -> int:
        model = self.cover_share_balance_model(cover_id, holder)
        return model.shares if model is not None else 0
