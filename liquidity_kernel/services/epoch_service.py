"""
EpochService -- drives the redemption queue from one epoch to the next.

Responsibility:
    Creates the first epoch when the pool is enabled, and closes epochs:
    refresh the pool, settle both tranches' queued shares against the
    safe's available liquidity (senior first, junior held to the
    senior/junior ratio), hand each tranche its outcome, write the
    resulting tranche assets back, and open the next epoch at the start of
    the next pay period.

Architecture position:
    Kernel > Services -- imperative shell.  The settlement itself is the
    pure ``plan_epoch_settlement`` engine; this service only gathers its
    inputs and applies its outputs.  Epoch closure is triggered externally
    (scheduler or operator); nothing here infers it from other calls.

Invariants enforced:
    EPOCH_CONSERVATION -- for each tranche, processed + rolled-over shares
        equal the shares requested in the closed epoch.
    FIXED_WIDTH_RANGES -- epoch ids and end times stay within 64 bits.
    EPOCH_IMMUTABILITY -- a summary is written at most once with
        processed shares; db/immutability.py rejects later edits.

Failure modes:
    - EpochClosedTooEarlyError before the epoch's end time.
    - PoolNotOnError / PoolNotClosedError for the wrong lifecycle state.
    - CustodyError if the safe cannot fund the settlement (rolls back).
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from liquidity_engines.calendar import start_of_next_period
from liquidity_engines.redemption import EpochSettlementPlan, plan_epoch_settlement
from liquidity_kernel.domain.authorization import PoolRole, require_any_role
from liquidity_kernel.domain.clock import Clock
from liquidity_kernel.domain.dtos import (
    EpochInfo,
    EpochProcessingResult,
    PoolStatus,
    TrancheEpochOutcome,
)
from liquidity_kernel.domain.protocols import Authorizer
from liquidity_kernel.domain.values import (
    JUNIOR_TRANCHE,
    SENIOR_TRANCHE,
    TranchePair,
    require_uint64,
)
from liquidity_kernel.exceptions import (
    EpochClosedTooEarlyError,
    PoolNotClosedError,
    PoolNotOnError,
)
from liquidity_kernel.logging_config import LogContext, get_logger
from liquidity_kernel.models.epoch import EpochModel
from liquidity_kernel.selectors.pool_selector import PoolSelector
from liquidity_kernel.services.base import BaseService
from liquidity_kernel.services.custody_service import PoolSafeService
from liquidity_kernel.services.pool_service import PoolService
from liquidity_kernel.services.tranche_vault_service import TrancheVaultService

logger = get_logger("services.epoch")


class EpochService(BaseService[EpochModel]):
    """
    Epoch manager for one pool.

    Contract:
        ``manager_id`` is the identity used for the pool refresh and the
        tranche asset write-back; the authorizer must grant it the
        orchestrator capability.
    """

    def __init__(
        self,
        session: Session,
        pool_id: str,
        *,
        pool: PoolService,
        vaults: dict[int, TrancheVaultService],
        safe: PoolSafeService,
        authorizer: Authorizer,
        clock: Clock,
        manager_id: str | None = None,
    ):
        super().__init__(session, pool_id)
        self.pool = pool
        self.vaults = vaults
        self.safe = safe
        self.authorizer = authorizer
        self.clock = clock
        self.manager_id = manager_id or f"{pool_id}:epoch_manager"
        self.selector = PoolSelector(session, pool_id)

    def current_epoch(self) -> EpochInfo | None:
        return self.selector.current_epoch()

    def _next_end_time(self, now: int) -> int:
        calendar = self.pool.terms.calendar
        return start_of_next_period(calendar.pay_period_unit, calendar.pay_period_length, now)

    def _create_epoch(self, epoch_id: int, now: int) -> EpochInfo:
        require_uint64(epoch_id, "epoch_id")
        end_time = require_uint64(self._next_end_time(now), "end_time")
        model = EpochModel(pool_id=self.pool_id, epoch_id=epoch_id, end_time=end_time)
        self.session.add(model)
        self.session.flush()
        self.pool.set_current_epoch(epoch_id)
        logger.info(
            "epoch_started",
            extra={"epoch_id": epoch_id, "end_time": model.end_time},
        )
        return EpochInfo.from_model(model)

    def start_first_epoch(self) -> EpochInfo:
        """Open epoch 1 if no epoch exists yet; otherwise return the open one."""
        current = self.current_epoch()
        if current is not None:
            return current
        return self._create_epoch(1, self.clock.now_ts())

    def close_epoch(self, caller: str) -> EpochProcessingResult:
        """
        Close the current epoch once its end time has passed.

        Steps: refresh, settle senior then junior, write back tranche
        assets, open the next epoch.
        """
        require_any_role(
            self.authorizer,
            (PoolRole.OPERATOR, PoolRole.POOL_OWNER, PoolRole.ORCHESTRATOR),
            caller,
        )
        state = self.selector.pool_state()
        if state.status != PoolStatus.ON:
            raise PoolNotOnError(self.pool_id, state.status.value)

        current = self.current_epoch()
        now = self.clock.now_ts()
        if current is None:
            current = self.start_first_epoch()
        if now < current.end_time:
            raise EpochClosedTooEarlyError(current.epoch_id, current.end_time, now)

        with LogContext.bind(epoch_id=current.epoch_id):
            self.pool.refresh(self.manager_id)
            result = self._settle(current, now, enforce_ratio=True)
            logger.info(
                "epoch_closed",
                extra={
                    "caller": caller,
                    "closed_epoch_id": result.closed_epoch_id,
                    "next_epoch_id": result.next_epoch.epoch_id,
                    "senior_assets": result.tranche_assets.senior,
                    "junior_assets": result.tranche_assets.junior,
                },
            )
        return result

    def process_after_pool_closure(self, caller: str) -> EpochProcessingResult:
        """
        Settle queued redemptions one last time after the pool has closed.

        Junior is not held back by the senior/junior ratio here.
        """
        require_any_role(
            self.authorizer,
            (PoolRole.OPERATOR, PoolRole.POOL_OWNER, PoolRole.ORCHESTRATOR),
            caller,
        )
        state = self.selector.pool_state()
        if state.status != PoolStatus.CLOSED:
            raise PoolNotClosedError(self.pool_id, state.status.value)

        now = self.clock.now_ts()
        current = self.current_epoch() or self.start_first_epoch()
        with LogContext.bind(epoch_id=current.epoch_id):
            result = self._settle(current, now, enforce_ratio=False)
            logger.info(
                "epoch_closed_after_pool_closure",
                extra={
                    "caller": caller,
                    "closed_epoch_id": result.closed_epoch_id,
                    "senior_assets": result.tranche_assets.senior,
                    "junior_assets": result.tranche_assets.junior,
                },
            )
        return result

    def _settle(self, epoch: EpochInfo, now: int, *, enforce_ratio: bool) -> EpochProcessingResult:
        senior = self.vaults[SENIOR_TRANCHE]
        junior = self.vaults[JUNIOR_TRANCHE]
        requested = TranchePair(
            senior.requested_shares(epoch.epoch_id), junior.requested_shares(epoch.epoch_id)
        )
        tranche_assets = self.pool.current_tranche_assets()

        plan: EpochSettlementPlan = plan_epoch_settlement(
            requested=requested,
            total_supply=TranchePair(senior.total_supply(), junior.total_supply()),
            tranche_assets=tranche_assets,
            available_liquidity=self.safe.get_available_liquidity(),
            max_senior_junior_ratio=self.pool.terms.liquidity.max_senior_junior_ratio,
            enforce_ratio=enforce_ratio,
        )

        outcomes: list[TrancheEpochOutcome] = []
        for tranche, vault in ((SENIOR_TRANCHE, senior), (JUNIOR_TRANCHE, junior)):
            outcome = plan.outcomes[tranche]
            vault.apply_settlement(epoch.epoch_id, outcome)
            outcomes.append(
                TrancheEpochOutcome(
                    tranche=tranche,
                    epoch_id=epoch.epoch_id,
                    shares_requested=outcome.shares_requested,
                    shares_processed=outcome.shares_processed,
                    amount_processed=outcome.amount_processed,
                )
            )

        if plan.total_amount_processed > 0:
            state = self.selector.pool_state()
            self.pool.set_tranche_assets(self.manager_id, plan.tranche_assets, state.refresh_seq)

        with LogContext.bind(epoch_id=epoch.epoch_id + 1):
            next_epoch = self._create_epoch(epoch.epoch_id + 1, now)
        return EpochProcessingResult(
            closed_epoch_id=epoch.epoch_id,
            next_epoch=next_epoch,
            outcomes=tuple(outcomes),
            tranche_assets=self.pool.current_tranche_assets(),
        )
