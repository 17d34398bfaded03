"""
PoolService -- single writer of a pool's authoritative tranche assets.

Responsibility:
    Owns the pool row: lifecycle (OFF -> ON -> CLOSED), the tranche asset
    and loss snapshot, the refresh sequence and the fixed-senior-yield
    tracker.  ``refresh`` runs the waterfall: pull accrued profit, loss and
    recovery from the credit source, route loss through the first-loss
    covers and then the tranche policy, route recovery through the tranches
    and then the covers, and split fee-reduced profit between tranches and
    covers.

Architecture position:
    Kernel > Services -- imperative shell.  Calls the pure engines in
    ``liquidity_engines.tranches_policy``, the collaborator protocols
    (Custody, CreditSource, FeeSplitter, Authorizer) and the cover services.
    Tranche vaults and the epoch service write assets back only through
    ``set_tranche_assets`` with the current refresh token.

Invariants enforced:
    WATERFALL_PRECEDENCE -- loss: covers (most junior first), then junior,
        then senior.  Recovery: junior, senior, then covers in reverse.
    SINGLE_WRITER_TRANCHE_ASSETS -- only this service assigns tranche
        assets; ``set_tranche_assets`` requires the orchestrator capability
        and the latest ``refresh_seq``.
    NO_LEAKAGE -- profit after fees equals senior profit + junior profit
        kept + cover profit, exactly.

Failure modes:
    - UnauthorizedCallerError for callers without the required capability.
    - StaleTrancheAssetsError when ``set_tranche_assets`` carries an old seq.
    - PoolAlreadyEnabledError / PoolNotOnError / InsufficientAdminCoverError
      from lifecycle transitions.
    - CustodyError if the safe cannot fund a fee or cover movement; the
      whole refresh is then rolled back by the caller's transaction.

Audit relevance:
    Emits ``pool_refreshed`` with the full P&L breakdown, plus
    ``pool_enabled``, ``pool_closed`` and ``tranche_assets_updated``.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from liquidity_engines.tranches_policy import (
    AccruedSeniorYield,
    CoverWeight,
    FixedSeniorYieldTranchesPolicy,
    RiskAdjustedTranchesPolicy,
    SeniorYieldTracker,
    TranchesPolicy,
    split_junior_profit_with_covers,
)
from liquidity_kernel.domain.authorization import PoolRole, require_any_role, require_role
from liquidity_kernel.domain.clock import Clock
from liquidity_kernel.domain.dtos import (
    CoverMovement,
    PoolStateInfo,
    PoolStatus,
    RefreshResult,
    SeniorYieldTrackerInfo,
)
from liquidity_kernel.domain.protocols import Authorizer, CreditSource, FeeSplitter
from liquidity_kernel.domain.terms import LiquidityTerms, PoolTerms, TranchesPolicyKind
from liquidity_kernel.domain.values import (
    JUNIOR_TRANCHE,
    SENIOR_TRANCHE,
    ProfitLossRecovery,
    TranchePair,
)
from liquidity_kernel.exceptions import (
    InsufficientAdminCoverError,
    PoolAlreadyEnabledError,
    PoolNotOnError,
    PoolStateNotFoundError,
    StaleTrancheAssetsError,
)
from liquidity_kernel.logging_config import get_logger
from liquidity_kernel.models.pool import PoolStateModel, SeniorYieldTrackerModel
from liquidity_kernel.selectors.pool_selector import PoolSelector
from liquidity_kernel.services.base import BaseService
from liquidity_kernel.services.custody_service import PoolSafeService, fee_account
from liquidity_kernel.services.first_loss_cover_service import FirstLossCoverService

logger = get_logger("services.pool")


class PoolService(BaseService[PoolStateModel]):
    """
    Pool orchestrator.

    Contract:
        ``refresh`` is idempotent when the credit source has nothing new:
        the credit source resets its figures on read, so a second refresh
        sees zeros and leaves tranche assets unchanged.

    Guarantees:
        - ``refresh_seq`` increases by exactly one per completed refresh.
        - A refresh on a pool that is not ON changes nothing.

    Non-goals:
        - Does NOT move lender shares; tranche vaults do.
        - Does NOT commit; the facade owns the transaction.
    """

    def __init__(
        self,
        session: Session,
        pool_id: str,
        terms: PoolTerms,
        *,
        safe: PoolSafeService,
        credit_source: CreditSource,
        fee_splitter: FeeSplitter,
        authorizer: Authorizer,
        clock: Clock,
        covers: Sequence[FirstLossCoverService] = (),
        orchestrator_id: str | None = None,
    ):
        super().__init__(session, pool_id)
        self.terms = terms
        self.safe = safe
        self.credit_source = credit_source
        self.fee_splitter = fee_splitter
        self.authorizer = authorizer
        self.clock = clock
        # Most junior first.
        self.covers = tuple(covers)
        self.orchestrator_id = orchestrator_id or f"{pool_id}:orchestrator"
        self.selector = PoolSelector(session, pool_id)

    # -- rows ---------------------------------------------------------------

    def _state(self) -> PoolStateModel:
        model = self.selector.pool_state_model()
        if model is None:
            raise PoolStateNotFoundError(self.pool_id)
        return model

    def _tracker(self) -> SeniorYieldTrackerModel | None:
        return self.session.execute(
            select(SeniorYieldTrackerModel).where(SeniorYieldTrackerModel.pool_id == self.pool_id)
        ).scalar_one_or_none()

    def initialize_pool(self) -> PoolStateInfo:
        """Create the pool row in status OFF.  Idempotent."""
        model = self.selector.pool_state_model()
        if model is None:
            model = PoolStateModel(
                pool_id=self.pool_id,
                status=PoolStatus.OFF,
                senior_assets=0,
                junior_assets=0,
                senior_loss=0,
                junior_loss=0,
                ready_for_cover_withdrawal=False,
                refresh_seq=0,
                current_epoch_id=None,
                last_refreshed_ts=self.clock.now_ts(),
            )
            self.session.add(model)
            self.session.flush()
            logger.info("pool_initialized", extra={"pool_id": self.pool_id})
        return self.selector.pool_state()

    def load_persisted_terms(self) -> PoolTerms:
        """Adopt the LP config last stored by ``update_lp_config``, if any."""
        model = self.selector.pool_state_model()
        if model is not None and model.liquidity_terms is not None:
            self.terms = self.terms.with_liquidity(LiquidityTerms.from_record(model.liquidity_terms))
        return self.terms

    # -- lifecycle ----------------------------------------------------------

    def pool_state(self) -> PoolStateInfo:
        return self.selector.pool_state()

    def enable_pool(self, actor: str) -> PoolStateInfo:
        """
        Turn the pool ON.

        Preconditions:
            The pool is OFF, and the pool-owner treasury and evaluation
            agent each hold sufficient assets in the admin cover.
        """
        require_any_role(self.authorizer, (PoolRole.POOL_OWNER, PoolRole.OPERATOR), actor)
        state = self._state()
        if state.status != PoolStatus.OFF:
            raise PoolAlreadyEnabledError(self.pool_id, PoolStatus(state.status).value)

        admin = self.terms.admin
        admin_cover = self._cover(admin.admin_cover_id)
        if admin_cover is not None:
            for provider, minimum in (
                (admin.pool_owner_treasury, admin.pool_owner_min_cover_assets),
                (admin.evaluation_agent, admin.ea_min_cover_assets),
            ):
                if not admin_cover.is_provider(provider):
                    raise InsufficientAdminCoverError(provider, 0, minimum)
                info = admin_cover.provider_info(provider)
                required = max(minimum, info.min_required_assets)
                if info.assets < required:
                    raise InsufficientAdminCoverError(provider, info.assets, required)

        state.status = PoolStatus.ON
        state.last_refreshed_ts = self.clock.now_ts()
        self.session.flush()
        if self.terms.liquidity.tranches_policy == TranchesPolicyKind.FIXED_SENIOR_YIELD:
            self._ensure_tracker(state.senior_assets)
        logger.info("pool_enabled", extra={"pool_id": self.pool_id, "actor": actor})
        return self.selector.pool_state()

    def close_pool(self, actor: str) -> RefreshResult:
        """
        Final refresh, then mark the pool CLOSED and ready for cover withdrawal.

        Remaining redemptions are settled by the epoch service afterwards.
        """
        require_any_role(self.authorizer, (PoolRole.POOL_OWNER, PoolRole.OPERATOR), actor)
        state = self._state()
        if state.status != PoolStatus.ON:
            raise PoolNotOnError(self.pool_id, PoolStatus(state.status).value)

        result = self.refresh(self.orchestrator_id)
        state.status = PoolStatus.CLOSED
        state.ready_for_cover_withdrawal = True
        self.session.flush()
        logger.info(
            "pool_closed",
            extra={
                "pool_id": self.pool_id,
                "actor": actor,
                "senior_assets": result.tranche_assets.senior,
                "junior_assets": result.tranche_assets.junior,
            },
        )
        return result

    def is_ready_for_cover_withdrawal(self) -> bool:
        return self._state().ready_for_cover_withdrawal

    def set_ready_for_cover_withdrawal(self, actor: str, ready: bool) -> None:
        require_role(self.authorizer, PoolRole.POOL_OWNER, actor)
        state = self._state()
        state.ready_for_cover_withdrawal = ready
        self.session.flush()
        logger.info(
            "cover_withdrawal_readiness_set",
            extra={"pool_id": self.pool_id, "actor": actor, "ready": ready},
        )

    def set_current_epoch(self, epoch_id: int) -> None:
        state = self._state()
        state.current_epoch_id = epoch_id
        self.session.flush()

    # -- tranche assets -----------------------------------------------------

    def current_tranche_assets(self) -> TranchePair:
        return self._state().tranche_assets

    def set_tranche_assets(self, caller: str, assets: TranchePair, refresh_seq: int) -> None:
        """
        Replace the tranche asset snapshot after a deposit, redemption or
        yield payout.

        Raises:
            StaleTrancheAssetsError: ``refresh_seq`` is not the latest one,
                meaning ``assets`` was computed from an older snapshot.
        """
        require_role(self.authorizer, PoolRole.ORCHESTRATOR, caller)
        state = self._state()
        if refresh_seq != state.refresh_seq:
            raise StaleTrancheAssetsError(state.refresh_seq, refresh_seq)

        previous = state.tranche_assets
        state.tranche_assets = assets
        self._sync_tracker(assets.senior)
        self.session.flush()
        logger.info(
            "tranche_assets_updated",
            extra={
                "caller": caller,
                "senior_before": previous.senior,
                "junior_before": previous.junior,
                "senior_assets": assets.senior,
                "junior_assets": assets.junior,
                "refresh_seq": refresh_seq,
            },
        )

    # -- refresh ------------------------------------------------------------

    def refresh(self, caller: str) -> RefreshResult:
        """
        Pull accrued P&L and apply the waterfall.

        Order: loss, then loss recovery, then profit.  The resulting
        tranche assets become the snapshot every ledger prices against.
        """
        require_any_role(
            self.authorizer,
            (PoolRole.ORCHESTRATOR, PoolRole.OPERATOR, PoolRole.POOL_OWNER),
            caller,
        )
        state = self._state()
        if state.status != PoolStatus.ON:
            logger.debug(
                "pool_refresh_skipped",
                extra={"pool_id": self.pool_id, "status": PoolStatus(state.status).value},
            )
            return RefreshResult(
                tranche_assets=state.tranche_assets,
                tranche_losses=state.tranche_losses,
                refresh_seq=state.refresh_seq,
            )

        pnl: ProfitLossRecovery = self.credit_source.get_accrued_profit_loss_recovery()
        now = self.clock.now_ts()
        assets = state.tranche_assets
        losses = state.tranche_losses
        accrued = self._accrue_tracker(now)

        covered: list[CoverMovement] = []
        if pnl.loss > 0:
            assets, losses, covered = self._apply_loss(pnl.loss, assets, losses)

        recovered: list[CoverMovement] = []
        if pnl.loss_recovery > 0:
            assets, losses, recovered = self._apply_recovery(pnl.loss_recovery, assets, losses)

        profit_after_fees = 0
        tranche_profit = TranchePair.zero()
        cover_profits: list[CoverMovement] = []
        if pnl.profit > 0:
            profit_after_fees = self._take_fees(pnl.profit)
            if profit_after_fees > 0:
                assets, tranche_profit, cover_profits, accrued = self._apply_profit(
                    profit_after_fees, assets, accrued
                )

        state.tranche_assets = assets
        state.tranche_losses = losses
        state.refresh_seq = state.refresh_seq + 1
        state.last_refreshed_ts = now
        if accrued is not None:
            self._store_tracker(accrued.with_total_assets(assets.senior).tracker)
        self.session.flush()

        result = RefreshResult(
            tranche_assets=assets,
            tranche_losses=losses,
            refresh_seq=state.refresh_seq,
            profit=pnl.profit,
            loss=pnl.loss,
            loss_recovery=pnl.loss_recovery,
            profit_after_fees=profit_after_fees,
            covered_losses=tuple(covered),
            cover_recoveries=tuple(recovered),
            cover_profits=tuple(cover_profits),
            tranche_profit=tranche_profit,
        )
        logger.info(
            "pool_refreshed",
            extra={
                "caller": caller,
                "refresh_seq": result.refresh_seq,
                "profit": pnl.profit,
                "loss": pnl.loss,
                "loss_recovery": pnl.loss_recovery,
                "profit_after_fees": profit_after_fees,
                "covered_loss": result.total_covered_loss,
                "senior_assets": assets.senior,
                "junior_assets": assets.junior,
                "senior_loss": losses.senior,
                "junior_loss": losses.junior,
            },
        )
        return result

    def _apply_loss(
        self, loss: int, assets: TranchePair, losses: TranchePair
    ) -> tuple[TranchePair, TranchePair, list[CoverMovement]]:
        movements: list[CoverMovement] = []
        remaining = loss
        for cover in self.covers:
            if remaining == 0:
                break
            step = cover.cover_loss(self.orchestrator_id, remaining)
            if step.covered > 0:
                movements.append(CoverMovement(cover.cover_id, step.covered))
            remaining = step.remaining_loss

        if remaining > 0:
            new_assets, applied = self._policy_for_losses().distribute_loss(remaining, assets)
            if applied.total < remaining:
                logger.warning(
                    "loss_exceeds_tranche_assets",
                    extra={"loss": remaining, "absorbed": applied.total},
                )
            assets = new_assets
            losses = TranchePair(losses.senior + applied.senior, losses.junior + applied.junior)
        return assets, losses, movements

    def _apply_recovery(
        self, recovery: int, assets: TranchePair, losses: TranchePair
    ) -> tuple[TranchePair, TranchePair, list[CoverMovement]]:
        result = self._policy_for_losses().distribute_loss_recovery(recovery, assets, losses)
        remaining = result.remaining_recovery
        movements: list[CoverMovement] = []
        for cover in reversed(self.covers):
            if remaining == 0:
                break
            left = cover.recover_loss(self.orchestrator_id, remaining)
            if left < remaining:
                movements.append(CoverMovement(cover.cover_id, remaining - left))
            remaining = left
        if remaining > 0:
            logger.warning("loss_recovery_unallocated", extra={"amount": remaining})
        return result.assets, result.losses, movements

    def _take_fees(self, profit: int) -> int:
        remaining = self.fee_splitter.apply_platform_fees(profit)
        fees = profit - remaining
        if fees > 0:
            self.safe.withdraw(fee_account(self.pool_id), fees)
            logger.info("platform_fees_taken", extra={"profit": profit, "fees": fees})
        return remaining

    def _apply_profit(
        self, profit: int, assets: TranchePair, accrued: AccruedSeniorYield | None
    ) -> tuple[TranchePair, TranchePair, list[CoverMovement], AccruedSeniorYield | None]:
        policy = self._profit_policy(accrued)
        split = policy.distribute_profit(profit, assets)
        if split.accrued_yield is not None:
            accrued = split.accrued_yield

        weights = [
            CoverWeight(
                cover_id=cover.cover_id,
                cover_assets=cover.total_assets(),
                risk_yield_multiplier_in_bps=cover.terms.risk_yield_multiplier_in_bps,
            )
            for cover in self.covers
        ]
        junior_kept, cover_shares = split_junior_profit_with_covers(
            split.junior_profit, assets.junior, weights
        )

        movements: list[CoverMovement] = []
        by_id = {cover.cover_id: cover for cover in self.covers}
        for cover_id, amount in cover_shares:
            if amount > 0:
                by_id[cover_id].add_cover_profit(self.orchestrator_id, amount)
                movements.append(CoverMovement(cover_id, amount))

        tranche_profit = TranchePair(split.senior_profit, junior_kept)
        self.safe.reserve_unprocessed_profit(SENIOR_TRANCHE, tranche_profit.senior)
        self.safe.reserve_unprocessed_profit(JUNIOR_TRANCHE, tranche_profit.junior)

        new_assets = TranchePair(
            assets.senior + tranche_profit.senior, assets.junior + tranche_profit.junior
        )
        return new_assets, tranche_profit, movements, accrued

    def _policy_for_losses(self) -> TranchesPolicy:
        # Loss and recovery handling is identical for every policy.
        return RiskAdjustedTranchesPolicy(self.terms.liquidity.tranches_risk_adjustment_in_bps)

    def _profit_policy(self, accrued: AccruedSeniorYield | None) -> TranchesPolicy:
        lp = self.terms.liquidity
        if lp.tranches_policy == TranchesPolicyKind.FIXED_SENIOR_YIELD and accrued is not None:
            return FixedSeniorYieldTranchesPolicy(accrued)
        return RiskAdjustedTranchesPolicy(lp.tranches_risk_adjustment_in_bps)

    def _cover(self, cover_id: str) -> FirstLossCoverService | None:
        for cover in self.covers:
            if cover.cover_id == cover_id:
                return cover
        return None

    # -- senior yield tracker -----------------------------------------------

    def senior_yield_tracker(self) -> SeniorYieldTrackerInfo | None:
        return self.selector.senior_yield_tracker()

    def _ensure_tracker(self, senior_assets: int) -> SeniorYieldTrackerModel:
        model = self._tracker()
        if model is None:
            model = SeniorYieldTrackerModel(
                pool_id=self.pool_id,
                total_assets=senior_assets,
                unpaid_yield=0,
                last_updated_ts=self.clock.now_ts(),
            )
            self.session.add(model)
            self.session.flush()
        return model

    def _accrue_tracker(
        self, now: int, yield_in_bps: int | None = None
    ) -> AccruedSeniorYield | None:
        if self.terms.liquidity.tranches_policy != TranchesPolicyKind.FIXED_SENIOR_YIELD:
            return None
        model = self._ensure_tracker(self._state().senior_assets)
        tracker = SeniorYieldTracker(
            total_assets=model.total_assets,
            unpaid_yield=model.unpaid_yield,
            last_updated_ts=model.last_updated_ts,
        )
        if yield_in_bps is None:
            yield_in_bps = self.terms.liquidity.fixed_senior_yield_in_bps
        return tracker.accrue(now, yield_in_bps)

    def _store_tracker(self, tracker: SeniorYieldTracker) -> None:
        model = self._ensure_tracker(tracker.total_assets)
        model.total_assets = tracker.total_assets
        model.unpaid_yield = tracker.unpaid_yield
        model.last_updated_ts = tracker.last_updated_ts

    def _sync_tracker(self, senior_assets: int) -> None:
        accrued = self._accrue_tracker(self.clock.now_ts())
        if accrued is not None:
            self._store_tracker(accrued.with_total_assets(senior_assets).tracker)

    def update_lp_config(self, actor: str, liquidity: LiquidityTerms) -> PoolTerms:
        """
        Swap the liquidity terms.  Yield owed under the old rate is accrued
        up to now before the new rate takes effect.
        """
        require_role(self.authorizer, PoolRole.POOL_OWNER, actor)
        accrued = self._accrue_tracker(self.clock.now_ts())
        if accrued is not None:
            self._store_tracker(accrued.tracker)

        old = self.terms.liquidity
        self.terms = self.terms.with_liquidity(liquidity)
        self._state().liquidity_terms = liquidity.to_record()
        if (
            liquidity.tranches_policy == TranchesPolicyKind.FIXED_SENIOR_YIELD
            and self.selector.pool_state().is_on
        ):
            self._ensure_tracker(self._state().senior_assets)
        self.session.flush()

        changed = {
            name: getattr(liquidity, name)
            for name in liquidity.__dataclass_fields__
            if getattr(liquidity, name) != getattr(old, name)
        }
        logger.info("lp_config_updated", extra={"actor": actor, "changed": changed})
        return self.terms
