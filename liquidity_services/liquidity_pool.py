"""
liquidity_services.liquidity_pool -- serialized, transactional pool facade.

Responsibility:
    The public entry point for one pool.  Every call takes the pool's lock,
    opens one transaction, wires the kernel services on that session, runs
    the operation and commits.  Any exception rolls the whole call back, so
    no operation ever partially applies.

Architecture position:
    Services -- top of the stack.  Builds kernel services through
    ``build_pool_components``; compiles configuration through
    ``liquidity_config``.  Hosts (schedulers, API handlers, tests) talk to
    this class only.

Invariants enforced:
    ATOMIC_CALLS -- one ``session_scope`` per call; a failure anywhere rolls
        back everything the call did.
    - Calls are serialized per pool by a re-entrant lock, so concurrent
      handlers observe calls in submission order.
    - Every call runs inside a LogContext carrying a fresh correlation id,
      the pool id and the acting account.

Failure modes:
    - Every kernel error propagates unchanged after rollback.

Usage:
    pool = LiquidityPool.from_config(get_default_config(), session_factory=factory,
                                     authorizer=roles, clock=clock)
    pool.initialize()
    pool.deposit_cover("admin", "pool-owner-treasury", 50_000_000_000)
    pool.enable_pool("pool-owner")
    pool.deposit(JUNIOR_TRANCHE, "lender-1", 1_000_000_000)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TypeVar
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from liquidity_config import PoolConfig, compile_pool_terms
from liquidity_kernel.db.engine import session_scope
from liquidity_kernel.domain.authorization import PoolRole, RoleRegistry, require_any_role
from liquidity_kernel.domain.clock import Clock, SystemClock
from liquidity_kernel.domain.dtos import (
    CoverProviderInfo,
    CoverStateInfo,
    DepositRecordInfo,
    EpochInfo,
    EpochProcessingResult,
    LenderRedemptionRecordInfo,
    PoolStateInfo,
    RefreshResult,
    SeniorYieldTrackerInfo,
    TrancheSupplyInfo,
    YieldPayoutResult,
)
from liquidity_kernel.domain.fees import PlatformFeeSplitter
from liquidity_kernel.domain.protocols import Authorizer, CreditSource, FeeSplitter
from liquidity_kernel.domain.terms import LiquidityTerms, PoolTerms
from liquidity_kernel.domain.values import TranchePair, require_tranche
from liquidity_kernel.logging_config import LogContext, get_logger
from liquidity_kernel.services.custody_service import PoolSafeService
from liquidity_kernel.services.pool_components import (
    PoolComponents,
    build_pool_components,
    grant_internal_roles,
)

logger = get_logger("services.liquidity_pool")

T = TypeVar("T")

CreditSourceFactory = Callable[[Session, PoolSafeService], CreditSource]


class LiquidityPool:
    """
    One pool, reachable from any thread.

    Contract:
        Receives all dependencies by injection.  When ``authorizer`` is a
        ``RoleRegistry`` the pool's internal identities are granted the
        orchestrator capability automatically; any other ``Authorizer``
        must already recognize them (see ``internal_identities``).

    Guarantees:
        - Each public method is one atomic, serialized state transition.
        - ``terms`` reflects the last committed ``update_lp_config``.

    Non-goals:
        - Does NOT schedule epoch closes; an external timer calls
          ``close_epoch``.
    """

    def __init__(
        self,
        terms: PoolTerms,
        *,
        session_factory: sessionmaker[Session],
        authorizer: Authorizer,
        clock: Clock | None = None,
        fee_splitter: FeeSplitter | None = None,
        credit_source_factory: CreditSourceFactory | None = None,
    ):
        self.terms = terms
        self.pool_id = terms.pool_id
        self._session_factory = session_factory
        self.authorizer = authorizer
        self.clock = clock or SystemClock()
        self.fee_splitter = fee_splitter or PlatformFeeSplitter(terms.platform_fee_in_bps)
        self._credit_source_factory = credit_source_factory
        self._lock = threading.RLock()
        if isinstance(authorizer, RoleRegistry):
            grant_internal_roles(authorizer, self.pool_id)

    @classmethod
    def from_config(cls, config: PoolConfig, **kwargs) -> LiquidityPool:
        """Compile ``config`` and build a pool from it."""
        return cls(compile_pool_terms(config), **kwargs)

    # -- plumbing -----------------------------------------------------------

    def _components(self, session: Session) -> PoolComponents:
        credit_source = None
        if self._credit_source_factory is not None:
            credit_source = self._credit_source_factory(
                session, PoolSafeService(session, self.pool_id)
            )
        return build_pool_components(
            session,
            self.terms,
            authorizer=self.authorizer,
            clock=self.clock,
            fee_splitter=self.fee_splitter,
            credit_source=credit_source,
        )

    def _run(self, operation: str, actor: str | None, fn: Callable[[PoolComponents], T]) -> T:
        with self._lock, LogContext.bind(
            correlation_id=str(uuid4()), pool_id=self.pool_id, actor_id=actor
        ):
            logger.debug("pool_call_started", extra={"operation": operation})
            with session_scope(self._session_factory) as session:
                components = self._components(session)
                result = fn(components)
                new_terms = components.pool.terms
            # Only committed terms become visible to later calls.
            self.terms = new_terms
            logger.debug("pool_call_completed", extra={"operation": operation})
            return result

    def _require_operator(self, actor: str) -> None:
        require_any_role(
            self.authorizer,
            (PoolRole.OPERATOR, PoolRole.POOL_OWNER, PoolRole.ORCHESTRATOR),
            actor,
        )

    # -- lifecycle ----------------------------------------------------------

    def initialize(self) -> PoolStateInfo:
        return self._run("initialize", None, lambda c: c.pool.initialize_pool())

    def enable_pool(self, actor: str) -> PoolStateInfo:
        def op(c: PoolComponents) -> PoolStateInfo:
            c.pool.enable_pool(actor)
            c.epochs.start_first_epoch()
            return c.pool.pool_state()

        return self._run("enable_pool", actor, op)

    def close_pool(self, actor: str) -> EpochProcessingResult:
        """Final refresh, close, then settle queued redemptions without the ratio cap."""

        def op(c: PoolComponents) -> EpochProcessingResult:
            c.pool.close_pool(actor)
            return c.epochs.process_after_pool_closure(actor)

        return self._run("close_pool", actor, op)

    def pool_state(self) -> PoolStateInfo:
        return self._run("pool_state", None, lambda c: c.pool.pool_state())

    def refresh(self, actor: str) -> RefreshResult:
        return self._run("refresh", actor, lambda c: c.pool.refresh(actor))

    def current_tranche_assets(self) -> TranchePair:
        return self._run("current_tranche_assets", None, lambda c: c.pool.current_tranche_assets())

    def is_ready_for_cover_withdrawal(self) -> bool:
        return self._run(
            "is_ready_for_cover_withdrawal", None, lambda c: c.pool.is_ready_for_cover_withdrawal()
        )

    def set_ready_for_cover_withdrawal(self, actor: str, ready: bool) -> None:
        self._run(
            "set_ready_for_cover_withdrawal",
            actor,
            lambda c: c.pool.set_ready_for_cover_withdrawal(actor, ready),
        )

    def update_lp_config(self, actor: str, liquidity: LiquidityTerms) -> PoolTerms:
        return self._run("update_lp_config", actor, lambda c: c.pool.update_lp_config(actor, liquidity))

    def senior_yield_tracker(self) -> SeniorYieldTrackerInfo | None:
        return self._run("senior_yield_tracker", None, lambda c: c.pool.senior_yield_tracker())

    # -- epochs -------------------------------------------------------------

    def current_epoch(self) -> EpochInfo | None:
        return self._run("current_epoch", None, lambda c: c.epochs.current_epoch())

    def close_epoch(self, actor: str) -> EpochProcessingResult:
        return self._run("close_epoch", actor, lambda c: c.epochs.close_epoch(actor))

    # -- tranches -----------------------------------------------------------

    def add_approved_lender(
        self, actor: str, tranche: int, lender: str, reinvest_yield: bool = True
    ) -> None:
        require_tranche(tranche)
        self._run(
            "add_approved_lender",
            actor,
            lambda c: c.vaults[tranche].add_approved_lender(actor, lender, reinvest_yield),
        )

    def remove_approved_lender(self, actor: str, tranche: int, lender: str) -> None:
        require_tranche(tranche)
        self._run(
            "remove_approved_lender",
            actor,
            lambda c: c.vaults[tranche].remove_approved_lender(actor, lender),
        )

    def set_reinvest_yield(self, actor: str, tranche: int, lender: str, reinvest: bool) -> None:
        require_tranche(tranche)
        self._run(
            "set_reinvest_yield",
            actor,
            lambda c: c.vaults[tranche].set_reinvest_yield(actor, lender, reinvest),
        )

    def deposit(self, tranche: int, lender: str, assets: int, receiver: str | None = None) -> int:
        require_tranche(tranche)
        with LogContext.bind(tranche=str(tranche)):
            return self._run(
                "deposit", lender, lambda c: c.vaults[tranche].deposit(lender, assets, receiver)
            )

    def add_redemption_request(self, tranche: int, lender: str, shares: int) -> None:
        require_tranche(tranche)
        self._run(
            "add_redemption_request",
            lender,
            lambda c: c.vaults[tranche].add_redemption_request(lender, shares),
        )

    def cancel_redemption_request(self, tranche: int, lender: str, shares: int) -> None:
        require_tranche(tranche)
        self._run(
            "cancel_redemption_request",
            lender,
            lambda c: c.vaults[tranche].cancel_redemption_request(lender, shares),
        )

    def disburse(self, tranche: int, lender: str, receiver: str | None = None) -> int:
        require_tranche(tranche)
        return self._run("disburse", lender, lambda c: c.vaults[tranche].disburse(lender, receiver))

    def withdraw_after_pool_closure(
        self, tranche: int, lender: str, receiver: str | None = None
    ) -> int:
        require_tranche(tranche)
        return self._run(
            "withdraw_after_pool_closure",
            lender,
            lambda c: c.vaults[tranche].withdraw_after_pool_closure(lender, receiver),
        )

    def sweep_unclaimed_redemptions(self, actor: str, tranche: int) -> int:
        """Return unclaimed redemption cash of a closed pool to the tranche."""
        require_tranche(tranche)
        return self._run(
            "sweep_unclaimed_redemptions",
            actor,
            lambda c: c.vaults[tranche].sweep_unclaimed_redemptions(actor),
        )

    def process_yield_for_lenders(self, actor: str, tranche: int) -> YieldPayoutResult:
        require_tranche(tranche)

        def op(c: PoolComponents) -> YieldPayoutResult:
            self._require_operator(actor)
            return c.vaults[tranche].process_yield_for_lenders()

        return self._run("process_yield_for_lenders", actor, op)

    def withdrawable_assets(self, tranche: int, lender: str) -> int:
        require_tranche(tranche)
        return self._run(
            "withdrawable_assets", None, lambda c: c.vaults[tranche].withdrawable_assets(lender)
        )

    def total_assets_of(self, tranche: int, lender: str) -> int:
        require_tranche(tranche)
        return self._run("total_assets_of", None, lambda c: c.vaults[tranche].total_assets_of(lender))

    def balance_of(self, tranche: int, holder: str) -> int:
        require_tranche(tranche)
        return self._run("balance_of", None, lambda c: c.vaults[tranche].balance_of(holder))

    def convert_to_shares(self, tranche: int, assets: int) -> int:
        require_tranche(tranche)
        return self._run(
            "convert_to_shares", None, lambda c: c.vaults[tranche].convert_to_shares(assets)
        )

    def convert_to_assets(self, tranche: int, shares: int) -> int:
        require_tranche(tranche)
        return self._run(
            "convert_to_assets", None, lambda c: c.vaults[tranche].convert_to_assets(shares)
        )

    def redemption_record(self, tranche: int, lender: str) -> LenderRedemptionRecordInfo:
        require_tranche(tranche)
        return self._run(
            "redemption_record", None, lambda c: c.vaults[tranche].latest_redemption_record(lender)
        )

    def deposit_record(self, tranche: int, lender: str) -> DepositRecordInfo | None:
        require_tranche(tranche)
        return self._run("deposit_record", None, lambda c: c.vaults[tranche].deposit_record(lender))

    def tranche_supply(self, tranche: int) -> TrancheSupplyInfo:
        require_tranche(tranche)
        return self._run("tranche_supply", None, lambda c: c.vaults[tranche].supply_info())

    # -- first-loss covers --------------------------------------------------

    def add_cover_provider(
        self, actor: str, cover_id: str, account: str, min_required_assets: int = 0
    ) -> None:
        self._run(
            "add_cover_provider",
            actor,
            lambda c: c.cover(cover_id).add_cover_provider(actor, account, min_required_assets),
        )

    def remove_cover_provider(self, actor: str, cover_id: str, account: str) -> None:
        self._run(
            "remove_cover_provider",
            actor,
            lambda c: c.cover(cover_id).remove_cover_provider(actor, account),
        )

    def deposit_cover(self, cover_id: str, provider: str, assets: int) -> int:
        return self._run(
            "deposit_cover", provider, lambda c: c.cover(cover_id).deposit_cover(provider, assets)
        )

    def deposit_cover_for(self, actor: str, cover_id: str, receiver: str, assets: int) -> int:
        return self._run(
            "deposit_cover_for",
            actor,
            lambda c: c.cover(cover_id).deposit_cover_for(actor, receiver, assets),
        )

    def redeem_cover(
        self, cover_id: str, provider: str, shares: int, receiver: str | None = None
    ) -> int:
        return self._run(
            "redeem_cover",
            provider,
            lambda c: c.cover(cover_id).redeem_cover(provider, shares, receiver or provider),
        )

    def transfer_cover_shares(self, cover_id: str, sender: str, recipient: str, shares: int) -> None:
        self._run(
            "transfer_cover_shares",
            sender,
            lambda c: c.cover(cover_id).transfer(sender, recipient, shares),
        )

    def payout_cover_yield(self, cover_id: str) -> YieldPayoutResult:
        return self._run("payout_cover_yield", None, lambda c: c.cover(cover_id).payout_yield())

    def is_sufficient(self, cover_id: str, provider: str) -> bool:
        return self._run("is_sufficient", None, lambda c: c.cover(cover_id).is_sufficient(provider))

    def cover_state(self, cover_id: str) -> CoverStateInfo:
        return self._run("cover_state", None, lambda c: c.cover(cover_id).state_info())

    def cover_provider(self, cover_id: str, account: str) -> CoverProviderInfo:
        return self._run(
            "cover_provider", None, lambda c: c.cover(cover_id).provider_info(account)
        )

    # -- underlying assets and the reference credit source ------------------

    def fund(self, account: str, amount: int) -> None:
        """Credit ``account`` with underlying assets entering the system."""
        self._run("fund", None, lambda c: c.ledger.mint(account, amount))

    def asset_balance(self, account: str) -> int:
        return self._run("asset_balance", None, lambda c: c.ledger.balance_of(account))

    def set_account_blocked(self, account: str, blocked: bool) -> None:
        self._run("set_account_blocked", None, lambda c: c.ledger.set_blocked(account, blocked))

    def available_liquidity(self) -> int:
        return self._run("available_liquidity", None, lambda c: c.safe.get_available_liquidity())

    def drawdown(self, borrower: str, amount: int) -> None:
        self._run("drawdown", borrower, lambda c: c.credit_source.drawdown(borrower, amount))

    def make_payment(self, borrower: str, principal: int = 0, profit: int = 0) -> None:
        self._run(
            "make_payment",
            borrower,
            lambda c: c.credit_source.make_payment(borrower, principal, profit),
        )

    def write_off(self, actor: str, amount: int) -> None:
        def op(c: PoolComponents) -> None:
            self._require_operator(actor)
            c.credit_source.write_off(amount)

        self._run("write_off", actor, op)

    def recover(self, borrower: str, amount: int) -> None:
        self._run("recover", borrower, lambda c: c.credit_source.recover(borrower, amount))
