"""
FirstLossCoverService -- share-ledger reserve that absorbs losses first.

Responsibility:
    Manages one first-loss cover: provider allow-list, share deposits and
    redemptions, loss cover and loss recovery on behalf of the pool, profit
    added by the waterfall, and payout of any surplus above the reserve's
    ceiling back to providers.

Architecture position:
    Kernel > Services -- imperative shell.  Called by PoolService during
    refresh (cover_loss, recover_loss, add_cover_profit) and by the facade
    for provider operations.  Reads pool state through PoolSelector.

Invariants enforced:
    SHARE_BACKING -- shares are priced before the deposit lands.
    - Cover assets are the balance of the cover's holding account, so
      ``convert_to_assets(total_shares) == total_assets()`` up to rounding.
    - covered_loss never exceeds the loss ever applied, and recoveries never
      return more than was covered.
    - Shares are non-transferable.
    - A provider is removed only with a zero share balance.

Failure modes:
    - Validation: ZeroAmountError, ZeroAddressError, NotCoverProviderError,
      DepositAmountTooLowError, CoverLiquidityCapExceededError,
      InsufficientSharesError, UnauthorizedCallerError,
      TooManyCoverProvidersError, NonTransferableSharesError.
    - Policy: CoverRedemptionNotAllowedError, CoverProviderHasBalanceError.
    - Per-provider CustodyError during payout_yield is caught and reported.

Audit relevance:
    Every deposit, redemption, covered loss, recovery and payout is logged
    with the cover id, and payout failures use a distinct event name.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from liquidity_engines.shares import convert_to_assets, convert_to_shares, shares_for_deposit
from liquidity_engines.tranches_policy import CoverLossStep, cover_loss_amount
from liquidity_kernel.domain.authorization import PoolRole, require_any_role, require_role
from liquidity_kernel.domain.dtos import (
    CoverProviderInfo,
    CoverStateInfo,
    Payout,
    PayoutFailure,
    YieldPayoutResult,
)
from liquidity_kernel.domain.protocols import Authorizer
from liquidity_kernel.domain.terms import CoverTerms
from liquidity_kernel.domain.values import checked_sub, mul_div, require_uint
from liquidity_kernel.exceptions import (
    AlreadyCoverProviderError,
    CoverLiquidityCapExceededError,
    CoverProviderHasBalanceError,
    CoverRedemptionNotAllowedError,
    CustodyError,
    DepositAmountTooLowError,
    InsufficientSharesError,
    NonTransferableSharesError,
    NotCoverProviderError,
    TooManyCoverProvidersError,
    ZeroAddressError,
    ZeroAmountError,
)
from liquidity_kernel.logging_config import get_logger
from liquidity_kernel.models.first_loss_cover import (
    CoverProviderModel,
    CoverShareBalanceModel,
    FirstLossCoverStateModel,
)
from liquidity_kernel.selectors.pool_selector import PoolSelector
from liquidity_kernel.services.base import BaseService
from liquidity_kernel.services.custody_service import PoolSafeService, cover_account

logger = get_logger("services.first_loss_cover")


class FirstLossCoverService(BaseService[FirstLossCoverStateModel]):
    """
    One first-loss cover reserve.

    Contract:
        ``cover_loss``, ``recover_loss`` and ``add_cover_profit`` require the
        orchestrator capability; provider list changes require the pool owner.

    Guarantees:
        - All asset movement goes through the pool safe or the asset ledger
          in the same transaction as the share or record change.
    """

    def __init__(
        self,
        session: Session,
        pool_id: str,
        terms: CoverTerms,
        safe: PoolSafeService,
        authorizer: Authorizer,
    ):
        super().__init__(session, pool_id)
        self.terms = terms
        self.cover_id = terms.cover_id
        self.safe = safe
        self.ledger = safe.ledger
        self.authorizer = authorizer
        self.selector = PoolSelector(session, pool_id)
        self.account = cover_account(pool_id, terms.cover_id)

    # -- state --------------------------------------------------------------

    def _state(self) -> FirstLossCoverStateModel:
        model = self.session.execute(
            select(FirstLossCoverStateModel).where(
                FirstLossCoverStateModel.pool_id == self.pool_id,
                FirstLossCoverStateModel.cover_id == self.cover_id,
            )
        ).scalar_one_or_none()
        if model is None:
            model = FirstLossCoverStateModel(
                pool_id=self.pool_id, cover_id=self.cover_id, total_shares=0, covered_loss=0
            )
            self.session.add(model)
            self.session.flush()
        return model

    def _balance_row(self, holder: str) -> CoverShareBalanceModel:
        model = self.selector.cover_share_balance_model(self.cover_id, holder)
        if model is None:
            model = CoverShareBalanceModel(
                pool_id=self.pool_id, cover_id=self.cover_id, holder=holder, shares=0
            )
            self.session.add(model)
            self.session.flush()
        return model

    def total_shares(self) -> int:
        return self._state().total_shares

    def total_assets(self) -> int:
        return self.ledger.balance_of(self.account)

    def covered_loss(self) -> int:
        return self._state().covered_loss

    def balance_of(self, holder: str) -> int:
        return self.selector.cover_share_balance(self.cover_id, holder)

    def convert_to_shares(self, assets: int) -> int:
        return convert_to_shares(assets, self.total_assets(), self.total_shares())

    def convert_to_assets(self, shares: int) -> int:
        return convert_to_assets(shares, self.total_assets(), self.total_shares())

    def capacity(self) -> int:
        """Reserve ceiling given the pool's current tranche assets."""
        pool_assets = self.selector.pool_state().tranche_assets.total
        return self.terms.capacity(pool_assets)

    def available_cap(self) -> int:
        capacity = self.capacity()
        assets = self.total_assets()
        return capacity - assets if capacity > assets else 0

    def state_info(self) -> CoverStateInfo:
        state = self._state()
        return CoverStateInfo(
            cover_id=self.cover_id,
            total_shares=state.total_shares,
            total_assets=self.total_assets(),
            covered_loss=state.covered_loss,
            capacity=self.capacity(),
        )

    # -- providers ----------------------------------------------------------

    def is_provider(self, account: str) -> bool:
        return self.selector.cover_provider_model(self.cover_id, account) is not None

    def add_cover_provider(self, actor: str, account: str, min_required_assets: int = 0) -> None:
        require_role(self.authorizer, PoolRole.POOL_OWNER, actor)
        if not account:
            raise ZeroAddressError("account")
        require_uint(min_required_assets, "min_required_assets")
        if self.is_provider(account):
            raise AlreadyCoverProviderError(self.cover_id, account)
        if len(self.selector.cover_providers(self.cover_id)) >= self.terms.max_providers:
            raise TooManyCoverProvidersError(self.cover_id, self.terms.max_providers)

        self.session.add(
            CoverProviderModel(
                pool_id=self.pool_id,
                cover_id=self.cover_id,
                account=account,
                min_required_assets=min_required_assets,
            )
        )
        self.session.flush()
        logger.info(
            "cover_provider_added",
            extra={
                "cover_id": self.cover_id,
                "account": account,
                "min_required_assets": min_required_assets,
            },
        )

    def remove_cover_provider(self, actor: str, account: str) -> None:
        require_role(self.authorizer, PoolRole.POOL_OWNER, actor)
        model = self.selector.cover_provider_model(self.cover_id, account)
        if model is None:
            raise NotCoverProviderError(self.cover_id, account)
        shares = self.balance_of(account)
        if shares > 0:
            raise CoverProviderHasBalanceError(self.cover_id, account, shares)
        self.session.delete(model)
        self.session.flush()
        logger.info("cover_provider_removed", extra={"cover_id": self.cover_id, "account": account})

    def provider_info(self, account: str) -> CoverProviderInfo:
        model = self.selector.cover_provider_model(self.cover_id, account)
        if model is None:
            raise NotCoverProviderError(self.cover_id, account)
        shares = self.balance_of(account)
        return CoverProviderInfo(
            cover_id=self.cover_id,
            account=account,
            shares=shares,
            assets=self.convert_to_assets(shares),
            min_required_assets=model.min_required_assets,
        )

    def is_sufficient(self, account: str) -> bool:
        """True if ``account`` is a provider holding at least its required cover assets."""
        if not self.is_provider(account):
            return False
        return self.provider_info(account).is_sufficient

    # -- deposit / redeem ---------------------------------------------------

    def deposit_cover(self, provider: str, assets: int) -> int:
        """
        Deposit ``assets`` from ``provider`` and mint shares.

        Preconditions:
            provider is allow-listed; assets >= min_deposit_amount and fit
            under the reserve ceiling.
        Postconditions:
            shares minted at pre-transfer pricing; assets moved from the
            provider's account into the cover account.

        Returns:
            Shares minted.
        """
        if not provider:
            raise ZeroAddressError("provider")
        return self._deposit(provider, provider, assets)

    def deposit_cover_for(self, actor: str, receiver: str, assets: int) -> int:
        """
        A pool manager tops up ``receiver``'s cover position from its own
        account, for example with fees it has collected.

        Returns:
            Shares minted to ``receiver``.
        """
        require_any_role(self.authorizer, (PoolRole.POOL_OWNER, PoolRole.OPERATOR), actor)
        if not receiver:
            raise ZeroAddressError("receiver")
        return self._deposit(actor, receiver, assets)

    def _deposit(self, payer: str, provider: str, assets: int) -> int:
        if assets == 0:
            raise ZeroAmountError("assets")
        require_uint(assets, "assets")
        if not self.is_provider(provider):
            raise NotCoverProviderError(self.cover_id, provider)
        if assets < self.terms.min_deposit_amount:
            raise DepositAmountTooLowError(assets, self.terms.min_deposit_amount)

        total_assets = self.total_assets()
        capacity = self.capacity()
        if total_assets + assets > capacity:
            raise CoverLiquidityCapExceededError(self.cover_id, assets, total_assets, capacity)

        state = self._state()
        shares = shares_for_deposit(assets, total_assets, state.total_shares)

        self.ledger.transfer(payer, self.account, assets)
        balance = self._balance_row(provider)
        balance.shares = balance.shares + shares
        state.total_shares = state.total_shares + shares
        self.session.flush()

        logger.info(
            "cover_deposited",
            extra={
                "cover_id": self.cover_id,
                "provider": provider,
                "payer": payer,
                "assets": assets,
                "shares": shares,
            },
        )
        return shares

    def redeem_cover(self, provider: str, shares: int, receiver: str) -> int:
        """
        Burn ``shares`` of ``provider`` and send their assets to ``receiver``.

        Allowed in full once the pool is ready for cover withdrawal (or
        closed); otherwise only while the reserve stays at or above its
        minimum liquidity.

        Returns:
            Assets paid out.
        """
        if shares == 0:
            raise ZeroAmountError("shares")
        if not receiver:
            raise ZeroAddressError("receiver")
        require_uint(shares, "shares")

        held = self.balance_of(provider)
        if shares > held:
            raise InsufficientSharesError(provider, shares, held)

        total_assets = self.total_assets()
        assets = self.convert_to_assets(shares)

        pool = self.selector.pool_state()
        if not (pool.ready_for_cover_withdrawal or pool.is_closed):
            min_liquidity = self.terms.min_liquidity
            if total_assets <= min_liquidity or assets > total_assets - min_liquidity:
                raise CoverRedemptionNotAllowedError(
                    self.cover_id, assets, total_assets, min_liquidity
                )

        state = self._state()
        balance = self._balance_row(provider)
        balance.shares = checked_sub(balance.shares, shares, "cover_shares")
        state.total_shares = checked_sub(state.total_shares, shares, "cover_total_shares")
        self.session.flush()
        self.ledger.transfer(self.account, receiver, assets)

        logger.info(
            "cover_redeemed",
            extra={
                "cover_id": self.cover_id,
                "provider": provider,
                "receiver": receiver,
                "shares": shares,
                "assets": assets,
            },
        )
        return assets

    def transfer(self, sender: str, recipient: str, shares: int) -> None:
        """Cover shares only move through deposit and redeem."""
        raise NonTransferableSharesError(self.cover_id)

    # -- waterfall hooks ----------------------------------------------------

    def cover_loss(self, caller: str, loss: int) -> CoverLossStep:
        """
        Absorb part of ``loss``; moves the covered amount into the pool safe.

        Returns:
            The covered amount and the remainder to escalate.
        """
        require_role(self.authorizer, PoolRole.ORCHESTRATOR, caller)
        step = cover_loss_amount(
            loss,
            self.terms.cover_rate_per_loss_in_bps,
            self.terms.cover_cap_per_loss,
            self.total_assets(),
        )
        if step.covered > 0:
            state = self._state()
            state.covered_loss = state.covered_loss + step.covered
            self.safe.deposit(self.account, step.covered)
            logger.info(
                "cover_loss_applied",
                extra={
                    "cover_id": self.cover_id,
                    "loss": loss,
                    "covered": step.covered,
                    "covered_loss_total": state.covered_loss,
                },
            )
        return step

    def recover_loss(self, caller: str, recovery: int) -> int:
        """
        Take back up to the cumulative covered loss from ``recovery``.

        Returns:
            The recovery remaining after this cover.
        """
        require_role(self.authorizer, PoolRole.ORCHESTRATOR, caller)
        state = self._state()
        recovered = min(state.covered_loss, recovery)
        if recovered > 0:
            state.covered_loss = state.covered_loss - recovered
            self.safe.withdraw(self.account, recovered)
            logger.info(
                "cover_loss_recovered",
                extra={
                    "cover_id": self.cover_id,
                    "recovered": recovered,
                    "covered_loss_total": state.covered_loss,
                },
            )
        return recovery - recovered

    def add_cover_profit(self, caller: str, amount: int) -> None:
        """Move the cover's share of junior profit from the safe into the cover."""
        require_role(self.authorizer, PoolRole.ORCHESTRATOR, caller)
        if amount == 0:
            return
        self.safe.withdraw(self.account, amount)
        logger.info("cover_profit_added", extra={"cover_id": self.cover_id, "amount": amount})

    # -- yield --------------------------------------------------------------

    def payout_yield(self) -> YieldPayoutResult:
        """
        Pay assets above the reserve ceiling to providers pro rata by shares.

        A failed transfer to one provider is recorded and logged as
        ``yield_payout_failed``; the remaining providers are still paid.
        """
        total_assets = self.total_assets()
        capacity = self.capacity()
        if total_assets <= capacity:
            return YieldPayoutResult()

        surplus = total_assets - capacity
        total_shares = self.total_shares()
        if total_shares == 0:
            return YieldPayoutResult()

        paid: list[Payout] = []
        failed: list[PayoutFailure] = []
        for account in self.selector.cover_providers(self.cover_id):
            shares = self.balance_of(account)
            if shares == 0:
                continue
            amount = mul_div(surplus, shares, total_shares)
            if amount == 0:
                continue
            try:
                self.ledger.transfer(self.account, account, amount)
            except CustodyError as exc:
                failed.append(PayoutFailure(account, amount, exc.code, str(exc)))
                logger.warning(
                    "yield_payout_failed",
                    extra={"cover_id": self.cover_id, "account": account, "amount": amount},
                    exc_info=True,
                )
                continue
            paid.append(Payout(account, amount, shares))
            logger.info(
                "yield_paid_out",
                extra={"cover_id": self.cover_id, "account": account, "amount": amount},
            )

        return YieldPayoutResult(paid=tuple(paid), failed=tuple(failed))
