"""
TrancheVaultService -- share ledger and redemption queue for one tranche.

Responsibility:
    Mints shares for lender deposits priced on the pool's authoritative
    tranche assets, escrows shares submitted for redemption into the current
    epoch, applies epoch settlements handed over by the epoch service, and
    pays lenders what their settled redemptions are worth.  Also keeps the
    lender approval list, deposit records with the reinvest flag, and pays
    out yield to lenders who do not reinvest.

Architecture position:
    Kernel > Services -- imperative shell.  Reads the tranche asset
    snapshot from PoolService and writes it back through
    ``PoolService.set_tranche_assets`` under its own vault identity.  Share
    arithmetic lives in ``liquidity_engines.shares`` and lender catch-up in
    ``liquidity_engines.redemption``.

Invariants enforced:
    SHARE_BACKING -- deposits are priced before the transfer lands; a
        deposit that would mint zero shares is rejected.
    EPOCH_CONSERVATION -- escrowed shares leave escrow only by being burned
        at settlement, returned on cancellation, or redeemed after closure.
    - Deposit records are never deleted.
    - total_amount_withdrawn <= total_amount_processed for every lender.

Failure modes:
    - Validation: ZeroAmountError, LenderNotApprovedError,
      DepositAmountTooLowError, TrancheCapExceededError,
      InsufficientSharesError, ZeroSharesMintedError, TooManyLendersError.
    - Policy: PoolNotOnError, PoolNotClosedError, WithdrawTooEarlyError,
      LiquidityRequirementError, RedemptionCancellationDisabledError.
    - Per-lender CustodyError during ``process_yield_for_lenders`` is caught
      and reported; the other lenders are still paid.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from liquidity_engines.redemption import RedemptionOutcome, catch_up_lender_record
from liquidity_engines.shares import convert_to_assets, convert_to_shares, shares_for_deposit
from liquidity_kernel.domain.authorization import PoolRole, require_any_role, require_role
from liquidity_kernel.domain.clock import Clock
from liquidity_kernel.domain.dtos import (
    DepositRecordInfo,
    LenderRedemptionRecordInfo,
    Payout,
    PayoutFailure,
    PoolStatus,
    TrancheSupplyInfo,
    YieldPayoutResult,
)
from liquidity_kernel.domain.protocols import Authorizer
from liquidity_kernel.domain.terms import LiquidityTerms
from liquidity_kernel.domain.values import (
    JUNIOR_TRANCHE,
    SENIOR_TRANCHE,
    ceil_div,
    checked_sub,
    mul_div,
    require_tranche,
    require_uint,
    tranche_name,
)
from liquidity_kernel.exceptions import (
    CustodyError,
    DepositAmountTooLowError,
    InsufficientSharesError,
    LenderNotApprovedError,
    LiquidityRequirementError,
    PoolNotClosedError,
    PoolNotOnError,
    RedemptionCancellationDisabledError,
    TooManyLendersError,
    TrancheCapExceededError,
    WithdrawTooEarlyError,
    ZeroAddressError,
    ZeroAmountError,
)
from liquidity_kernel.logging_config import LogContext, get_logger
from liquidity_kernel.models.tranche import (
    ApprovedLenderModel,
    EpochRedemptionSummaryModel,
    LenderDepositRecordModel,
    LenderRedemptionRecordModel,
    TrancheShareBalanceModel,
    TrancheStateModel,
)
from liquidity_kernel.selectors.pool_selector import PoolSelector
from liquidity_kernel.services.base import BaseService
from liquidity_kernel.services.custody_service import PoolSafeService, tranche_vault_account
from liquidity_kernel.services.pool_service import PoolService

logger = get_logger("services.tranche_vault")


class TrancheVaultService(BaseService[TrancheStateModel]):
    """
    Share ledger for one tranche.

    Contract:
        ``account`` is both the escrow holder for requested shares and the
        holding account for settled redemption cash.  It is also the
        identity the vault presents to PoolService, so the authorizer must
        grant it the orchestrator capability.

    Guarantees:
        - Every asset movement is paired with its share or record change
          inside the caller's transaction.
    """

    def __init__(
        self,
        session: Session,
        pool_id: str,
        tranche: int,
        *,
        pool: PoolService,
        safe: PoolSafeService,
        authorizer: Authorizer,
        clock: Clock,
    ):
        super().__init__(session, pool_id)
        self.tranche = require_tranche(tranche)
        self.pool = pool
        self.safe = safe
        self.ledger = safe.ledger
        self.authorizer = authorizer
        self.clock = clock
        self.selector = PoolSelector(session, pool_id)
        self.account = tranche_vault_account(pool_id, tranche)

    @property
    def name(self) -> str:
        return tranche_name(self.tranche)

    @property
    def terms(self) -> LiquidityTerms:
        # Read through the pool so LP config updates are seen immediately.
        return self.pool.terms.liquidity

    # -- rows ---------------------------------------------------------------

    def _supply_row(self) -> TrancheStateModel:
        model = self.selector.tranche_state_model(self.tranche)
        if model is None:
            model = TrancheStateModel(pool_id=self.pool_id, tranche=self.tranche, total_supply=0)
            self.session.add(model)
            self.session.flush()
        return model

    def _balance_row(self, holder: str) -> TrancheShareBalanceModel:
        model = self.selector.share_balance_model(self.tranche, holder)
        if model is None:
            model = TrancheShareBalanceModel(
                pool_id=self.pool_id, tranche=self.tranche, holder=holder, shares=0
            )
            self.session.add(model)
            self.session.flush()
        return model

    def _deposit_row(self, lender: str) -> LenderDepositRecordModel:
        model = self.selector.deposit_record_model(self.tranche, lender)
        if model is None:
            model = LenderDepositRecordModel(
                pool_id=self.pool_id,
                tranche=self.tranche,
                lender=lender,
                principal=0,
                reinvest_yield=True,
                last_deposit_ts=0,
            )
            self.session.add(model)
            self.session.flush()
        return model

    def _summary_row(self, epoch_id: int) -> EpochRedemptionSummaryModel:
        model = self.selector.redemption_summary_model(self.tranche, epoch_id)
        if model is None:
            model = EpochRedemptionSummaryModel(
                pool_id=self.pool_id,
                tranche=self.tranche,
                epoch_id=epoch_id,
                total_shares_requested=0,
                total_shares_processed=0,
                total_amount_processed=0,
            )
            self.session.add(model)
            self.session.flush()
        return model

    def _mint(self, holder: str, shares: int) -> None:
        balance = self._balance_row(holder)
        supply = self._supply_row()
        balance.shares = balance.shares + shares
        supply.total_supply = supply.total_supply + shares

    def _burn(self, holder: str, shares: int) -> None:
        balance = self._balance_row(holder)
        supply = self._supply_row()
        balance.shares = checked_sub(balance.shares, shares, "tranche_shares")
        supply.total_supply = checked_sub(supply.total_supply, shares, "tranche_total_supply")

    def _move_shares(self, sender: str, recipient: str, shares: int) -> None:
        source = self._balance_row(sender)
        if source.shares < shares:
            raise InsufficientSharesError(sender, shares, source.shares)
        target = self._balance_row(recipient)
        source.shares = source.shares - shares
        target.shares = target.shares + shares

    def _require_on(self) -> None:
        state = self.selector.pool_state()
        if state.status != PoolStatus.ON:
            raise PoolNotOnError(self.pool_id, state.status.value)

    def _current_epoch_id(self) -> int:
        epoch = self.selector.current_epoch()
        return epoch.epoch_id if epoch is not None else 0

    def _write_assets(self, tranche_assets: int) -> None:
        state = self.selector.pool_state()
        self.pool.set_tranche_assets(
            self.account,
            state.tranche_assets.with_value(self.tranche, tranche_assets),
            state.refresh_seq,
        )

    # -- reads --------------------------------------------------------------

    def total_supply(self) -> int:
        return self.selector.total_supply(self.tranche)

    def total_assets(self) -> int:
        return self.pool.current_tranche_assets()[self.tranche]

    def balance_of(self, holder: str) -> int:
        return self.selector.share_balance(self.tranche, holder)

    def convert_to_shares(self, assets: int) -> int:
        return convert_to_shares(assets, self.total_assets(), self.total_supply())

    def convert_to_assets(self, shares: int) -> int:
        return convert_to_assets(shares, self.total_assets(), self.total_supply())

    def total_assets_of(self, lender: str) -> int:
        """Current value of the lender's unescrowed shares."""
        return self.convert_to_assets(self.balance_of(lender))

    def supply_info(self) -> TrancheSupplyInfo:
        return TrancheSupplyInfo(
            tranche=self.tranche,
            total_supply=self.total_supply(),
            total_assets=self.total_assets(),
        )

    def deposit_record(self, lender: str) -> DepositRecordInfo | None:
        return self.selector.deposit_record(self.tranche, lender)

    def available_cap(self) -> int:
        """Assets this tranche can still take before hitting its caps."""
        assets = self.pool.current_tranche_assets()
        cap = self.terms.liquidity_cap
        available = cap - assets.total if cap > assets.total else 0
        if self.tranche == SENIOR_TRANCHE:
            senior_limit = assets.junior * self.terms.max_senior_junior_ratio
            senior_room = senior_limit - assets.senior if senior_limit > assets.senior else 0
            available = min(available, senior_room)
        return available

    # -- approvals ----------------------------------------------------------

    def is_approved_lender(self, lender: str) -> bool:
        return self.selector.is_approved_lender(self.tranche, lender)

    def add_approved_lender(self, actor: str, lender: str, reinvest_yield: bool = True) -> None:
        require_any_role(self.authorizer, (PoolRole.OPERATOR, PoolRole.POOL_OWNER), actor)
        if not lender:
            raise ZeroAddressError("lender")
        if self.is_approved_lender(lender):
            return
        limit = self.terms.max_lenders_per_tranche
        if len(self.selector.approved_lenders(self.tranche)) >= limit:
            raise TooManyLendersError(self.tranche, limit)

        self.session.add(
            ApprovedLenderModel(pool_id=self.pool_id, tranche=self.tranche, lender=lender)
        )
        record = self._deposit_row(lender)
        record.reinvest_yield = reinvest_yield
        self.session.flush()
        logger.info(
            "lender_approved",
            extra={"tranche": self.name, "lender": lender, "reinvest_yield": reinvest_yield},
        )

    def remove_approved_lender(self, actor: str, lender: str) -> None:
        require_any_role(self.authorizer, (PoolRole.OPERATOR, PoolRole.POOL_OWNER), actor)
        row = self.session.execute(
            select(ApprovedLenderModel).where(
                ApprovedLenderModel.pool_id == self.pool_id,
                ApprovedLenderModel.tranche == self.tranche,
                ApprovedLenderModel.lender == lender,
            )
        ).scalar_one_or_none()
        if row is None:
            raise LenderNotApprovedError(lender, self.tranche)
        self.session.delete(row)
        self.session.flush()
        logger.info("lender_removed", extra={"tranche": self.name, "lender": lender})

    def set_reinvest_yield(self, actor: str, lender: str, reinvest_yield: bool) -> None:
        require_any_role(self.authorizer, (PoolRole.OPERATOR, PoolRole.POOL_OWNER), actor)
        if not self.is_approved_lender(lender):
            raise LenderNotApprovedError(lender, self.tranche)
        record = self._deposit_row(lender)
        record.reinvest_yield = reinvest_yield
        self.session.flush()
        logger.info(
            "reinvest_yield_set",
            extra={"tranche": self.name, "lender": lender, "reinvest_yield": reinvest_yield},
        )

    # -- deposit ------------------------------------------------------------

    def deposit(self, lender: str, assets: int, receiver: str | None = None) -> int:
        """
        Deposit ``assets`` from ``lender`` and mint shares to ``receiver``.

        Preconditions:
            Pool ON; receiver approved; ``min_deposit_amount <= assets <=
            available_cap()``.

        Returns:
            Shares minted.
        """
        receiver = receiver or lender
        if assets == 0:
            raise ZeroAmountError("assets")
        require_uint(assets, "assets")
        self._require_on()
        if not self.is_approved_lender(receiver):
            raise LenderNotApprovedError(receiver, self.tranche)
        if assets < self.terms.min_deposit_amount:
            raise DepositAmountTooLowError(assets, self.terms.min_deposit_amount)
        available = self.available_cap()
        if assets > available:
            raise TrancheCapExceededError(self.tranche, assets, available)

        tranche_assets = self.total_assets()
        shares = shares_for_deposit(assets, tranche_assets, self.total_supply())

        self.safe.deposit(lender, assets)
        self._mint(receiver, shares)
        record = self._deposit_row(receiver)
        record.principal = record.principal + assets
        record.last_deposit_ts = self.clock.now_ts()
        self.session.flush()
        self._write_assets(tranche_assets + assets)

        logger.info(
            "tranche_deposit",
            extra={
                "tranche": self.name,
                "lender": lender,
                "receiver": receiver,
                "assets": assets,
                "shares": shares,
            },
        )
        return shares

    # -- redemption queue ---------------------------------------------------

    def _record_row(self, lender: str) -> LenderRedemptionRecordModel:
        """The lender's record, caught up on every closed epoch and persisted."""
        current = self._current_epoch_id()
        model = self.selector.lender_redemption_record_model(self.tranche, lender)
        if model is None:
            model = LenderRedemptionRecordModel(
                pool_id=self.pool_id,
                tranche=self.tranche,
                lender=lender,
                next_epoch_id_to_process=current,
                num_shares_requested=0,
                principal_requested=0,
                total_amount_processed=0,
                total_amount_withdrawn=0,
            )
            self.session.add(model)
            self.session.flush()
            return model

        updated = self._caught_up(LenderRedemptionRecordInfo.from_model(model), current)
        model.next_epoch_id_to_process = updated.next_epoch_id_to_process
        model.num_shares_requested = updated.num_shares_requested
        model.principal_requested = updated.principal_requested
        model.total_amount_processed = updated.total_amount_processed
        self.session.flush()
        return model

    def _caught_up(
        self, record: LenderRedemptionRecordInfo, current_epoch_id: int
    ) -> LenderRedemptionRecordInfo:
        if record.next_epoch_id_to_process >= current_epoch_id:
            return record
        summaries = self.selector.redemption_summaries(
            self.tranche, record.next_epoch_id_to_process, current_epoch_id
        )
        return catch_up_lender_record(record, summaries, current_epoch_id)

    def latest_redemption_record(self, lender: str) -> LenderRedemptionRecordInfo:
        """The lender's record as of now, without persisting the catch-up."""
        current = self._current_epoch_id()
        stored = self.selector.lender_redemption_record(self.tranche, lender)
        if stored is None:
            return LenderRedemptionRecordInfo(next_epoch_id_to_process=current)
        return self._caught_up(stored, current)

    def withdrawable_assets(self, lender: str) -> int:
        return self.latest_redemption_record(lender).withdrawable_amount

    def add_redemption_request(self, lender: str, shares: int) -> None:
        """
        Escrow ``shares`` for redemption in the current epoch.

        The principal attached to the shares moves from the deposit record
        to the redemption record in proportion to the lender's balance.
        """
        if shares == 0:
            raise ZeroAmountError("shares")
        require_uint(shares, "shares")
        self._require_on()

        deposit = self._deposit_row(lender)
        unlock_ts = deposit.last_deposit_ts + self.terms.withdrawal_lockout_seconds
        if self.clock.now_ts() < unlock_ts:
            raise WithdrawTooEarlyError(lender, deposit.last_deposit_ts, unlock_ts)

        balance = self.balance_of(lender)
        if shares > balance:
            raise InsufficientSharesError(lender, shares, balance)

        if self.tranche == JUNIOR_TRANCHE:
            required = self.pool.terms.admin.required_junior_assets(
                lender, self.terms.liquidity_cap
            )
            if required > 0:
                remaining = self.convert_to_assets(balance - shares)
                if remaining < required:
                    raise LiquidityRequirementError(lender, remaining, required)

        epoch_id = self._current_epoch_id()
        principal_portion = mul_div(deposit.principal, shares, balance)

        record = self._record_row(lender)
        record.num_shares_requested = record.num_shares_requested + shares
        record.principal_requested = record.principal_requested + principal_portion
        deposit.principal = deposit.principal - principal_portion

        summary = self._summary_row(epoch_id)
        summary.total_shares_requested = summary.total_shares_requested + shares
        self._move_shares(lender, self.account, shares)
        self.session.flush()

        logger.info(
            "redemption_requested",
            extra={
                "tranche": self.name,
                "lender": lender,
                "epoch_id": epoch_id,
                "shares": shares,
                "principal": principal_portion,
            },
        )

    def cancel_redemption_request(self, lender: str, shares: int) -> None:
        """
        Return ``shares`` still waiting in the open epoch to the lender.
        """
        if not self.terms.allow_redemption_cancellation:
            raise RedemptionCancellationDisabledError(lender)
        if shares == 0:
            raise ZeroAmountError("shares")
        require_uint(shares, "shares")
        self._require_on()

        record = self._record_row(lender)
        if shares > record.num_shares_requested:
            raise InsufficientSharesError(lender, shares, record.num_shares_requested)

        principal_returned = mul_div(
            record.principal_requested, shares, record.num_shares_requested
        )
        record.num_shares_requested = record.num_shares_requested - shares
        record.principal_requested = record.principal_requested - principal_returned
        deposit = self._deposit_row(lender)
        deposit.principal = deposit.principal + principal_returned

        epoch_id = self._current_epoch_id()
        summary = self._summary_row(epoch_id)
        summary.total_shares_requested = checked_sub(
            summary.total_shares_requested, shares, "total_shares_requested"
        )
        self._move_shares(self.account, lender, shares)
        self.session.flush()

        logger.info(
            "redemption_cancelled",
            extra={
                "tranche": self.name,
                "lender": lender,
                "epoch_id": epoch_id,
                "shares": shares,
                "principal": principal_returned,
            },
        )

    def disburse(self, lender: str, receiver: str | None = None) -> int:
        """Pay ``lender`` everything settled and not yet withdrawn."""
        receiver = receiver or lender
        record = self._record_row(lender)
        amount = record.total_amount_processed - record.total_amount_withdrawn
        if amount == 0:
            return 0
        record.total_amount_withdrawn = record.total_amount_withdrawn + amount
        self.session.flush()
        self.ledger.transfer(self.account, receiver, amount)
        logger.info(
            "redemption_disbursed",
            extra={"tranche": self.name, "lender": lender, "receiver": receiver, "amount": amount},
        )
        return amount

    # -- settlement hooks (epoch service) -----------------------------------

    def requested_shares(self, epoch_id: int) -> int:
        summary = self.selector.redemption_summary(self.tranche, epoch_id)
        return summary.total_shares_requested if summary is not None else 0

    def apply_settlement(self, epoch_id: int, outcome: RedemptionOutcome) -> None:
        """
        Burn processed shares from escrow, move their cash out of the safe
        into the vault account and close the epoch summary.

        Unprocessed shares roll into ``epoch_id + 1`` unchanged.
        """
        if outcome.shares_requested == 0:
            return
        summary = self._summary_row(epoch_id)
        if outcome.shares_processed > 0:
            self._burn(self.account, outcome.shares_processed)
            self.safe.withdraw(self.account, outcome.amount_processed)
            summary.total_shares_processed = outcome.shares_processed
            summary.total_amount_processed = outcome.amount_processed

        unprocessed = outcome.shares_unprocessed
        if unprocessed > 0:
            rolled = self._summary_row(epoch_id + 1)
            rolled.total_shares_requested = rolled.total_shares_requested + unprocessed
        self.session.flush()

        logger.info(
            "redemption_settled",
            extra={
                "tranche": self.name,
                "epoch_id": epoch_id,
                "shares_requested": outcome.shares_requested,
                "shares_processed": outcome.shares_processed,
                "amount_processed": outcome.amount_processed,
                "shares_rolled_over": unprocessed,
            },
        )

    # -- yield --------------------------------------------------------------

    def process_yield_for_lenders(self) -> YieldPayoutResult:
        """
        Pay each non-reinvesting lender the value of its shares above its
        principal, burning shares worth that yield (rounded up).

        Prices are fixed at the start of the run.  The tranche's reserved
        unprocessed profit is cleared afterwards.
        """
        tranche_assets = self.total_assets()
        supply = self.total_supply()
        paid: list[Payout] = []
        failed: list[PayoutFailure] = []

        if supply > 0 and tranche_assets > 0:
            for lender, shares in self.selector.share_holders(self.tranche):
                if lender == self.account:
                    continue
                record = self.selector.deposit_record_model(self.tranche, lender)
                if record is None or record.reinvest_yield:
                    continue
                assets = mul_div(shares, tranche_assets, supply)
                if assets <= record.principal:
                    continue
                amount = assets - record.principal
                shares_to_burn = min(ceil_div(amount * supply, tranche_assets), shares)
                try:
                    self.safe.withdraw(lender, amount)
                except CustodyError as exc:
                    failed.append(PayoutFailure(lender, amount, exc.code, str(exc)))
                    logger.warning(
                        "yield_payout_failed",
                        extra={"tranche": self.name, "lender": lender, "amount": amount},
                        exc_info=True,
                    )
                    continue
                self._burn(lender, shares_to_burn)
                paid.append(Payout(lender, amount, shares_to_burn))
                logger.info(
                    "yield_paid_out",
                    extra={
                        "tranche": self.name,
                        "lender": lender,
                        "amount": amount,
                        "shares": shares_to_burn,
                    },
                )

        result = YieldPayoutResult(paid=tuple(paid), failed=tuple(failed))
        if result.total_paid > 0:
            self.session.flush()
            self._write_assets(tranche_assets - result.total_paid)
        self.safe.clear_unprocessed_profit(self.tranche)
        return result

    # -- pool closure -------------------------------------------------------

    def withdraw_after_pool_closure(self, lender: str, receiver: str | None = None) -> int:
        """
        After closure: disburse settled redemptions, then redeem every
        remaining share of the lender (held and escrowed) at current price.

        Returns:
            Total assets paid to ``receiver``.
        """
        receiver = receiver or lender
        state = self.selector.pool_state()
        if not state.is_closed:
            raise PoolNotClosedError(self.pool_id, state.status.value)

        with LogContext.bind(tranche=self.name):
            disbursed = self.disburse(lender, receiver)

            record = self._record_row(lender)
            held = self.balance_of(lender)
            escrowed = record.num_shares_requested
            shares = held + escrowed
            if shares == 0:
                return disbursed

            tranche_assets = self.total_assets()
            amount = convert_to_assets(shares, tranche_assets, self.total_supply())

            if held > 0:
                self._burn(lender, held)
            if escrowed > 0:
                self._burn(self.account, escrowed)
                summary = self._summary_row(self._current_epoch_id())
                summary.total_shares_requested = checked_sub(
                    summary.total_shares_requested, escrowed, "total_shares_requested"
                )
            record.num_shares_requested = 0
            record.principal_requested = 0
            deposit = self._deposit_row(lender)
            deposit.principal = 0
            self.session.flush()

            self.safe.withdraw(receiver, amount)
            self._write_assets(tranche_assets - amount)

            logger.info(
                "withdrawn_after_pool_closure",
                extra={
                    "lender": lender,
                    "receiver": receiver,
                    "shares": shares,
                    "amount": amount,
                    "disbursed": disbursed,
                },
            )
        return disbursed + amount

    def sweep_unclaimed_redemptions(self, caller: str) -> int:
        """
        Return settled redemption cash that no lender can claim to the safe.

        Lender catch-up rounds processed shares up and amounts down, so when
        several lenders share a partly processed epoch the vault ends up
        holding cash and escrowed shares that belong to no record.  Once the
        pool is closed, the orphaned shares are burned and the orphaned cash
        goes back to the tranche's assets.

        Returns:
            The amount moved back into the safe.
        """
        require_any_role(self.authorizer, (PoolRole.POOL_OWNER, PoolRole.OPERATOR), caller)
        state = self.selector.pool_state()
        if not state.is_closed:
            raise PoolNotClosedError(self.pool_id, state.status.value)

        claimable = 0
        escrow_owned = 0
        for lender in self.selector.lenders_with_redemption_records(self.tranche):
            record = self._record_row(lender)
            claimable += record.total_amount_processed - record.total_amount_withdrawn
            escrow_owned += record.num_shares_requested
        orphan_shares = checked_sub(self.balance_of(self.account), escrow_owned, "escrow_shares")
        unclaimed = checked_sub(self.ledger.balance_of(self.account), claimable, "vault_cash")

        with LogContext.bind(tranche=self.name):
            if orphan_shares > 0:
                self._burn(self.account, orphan_shares)
                summary = self._summary_row(self._current_epoch_id())
                summary.total_shares_requested = checked_sub(
                    summary.total_shares_requested, orphan_shares, "total_shares_requested"
                )
                self.session.flush()
            if unclaimed > 0:
                self.safe.deposit(self.account, unclaimed)
                if self.total_supply() > 0:
                    self._write_assets(self.total_assets() + unclaimed)

            logger.info(
                "unclaimed_redemptions_swept",
                extra={"caller": caller, "amount": unclaimed, "shares_burned": orphan_shares},
            )
        return unclaimed
