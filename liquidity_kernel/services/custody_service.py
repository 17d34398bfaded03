"""
CustodyService -- reference underlying-asset ledger and pool safe.

Responsibility:
    Holds underlying-asset balances per account for one pool and moves them
    between accounts.  ``PoolSafeService`` is the pool's safe: it implements
    the ``Custody`` protocol (deposit, withdraw, available liquidity and
    per-tranche unprocessed-profit reservations) on top of the ledger.

Architecture position:
    Kernel > Services -- imperative shell.  Stands in for the external
    custody mechanism; any object implementing ``Custody`` can replace the
    safe.

Invariants enforced:
    - Balances never go negative (InsufficientBalanceError before mutation).
    - Blocked recipients reject incoming transfers (TransferRejectedError)
      before any balance changes, so a failed payout leaves no trace.
    - Reserved unprocessed profit never exceeds the safe balance.

Failure modes:
    - TransferRejectedError, InsufficientBalanceError,
      InsufficientLiquidityError.
    - ZeroAddressError / AmountOutOfRangeError on malformed input.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from liquidity_kernel.domain.values import TRANCHES, require_tranche, require_uint
from liquidity_kernel.exceptions import (
    InsufficientBalanceError,
    InsufficientLiquidityError,
    TransferRejectedError,
    ZeroAddressError,
)
from liquidity_kernel.logging_config import get_logger
from liquidity_kernel.models.custody import AssetAccountModel, UnprocessedProfitModel
from liquidity_kernel.services.base import BaseService

logger = get_logger("services.custody")


# ---------------------------------------------------------------------------
# Holding accounts owned by the pool itself
# ---------------------------------------------------------------------------


def safe_account(pool_id: str) -> str:
    return f"{pool_id}:safe"


def tranche_vault_account(pool_id: str, tranche: int) -> str:
    """Account holding a tranche's escrowed shares and processed redemptions."""
    return f"{pool_id}:tranche:{require_tranche(tranche)}"


def cover_account(pool_id: str, cover_id: str) -> str:
    return f"{pool_id}:cover:{cover_id}"


def fee_account(pool_id: str) -> str:
    return f"{pool_id}:fees"


class AssetLedgerService(BaseService[AssetAccountModel]):
    """
    Underlying-asset balances for one pool.

    Contract:
        Every movement is a transfer between two accounts, except ``mint``
        and ``burn`` which model assets entering or leaving the system
        (borrower repayments, write-offs, test funding).
    """

    def _get(self, account: str) -> AssetAccountModel | None:
        return self.session.execute(
            select(AssetAccountModel).where(
                AssetAccountModel.pool_id == self.pool_id,
                AssetAccountModel.account == account,
            )
        ).scalar_one_or_none()

    def _get_or_create(self, account: str) -> AssetAccountModel:
        if not account:
            raise ZeroAddressError("account")
        model = self._get(account)
        if model is None:
            model = AssetAccountModel(
                pool_id=self.pool_id, account=account, balance=0, blocked=False
            )
            self.session.add(model)
            self.session.flush()
        return model

    def balance_of(self, account: str) -> int:
        model = self._get(account)
        return model.balance if model is not None else 0

    def is_blocked(self, account: str) -> bool:
        model = self._get(account)
        return model is not None and model.blocked

    def set_blocked(self, account: str, blocked: bool) -> None:
        model = self._get_or_create(account)
        model.blocked = blocked
        self.session.flush()
        logger.info(
            "asset_account_blocked" if blocked else "asset_account_unblocked",
            extra={"account": account},
        )

    def mint(self, account: str, amount: int) -> None:
        require_uint(amount, "amount")
        model = self._get_or_create(account)
        model.balance = model.balance + amount
        self.session.flush()

    def burn(self, account: str, amount: int) -> None:
        require_uint(amount, "amount")
        model = self._get_or_create(account)
        if model.balance < amount:
            raise InsufficientBalanceError(account, amount, model.balance)
        model.balance = model.balance - amount
        self.session.flush()

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            TransferRejectedError: recipient is blocked.
            InsufficientBalanceError: sender balance is too low.
        """
        require_uint(amount, "amount")
        if not sender:
            raise ZeroAddressError("sender")
        if not recipient:
            raise ZeroAddressError("recipient")
        if amount == 0:
            return

        source = self._get_or_create(sender)
        target = self._get_or_create(recipient)
        if target.blocked:
            raise TransferRejectedError(recipient, amount)
        if source.balance < amount:
            raise InsufficientBalanceError(sender, amount, source.balance)

        source.balance = source.balance - amount
        target.balance = target.balance + amount
        self.session.flush()

        logger.debug(
            "asset_transferred",
            extra={"sender": sender, "recipient": recipient, "amount": amount},
        )


class PoolSafeService(BaseService[UnprocessedProfitModel]):
    """
    The pool safe: reference ``Custody`` implementation.

    Guarantees:
        - ``get_available_liquidity() == balance - sum(unprocessed profit)``,
          floored at zero.
        - ``withdraw`` may draw on reserved profit (yield payouts do exactly
          that); redemption sizing uses ``get_available_liquidity``.
    """

    def __init__(self, session: Session, pool_id: str, ledger: AssetLedgerService | None = None):
        super().__init__(session, pool_id)
        self.ledger = ledger or AssetLedgerService(session, pool_id)
        self.account = safe_account(pool_id)

    def deposit(self, from_account: str, amount: int) -> None:
        """Pull ``amount`` from ``from_account`` into the safe."""
        self.ledger.transfer(from_account, self.account, amount)

    def withdraw(self, to_account: str, amount: int) -> None:
        """Send ``amount`` from the safe to ``to_account``."""
        self.ledger.transfer(self.account, to_account, amount)

    def get_pool_balance(self) -> int:
        return self.ledger.balance_of(self.account)

    def get_available_liquidity(self) -> int:
        reserved = sum(self.unprocessed_profit(t) for t in TRANCHES)
        balance = self.get_pool_balance()
        return balance - reserved if balance > reserved else 0

    def _profit_row(self, tranche: int) -> UnprocessedProfitModel:
        require_tranche(tranche)
        model = self.session.execute(
            select(UnprocessedProfitModel).where(
                UnprocessedProfitModel.pool_id == self.pool_id,
                UnprocessedProfitModel.tranche == tranche,
            )
        ).scalar_one_or_none()
        if model is None:
            model = UnprocessedProfitModel(pool_id=self.pool_id, tranche=tranche, amount=0)
            self.session.add(model)
            self.session.flush()
        return model

    def unprocessed_profit(self, tranche: int) -> int:
        return self._profit_row(tranche).amount

    def reserve_unprocessed_profit(self, tranche: int, amount: int) -> None:
        require_uint(amount, "amount")
        row = self._profit_row(tranche)
        reserved = sum(self.unprocessed_profit(t) for t in TRANCHES) + amount
        balance = self.get_pool_balance()
        if reserved > balance:
            raise InsufficientLiquidityError(reserved, balance)
        row.amount = row.amount + amount
        self.session.flush()

    def clear_unprocessed_profit(self, tranche: int) -> None:
        row = self._profit_row(tranche)
        row.amount = 0
        self.session.flush()
