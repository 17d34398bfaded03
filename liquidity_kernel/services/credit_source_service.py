"""
CreditSourceService -- reference lending subsystem feeding the waterfall.

Responsibility:
    Records borrower activity (drawdowns, payments, write-offs, recoveries),
    moves the corresponding cash through the pool safe, and accrues the
    profit, loss and loss-recovery figures the pool pulls on refresh.

Architecture position:
    Kernel > Services -- imperative shell.  Implements the ``CreditSource``
    protocol.  Loan origination, pricing and underwriting are outside the
    kernel; this service only reports their results.

Invariants enforced:
    - Read-and-reset: ``get_accrued_profit_loss_recovery`` zeroes the
      accrual buffer in the same transaction it reads it, so a refresh
      never applies the same figures twice.

Failure modes:
    - InsufficientBalanceError when drawing down more than the safe holds
      or when a borrower pays with funds it does not have.
    - ArithmeticUnderflowError when writing off more than is outstanding.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from liquidity_kernel.domain.values import ProfitLossRecovery, checked_sub, require_uint
from liquidity_kernel.logging_config import get_logger
from liquidity_kernel.models.custody import PnLAccrualModel
from liquidity_kernel.services.base import BaseService
from liquidity_kernel.services.custody_service import PoolSafeService

logger = get_logger("services.credit_source")


class LedgerCreditSource(BaseService[PnLAccrualModel]):
    """
    Session-backed credit source.

    Contract:
        Cash moves immediately (drawdown: safe -> borrower; payment and
        recovery: borrower -> safe).  Profit, loss and recovery figures
        accumulate until the next read.
    """

    def __init__(self, session: Session, pool_id: str, safe: PoolSafeService | None = None):
        super().__init__(session, pool_id)
        self.safe = safe or PoolSafeService(session, pool_id)

    def _accrual(self) -> PnLAccrualModel:
        model = self.session.execute(
            select(PnLAccrualModel).where(PnLAccrualModel.pool_id == self.pool_id)
        ).scalar_one_or_none()
        if model is None:
            model = PnLAccrualModel(
                pool_id=self.pool_id,
                profit=0,
                loss=0,
                loss_recovery=0,
                outstanding_principal=0,
            )
            self.session.add(model)
            self.session.flush()
        return model

    def drawdown(self, borrower: str, amount: int) -> None:
        """Lend ``amount`` out of the safe."""
        require_uint(amount, "amount")
        self.safe.withdraw(borrower, amount)
        accrual = self._accrual()
        accrual.outstanding_principal = accrual.outstanding_principal + amount
        self.session.flush()
        logger.info("credit_drawdown", extra={"borrower": borrower, "amount": amount})

    def make_payment(self, borrower: str, principal: int = 0, profit: int = 0) -> None:
        """Borrower repays ``principal`` and pays ``profit`` (interest and fees)."""
        require_uint(principal, "principal")
        require_uint(profit, "profit")
        accrual = self._accrual()
        outstanding = checked_sub(accrual.outstanding_principal, principal, "outstanding_principal")
        self.safe.deposit(borrower, principal + profit)
        accrual.outstanding_principal = outstanding
        accrual.profit = accrual.profit + profit
        self.session.flush()
        logger.info(
            "credit_payment_received",
            extra={"borrower": borrower, "principal": principal, "profit": profit},
        )

    def write_off(self, amount: int) -> None:
        """Recognize ``amount`` of outstanding principal as lost."""
        require_uint(amount, "amount")
        accrual = self._accrual()
        accrual.outstanding_principal = checked_sub(
            accrual.outstanding_principal, amount, "outstanding_principal"
        )
        accrual.loss = accrual.loss + amount
        self.session.flush()
        logger.info("credit_written_off", extra={"amount": amount})

    def recover(self, borrower: str, amount: int) -> None:
        """Collect ``amount`` on previously written-off principal."""
        require_uint(amount, "amount")
        self.safe.deposit(borrower, amount)
        accrual = self._accrual()
        accrual.loss_recovery = accrual.loss_recovery + amount
        self.session.flush()
        logger.info("credit_loss_recovered", extra={"borrower": borrower, "amount": amount})

    def get_accrued_profit_loss_recovery(self) -> ProfitLossRecovery:
        accrual = self._accrual()
        result = ProfitLossRecovery(
            profit=accrual.profit,
            loss=accrual.loss,
            loss_recovery=accrual.loss_recovery,
        )
        accrual.profit = 0
        accrual.loss = 0
        accrual.loss_recovery = 0
        self.session.flush()
        return result

    def total_outstanding_principal(self) -> int:
        return self._accrual().outstanding_principal
