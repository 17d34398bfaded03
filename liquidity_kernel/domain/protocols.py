"""
Protocols -- Interfaces of the pool's external collaborators.

Responsibility:
    Declares the structural interfaces the kernel consumes: the custody
    safe holding underlying assets, the credit source that produces
    profit/loss/recovery figures, the platform fee splitter and the
    authorization gate. Reference implementations live in
    ``liquidity_kernel.services`` and ``liquidity_kernel.domain.authorization``;
    callers may supply their own.

Architecture position:
    Kernel > Domain -- interfaces only, zero I/O.
"""

from __future__ import annotations

from typing import Protocol

from liquidity_kernel.domain.values import ProfitLossRecovery


class Custody(Protocol):
    """Deposit/withdraw-capable safe holding the pool's underlying assets."""

    def deposit(self, from_account: str, amount: int) -> None: ...

    def withdraw(self, to_account: str, amount: int) -> None: ...

    def get_available_liquidity(self) -> int: ...

    def get_pool_balance(self) -> int: ...

    def reserve_unprocessed_profit(self, tranche: int, amount: int) -> None: ...

    def clear_unprocessed_profit(self, tranche: int) -> None: ...

    def unprocessed_profit(self, tranche: int) -> int: ...


class CreditSource(Protocol):
    """Lending subsystem feeding the waterfall.

    ``get_accrued_profit_loss_recovery`` has read-and-reset semantics: a
    second call without new lending activity returns zeros.
    """

    def get_accrued_profit_loss_recovery(self) -> ProfitLossRecovery: ...

    def total_outstanding_principal(self) -> int: ...


class FeeSplitter(Protocol):
    """Deducts protocol, pool-owner and EA fees from gross profit."""

    def apply_platform_fees(self, profit: int) -> int: ...


class Authorizer(Protocol):
    """Boolean capability checks. No role storage is implied."""

    def is_pool_owner(self, actor: str) -> bool: ...

    def is_operator(self, actor: str) -> bool: ...

    def is_orchestrator(self, actor: str) -> bool: ...
