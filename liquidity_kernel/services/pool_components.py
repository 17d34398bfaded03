"""
Pool component wiring.

Responsibility:
    Builds the service graph for one pool on one session: asset ledger and
    safe, credit source, cover services (most junior first), PoolService,
    one TrancheVaultService per tranche, and EpochService.  Also names the
    internal identities those services present to each other.

Architecture position:
    Kernel > Services -- composition only.  Every dependency is injected;
    nothing here reads configuration files or global state.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from liquidity_kernel.domain.authorization import PoolRole, RoleRegistry
from liquidity_kernel.domain.clock import Clock
from liquidity_kernel.domain.protocols import Authorizer, CreditSource, FeeSplitter
from liquidity_kernel.domain.terms import PoolTerms
from liquidity_kernel.domain.values import JUNIOR_TRANCHE, SENIOR_TRANCHE
from liquidity_kernel.services.credit_source_service import LedgerCreditSource
from liquidity_kernel.services.custody_service import (
    AssetLedgerService,
    PoolSafeService,
    tranche_vault_account,
)
from liquidity_kernel.services.epoch_service import EpochService
from liquidity_kernel.services.first_loss_cover_service import FirstLossCoverService
from liquidity_kernel.services.pool_service import PoolService
from liquidity_kernel.services.tranche_vault_service import TrancheVaultService


def orchestrator_id(pool_id: str) -> str:
    return f"{pool_id}:orchestrator"


def epoch_manager_id(pool_id: str) -> str:
    return f"{pool_id}:epoch_manager"


def internal_identities(pool_id: str) -> tuple[str, ...]:
    """Identities that need the orchestrator capability inside a pool."""
    return (
        orchestrator_id(pool_id),
        epoch_manager_id(pool_id),
        tranche_vault_account(pool_id, SENIOR_TRANCHE),
        tranche_vault_account(pool_id, JUNIOR_TRANCHE),
    )


def grant_internal_roles(registry: RoleRegistry, pool_id: str) -> None:
    for identity in internal_identities(pool_id):
        registry.grant(PoolRole.ORCHESTRATOR, identity)


@dataclass
class PoolComponents:
    """All services of one pool, bound to one session."""

    ledger: AssetLedgerService
    safe: PoolSafeService
    credit_source: CreditSource
    covers: tuple[FirstLossCoverService, ...]
    pool: PoolService
    vaults: dict[int, TrancheVaultService]
    epochs: EpochService

    @property
    def senior(self) -> TrancheVaultService:
        return self.vaults[SENIOR_TRANCHE]

    @property
    def junior(self) -> TrancheVaultService:
        return self.vaults[JUNIOR_TRANCHE]

    def cover(self, cover_id: str) -> FirstLossCoverService:
        for cover in self.covers:
            if cover.cover_id == cover_id:
                return cover
        raise KeyError(cover_id)


def build_pool_components(
    session: Session,
    terms: PoolTerms,
    *,
    authorizer: Authorizer,
    clock: Clock,
    fee_splitter: FeeSplitter,
    credit_source: CreditSource | None = None,
) -> PoolComponents:
    """
    Wire every service for ``terms.pool_id`` on ``session``.

    ``credit_source`` defaults to the session-backed LedgerCreditSource.
    """
    pool_id = terms.pool_id
    ledger = AssetLedgerService(session, pool_id)
    safe = PoolSafeService(session, pool_id, ledger)
    if credit_source is None:
        credit_source = LedgerCreditSource(session, pool_id, safe)

    covers = tuple(
        FirstLossCoverService(session, pool_id, cover_terms, safe, authorizer)
        for cover_terms in terms.covers
    )
    pool = PoolService(
        session,
        pool_id,
        terms,
        safe=safe,
        credit_source=credit_source,
        fee_splitter=fee_splitter,
        authorizer=authorizer,
        clock=clock,
        covers=covers,
        orchestrator_id=orchestrator_id(pool_id),
    )
    pool.load_persisted_terms()
    vaults = {
        tranche: TrancheVaultService(
            session, pool_id, tranche, pool=pool, safe=safe, authorizer=authorizer, clock=clock
        )
        for tranche in (SENIOR_TRANCHE, JUNIOR_TRANCHE)
    }
    epochs = EpochService(
        session,
        pool_id,
        pool=pool,
        vaults=vaults,
        safe=safe,
        authorizer=authorizer,
        clock=clock,
        manager_id=epoch_manager_id(pool_id),
    )
    return PoolComponents(
        ledger=ledger,
        safe=safe,
        credit_source=credit_source,
        covers=covers,
        pool=pool,
        vaults=vaults,
        epochs=epochs,
    )
