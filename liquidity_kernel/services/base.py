"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel layer.  Services persist with ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    ATOMIC_CALLS -- services flush within the caller's transaction and never
        commit or roll back themselves.  The pool facade (or a test harness)
        owns the transaction, so a multi-service operation such as an epoch
        close commits completely or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from liquidity_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` and a ``pool_id`` from the caller;
        every row a service touches belongs to that pool.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only reporting queries -- those belong in
          ``liquidity_kernel/selectors/``.
    """

    def __init__(self, session: Session, pool_id: str):
        self.session = session
        self.pool_id = pool_id
