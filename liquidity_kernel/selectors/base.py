"""
Module: liquidity_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from liquidity_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries
        scoped to one pool, and return DTOs.
    """

    def __init__(self, session: Session, pool_id: str):
        self.session = session
        self.pool_id = pool_id
