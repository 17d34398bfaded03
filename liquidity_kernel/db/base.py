"""
Module: liquidity_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the string-backed integer type
    for fixed-width amounts, and the TrackedBase mixin for row timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - FIXED_WIDTH_RANGES: AmountString stores arbitrary-precision ints as
      decimal strings, so 96-bit tranche figures and 256-bit intermediates
      survive backends whose INTEGER is 64-bit.
    - UUID primary keys on every model.

Failure modes:
    - ValueError if a non-int or negative value is bound to an AmountString
      column.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class AmountString(TypeDecorator):
    """
    Non-negative integer stored as its decimal string.

    Contract:
        Round-trips any non-negative Python int exactly.  Values are not
        ordered by the database; never sort or range-filter on these columns.

    Guarantees:
        - process_bind_param: int -> str, rejecting negatives and non-ints.
        - process_result_value: str -> int.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"AmountString expects int, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"AmountString cannot store negative value {value}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is not None:
            return int(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (timestamps, epoch ids, sequence numbers).
          Amounts use ``liquidity_kernel.db.types.Amount`` instead.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with row timestamps.

    Guarantees:
        - created_at is set on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# Re-export UUID for convenience
UUID = PyUUID
