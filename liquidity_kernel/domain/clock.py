"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that policy, service and engine code
    never call ``time.time()`` or ``datetime.now()`` directly. All pool
    timestamps are whole seconds since the Unix epoch (64-bit range).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    FIXED_WIDTH_RANGES -- ``now_ts`` rejects times outside the 64-bit range.

Failure modes:
    - DeterministicClock.set_time raises ValueError if moved backwards while
      ``monotonic`` is set.

Audit relevance:
    Senior yield accrual and epoch end times are pure functions of the
    injected clock, so any settlement can be replayed exactly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from liquidity_kernel.domain.values import require_uint64


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``now_ts()`` returns integer seconds since the Unix epoch.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def now_ts(self) -> int:
        """Get the current time as whole seconds since the Unix epoch."""
        return require_uint64(int(self.now().timestamp()), "timestamp")


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Non-goals:
        Not suitable for deterministic replay or testing.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``advance_days()`` moves by whole days, which is how yield and
          lockout tests usually think about time.
    """

    def __init__(self, fixed_time: datetime | None = None, *, monotonic: bool = True):
        """
        Args:
            fixed_time: Starting time. Defaults to 2024-01-01T12:00:00Z.
            monotonic: If True, ``set_time`` refuses to move backwards.
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0
        self._monotonic = monotonic

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        if self._monotonic and time < self.now():
            raise ValueError(
                f"DeterministicClock cannot move backwards to {time.isoformat()}"
            )
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        if seconds < 0:
            raise ValueError("DeterministicClock cannot advance by a negative amount")
        self._advance_seconds += seconds

    def advance_days(self, days: int) -> None:
        self.advance(days * 86400)
