"""Clock abstraction injected into every cache tier.

TTL bookkeeping reads ``time()`` (seconds, monotonic for the system clock);
staleness windows and response timestamps read ``now()`` (aware UTC datetime).
"""

from datetime import UTC, datetime
from time import monotonic
from typing import Protocol


class Clock(Protocol):
    def time(self) -> float: ...

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock for production use."""

    def time(self) -> float:
        return monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)
