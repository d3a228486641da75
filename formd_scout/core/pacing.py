"""
Request pacing shared by every outbound call.

SEC asks clients to stay under 10 requests per second. One gate instance
is shared by every FetchClient in the process, so spacing holds globally
rather than per endpoint.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from formd_scout.core.config import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class PacingGate:
    """
    Enforces a minimum interval between consecutive outbound requests.

    The "last request instant" is read and written under an asyncio.Lock,
    so concurrent callers are serialized through the gate in arrival order.
    Clock and sleep are injectable for tests.
    """

    DEFAULT_MIN_INTERVAL: float = 0.15

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def last_request_time(self) -> Optional[float]:
        return self._last_request_time

    async def wait(self) -> float:
        """
        Block until a request may be sent, then claim the slot.

        Returns:
            Seconds spent waiting (0.0 if the gate was already open)
        """
        async with self._lock:
            waited = 0.0
            if self._last_request_time is not None:
                elapsed = self._clock() - self._last_request_time
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(f"Pacing: waiting {waited:.3f}s")
                    await self._sleep(waited)
            self._last_request_time = self._clock()
            return waited


# Process-wide gate shared by every FetchClient built from settings
_gate: Optional[PacingGate] = None


def get_pacing_gate() -> PacingGate:
    """
    Get or create the global pacing gate.

    The interval comes from settings on first use; later calls return the
    same instance so concurrent ingestion runs share one "last request instant".
    """
    global _gate
    if _gate is None:
        _gate = PacingGate(min_interval=get_settings().sec_rate_limit_delay)
    return _gate


def reset_pacing_gate() -> None:
    """Forget the global gate (tests, settings changes)."""
    global _gate
    _gate = None
