"""
Central Clock
Shared time source for the experience timer and the cycle cadence
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class CentralClock:
    """
    Single time reference shared by the orchestrator and the pipeline

    Two timelines:
    - now(): UTC wall time for started_at and event timestamps. Never goes
      backwards, even if the system clock is stepped.
    - monotonic(): seconds for scheduling heartbeat cycles and ticks.

    Tests substitute a subclass that overrides now() to drive the timer.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last_timestamp: Optional[datetime] = None

    def now(self) -> datetime:
        """
        Current UTC timestamp, non-decreasing across calls

        Returns:
            datetime: Timezone-aware UTC timestamp
        """
        with self._lock:
            current = datetime.now(timezone.utc)
            if self._last_timestamp is not None and current < self._last_timestamp:
                logger.debug("System clock stepped back, holding last timestamp")
                current = self._last_timestamp
            self._last_timestamp = current
            return current

    def monotonic(self) -> float:
        """Seconds on the scheduling timeline (arbitrary origin)"""
        return time.monotonic()

    def seconds_since(self, start: datetime) -> float:
        """
        Seconds elapsed between a previous timestamp and now

        Args:
            start: Timestamp previously returned by now()

        Returns:
            float: Elapsed seconds (never negative)
        """
        elapsed: timedelta = self.now() - start
        return max(0.0, elapsed.total_seconds())

    def __repr__(self):
        last = self._last_timestamp.isoformat() if self._last_timestamp else None
        return f"<CentralClock(last={last})>"
