"""
Per-key minimum-interval throttle for verification entry points.

Why: Code requests send email and token scans probe child records; both must
bound retry storms. The throttle is an explicit object handed to the use
cases so tests can inject a deterministic clock and separate app instances do
not share hidden state.

Concurrency: read-then-decide without a lock. Two concurrent calls with the
same key may both pass; that admits slightly more than the nominal rate and is
acceptable. For multi-process deployments, replace with a shared store.
"""
from __future__ import annotations

from typing import Callable, Dict, Protocol
import logging
import time

logger = logging.getLogger("schoolgate.verification.throttle")


def _now_ms() -> int:
    return int(time.time() * 1000)


class Throttle(Protocol):
    def should_allow(self, key: str, min_interval_ms: int) -> bool: ...

    def retry_after_ms(self, key: str, min_interval_ms: int) -> int: ...


class MinIntervalThrottle:
    """In-memory last-seen map (development and single-process use)."""

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._last_seen: Dict[str, int] = {}

    def should_allow(self, key: str, min_interval_ms: int) -> bool:
        now = int(self._clock())
        last = self._last_seen.get(key)
        if last is None or now - last >= min_interval_ms:
            self._last_seen[key] = now
            return True
        logger.warning("Throttled key=%s wait_ms=%d", key, min_interval_ms - (now - last))
        return False

    def retry_after_ms(self, key: str, min_interval_ms: int) -> int:
        last = self._last_seen.get(key)
        if last is None:
            return 0
        return max(0, min_interval_ms - (int(self._clock()) - last))

    def clear(self, key: str) -> None:
        self._last_seen.pop(key, None)

    def clear_all(self) -> None:
        self._last_seen.clear()


__all__ = ["MinIntervalThrottle", "Throttle"]
