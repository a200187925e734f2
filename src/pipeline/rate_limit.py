from __future__ import annotations

import random
import time
from typing import Callable, Optional

from src.config import RateLimitSettings


class AdaptiveRateLimiter:
    """Jittered delay between outgoing navigations that grows under bursts and failures.

    State is owned by the instance; clock, RNG and sleeper are injectable so
    the delay math can be tested without sleeping.
    """

    def __init__(
        self,
        settings: Optional[RateLimitSettings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or RateLimitSettings()
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleeper
        self.last_request_ms: float = 0.0
        self.consecutive_requests = 0
        self.total_requests = 0
        self.failed_requests = 0

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def next_delay(self) -> float:
        """Delay in milliseconds before the next request (updates burst counter)."""
        s = self.settings
        delay = float(s.base_delay_ms)
        if self.consecutive_requests > s.burst_threshold:
            delay *= 1 + (self.consecutive_requests - s.burst_threshold) * s.burst_step
        delay += self._rng.uniform(0, s.jitter_ms)

        gap = self._now_ms() - self.last_request_ms
        if self.last_request_ms and gap < s.fast_gap_ms:
            delay += s.fast_penalty_ms + self._rng.uniform(0, s.fast_jitter_ms)
            self.consecutive_requests += 1
        else:
            self.consecutive_requests = max(0, self.consecutive_requests - 1)

        delay += self.failed_requests * s.failure_penalty_ms
        return delay

    def wait(self) -> float:
        delay = self.next_delay()
        self._sleep(delay / 1000.0)
        self.last_request_ms = self._now_ms()
        self.total_requests += 1
        return delay

    def record_failure(self) -> None:
        self.failed_requests += 1

    def reset(self) -> None:
        self.last_request_ms = 0.0
        self.consecutive_requests = 0
        self.total_requests = 0
        self.failed_requests = 0

    def stats(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "consecutive_requests": self.consecutive_requests,
            "failed_requests": self.failed_requests,
        }
