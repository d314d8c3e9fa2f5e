"""Fixed-delay request throttling for the registry API."""

import time
from typing import Callable


class FixedDelayThrottle:
    """Sleep a fixed interval before every call after the first.

    The registry publishes no rate-limit headers, so the delay is
    unconditional rather than adaptive.
    """

    def __init__(self, delay: float, sleep: Callable[[float], None] = time.sleep) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.delay = delay
        self._sleep = sleep
        self._calls = 0

    @property
    def calls(self) -> int:
        return self._calls

    def wait(self) -> None:
        if self._calls and self.delay > 0:
            self._sleep(self.delay)
        self._calls += 1

    def reset(self) -> None:
        self._calls = 0
