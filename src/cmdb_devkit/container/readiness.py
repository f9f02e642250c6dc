"""
Polling for the application's readiness marker.

:class:`ReadinessPoller` repeats a probe at a fixed interval until it
succeeds or the wait budget is used up. Sleeping is injectable so tests
never wait for real.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


POLL_INTERVAL = 5
START_WAIT = 180
RESTART_WAIT = 120


class Readiness(enum.Enum):
    READY = "ready"
    NOT_READY = "not ready"
    TIMED_OUT = "timed out"


class ReadinessPoller:
    """Bounded polling of a readiness probe.

    Parameters
    ----------
    probe : callable
        Returns True once the application is ready.
    max_wait : int
        Total time budget in seconds.
    interval : int
        Seconds between probes.
    sleep : callable
        Sleep function, ``time.sleep`` by default.
    on_tick : callable, optional
        Called after every unsuccessful probe with the seconds waited so far.
    """

    def __init__(
        self,
        probe: Callable[[], bool],
        max_wait: int,
        interval: int = POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.probe = probe
        self.max_wait = max_wait
        self.interval = interval
        self.sleep = sleep
        self.on_tick = on_tick
        self.waited = 0

    @property
    def max_attempts(self) -> int:
        """Number of probes that fit in the budget, rounded up."""
        return max(0, -(-self.max_wait // self.interval))

    def poll(self) -> Readiness:
        """Probe once."""
        return Readiness.READY if self.probe() else Readiness.NOT_READY

    def wait(self) -> Readiness:
        """Probe until ready or out of budget.

        Returns ``Readiness.READY`` or ``Readiness.TIMED_OUT``.
        """
        for _ in range(self.max_attempts):
            if self.poll() is Readiness.READY:
                logger.debug("Ready after %ds", self.waited)
                return Readiness.READY
            self.sleep(self.interval)
            self.waited += self.interval
            if self.on_tick is not None:
                self.on_tick(self.waited)
        logger.debug("No readiness marker after %ds", self.waited)
        return Readiness.TIMED_OUT
