"""
Poll Loop - Drive the detector and the fade controller
======================================================
"""

import logging
import time
from typing import Callable

from .fade import FadeController
from .window_monitor import FullscreenDetector

logger = logging.getLogger(__name__)


class PollLoop:
    """
    Polls the detector at a fixed interval and hands each result to the fade
    controller. A fade blocks the loop, so changes during a fade are only seen
    on the next tick after it.
    """

    def __init__(
        self,
        detector: FullscreenDetector,
        controller: FadeController,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {poll_interval}")
        self.detector = detector
        self.controller = controller
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._running = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> bool:
        """Run one detection. Returns True if it triggered a fade."""
        self.ticks += 1
        return self.controller.update(self.detector.detect())

    def run(self):
        """Poll until stop() is called. Fade failures propagate."""
        self._running = True
        logger.info(f"Polling for fullscreen windows every {self.poll_interval * 1000:.0f}ms")
        while self._running:
            self.tick()
            if not self._running:
                break
            self._sleep(self.poll_interval)
        logger.info("Poll loop stopped")

    def stop(self):
        self._running = False
