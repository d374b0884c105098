"""
Fade Controller - Timed brightness interpolation across all screens
===================================================================
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from .context import DimmerContext
from .exceptions import FadeAbortedError
from .screens import Screen
from .topology import Extent
from .window_monitor import FullscreenState

logger = logging.getLogger(__name__)


class FadeDirection(Enum):
    DIM = "dim"
    RESTORE = "restore"


class FadeState(Enum):
    IDLE = "idle"
    FADING = "fading"


class WriteFailurePolicy(Enum):
    """What a failed brightness write does to the running fade."""
    ABORT = "abort"  # raise FadeAbortedError, brightness stays where it is
    DROP = "drop"    # stop controlling that screen, keep fading the rest


@dataclass(frozen=True)
class FadeTiming:
    """Fade duration and tick interval, in seconds."""
    duration: float = 1.0
    interval: float = 0.01

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Fade duration must be positive, got {self.duration}")
        if self.interval <= 0:
            raise ValueError(f"Fade interval must be positive, got {self.interval}")

    @classmethod
    def from_ms(cls, duration_ms: float, interval_ms: float) -> 'FadeTiming':
        return cls(duration=duration_ms / 1000.0, interval=interval_ms / 1000.0)


class FadeController:
    """
    Runs one fade whenever the fullscreen region changes.

    The region seen at the end of the last completed run is remembered; a new
    run starts only when the detector reports a different one. While dimming,
    the screen whose placement matches the fullscreen region is faded up to its
    default like every screen is on restore. Targets are always computed from
    default_brightness, not from where a screen happened to be.
    """

    def __init__(
        self,
        context: DimmerContext,
        timing: FadeTiming,
        on_write_failure: WriteFailurePolicy = WriteFailurePolicy.ABORT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.context = context
        self.timing = timing
        self.on_write_failure = on_write_failure
        self._clock = clock
        self._sleep = sleep

        self.state = FadeState.IDLE
        self.last_extent: Optional[Extent] = None
        self.runs = 0
        self._dropped: Set[Screen] = set()

    @property
    def active_screens(self) -> List[Screen]:
        return [s for s in self.context.screens if s not in self._dropped]

    def update(self, fullscreen: Optional[FullscreenState]) -> bool:
        """
        Feed the latest detector output.

        Returns:
            True if a fade was run
        """
        extent = fullscreen.extent if fullscreen is not None else None
        if extent == self.last_extent:
            return False

        if fullscreen is not None:
            logger.info(f"Fullscreen window {fullscreen.app_name!r} at {extent}, dimming")
            self.run(FadeDirection.DIM, extent)
        else:
            logger.info("Fullscreen window gone, restoring brightness")
            self.run(FadeDirection.RESTORE, None)

        self.last_extent = extent
        return True

    def _plan(self, direction: FadeDirection, reference: Optional[Extent]) -> List[Tuple[Screen, bool]]:
        """Pair each screen with whether it moves toward its default (True) or toward 0."""
        plan = []
        for screen in self.active_screens:
            exempt = (
                screen.placement is not None
                and reference is not None
                and screen.placement.extent == reference
            )
            if exempt:
                logger.debug(f"{screen.name} hosts the fullscreen window, not dimming it")
            plan.append((screen, direction is FadeDirection.RESTORE or exempt))
        return plan

    def _write(self, screen: Screen, value: int):
        if screen.set_brightness(value):
            return
        if self.on_write_failure is WriteFailurePolicy.DROP:
            logger.error(f"Failed to set {screen.name} to {value}, no longer controlling it")
            self._dropped.add(screen)
            return
        raise FadeAbortedError(screen.name, value)

    def run(self, direction: FadeDirection, reference: Optional[Extent]):
        """
        Fade every screen toward its directional target. Blocks for the whole duration.

        Raises:
            FadeAbortedError: On a failed write under the ABORT policy
        """
        self.state = FadeState.FADING
        plan = self._plan(direction, reference)
        duration = self.timing.duration
        writes = 0

        start = self._clock()
        while True:
            progress = (self._clock() - start) / duration

            for screen, toward_default in plan:
                if screen in self._dropped:
                    continue
                default = screen.default_brightness
                if toward_default:
                    if screen.current_brightness >= default:
                        continue
                    value = int(progress * default)
                else:
                    if screen.current_brightness <= 0:
                        continue
                    value = int((1.0 - progress) * default)

                # The last tick may overshoot progress 1.0
                value = max(0, min(default, value))
                logger.debug(f"{screen.name}: brightness {value} (progress {progress:.2f})")
                self._write(screen, value)
                writes += 1

            if progress >= 1.0:
                break
            self._sleep(self.timing.interval)

        self.runs += 1
        self.state = FadeState.IDLE
        logger.info(f"Fade ({direction.value}) finished: {writes} write(s)")
