"""
Fullscreen Dimmer - DDC/CI based monitor dimming for Linux
==========================================================

Fade external monitors down while a fullscreen window is shown and back up
when it goes away, leaving the monitor that shows the window at its default
brightness.
"""

__version__ = "1.0.0"
__author__ = "Fullscreen Dimmer"

from .config import Config
from .context import DimmerContext, build_context
from .fade import FadeController, FadeDirection, FadeTiming
from .poll_loop import PollLoop
from .screens import Screen, build_screens, match_placements
from .window_monitor import FullscreenDetector, FullscreenState

__all__ = [
    "Config",
    "DimmerContext",
    "build_context",
    "FadeController",
    "FadeDirection",
    "FadeTiming",
    "PollLoop",
    "Screen",
    "build_screens",
    "match_placements",
    "FullscreenDetector",
    "FullscreenState",
]
