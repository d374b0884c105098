"""
Startup Context - Screens and monitor layout, built once per process
====================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from .ddc import enumerate_buses
from .screens import Screen, build_screens, match_placements
from .topology import MonitorPlacement, get_monitor_placements

logger = logging.getLogger(__name__)


@dataclass
class DimmerContext:
    """Long-lived state shared by the fade controller and the poll loop."""
    screens: List[Screen]
    placements: List[MonitorPlacement] = field(default_factory=list)


def build_context(
    ignore_displays: Iterable[str] = (),
    brightness_overrides: Optional[Dict[str, int]] = None,
    retry_count: int = 1,
    sleep_multiplier: float = 0.5,
    list_buses: Callable[..., list] = enumerate_buses,
    query_placements: Callable[[], List[MonitorPlacement]] = get_monitor_placements,
) -> DimmerContext:
    """
    Discover screens and match them to the monitor layout.

    Raises:
        DDCError: If there is no I2C bus at all
        TopologyError: If the monitor layout can't be queried
    """
    handles = list_buses(retry_count=retry_count, sleep_multiplier=sleep_multiplier)
    screens = build_screens(handles, ignore_displays, brightness_overrides)
    placements = query_placements()
    match_placements(screens, placements)
    logger.info(f"Controlling {len(screens)} screen(s)")
    return DimmerContext(screens=screens, placements=placements)
