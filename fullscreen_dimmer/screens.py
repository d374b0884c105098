"""
Screen Registry - Controllable displays and their placement on the desktop
==========================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from .edid import DisplayIdentity, EDIDInfo, find_edid, parse_edid
from .exceptions import DDCError, EDIDParseError
from .topology import MonitorPlacement

logger = logging.getLogger(__name__)

# Adapters that never carry an external monitor
IGNORED_BUS_PREFIXES = ("SMBus", "soc:i2cdsi", "smu", "mac-io", "u4")

# Product name -> default ("on") brightness, for panels whose maximum is too bright
BRIGHTNESS_OVERRIDES: Dict[str, int] = {}

FALLBACK_BRIGHTNESS = (0, 100)


def read_edid(raw: bytes) -> EDIDInfo:
    """Parse an identity read that may contain bytes around the EDID block."""
    return parse_edid(find_edid(raw))


@dataclass(eq=False)
class Screen:
    """A controllable display."""
    identity: DisplayIdentity
    name: str
    default_brightness: int
    current_brightness: int
    handle: Any = field(repr=False)
    placement: Optional[MonitorPlacement] = None

    def attach_placement(self, placement: MonitorPlacement):
        """Record the monitor placement this screen shows up as. Only once."""
        if self.placement is not None:
            raise ValueError(f"{self.name} already matched to {self.placement.name}")
        self.placement = placement

    def set_brightness(self, value: int) -> bool:
        """
        Write brightness to the device.

        Returns:
            True on success; current_brightness is only updated then
        """
        if not self.handle.set_brightness(value):
            return False
        self.current_brightness = value
        return True

    def __str__(self):
        return f"{self.name} [{getattr(self.handle, 'bus_name', '')}]"


def build_screens(
    handles: Iterable[Any],
    ignore_displays: Iterable[str] = (),
    overrides: Optional[Dict[str, int]] = None,
    parser: Callable[[bytes], EDIDInfo] = read_edid,
) -> List[Screen]:
    """
    Turn raw bus handles into the list of controllable screens.

    Args:
        handles: Objects with ``bus_name``, ``read_identity()``,
            ``get_brightness()`` and ``set_brightness()``
        ignore_displays: Product names to leave alone entirely
        overrides: Product name -> default brightness (merged over BRIGHTNESS_OVERRIDES)
        parser: EDID parser, returns EDIDInfo

    Returns:
        Screens in handle order
    """
    ignored = set(ignore_displays)
    brightness_overrides = {**BRIGHTNESS_OVERRIDES, **(overrides or {})}
    screens = []

    for handle in handles:
        bus_name = getattr(handle, 'bus_name', '') or ''
        if bus_name.startswith(IGNORED_BUS_PREFIXES):
            logger.debug(f"Skipping {handle!r}: non-display bus")
            continue

        try:
            info = parser(handle.read_identity())
        except (DDCError, OSError) as e:
            logger.debug(f"Skipping {handle!r}: identity read failed: {e}")
            continue
        except EDIDParseError as e:
            logger.debug(f"Skipping {handle!r}: {e}")
            continue

        name = info.product_name
        if not name:
            logger.debug(f"Skipping {handle!r}: EDID has no product name")
            continue
        if name in ignored:
            logger.info(f"Ignoring display {name}")
            continue

        try:
            current, maximum = handle.get_brightness()
        except DDCError as e:
            current, maximum = FALLBACK_BRIGHTNESS
            logger.warning(f"{name}: could not read brightness ({e}), assuming {current}/{maximum}")

        default = min(brightness_overrides.get(name, maximum), maximum)
        screen = Screen(
            identity=info.identity,
            name=name,
            default_brightness=default,
            current_brightness=max(0, current),
            handle=handle,
        )
        logger.info(f"Screen {screen}: brightness {current}/{maximum}, default {default}")
        screens.append(screen)

    return screens


def match_placements(screens: Iterable[Screen], placements: List[MonitorPlacement]) -> None:
    """Attach to each screen the first placement driving the same physical display."""
    for screen in screens:
        for placement in placements:
            if screen.identity in placement.identities:
                screen.attach_placement(placement)
                logger.info(f"Screen {screen.name} is monitor {placement.name} at {placement.extent}")
                break
        else:
            logger.warning(f"Screen {screen.name} not found in monitor layout, it will never be exempt")
