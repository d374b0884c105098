"""
Display Topology - Monitor placements reported by the graphics server
=====================================================================
"""

import re
import subprocess
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from .edid import DisplayIdentity, parse_edid
from .exceptions import EDIDParseError, TopologyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Extent:
    """On-screen rectangle of a window or monitor."""
    x: int
    y: int
    width: int
    height: int

    def __str__(self):
        return f"{self.width}x{self.height}+{self.x}+{self.y}"


@dataclass(frozen=True)
class MonitorPlacement:
    """A RandR monitor: where it sits and which physical displays it drives."""
    extent: Extent
    identities: FrozenSet[DisplayIdentity] = field(default_factory=frozenset)
    name: str = ""


def _run_xrandr(*args: str) -> str:
    try:
        result = subprocess.run(
            ["xrandr"] + list(args),
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
    except FileNotFoundError as e:
        raise TopologyError("xrandr not found. Install with: sudo apt install x11-xserver-utils") from e
    except subprocess.SubprocessError as e:
        raise TopologyError(f"xrandr {' '.join(args)} failed: {e}") from e
    return result.stdout


def parse_output_edids(verbose_output: str) -> Dict[str, bytes]:
    """
    Collect the EDID of every output from ``xrandr --verbose``.

    Returns:
        Dictionary mapping output name (e.g. "DP-1") to raw EDID bytes
    """
    edids: Dict[str, bytes] = {}
    current_output = None
    hex_lines: List[str] = []

    def flush():
        if current_output and hex_lines:
            edids[current_output] = bytes.fromhex(''.join(hex_lines))
        hex_lines.clear()

    collecting = False
    for line in verbose_output.split('\n'):
        # Output headers are not indented: "DP-1 connected primary 2560x1440+0+0 ..."
        match = re.match(r'^(\S+)\s+(connected|disconnected)\b', line)
        if match:
            flush()
            current_output = match.group(1)
            collecting = False
            continue

        stripped = line.strip()
        if stripped == 'EDID:':
            hex_lines.clear()
            collecting = True
            continue

        if collecting:
            if re.fullmatch(r'[0-9a-fA-F]+', stripped):
                hex_lines.append(stripped)
                continue
            flush()
            collecting = False

    flush()
    return edids


def parse_monitors(listmonitors_output: str, edids: Dict[str, bytes]) -> List[MonitorPlacement]:
    """
    Build placements from ``xrandr --listmonitors`` output.

    Lines look like: `` 0: +*DP-1 2560/597x1440/336+0+0  DP-1``
    """
    placements = []
    for line in listmonitors_output.split('\n'):
        match = re.match(
            r'^\s*\d+:\s+[+*]*(\S+)\s+(\d+)/\d+x(\d+)/\d+\+(-?\d+)\+(-?\d+)\s*(.*)$',
            line
        )
        if not match:
            continue

        name = match.group(1)
        extent = Extent(
            x=int(match.group(4)),
            y=int(match.group(5)),
            width=int(match.group(2)),
            height=int(match.group(3)),
        )
        outputs = match.group(6).split() or [name]

        identities = set()
        for output in outputs:
            edid = edids.get(output)
            if edid is None:
                logger.debug(f"Monitor {name}: no EDID for output {output}")
                continue
            try:
                identities.update(parse_edid(edid).identities)
            except EDIDParseError as e:
                logger.debug(f"Monitor {name}: unparsable EDID on {output}: {e}")

        placement = MonitorPlacement(extent=extent, identities=frozenset(identities), name=name)
        logger.debug(f"Monitor {name}: {extent} outputs={outputs}")
        placements.append(placement)

    return placements


def get_monitor_placements() -> List[MonitorPlacement]:
    """
    Query the X server for the current monitor layout.

    Raises:
        TopologyError: If xrandr is unavailable or fails
    """
    edids = parse_output_edids(_run_xrandr("--verbose"))
    placements = parse_monitors(_run_xrandr("--listmonitors"), edids)
    logger.info(f"Found {len(placements)} monitor placement(s)")
    return placements
