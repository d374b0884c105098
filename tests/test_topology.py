#!/usr/bin/env python3
"""
Tests for parsing the xrandr monitor layout.
"""

import subprocess
import unittest
from unittest.mock import patch

from fakes import make_edid

from fullscreen_dimmer.edid import parse_edid
from fullscreen_dimmer.exceptions import TopologyError
from fullscreen_dimmer.topology import (
    Extent, get_monitor_placements, parse_monitors, parse_output_edids,
)


def _hex_lines(edid: bytes) -> str:
    hex_str = edid.hex()
    return '\n'.join(f"\t\t{hex_str[i:i + 32]}" for i in range(0, len(hex_str), 32))


EDID_DP = make_edid(name="DELL U2415", serial="DP0001")
EDID_HDMI = make_edid(name="LG HDR 4K", manufacturer="GSM", serial="HD0002")

VERBOSE = f"""Screen 0: minimum 320 x 200, current 4480 x 1440, maximum 16384 x 16384
DP-1 connected primary 1920x1200+0+0 (0x48) normal (normal left inverted right x axis y axis) 518mm x 324mm
\tIdentifier: 0x42
\tTimestamp:  12345
\tEDID:
{_hex_lines(EDID_DP)}
\tBorderDimensions: 4
\t\tsupported: 4
  1920x1200 (0x48) 154.000MHz +HSync -VSync *current +preferred
HDMI-1 connected 2560x1440+1920+0 (0x4a) normal (normal left inverted right x axis y axis) 597mm x 336mm
\tEDID:
{_hex_lines(EDID_HDMI)}
DP-2 disconnected (normal left inverted right x axis y axis)
\tIdentifier: 0x44
"""

LISTMONITORS = """Monitors: 2
 0: +*DP-1 1920/518x1200/324+0+0  DP-1
 1: +HDMI-1 2560/597x1440/336+1920+0  HDMI-1
"""


class TestParseOutputEdids(unittest.TestCase):

    def test_collects_edid_per_output(self):
        edids = parse_output_edids(VERBOSE)
        self.assertEqual(edids, {"DP-1": EDID_DP, "HDMI-1": EDID_HDMI})

    def test_edid_at_end_of_output(self):
        text = f"DP-3 connected 800x600+0+0\n\tEDID: \n{_hex_lines(EDID_DP)}"
        self.assertEqual(parse_output_edids(text), {"DP-3": EDID_DP})

    def test_no_edids(self):
        self.assertEqual(parse_output_edids("DP-2 disconnected (normal)\n"), {})


class TestParseMonitors(unittest.TestCase):

    def test_placements_with_identities(self):
        placements = parse_monitors(LISTMONITORS, parse_output_edids(VERBOSE))

        self.assertEqual(len(placements), 2)
        dp, hdmi = placements
        self.assertEqual(dp.name, "DP-1")
        self.assertEqual(dp.extent, Extent(0, 0, 1920, 1200))
        self.assertEqual(dp.identities, frozenset({parse_edid(EDID_DP).identity}))
        self.assertEqual(hdmi.extent, Extent(1920, 0, 2560, 1440))
        self.assertEqual(hdmi.identities, frozenset({parse_edid(EDID_HDMI).identity}))

    def test_monitor_spanning_outputs(self):
        text = "Monitors: 1\n 0: +WALL 4480/1115x1440/336+0+0  DP-1 HDMI-1\n"
        wall, = parse_monitors(text, {"DP-1": EDID_DP, "HDMI-1": EDID_HDMI})
        self.assertEqual(wall.identities, frozenset({
            parse_edid(EDID_DP).identity,
            parse_edid(EDID_HDMI).identity,
        }))

    def test_negative_offsets(self):
        text = "Monitors: 1\n 0: +eDP-1 1366/344x768/194+-1366+0  eDP-1\n"
        laptop, = parse_monitors(text, {})
        self.assertEqual(laptop.extent, Extent(-1366, 0, 1366, 768))
        self.assertEqual(laptop.identities, frozenset())

    def test_bad_edid_leaves_identity_out(self):
        placements = parse_monitors(LISTMONITORS, {"DP-1": b'\x00' * 128})
        self.assertEqual(placements[0].identities, frozenset())


class TestGetMonitorPlacements(unittest.TestCase):

    @patch('fullscreen_dimmer.topology.subprocess.run')
    def test_queries_xrandr(self, mock_run):
        def fake_run(command, **kwargs):
            stdout = VERBOSE if '--verbose' in command else LISTMONITORS
            return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr="")
        mock_run.side_effect = fake_run

        placements = get_monitor_placements()

        self.assertEqual([p.name for p in placements], ["DP-1", "HDMI-1"])
        self.assertEqual(mock_run.call_count, 2)

    @patch('fullscreen_dimmer.topology.subprocess.run', side_effect=FileNotFoundError)
    def test_missing_xrandr(self, mock_run):
        with self.assertRaises(TopologyError):
            get_monitor_placements()

    @patch('fullscreen_dimmer.topology.subprocess.run')
    def test_xrandr_failure(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["xrandr"], stderr="Can't open display")
        with self.assertRaises(TopologyError):
            get_monitor_placements()


if __name__ == '__main__':
    unittest.main()
