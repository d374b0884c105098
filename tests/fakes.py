"""
Test doubles for buses, windows and time.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fullscreen_dimmer.edid import EDID_HEADER
from fullscreen_dimmer.exceptions import DDCError, WindowQueryError
from fullscreen_dimmer.window_monitor import WindowHandle, WindowManager


def _descriptor(tag: int, text: str) -> bytes:
    body = (text.encode('ascii') + b'\n').ljust(13, b' ')[:13]
    return bytes([0, 0, 0, tag, 0]) + body


def make_edid(
    name="TEST MONITOR",
    manufacturer="DEL",
    product_code=0x1234,
    serial_number=1,
    serial="SN001",
    week=10,
    year=2020,
) -> bytes:
    """Build a valid 128 byte EDID base block."""
    mfg = 0
    for ch in manufacturer:
        mfg = (mfg << 5) | (ord(ch) - 64)

    block = bytearray(128)
    block[0:8] = EDID_HEADER
    block[8:10] = mfg.to_bytes(2, 'big')
    block[10:12] = product_code.to_bytes(2, 'little')
    block[12:16] = serial_number.to_bytes(4, 'little')
    block[16] = week
    block[17] = year - 1990
    block[18] = 1
    block[19] = 4

    dummy = bytes([0, 0, 0, 0x10, 0]) + bytes(13)
    descriptors = [
        _descriptor(0xfc, name) if name else dummy,
        _descriptor(0xff, serial) if serial else dummy,
        dummy,
        dummy,
    ]
    for i, descriptor in enumerate(descriptors):
        block[54 + 18 * i:72 + 18 * i] = descriptor

    block[127] = (-sum(block[:127])) % 256
    return bytes(block)


class FakeBus:
    """Stands in for I2CBus."""

    def __init__(
        self,
        bus_name="AMDGPU DM i2c hw bus 0",
        edid=None,
        brightness=(50, 100),
        fail_identity=False,
        fail_brightness=False,
        fail_writes=False,
    ):
        self.bus_name = bus_name
        self.edid = edid if edid is not None else make_edid()
        self.brightness = brightness
        self.fail_identity = fail_identity
        self.fail_brightness = fail_brightness
        self.fail_writes = fail_writes
        self.identity_reads = 0
        self.brightness_reads = 0
        self.writes = []

    def __repr__(self):
        return f"FakeBus({self.bus_name!r})"

    def read_identity(self) -> bytes:
        self.identity_reads += 1
        if self.fail_identity:
            raise DDCError("no ack")
        # Real reads return bytes around the EDID block
        return b'\xff\xff' + self.edid + b'\x00' * 16

    def get_brightness(self):
        self.brightness_reads += 1
        if self.fail_brightness:
            raise DDCError("getvcp failed")
        return self.brightness

    def set_brightness(self, value: int) -> bool:
        self.writes.append(value)
        return not self.fail_writes


class FakeWindow(WindowHandle):

    def __init__(self, name, states=(), geometry=(0, 0, 1920, 1080), fail=None):
        self._name = name
        self._states = set(states)
        self._geometry = geometry
        self._fail = fail

    def name(self) -> str:
        if self._fail == "name":
            raise WindowQueryError("window destroyed")
        return self._name

    def state_set(self):
        if self._fail == "state":
            raise WindowQueryError("window destroyed")
        return set(self._states)

    def geometry(self):
        if self._fail == "geometry":
            raise WindowQueryError("window destroyed")
        return self._geometry


class FakeWindowManager(WindowManager):

    def __init__(self, windows=(), active=None, fail_listing=False):
        self._windows = list(windows)
        self._active = active
        self.fail_listing = fail_listing
        self.listings = 0

    def windows(self):
        self.listings += 1
        if self.fail_listing:
            raise WindowQueryError("cannot read client list")
        return list(self._windows)

    def active_window(self):
        return self._active


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class SequenceDetector:
    """Detector returning a scripted sequence of states, then repeating the last."""

    def __init__(self, states):
        self._states = list(states)
        self.calls = 0

    def detect(self):
        index = min(self.calls, len(self._states) - 1)
        self.calls += 1
        return self._states[index]
