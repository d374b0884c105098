"""
EDID Parsing - Extract display identity from raw EDID blocks
============================================================
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .exceptions import EDIDParseError

logger = logging.getLogger(__name__)

EDID_HEADER = bytes.fromhex('00 FF FF FF FF FF FF 00')
EDID_BLOCK_SIZE = 128

# Layout of the 128 byte base block (EDID 1.3/1.4)
EDID_FORMAT = (
    ">"     # big-endian
    "8s"    # constant header
    "H"     # manufacturer id
    "H"     # product code (stored little-endian, fixed up below)
    "I"     # serial number (stored little-endian, fixed up below)
    "B"     # week of manufacture
    "B"     # year of manufacture (offset from 1990)
    "B"     # edid version
    "B"     # edid revision
    "B"     # video input type
    "B"     # horizontal size in cm
    "B"     # vertical size in cm
    "B"     # display gamma
    "B"     # supported features
    "10s"   # colour characteristics
    "H"     # established timings
    "B"     # reserved timing
    "16s"   # standard timings
    "18s"   # descriptor block 1
    "18s"   # descriptor block 2
    "18s"   # descriptor block 3
    "18s"   # descriptor block 4
    "B"     # extension flag
    "B"     # checksum
)

SERIAL_DESCRIPTOR = bytes.fromhex('00 00 00 ff 00')
NAME_DESCRIPTOR = bytes.fromhex('00 00 00 fc 00')


@dataclass(frozen=True)
class DisplayIdentity:
    """Hardware identity of a physical display, comparable across discovery sources."""
    manufacturer_id: str
    product_code: int
    serial_number: int
    week: int
    year: int
    serial: str = ""

    def __str__(self):
        serial = self.serial or f"{self.serial_number:08x}"
        return f"{self.manufacturer_id}{self.product_code:04X} ({serial})"


@dataclass(frozen=True)
class EDIDInfo:
    """Fields of interest from one EDID block."""
    identity: DisplayIdentity
    product_name: Optional[str] = None
    identities: FrozenSet[DisplayIdentity] = field(default_factory=frozenset)


def _decode_descriptor(block: bytes, prefix: bytes) -> str:
    text = block[len(prefix):].split(b'\n', 1)[0]
    return text.decode('ascii', errors='replace').strip()


def find_edid(data: bytes) -> bytes:
    """
    Locate the base EDID block inside a larger dump (e.g. a raw I2C read).

    Raises:
        EDIDParseError: If no EDID header is present
    """
    start = data.find(EDID_HEADER)
    if start < 0 or len(data) - start < EDID_BLOCK_SIZE:
        raise EDIDParseError("No EDID header found")
    return data[start:start + EDID_BLOCK_SIZE]


def parse_edid(edid: bytes) -> EDIDInfo:
    """
    Parse a 128 byte EDID base block.

    Args:
        edid: Raw EDID bytes. Longer input (extension blocks) is truncated.

    Returns:
        EDIDInfo with the display identity and, if present, the monitor name

    Raises:
        EDIDParseError: If the block is short, lacks the header or fails the checksum
    """
    if not isinstance(edid, (bytes, bytearray)):
        raise TypeError(f"edid must be bytes, not {type(edid)!r}")

    edid = bytes(edid[:EDID_BLOCK_SIZE])
    try:
        blocks = struct.unpack(EDID_FORMAT, edid)
    except struct.error as e:
        raise EDIDParseError(f"Cannot unpack EDID: {e}") from e

    if blocks[0] != EDID_HEADER:
        raise EDIDParseError("Invalid EDID header")
    if sum(edid) % 256 != 0:
        raise EDIDParseError("EDID checksum mismatch")

    # 3 letters, 5 bits each, 'A' == 1
    mfg = blocks[1]
    manufacturer_id = ''.join(
        chr(((mfg >> shift) & 0b11111) + 64) for shift in (10, 5, 0)
    )
    product_code = struct.unpack('<H', edid[10:12])[0]
    serial_number = struct.unpack('<I', edid[12:16])[0]

    serial = ""
    product_name = None
    for descriptor in blocks[17:21]:
        if descriptor.startswith(SERIAL_DESCRIPTOR):
            serial = _decode_descriptor(descriptor, SERIAL_DESCRIPTOR)
        elif descriptor.startswith(NAME_DESCRIPTOR):
            product_name = _decode_descriptor(descriptor, NAME_DESCRIPTOR) or None

    identity = DisplayIdentity(
        manufacturer_id=manufacturer_id,
        product_code=product_code,
        serial_number=serial_number,
        week=blocks[4],
        year=blocks[5] + 1990,
        serial=serial,
    )
    logger.debug(f"Parsed EDID: {identity} name={product_name!r}")
    return EDIDInfo(
        identity=identity,
        product_name=product_name,
        identities=frozenset({identity}),
    )
