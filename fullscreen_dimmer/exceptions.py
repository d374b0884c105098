"""
Exceptions
==========
"""


class DimmerError(Exception):
    """Base class so callers can catch everything raised by this package."""
    pass


class DDCError(DimmerError):
    """Exception raised for DDC/I2C communication errors."""
    pass


class EDIDParseError(DimmerError):
    """Unparsable or invalid EDID block."""
    pass


class TopologyError(DimmerError):
    """The graphics server monitor layout could not be queried."""
    pass


class WindowManagerError(DimmerError):
    """No usable window manager connection."""
    pass


class WindowQueryError(DimmerError):
    """A single window could not be queried (e.g. destroyed mid-scan)."""
    pass


class FadeAbortedError(DimmerError):
    """A brightness write failed during a fade and the run was abandoned."""

    def __init__(self, screen_name: str, value: int):
        self.screen_name = screen_name
        self.value = value
        super().__init__(f"Failed to set brightness of {screen_name} to {value}")
