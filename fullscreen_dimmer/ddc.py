"""
DDC/CI Bus Access - Raw I2C identity reads and ddcutil brightness control
=========================================================================
"""

import fcntl
import glob
import os
import re
import subprocess
import logging
import time
from pathlib import Path
from typing import Dict, List, Tuple

from .exceptions import DDCError

logger = logging.getLogger(__name__)

SYSFS_I2C_DEV = Path("/sys/class/i2c-dev")


class I2CBus:
    """
    One I2C bus that may carry a DDC/CI capable monitor.

    Identity (EDID) is read straight from the bus at address 0x50; brightness
    goes through ``ddcutil --bus N`` (VCP 0x10).
    """

    VCP_BRIGHTNESS = 0x10

    I2C_SLAVE = 0x0703
    EDID_ADDR = 0x50
    EDID_READ_SIZE = 256

    def __init__(
        self,
        bus_number: int,
        bus_name: str = "",
        retry_count: int = 1,
        sleep_multiplier: float = 0.5,
    ):
        """
        Args:
            bus_number: N in /dev/i2c-N
            bus_name: Adapter name reported by the kernel
            retry_count: Number of attempts per ddcutil command
            sleep_multiplier: Passed to ddcutil, also scales the rate limit
        """
        self.bus_number = bus_number
        self.bus_name = bus_name
        self.retry_count = max(1, retry_count)
        self.sleep_multiplier = sleep_multiplier
        self._last_command_time = 0.0
        self._min_command_interval = 0.1 * sleep_multiplier
        # Last value written per VCP code, to skip redundant writes
        self._vcp_cache: Dict[int, int] = {}

    @property
    def device_path(self) -> str:
        return f"/dev/i2c-{self.bus_number}"

    def __repr__(self):
        return f"I2CBus({self.bus_number}, {self.bus_name!r})"

    def read_identity(self) -> bytes:
        """
        Read the raw EDID dump from the bus.

        Raises:
            DDCError: If the device can't be opened or read
        """
        try:
            fd = os.open(self.device_path, os.O_RDWR)
        except OSError as e:
            raise DDCError(f"Cannot open {self.device_path}: {e}") from e
        try:
            fcntl.ioctl(fd, self.I2C_SLAVE, self.EDID_ADDR)
            # Reset the EDID offset before reading
            os.write(fd, b'\x00')
            return os.read(fd, self.EDID_READ_SIZE)
        except OSError as e:
            raise DDCError(f"Cannot read EDID from {self.device_path}: {e}") from e
        finally:
            os.close(fd)

    def _run_ddcutil(self, command: List[str], timeout: float = 5.0) -> subprocess.CompletedProcess:
        """
        Run a ddcutil command against this bus with retry logic.

        Raises:
            DDCError: If command fails after retries
        """
        elapsed = time.time() - self._last_command_time
        if elapsed < self._min_command_interval:
            time.sleep(self._min_command_interval - elapsed)

        full_command = [
            "ddcutil",
            "--sleep-multiplier", f"{self.sleep_multiplier:.1f}",
            "--bus", str(self.bus_number),
        ] + command
        logger.debug(f"DDC[{self.bus_number}] Running: {' '.join(full_command)}")

        last_error = None
        for attempt in range(self.retry_count):
            try:
                result = subprocess.run(
                    full_command,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    check=True,
                )
                self._last_command_time = time.time()
                return result
            except subprocess.CalledProcessError as e:
                last_error = e
                stderr_msg = e.stderr.strip() if e.stderr else "(no stderr)"
                logger.warning(
                    f"DDC[{self.bus_number}] Command failed (attempt {attempt + 1}/{self.retry_count}): "
                    f"{' '.join(command)} → {stderr_msg}"
                )
            except subprocess.TimeoutExpired as e:
                last_error = e
                logger.warning(
                    f"DDC[{self.bus_number}] Command timed out (attempt {attempt + 1}/{self.retry_count}): "
                    f"{' '.join(command)}"
                )
            except FileNotFoundError as e:
                raise DDCError("ddcutil not found") from e
            if attempt < self.retry_count - 1:
                time.sleep(0.3 * (attempt + 1))

        raise DDCError(f"DDC command '{' '.join(command)}' failed after {self.retry_count} attempts: {last_error}")

    def get_vcp(self, feature_code: int) -> Tuple[int, int]:
        """
        Read a continuous VCP feature.

        Returns:
            Tuple of (current_value, max_value)

        Raises:
            DDCError: If the read fails or the reply can't be parsed
        """
        result = self._run_ddcutil(["getvcp", f"0x{feature_code:02x}"])

        # "VCP code 0x10 (Brightness): current value = 50, max value = 100"
        match = re.search(
            r'current value\s*=\s*(\d+).*?max value\s*=\s*(\d+)',
            result.stdout,
            re.IGNORECASE,
        )
        if not match:
            raise DDCError(f"Failed to parse VCP response: {result.stdout.strip()}")

        current_value = int(match.group(1))
        self._vcp_cache[feature_code] = current_value
        return current_value, int(match.group(2))

    def set_vcp(self, feature_code: int, value: int, force: bool = False) -> bool:
        """
        Set a VCP feature value.

        Args:
            feature_code: VCP feature code
            value: Value to set
            force: Send even if the cached value matches

        Returns:
            True if successful (or skipped because value unchanged)
        """
        if not force and self._vcp_cache.get(feature_code) == value:
            logger.debug(f"DDC[{self.bus_number}] VCP 0x{feature_code:02x} already {value}")
            return True

        try:
            self._run_ddcutil(["setvcp", f"0x{feature_code:02x}", str(value), "--noverify"])
        except DDCError as e:
            # Next attempt must actually hit the bus
            self._vcp_cache.pop(feature_code, None)
            logger.error(f"DDC[{self.bus_number}] Failed to set VCP 0x{feature_code:02x}: {e}")
            return False

        self._vcp_cache[feature_code] = value
        return True

    def get_brightness(self) -> Tuple[int, int]:
        """Get (current, maximum) brightness."""
        return self.get_vcp(self.VCP_BRIGHTNESS)

    def set_brightness(self, value: int) -> bool:
        """Set brightness. Returns False on failure."""
        return self.set_vcp(self.VCP_BRIGHTNESS, max(0, value))


def _read_bus_name(bus_number: int) -> str:
    try:
        return (SYSFS_I2C_DEV / f"i2c-{bus_number}" / "name").read_text().strip()
    except OSError:
        return ""


def enumerate_buses(retry_count: int = 1, sleep_multiplier: float = 0.5) -> List[I2CBus]:
    """
    List all I2C buses with the adapter name the kernel reports for each.

    Raises:
        DDCError: If no I2C device exists at all (i2c-dev not loaded)
    """
    buses = []
    for path in glob.glob("/dev/i2c-*"):
        match = re.match(r'/dev/i2c-(\d+)$', path)
        if not match:
            continue
        number = int(match.group(1))
        buses.append(I2CBus(
            number,
            _read_bus_name(number),
            retry_count=retry_count,
            sleep_multiplier=sleep_multiplier,
        ))

    if not buses:
        raise DDCError("No I2C devices found. Load i2c-dev module: sudo modprobe i2c-dev")

    buses.sort(key=lambda b: b.bus_number)
    logger.debug(f"Found I2C buses: {buses}")
    return buses


def check_ddcutil_available() -> Tuple[bool, str]:
    """
    Check if ddcutil is installed and working.

    Returns:
        Tuple of (is_available, message)
    """
    try:
        result = subprocess.run(
            ["ddcutil", "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            version = result.stdout.split('\n')[0] if result.stdout else "unknown"
            return True, f"ddcutil found: {version}"
        else:
            return False, f"ddcutil error: {result.stderr}"
    except FileNotFoundError:
        return False, "ddcutil not found. Install with: sudo apt install ddcutil"
    except subprocess.TimeoutExpired:
        return False, "ddcutil timed out"
    except OSError as e:
        return False, f"Error checking ddcutil: {e}"


def check_i2c_permissions() -> Tuple[bool, str]:
    """
    Check if user has permissions to access I2C devices.

    Returns:
        Tuple of (has_permission, message)
    """
    i2c_devices = glob.glob('/dev/i2c-*')
    if not i2c_devices:
        return False, "No I2C devices found. Load i2c-dev module: sudo modprobe i2c-dev"

    for device in i2c_devices:
        if os.access(device, os.R_OK | os.W_OK):
            return True, f"I2C device {device} is accessible"

    return False, (
        "Cannot access I2C devices. Add user to i2c group:\n"
        "  sudo usermod -aG i2c $USER\n"
        "Then log out and back in."
    )
