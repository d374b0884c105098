#!/usr/bin/env python3
"""
Tests for the I2C bus wrapper. ddcutil and the device nodes are mocked.
"""

import subprocess
import unittest
from unittest.mock import patch

from fullscreen_dimmer.ddc import I2CBus, enumerate_buses
from fullscreen_dimmer.exceptions import DDCError

GETVCP_OUTPUT = "VCP code 0x10 (Brightness                    ): current value =    75, max value =   100\n"


def completed(stdout=""):
    return subprocess.CompletedProcess(["ddcutil"], 0, stdout=stdout, stderr="")


@patch('fullscreen_dimmer.ddc.time.sleep')
@patch('fullscreen_dimmer.ddc.subprocess.run')
class TestI2CBus(unittest.TestCase):

    def test_get_brightness(self, mock_run, mock_sleep):
        mock_run.return_value = completed(GETVCP_OUTPUT)
        bus = I2CBus(4, sleep_multiplier=0.5)

        self.assertEqual(bus.get_brightness(), (75, 100))

        command = mock_run.call_args[0][0]
        self.assertEqual(command[:5], ["ddcutil", "--sleep-multiplier", "0.5", "--bus", "4"])
        self.assertEqual(command[5:], ["getvcp", "0x10"])

    def test_unparsable_reply(self, mock_run, mock_sleep):
        mock_run.return_value = completed("Display not found\n")
        with self.assertRaises(DDCError):
            I2CBus(4).get_brightness()

    def test_set_brightness(self, mock_run, mock_sleep):
        mock_run.return_value = completed()
        bus = I2CBus(4)

        self.assertTrue(bus.set_brightness(40))

        self.assertEqual(mock_run.call_args[0][0][5:], ["setvcp", "0x10", "40", "--noverify"])

    def test_unchanged_value_is_not_written(self, mock_run, mock_sleep):
        mock_run.return_value = completed(GETVCP_OUTPUT)
        bus = I2CBus(4)
        bus.get_brightness()
        mock_run.reset_mock()

        self.assertTrue(bus.set_brightness(75))
        mock_run.assert_not_called()

    def test_failed_write_retries_then_reports(self, mock_run, mock_sleep):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["ddcutil"], stderr="DDC communication failed")
        bus = I2CBus(4, retry_count=3)

        self.assertFalse(bus.set_brightness(10))

        self.assertEqual(mock_run.call_count, 3)
        self.assertEqual([c[0][0] for c in mock_sleep.call_args_list[-2:]], [0.3, 0.6])

    def test_failed_write_clears_cache(self, mock_run, mock_sleep):
        mock_run.return_value = completed()
        bus = I2CBus(4)
        bus.set_brightness(10)

        mock_run.side_effect = subprocess.TimeoutExpired(["ddcutil"], 5)
        self.assertFalse(bus.set_brightness(20))

        mock_run.side_effect = None
        mock_run.reset_mock()
        self.assertTrue(bus.set_brightness(10))
        mock_run.assert_called_once()

    def test_missing_ddcutil(self, mock_run, mock_sleep):
        mock_run.side_effect = FileNotFoundError
        with self.assertRaises(DDCError):
            I2CBus(4).get_brightness()

    def test_negative_value_clamped(self, mock_run, mock_sleep):
        mock_run.return_value = completed()
        I2CBus(4).set_brightness(-3)
        self.assertEqual(mock_run.call_args[0][0][7], "0")


class TestReadIdentity(unittest.TestCase):

    @patch('fullscreen_dimmer.ddc.os.close')
    @patch('fullscreen_dimmer.ddc.os.read', return_value=b'\x00\xff' * 128)
    @patch('fullscreen_dimmer.ddc.os.write')
    @patch('fullscreen_dimmer.ddc.fcntl.ioctl')
    @patch('fullscreen_dimmer.ddc.os.open', return_value=7)
    def test_reads_edid_address(self, mock_open, mock_ioctl, mock_write, mock_read, mock_close):
        data = I2CBus(3).read_identity()

        self.assertEqual(len(data), 256)
        mock_open.assert_called_once()
        self.assertEqual(mock_open.call_args[0][0], "/dev/i2c-3")
        mock_ioctl.assert_called_once_with(7, I2CBus.I2C_SLAVE, I2CBus.EDID_ADDR)
        mock_write.assert_called_once_with(7, b'\x00')
        mock_close.assert_called_once_with(7)

    @patch('fullscreen_dimmer.ddc.os.open', side_effect=PermissionError("denied"))
    def test_unopenable_device(self, mock_open):
        with self.assertRaises(DDCError):
            I2CBus(3).read_identity()

    @patch('fullscreen_dimmer.ddc.os.close')
    @patch('fullscreen_dimmer.ddc.fcntl.ioctl', side_effect=OSError(6, "No such device or address"))
    @patch('fullscreen_dimmer.ddc.os.open', return_value=7)
    def test_no_ack_closes_device(self, mock_open, mock_ioctl, mock_close):
        with self.assertRaises(DDCError):
            I2CBus(3).read_identity()
        mock_close.assert_called_once_with(7)


class TestEnumerateBuses(unittest.TestCase):

    @patch('fullscreen_dimmer.ddc._read_bus_name', side_effect=lambda n: f"bus {n}")
    @patch('fullscreen_dimmer.ddc.glob.glob')
    def test_sorted_by_number(self, mock_glob, mock_name):
        mock_glob.return_value = ["/dev/i2c-10", "/dev/i2c-2", "/dev/i2c-foo"]

        buses = enumerate_buses(retry_count=2)

        self.assertEqual([b.bus_number for b in buses], [2, 10])
        self.assertEqual(buses[0].bus_name, "bus 2")
        self.assertEqual(buses[0].retry_count, 2)

    @patch('fullscreen_dimmer.ddc.glob.glob', return_value=[])
    def test_no_buses(self, mock_glob):
        with self.assertRaises(DDCError):
            enumerate_buses()


if __name__ == '__main__':
    unittest.main()
