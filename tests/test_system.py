"""Tests for commitbench.system — memory probe and backpressure."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from commitbench.system import (
    available_memory_mb,
    parse_meminfo,
    parse_vm_stat,
    wait_for_memory,
)

MEMINFO = """\
MemTotal:       16314372 kB
MemFree:         1234567 kB
MemAvailable:    8192000 kB
Buffers:          123456 kB
"""

VM_STAT = """\
Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                               10000.
Pages active:                            200000.
Pages inactive:                           54000.
Pages speculative:                         1000.
"""


class TestParseMeminfo(unittest.TestCase):
    def test_reads_mem_available_in_mb(self) -> None:
        self.assertEqual(parse_meminfo(MEMINFO), 8000)

    def test_missing_field(self) -> None:
        self.assertIsNone(parse_meminfo("MemTotal: 100 kB\n"))

    def test_malformed_value(self) -> None:
        self.assertIsNone(parse_meminfo("MemAvailable: lots kB\n"))


class TestParseVmStat(unittest.TestCase):
    def test_available_bytes(self) -> None:
        info = parse_vm_stat(VM_STAT)
        self.assertEqual(info.page_size, 16384)
        self.assertEqual(info.available_bytes, (10000 + 54000) * 16384)


class TestAvailableMemory(unittest.TestCase):
    @patch("commitbench.system.sys")
    def test_unsupported_platform(self, mock_sys: MagicMock) -> None:
        mock_sys.platform = "win32"
        self.assertIsNone(available_memory_mb())

    @patch("commitbench.system.MEMINFO_PATH")
    @patch("commitbench.system.sys")
    def test_linux(self, mock_sys: MagicMock, mock_path: MagicMock) -> None:
        mock_sys.platform = "linux"
        mock_path.read_text.return_value = MEMINFO
        self.assertEqual(available_memory_mb(), 8000)

    @patch("commitbench.system.MEMINFO_PATH")
    @patch("commitbench.system.sys")
    def test_linux_unreadable(self, mock_sys: MagicMock, mock_path: MagicMock) -> None:
        mock_sys.platform = "linux"
        mock_path.read_text.side_effect = OSError("no proc")
        self.assertIsNone(available_memory_mb())


class TestWaitForMemory(unittest.TestCase):
    @patch("commitbench.system.time.sleep")
    @patch("commitbench.system.available_memory_mb", return_value=500)
    def test_sleeps_when_low(self, _mock_mem: MagicMock, mock_sleep: MagicMock) -> None:
        self.assertTrue(wait_for_memory(1000, 10.0))
        mock_sleep.assert_called_once_with(10.0)

    @patch("commitbench.system.time.sleep")
    @patch("commitbench.system.available_memory_mb", return_value=4000)
    def test_no_sleep_when_enough(self, _mock_mem: MagicMock, mock_sleep: MagicMock) -> None:
        self.assertFalse(wait_for_memory(1000, 10.0))
        mock_sleep.assert_not_called()

    @patch("commitbench.system.time.sleep")
    @patch("commitbench.system.available_memory_mb", return_value=1000)
    def test_threshold_is_exclusive(self, _mock_mem: MagicMock, mock_sleep: MagicMock) -> None:
        self.assertFalse(wait_for_memory(1000, 10.0))
        mock_sleep.assert_not_called()

    @patch("commitbench.system.time.sleep")
    @patch("commitbench.system.available_memory_mb", return_value=None)
    def test_unknown_never_sleeps(self, _mock_mem: MagicMock, mock_sleep: MagicMock) -> None:
        self.assertFalse(wait_for_memory(1000, 10.0))
        mock_sleep.assert_not_called()


if __name__ == "__main__":
    unittest.main()
