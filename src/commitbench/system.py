"""Available-memory probe and post-commit backpressure.

Supports Linux (``/proc/meminfo``) and macOS (``vm_stat``). Other
platforms report no reading and are never throttled.
"""

from __future__ import annotations

import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path

from commitbench.logging import get_logger

log = get_logger("system")

MEMINFO_PATH = Path("/proc/meminfo")


# ---------------------------------------------------------------------------
# macOS vm_stat helper
# ---------------------------------------------------------------------------


@dataclass
class _DarwinMemInfo:
    """Parsed vm_stat output."""

    page_size: int = 16384
    pages_free: int = 0
    pages_inactive: int = 0

    @property
    def available_bytes(self) -> int:
        """Approximate available memory (free + inactive pages)."""
        return (self.pages_free + self.pages_inactive) * self.page_size


def parse_vm_stat(output: str) -> _DarwinMemInfo:
    """Parse macOS vm_stat output into structured data."""
    info = _DarwinMemInfo()
    for line in output.splitlines():
        if "page size of" in line:
            parts = line.split()
            for i, p in enumerate(parts):
                if p == "size":
                    try:
                        info.page_size = int(parts[i + 2].rstrip(")"))
                    except (IndexError, ValueError):
                        pass
        elif line.startswith("Pages free:"):
            info.pages_free = _parse_vm_stat_value(line)
        elif line.startswith("Pages inactive:"):
            info.pages_inactive = _parse_vm_stat_value(line)
    return info


def _parse_vm_stat_value(line: str) -> int:
    """Parse a vm_stat line like 'Pages free:    12345.' -> 12345."""
    try:
        return int(line.split(":")[1].strip().rstrip("."))
    except (IndexError, ValueError):
        return 0


# ---------------------------------------------------------------------------
# Available memory
# ---------------------------------------------------------------------------


def parse_meminfo(text: str) -> int | None:
    """Return ``MemAvailable`` from /proc/meminfo content, in MB."""
    for line in text.splitlines():
        if line.startswith("MemAvailable:"):
            try:
                return int(line.split()[1]) // 1024
            except (IndexError, ValueError):
                return None
    return None


def available_memory_mb() -> int | None:
    """Get available memory in MB, platform-aware. None if unknown."""
    if sys.platform == "linux":
        try:
            return parse_meminfo(MEMINFO_PATH.read_text())
        except OSError:
            return None
    if sys.platform == "darwin":
        try:
            proc = subprocess.run(["vm_stat"], capture_output=True, text=True, timeout=5)
        except (OSError, subprocess.TimeoutExpired):
            return None
        if proc.returncode != 0:
            return None
        return parse_vm_stat(proc.stdout).available_bytes // (1024 * 1024)
    return None


def wait_for_memory(threshold_mb: int, wait_seconds: float) -> bool:
    """Sleep once for *wait_seconds* if available memory is below *threshold_mb*.

    Returns True if it slept. A missing reading never sleeps.
    """
    available = available_memory_mb()
    if available is None:
        log.debug("Available memory unknown; not throttling")
        return False
    if available >= threshold_mb:
        log.debug("Available memory: %d MB", available)
        return False
    log.warning(
        "Low memory: %d MB available (threshold %d MB), pausing %.0fs",
        available,
        threshold_mb,
        wait_seconds,
    )
    time.sleep(wait_seconds)
    return True
