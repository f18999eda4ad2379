"""Timing capture for benchmark runs.

Wraps each run in GNU ``/usr/bin/time -f %e`` and parses the elapsed
wall-clock seconds it reports. The command's own output is discarded.
When ``/usr/bin/time`` is not installed, or is a BSD time that does not
understand ``-f``, wall time is measured with ``time.monotonic()`` around
the child process instead.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from commitbench.logging import get_logger

log = get_logger("timing")

TIME_BINARY = Path("/usr/bin/time")
TWO_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# TimedRun
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimedRun:
    """Result of one timed execution.

    Exactly one of *elapsed* and *error* is set.
    """

    elapsed: Decimal | None
    exit_code: int
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.elapsed is not None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_elapsed(text: str) -> Decimal | None:
    """Parse the elapsed seconds written by ``time -f %e``.

    GNU time prefixes the value with a ``Command exited with non-zero
    status N`` line when the child fails, so the value is read from the
    last non-empty line. Returns None if that line is not a number.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None
    try:
        value = Decimal(lines[-1])
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value.quantize(TWO_PLACES)


# ---------------------------------------------------------------------------
# Core timing implementation
# ---------------------------------------------------------------------------


def run_timed(
    command: list[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    use_time_wrapper: bool = True,
) -> TimedRun:
    """Execute *command* once and capture its wall-clock time.

    Args:
        command: Argument vector; no shell is involved.
        cwd: Working directory for the subprocess.
        env: Environment overrides layered over ``os.environ``.
        use_time_wrapper: If True and ``/usr/bin/time`` exists, let it
            measure the run.

    Returns:
        TimedRun with the elapsed seconds, or an error describing why the
        run produced no timing.
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    if use_time_wrapper and TIME_BINARY.exists():
        return _run_with_time_binary(command, cwd=cwd, env=run_env)
    return _run_with_monotonic(command, cwd=cwd, env=run_env)


def _run_with_time_binary(
    command: list[str], *, cwd: str | Path | None, env: dict[str, str]
) -> TimedRun:
    fd, time_output_file = tempfile.mkstemp(prefix="commitbench-time-", suffix=".txt")
    os.close(fd)
    try:
        proc = subprocess.run(
            [str(TIME_BINARY), "-f", "%e", "-o", time_output_file, *command],
            cwd=str(cwd) if cwd else None,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        report = Path(time_output_file).read_text(encoding="utf-8", errors="replace")
    finally:
        try:
            os.unlink(time_output_file)
        except OSError:
            pass

    log.debug("time output for %s: %r", shlex.join(command), report)
    if not report.strip():
        # BSD time rejects -f and exits before running the command.
        log.debug("%s wrote no report; timing with time.monotonic()", TIME_BINARY)
        return _run_with_monotonic(command, cwd=cwd, env=env)
    if proc.returncode != 0:
        return TimedRun(
            elapsed=None,
            exit_code=proc.returncode,
            error=f"command exited with status {proc.returncode}",
        )
    elapsed = parse_elapsed(report)
    if elapsed is None:
        return TimedRun(
            elapsed=None,
            exit_code=proc.returncode,
            error=f"could not parse timing output: {report.strip()[:80]!r}",
        )
    return TimedRun(elapsed=elapsed, exit_code=0)


def _run_with_monotonic(
    command: list[str], *, cwd: str | Path | None, env: dict[str, str]
) -> TimedRun:
    wall_start = time.monotonic()
    try:
        proc = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        return TimedRun(elapsed=None, exit_code=-1, error=f"could not start command: {exc}")
    wall_time = time.monotonic() - wall_start

    if proc.returncode != 0:
        return TimedRun(
            elapsed=None,
            exit_code=proc.returncode,
            error=f"command exited with status {proc.returncode}",
        )
    return TimedRun(elapsed=Decimal(str(wall_time)).quantize(TWO_PLACES), exit_code=0)
