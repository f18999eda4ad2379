"""Tests for commitbench.timing — elapsed-time capture."""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

from commitbench.timing import TimedRun, parse_elapsed, run_timed


class TestParseElapsed(unittest.TestCase):
    def test_plain_value(self) -> None:
        self.assertEqual(parse_elapsed("1.23\n"), Decimal("1.23"))

    def test_quantizes_to_two_places(self) -> None:
        self.assertEqual(parse_elapsed("0.5"), Decimal("0.50"))

    def test_reads_last_line_after_exit_notice(self) -> None:
        text = "Command exited with non-zero status 1\n0.04\n"
        self.assertEqual(parse_elapsed(text), Decimal("0.04"))

    def test_empty(self) -> None:
        self.assertIsNone(parse_elapsed(""))
        self.assertIsNone(parse_elapsed("\n\n"))

    def test_garbage(self) -> None:
        self.assertIsNone(parse_elapsed("Command terminated by signal 9"))

    def test_negative_rejected(self) -> None:
        self.assertIsNone(parse_elapsed("-1.00"))

    def test_nan_rejected(self) -> None:
        self.assertIsNone(parse_elapsed("NaN"))


class TestTimedRun(unittest.TestCase):
    def test_ok_when_elapsed_set(self) -> None:
        self.assertTrue(TimedRun(elapsed=Decimal("1.00"), exit_code=0).ok)

    def test_not_ok_without_elapsed(self) -> None:
        self.assertFalse(TimedRun(elapsed=None, exit_code=1, error="boom").ok)


class TestRunTimedWithTimeBinary(unittest.TestCase):
    """The /usr/bin/time path with subprocess mocked out."""

    def _fake_run(self, returncode: int, report: str) -> MagicMock:
        def side_effect(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            output_file = cmd[cmd.index("-o") + 1]
            Path(output_file).write_text(report)
            return subprocess.CompletedProcess(args=cmd, returncode=returncode)

        return MagicMock(side_effect=side_effect)

    def test_success(self) -> None:
        fake = self._fake_run(0, "1.15\n")
        with patch("commitbench.timing.TIME_BINARY") as time_bin, patch(
            "commitbench.timing.subprocess.run", fake
        ):
            time_bin.exists.return_value = True
            time_bin.__str__.return_value = "/usr/bin/time"
            result = run_timed(["yarn", "build"], cwd="/repo")
        self.assertEqual(result.elapsed, Decimal("1.15"))
        self.assertEqual(result.exit_code, 0)
        cmd = fake.call_args[0][0]
        self.assertEqual(cmd[:3], ["/usr/bin/time", "-f", "%e"])
        self.assertEqual(cmd[-2:], ["yarn", "build"])
        self.assertEqual(fake.call_args[1]["stdout"], subprocess.DEVNULL)
        self.assertEqual(fake.call_args[1]["cwd"], "/repo")

    def test_nonzero_exit_is_failure(self) -> None:
        fake = self._fake_run(2, "Command exited with non-zero status 2\n0.10\n")
        with patch("commitbench.timing.TIME_BINARY") as time_bin, patch(
            "commitbench.timing.subprocess.run", fake
        ):
            time_bin.exists.return_value = True
            result = run_timed(["false"])
        self.assertFalse(result.ok)
        self.assertEqual(result.exit_code, 2)
        self.assertIn("status 2", result.error)

    def test_unparseable_report_is_failure(self) -> None:
        fake = self._fake_run(0, "not a number\n")
        with patch("commitbench.timing.TIME_BINARY") as time_bin, patch(
            "commitbench.timing.subprocess.run", fake
        ):
            time_bin.exists.return_value = True
            result = run_timed(["true"])
        self.assertFalse(result.ok)
        self.assertIn("could not parse", result.error)

    def test_env_overrides_are_passed(self) -> None:
        fake = self._fake_run(0, "0.01\n")
        with patch("commitbench.timing.TIME_BINARY") as time_bin, patch(
            "commitbench.timing.subprocess.run", fake
        ):
            time_bin.exists.return_value = True
            run_timed(["true"], env={"NODENV_VERSION": "18.0.0"})
        self.assertEqual(fake.call_args[1]["env"]["NODENV_VERSION"], "18.0.0")


@unittest.skipUnless(os.name == "posix", "needs a shell script as /usr/bin/time")
class TestRunTimedWithBsdTime(unittest.TestCase):
    """A /usr/bin/time that rejects -f, as BSD time on macOS does."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.time_bin = Path(self.tmpdir.name) / "time"
        self.time_bin.write_text("#!/bin/sh\necho 'time: illegal option -- f' >&2\nexit 1\n")
        self.time_bin.chmod(0o755)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_falls_back_to_monotonic(self) -> None:
        with patch("commitbench.timing.TIME_BINARY", self.time_bin):
            result = run_timed([sys.executable, "-c", "pass"])
        self.assertTrue(result.ok, result.error)
        self.assertEqual(result.exit_code, 0)

    def test_command_failure_still_reported(self) -> None:
        with patch("commitbench.timing.TIME_BINARY", self.time_bin):
            result = run_timed([sys.executable, "-c", "import sys; sys.exit(4)"])
        self.assertFalse(result.ok)
        self.assertEqual(result.exit_code, 4)


class TestRunTimedMonotonic(unittest.TestCase):
    """The fallback path, run for real."""

    def test_success(self) -> None:
        result = run_timed([sys.executable, "-c", "pass"], use_time_wrapper=False)
        self.assertTrue(result.ok)
        self.assertGreaterEqual(result.elapsed, Decimal("0"))
        self.assertEqual(result.elapsed, result.elapsed.quantize(Decimal("0.01")))

    def test_failure(self) -> None:
        result = run_timed(
            [sys.executable, "-c", "import sys; sys.exit(3)"], use_time_wrapper=False
        )
        self.assertFalse(result.ok)
        self.assertEqual(result.exit_code, 3)

    def test_missing_command(self) -> None:
        result = run_timed(["commitbench-no-such-command-xyz"], use_time_wrapper=False)
        self.assertFalse(result.ok)
        self.assertIn("could not start", result.error)


if __name__ == "__main__":
    unittest.main()
