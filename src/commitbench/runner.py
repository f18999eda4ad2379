"""Benchmark runner: the per-commit executor and the session finalizer.

For each selected commit the runner checks it out, syncs the pinned
toolchain, installs dependencies, times the command and records the
aggregate. A :class:`BenchSession` guarantees that, however the loop
ends, the original branch is checked out again and the summary is
printed exactly once.
"""

from __future__ import annotations

import signal
import subprocess
import time
from dataclasses import dataclass, field
from decimal import Decimal
from types import FrameType, TracebackType

import click

from commitbench import git
from commitbench.config import BenchConfig
from commitbench.errors import DirtyWorktreeError
from commitbench.formatting import format_progress
from commitbench.logging import get_logger
from commitbench.results import CommitOutcome, Recorded, ResultsTable, RunRecord, Skipped
from commitbench.stats import aggregate
from commitbench.summary import render_summary
from commitbench.system import wait_for_memory
from commitbench.timing import run_timed
from commitbench.toolchain import install_dependencies, sync_toolchain

log = get_logger("runner")


# ---------------------------------------------------------------------------
# RunContext
# ---------------------------------------------------------------------------


@dataclass
class RunContext:
    """Everything one benchmark session accumulates."""

    config: BenchConfig
    original_ref: str
    table: ResultsTable
    commits: list[str] = field(default_factory=list)
    outcomes: list[CommitOutcome] = field(default_factory=list)
    last_index: int = 0  # 1-based index of the last commit attempted
    interrupted: bool = False
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def completed(self) -> bool:
        return bool(self.commits) and len(self.outcomes) == len(self.commits)

    def record(self, outcome: CommitOutcome) -> None:
        """Store *outcome* and append its row to the results table if it has one."""
        self.outcomes.append(outcome)
        if isinstance(outcome, Recorded):
            self.table.append(outcome)
            median, minimum, maximum = outcome.stats.formatted()
            log.info("  median %s  min %s  max %s", median, minimum, maximum)
        else:
            log.warning("  skipped %s: %s", outcome.short_id, outcome.reason)


# ---------------------------------------------------------------------------
# BenchSession
# ---------------------------------------------------------------------------


def _raise_interrupt(signum: int, frame: FrameType | None) -> None:
    raise KeyboardInterrupt


class BenchSession:
    """Context manager that owns a RunContext and its cleanup.

    On exit, by normal completion or by any exception (including
    KeyboardInterrupt and SIGTERM, which is turned into one), the original
    ref is checked out again and the summary is printed. Exceptions are
    never suppressed.
    """

    def __init__(self, config: BenchConfig, original_ref: str, table: ResultsTable) -> None:
        self.ctx = RunContext(config=config, original_ref=original_ref, table=table)
        self._closed = False
        self._previous_sigterm: object = None

    def __enter__(self) -> RunContext:
        try:
            self._previous_sigterm = signal.signal(signal.SIGTERM, _raise_interrupt)
        except ValueError:
            # Not the main thread; SIGTERM keeps its default behaviour.
            self._previous_sigterm = None
        return self.ctx

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc_type is not None and issubclass(exc_type, KeyboardInterrupt):
            self.ctx.interrupted = True
            log.warning(
                "Interrupted during commit %d of %d; restoring %s",
                self.ctx.last_index,
                len(self.ctx.commits),
                self.ctx.original_ref,
            )
        try:
            self.close()
        finally:
            if self._previous_sigterm is not None:
                signal.signal(signal.SIGTERM, self._previous_sigterm)  # type: ignore[arg-type]
        return False

    def close(self) -> None:
        """Restore the original ref and print the summary. Runs at most once."""
        if self._closed:
            return
        self._closed = True
        ctx = self.ctx
        try:
            git.checkout(ctx.config.repo_dir, ctx.original_ref)
            log.debug("Restored %s", ctx.original_ref)
        except (subprocess.CalledProcessError, OSError) as exc:
            stderr = getattr(exc, "stderr", "") or ""
            log.error("Could not restore %s: %s %s", ctx.original_ref, exc, stderr.strip())
        click.echo(render_summary(ctx))


# ---------------------------------------------------------------------------
# Per-commit executor
# ---------------------------------------------------------------------------


def time_runs(ctx: RunContext, env: dict[str, str]) -> tuple[list[Decimal], bool]:
    """Run the command ``config.runs`` times.

    Returns the collected times and whether the runs were abandoned after
    a failure.
    """
    config = ctx.config
    times: list[Decimal] = []
    for attempt in range(1, config.runs + 1):
        result = run_timed(config.command, cwd=config.repo_dir, env=env)
        if not result.ok:
            log.warning("  run %d/%d failed: %s", attempt, config.runs, result.error)
            return times, True
        log.debug("  run %d/%d: %ss", attempt, config.runs, result.elapsed)
        times.append(result.elapsed)  # type: ignore[arg-type]
    return times, False


def process_commit(ctx: RunContext, index: int, revision: str) -> CommitOutcome:
    """Benchmark one commit.

    Checkout and toolchain failures propagate. Dependency and run
    failures produce a Skipped outcome or a partial Recorded one.
    """
    config = ctx.config
    repo_dir = config.repo_dir

    git.checkout(repo_dir, revision)
    short = git.short_id(repo_dir, revision)
    date = git.commit_date(repo_dir, revision)
    log.info("%s %s %s", format_progress(index, len(ctx.commits)), short, date)

    env = sync_toolchain(repo_dir, config.toolchain)

    if not install_dependencies(
        repo_dir, config.install_command, config.verbose_install_command, env=env
    ):
        return Skipped(revision=revision, short_id=short, reason="dependency install failed")

    times, abandoned = time_runs(ctx, env)
    if not times:
        return Skipped(revision=revision, short_id=short, reason="all timed runs failed")

    run = RunRecord(revision=revision, short_id=short, date=date, times=tuple(times))
    return Recorded(run=run, stats=aggregate(times), partial=abandoned)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run_benchmark(config: BenchConfig) -> RunContext:
    """Benchmark ``config.command`` across the selected commits.

    Raises:
        DirtyWorktreeError: if tracked files have local changes. Nothing is
            checked out in that case.
        RevisionError: if the starting revision is unknown or no commits
            are selected. The summary is still printed.
    """
    repo_dir = config.repo_dir
    if not git.is_worktree_clean(repo_dir):
        raise DirtyWorktreeError(
            f"{repo_dir} has uncommitted changes; commit or stash them first."
        )

    original_ref = git.current_ref(repo_dir)
    table = ResultsTable.create(config.results_path)
    log.debug("Writing results to %s", table.path)

    with BenchSession(config, original_ref, table) as ctx:
        ctx.commits = git.enumerate_commits(
            repo_dir, config.start_hash, config.commits, config.skip
        )
        log.info(
            "Benchmarking %d commits, %d run(s) each: %s",
            len(ctx.commits),
            config.runs,
            " ".join(config.command),
        )
        for index, revision in enumerate(ctx.commits, start=1):
            ctx.last_index = index
            ctx.record(process_commit(ctx, index, revision))
            wait_for_memory(config.memory_threshold_mb, config.memory_wait_seconds)
    return ctx
