"""Final report printed when a benchmark session ends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from commitbench.formatting import format_duration, format_section_header, format_table
from commitbench.results import Recorded, failed_commits

if TYPE_CHECKING:
    from commitbench.runner import RunContext


def status_line(ctx: RunContext) -> str:
    """Describe how far the session got."""
    total = len(ctx.commits)
    done = len(ctx.outcomes)
    if total == 0:
        return "No commits were benchmarked."
    if done == total:
        return f"Benchmarked all {total} commits."
    if ctx.interrupted:
        return f"Partial results (interrupted after {done} of {total} commits)."
    return f"Partial results (stopped after {done} of {total} commits)."


def render_summary(ctx: RunContext) -> str:
    """Render the status, the aligned results table and any failures."""
    lines = [format_section_header("commitbench summary"), status_line(ctx)]

    header, rows = ctx.table.read()
    lines.append("")
    if rows:
        lines.append(format_table(header, rows, alignments=["l", "l", "r", "r", "r"]))
    else:
        lines.append("  (no results recorded)")

    failures = failed_commits(ctx.outcomes)
    if failures:
        lines.append("")
        lines.append(f"Failed commits ({len(failures)}):")
        for outcome in failures:
            if isinstance(outcome, Recorded):
                reason = f"partial: {outcome.stats.n} of {ctx.config.runs} runs succeeded"
            else:
                reason = outcome.reason
            lines.append(f"  {outcome.short_id}  {reason}")

    lines.append("")
    lines.append(f"Elapsed: {format_duration(ctx.elapsed_seconds)}")
    lines.append(f"Results: {ctx.table.path}")
    lines.append(f"Log:     {ctx.config.log_path}")
    return "\n".join(lines)
