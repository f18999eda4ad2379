"""Shared text formatting helpers for commitbench.

Provides functions for formatting durations, aligned tables and section
headers used by the progress stream and the final summary.
"""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Examples: ``'8s'``, ``'1m 23s'``, ``'1h 12m 34s'``. Always whole seconds
    (truncated, not rounded).
    """
    total = int(seconds)
    if total >= 3600:
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h}h {m:2d}m {s:2d}s"
    if total >= 60:
        m = total // 60
        s = total % 60
        return f"{m}m {s:2d}s"
    return f"{total}s"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Auto-calculates column widths from content. Right-aligns columns
    marked ``'r'`` in *alignments*. Short rows are padded with empty
    cells; extra cells are dropped.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'``, ``'r'``, or ``'c'``.
        indent: Number of leading spaces per line.

    Returns:
        The formatted table as a string.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments) if alignments is not None else []
    while len(aligns) < ncols:
        aligns.append("l")

    proc_rows: list[list[str]] = []
    for row in rows:
        padded = list(row) + [""] * (ncols - len(row))
        proc_rows.append(padded[:ncols])

    widths = [len(h) for h in headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    prefix = " " * indent

    def _format_cell(text: str, width: int, align: str) -> str:
        if align == "r":
            return text.rjust(width)
        if align == "c":
            return text.center(width)
        return text.ljust(width)

    lines: list[str] = []
    for cells in [headers, *proc_rows]:
        line = "  ".join(_format_cell(cells[i], widths[i], aligns[i]) for i in range(ncols))
        lines.append((prefix + line).rstrip())

    return "\n".join(lines)


def format_section_header(title: str, width: int = 60) -> str:
    """Format a section header: ``'─── Title ──...'``."""
    prefix = "─── "
    suffix_len = width - len(prefix) - len(title) - 1
    suffix = " " + "─" * max(0, suffix_len)
    return prefix + title + suffix


def format_progress(index: int, total: int) -> str:
    """Format a progress counter padded to the width of *total*: ``'[ 3/12]'``."""
    width = len(str(total))
    return f"[{index:>{width}d}/{total}]"
