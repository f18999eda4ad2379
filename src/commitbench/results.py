"""Per-commit records and the tab-separated results table.

Each processed commit yields one outcome: :class:`Recorded` when at
least one timed run succeeded, :class:`Skipped` otherwise. The results
table and the failure list are both derived from the outcome list.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Union

from commitbench.stats import Aggregate

RESULTS_HEADER = ["Revision", "Date", "Median", "Min", "Max"]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunRecord:
    """The measured runs of one commit."""

    revision: str
    short_id: str
    date: str
    times: tuple[Decimal, ...]


@dataclass(frozen=True)
class Recorded:
    """A commit with at least one successful timed run.

    *partial* is set when later runs failed and were abandoned.
    """

    run: RunRecord
    stats: Aggregate
    partial: bool = False

    @property
    def revision(self) -> str:
        return self.run.revision

    @property
    def short_id(self) -> str:
        return self.run.short_id

    @property
    def failed(self) -> bool:
        return self.partial

    def row(self) -> list[str]:
        """The results-table row for this commit."""
        median, minimum, maximum = self.stats.formatted()
        return [self.run.short_id, self.run.date, median, minimum, maximum]


@dataclass(frozen=True)
class Skipped:
    """A commit that produced no timing data."""

    revision: str
    short_id: str
    reason: str

    @property
    def failed(self) -> bool:
        return True


CommitOutcome = Union[Recorded, Skipped]


def failed_commits(outcomes: list[CommitOutcome]) -> list[CommitOutcome]:
    """Outcomes to list as failures, in processing order."""
    return [o for o in outcomes if o.failed]


# ---------------------------------------------------------------------------
# ResultsTable
# ---------------------------------------------------------------------------


class ResultsTable:
    """Append-only TSV file with one row per recorded commit.

    The header is written when the table is created. Every row is
    flushed to disk as soon as it is appended.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def create(cls, path: Path) -> ResultsTable:
        """Start a fresh table at *path*, replacing any previous one."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f, delimiter="\t", lineterminator="\n").writerow(RESULTS_HEADER)
        return cls(path)

    def append(self, outcome: Recorded) -> None:
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f, delimiter="\t", lineterminator="\n").writerow(outcome.row())

    def read(self) -> tuple[list[str], list[list[str]]]:
        """Return ``(header, rows)``. A missing file yields the default header."""
        if not self.path.exists():
            return list(RESULTS_HEADER), []
        with open(self.path, newline="", encoding="utf-8") as f:
            lines = [row for row in csv.reader(f, delimiter="\t") if row]
        if not lines:
            return list(RESULTS_HEADER), []
        return lines[0], lines[1:]
