"""Exception types for commitbench.

Every fatal condition the CLI reports with exit status 1 derives from
:class:`CommitbenchError`. Per-commit failures are never raised; they
become :class:`~commitbench.results.Skipped` outcomes instead.
"""

from __future__ import annotations


class CommitbenchError(Exception):
    """Base class for fatal commitbench errors."""


class DirtyWorktreeError(CommitbenchError):
    """The working tree has uncommitted changes to tracked files."""


class RevisionError(CommitbenchError):
    """The starting revision does not resolve or no commits were selected."""


class ConfigError(CommitbenchError):
    """A profile or option value is invalid."""
