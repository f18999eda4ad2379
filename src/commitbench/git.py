"""Git helpers and commit enumeration.

Thin wrappers over the ``git`` CLI, each running in the benchmarked
repository, plus the first-parent commit selection used to pick which
revisions get benchmarked.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from commitbench.errors import RevisionError
from commitbench.logging import get_logger

log = get_logger("git")


# ---------------------------------------------------------------------------
# Git helpers
# ---------------------------------------------------------------------------


def _git(repo_dir: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        cwd=str(repo_dir),
        check=False,
    )


def is_worktree_clean(repo_dir: Path) -> bool:
    """Return True if tracked files have no staged or unstaged changes.

    Untracked files are ignored so the results directory inside the
    repository never makes the tree look dirty.
    """
    proc = _git(repo_dir, "status", "--porcelain", "--untracked-files=no")
    if proc.returncode != 0:
        log.error("git status failed: %s", proc.stderr.strip())
        return False
    return not proc.stdout.strip()


def current_ref(repo_dir: Path) -> str:
    """Return the checked-out branch name, or the commit id if HEAD is detached."""
    proc = _git(repo_dir, "symbolic-ref", "--quiet", "--short", "HEAD")
    if proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    commit = resolve_rev(repo_dir, "HEAD")
    if commit is None:
        raise RevisionError(f"Could not determine the current revision of {repo_dir}")
    return commit


def resolve_rev(repo_dir: Path, rev: str) -> str | None:
    """Resolve a revision spec to a full commit hash, or None if it does not exist."""
    proc = _git(repo_dir, "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}")
    if proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    return None


def first_parent_ancestors(repo_dir: Path, rev: str, limit: int | None = None) -> list[str]:
    """List *rev* and its first-parent ancestors, most recent first.

    Merged-in side branches are never followed.
    """
    args = ["rev-list", "--first-parent"]
    if limit is not None:
        args.append(f"--max-count={limit}")
    args.append(rev)
    proc = _git(repo_dir, *args)
    if proc.returncode != 0:
        log.error("git rev-list failed: %s", proc.stderr.strip())
        return []
    return [c.strip() for c in proc.stdout.splitlines() if c.strip()]


def checkout(repo_dir: Path, rev: str) -> None:
    """Switch the working tree to *rev*.

    Raises:
        subprocess.CalledProcessError: if git refuses the checkout.
    """
    subprocess.run(
        ["git", "checkout", "--quiet", rev],
        capture_output=True,
        text=True,
        cwd=str(repo_dir),
        check=True,
    )


def commit_date(repo_dir: Path, rev: str) -> str:
    """Return the committer date of *rev* as ``YYYY-MM-DD`` (empty on failure)."""
    proc = _git(repo_dir, "show", "--no-patch", "--format=%cs", rev)
    if proc.returncode != 0:
        log.warning("Could not read the date of %s: %s", rev[:7], proc.stderr.strip())
        return ""
    return proc.stdout.strip()


def short_id(repo_dir: Path, rev: str) -> str:
    """Return git's abbreviated id for *rev*."""
    proc = _git(repo_dir, "rev-parse", "--short", rev)
    if proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    return rev[:7]


# ---------------------------------------------------------------------------
# Commit selection
# ---------------------------------------------------------------------------


def select_commits(ancestors: list[str], count: int, skip: int) -> list[str]:
    """Pick every ``(skip + 1)``-th ancestor, starting with the first.

    Stops once *count* commits are selected or *ancestors* runs out.
    """
    if count < 1:
        return []
    return ancestors[:: skip + 1][:count]


def enumerate_commits(
    repo_dir: Path,
    start: str | None,
    count: int,
    skip: int,
) -> list[str]:
    """Resolve the starting revision and select the commits to benchmark.

    Args:
        repo_dir: The repository to read history from.
        start: Revision to walk back from. ``None`` means HEAD.
        count: Maximum number of commits to select.
        skip: Number of ancestors bypassed between two selected commits.

    Returns:
        Full commit ids, most recent first.

    Raises:
        RevisionError: if *start* does not resolve or nothing was selected.
    """
    start_rev = start or "HEAD"
    start_hash = resolve_rev(repo_dir, start_rev)
    if start_hash is None:
        raise RevisionError(f"Could not resolve starting revision: {start_rev}")

    ancestors = first_parent_ancestors(repo_dir, start_hash, limit=count * (skip + 1))
    commits = select_commits(ancestors, count, skip)
    if not commits:
        raise RevisionError(f"No commits selected from {start_rev}")

    log.debug(
        "Selected %d of %d ancestors from %s (skip=%d)",
        len(commits),
        len(ancestors),
        start_hash[:7],
        skip,
    )
    return commits
