"""Command-line interface for commitbench.

Usage::

    commitbench [OPTIONS] -- COMMAND [ARGS...]
"""

from __future__ import annotations

import shlex
import subprocess
import sys
from pathlib import Path
from typing import NoReturn

import click

from commitbench import __version__
from commitbench.config import build_config, load_profile
from commitbench.errors import CommitbenchError
from commitbench.logging import setup_logging
from commitbench.runner import run_benchmark


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.command(
    context_settings={"help_option_names": ["-h", "--help"], "allow_interspersed_args": False}
)
@click.version_option(version=__version__)
@click.option(
    "-c",
    "--commits",
    type=click.IntRange(min=1),
    default=None,
    help="Number of commits to benchmark (default: 10).",
)
@click.option(
    "-r",
    "--runs",
    type=click.IntRange(min=1),
    default=None,
    help="Timed runs per commit (default: 1).",
)
@click.option(
    "-s",
    "--skip",
    type=click.IntRange(min=0),
    default=None,
    help="Commits skipped between two benchmarked commits (default: 0).",
)
@click.option(
    "--start-hash",
    type=str,
    default=None,
    help="Revision to walk back from (default: HEAD).",
)
@click.option(
    "--profile",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML profile with default settings.",
)
@click.option(
    "--repo-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Repository to benchmark.",
)
@click.option(
    "--results-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Output directory, relative to the repository (default: tmp/commitbench).",
)
@click.option(
    "--install-command",
    type=str,
    default=None,
    help="Quiet dependency install command (default: 'yarn install --silent').",
)
@click.option(
    "--no-toolchain",
    is_flag=True,
    default=False,
    help="Do not sync the runtime or package-manager version.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def main(
    commits: int | None,
    runs: int | None,
    skip: int | None,
    start_hash: str | None,
    profile: Path | None,
    repo_dir: Path,
    results_dir: Path | None,
    install_command: str | None,
    no_toolchain: bool,
    verbose: bool,
    quiet: bool,
    command: tuple[str, ...],
) -> None:
    """Benchmark COMMAND across the recent commits of a git repository.

    Everything after '--' is the command to time. Each selected commit is
    checked out, its dependencies installed, and COMMAND run --runs times.
    Min, median and max are written to a tab-separated results file.
    """
    try:
        profile_data = load_profile(profile) if profile is not None else None
        config = build_config(
            list(command),
            profile_data=profile_data,
            cli_overrides={
                "commits": commits,
                "runs": runs,
                "skip": skip,
                "start_hash": start_hash,
                "repo_dir": repo_dir,
                "results_dir": results_dir,
                "install_command": install_command,
                "no_toolchain": no_toolchain or None,
            },
        )
    except CommitbenchError as exc:
        _fail(str(exc))

    setup_logging(verbose=verbose, quiet=quiet, log_file=config.log_path)

    try:
        run_benchmark(config)
    except CommitbenchError as exc:
        _fail(str(exc))
    except subprocess.CalledProcessError as exc:
        cmd = exc.cmd if isinstance(exc.cmd, str) else shlex.join(exc.cmd)
        detail = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
        _fail(f"'{cmd}' failed with exit status {exc.returncode}. {detail}".strip())
    except FileNotFoundError as exc:
        _fail(f"required tool not found: {exc.filename or exc}")
    except KeyboardInterrupt:
        sys.exit(130)
