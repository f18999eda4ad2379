"""Benchmark configuration and profile loading.

Handles:
- Loading run defaults from a YAML profile.
- Merging CLI options over profile values.
- Validating the final configuration before anything touches the repo.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from commitbench.errors import ConfigError
from commitbench.logging import get_logger

log = get_logger("config")

DEFAULT_RESULTS_DIR = Path("tmp") / "commitbench"
RESULTS_FILENAME = "results.tsv"
LOG_FILENAME = "commitbench.log"


# ---------------------------------------------------------------------------
# ToolchainConfig / BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class ToolchainConfig:
    """Where to find version pins and which tools keep them in sync."""

    enabled: bool = True
    runtime: str = "node"
    version_file: str = ".node-version"
    manifest: str = "package.json"
    runtime_manager: str = "nodenv"
    package_manager: str = "yarn"


@dataclass
class BenchConfig:
    """Resolved configuration for a benchmark run."""

    command: list[str] = field(default_factory=list)

    # Commit selection
    commits: int = 10
    runs: int = 1
    skip: int = 0
    start_hash: str | None = None

    # Paths
    repo_dir: Path = field(default_factory=lambda: Path("."))
    results_dir: Path | None = None

    # Dependency installation
    install_command: list[str] = field(default_factory=lambda: ["yarn", "install", "--silent"])
    verbose_install_command: list[str] = field(
        default_factory=lambda: ["yarn", "install", "--verbose"]
    )

    # Memory backpressure
    memory_threshold_mb: int = 1000
    memory_wait_seconds: float = 10.0

    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)

    @property
    def output_dir(self) -> Path:
        """The directory holding the results table and the running log."""
        if self.results_dir is None:
            return self.repo_dir / DEFAULT_RESULTS_DIR
        if self.results_dir.is_absolute():
            return self.results_dir
        return self.repo_dir / self.results_dir

    @property
    def results_path(self) -> Path:
        return self.output_dir / RESULTS_FILENAME

    @property
    def log_path(self) -> Path:
        return self.output_dir / LOG_FILENAME


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_config(config: BenchConfig) -> list[str]:
    """Validate a benchmark configuration.

    Returns a list of problems. Empty list means valid.
    """
    errors: list[str] = []
    if not config.command:
        errors.append("No command given. Pass the command to benchmark after '--'.")
    if config.commits < 1:
        errors.append(f"commits must be a positive integer, got {config.commits}")
    if config.runs < 1:
        errors.append(f"runs must be a positive integer, got {config.runs}")
    if config.skip < 0:
        errors.append(f"skip must be a non-negative integer, got {config.skip}")
    if config.memory_threshold_mb < 0:
        errors.append(
            f"memory_threshold_mb must be non-negative, got {config.memory_threshold_mb}"
        )
    if config.memory_wait_seconds < 0:
        errors.append(
            f"memory_wait_seconds must be non-negative, got {config.memory_wait_seconds}"
        )
    if not config.install_command:
        errors.append("install_command cannot be empty")
    return errors


# ---------------------------------------------------------------------------
# Profile loading
# ---------------------------------------------------------------------------


_PROFILE_KEYS = {
    "commits",
    "runs",
    "skip",
    "start_hash",
    "results_dir",
    "install_command",
    "verbose_install_command",
    "memory_threshold_mb",
    "memory_wait_seconds",
    "toolchain",
}


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load run defaults from a YAML file.

    Profile format::

        commits: 20
        runs: 3
        skip: 4
        install_command: "npm ci --silent"
        memory_threshold_mb: 2000
        toolchain:
          enabled: true
          version_file: ".nvmrc"
          manifest: "package.json"

    Returns:
        The parsed YAML as a dict. An empty file yields an empty dict.
    """
    if not profile_path.exists():
        raise ConfigError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in profile {profile_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - _PROFILE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown profile keys: {', '.join(unknown)}")
    return data


def _as_command(value: Any, key: str) -> list[str]:
    """Accept a command as a shell-like string or a list of arguments."""
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"'{key}' must be a string or a list of strings")


def _toolchain_from_dict(data: Any) -> ToolchainConfig:
    if not isinstance(data, dict):
        raise ConfigError("'toolchain' must be a mapping")
    known = {f.name for f in fields(ToolchainConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown toolchain keys: {', '.join(unknown)}")
    return ToolchainConfig(**data)


def build_config(
    command: list[str],
    *,
    profile_data: dict[str, Any] | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from profile values and CLI overrides.

    CLI overrides whose value is None are ignored, so unset options fall
    through to the profile and then to the dataclass defaults.
    """
    merged: dict[str, Any] = dict(profile_data or {})
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value

    config = BenchConfig(command=list(command))

    for key in ("commits", "runs", "skip", "memory_threshold_mb"):
        if key in merged:
            value = merged[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"'{key}' must be an integer, got {value!r}")
            setattr(config, key, value)

    if "memory_wait_seconds" in merged:
        value = merged["memory_wait_seconds"]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'memory_wait_seconds' must be a number, got {value!r}")
        config.memory_wait_seconds = float(value)

    if merged.get("start_hash") is not None:
        config.start_hash = str(merged["start_hash"])
    if "repo_dir" in merged:
        config.repo_dir = Path(merged["repo_dir"])
    if merged.get("results_dir") is not None:
        config.results_dir = Path(merged["results_dir"])

    for key in ("install_command", "verbose_install_command"):
        if key in merged:
            setattr(config, key, _as_command(merged[key], key))

    if "toolchain" in merged:
        config.toolchain = _toolchain_from_dict(merged["toolchain"])
    if merged.get("no_toolchain"):
        config.toolchain.enabled = False

    problems = validate_config(config)
    if problems:
        raise ConfigError("; ".join(problems))

    log.debug("Resolved config: %s", config)
    return config
