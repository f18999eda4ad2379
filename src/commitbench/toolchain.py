"""Runtime and package-manager synchronisation for a checked-out commit.

Reads the versions a commit pins (a version pin file, falling back to
the package manifest), installs them through the runtime version
manager when missing, and installs the commit's declared dependencies.

Toolchain commands run with ``check=True``: their failures propagate to
the caller. Dependency installation reports failure as a return value
so the caller can skip the commit.
"""

from __future__ import annotations

import json
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from commitbench.config import ToolchainConfig
from commitbench.logging import get_logger

log = get_logger("toolchain")

_EXACT_VERSION_RE = re.compile(r"^v?(\d+\.\d+\.\d+)$")
_PACKAGE_MANAGER_RE = re.compile(r"^(?P<name>[\w.-]+)@v?(?P<version>\d+\.\d+\.\d+)")


# ---------------------------------------------------------------------------
# VersionPin
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionPin:
    """A tool version declared by the checked-out commit."""

    tool: str
    version: str
    source: str  # file the pin was read from


# ---------------------------------------------------------------------------
# Pin adapters
# ---------------------------------------------------------------------------


def read_version_file(path: Path) -> str | None:
    """Read the first version line of a pin file such as ``.node-version``.

    Blank lines and ``#`` comments are ignored; a leading ``v`` is dropped.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            return line[1:] if line.startswith("v") else line
    return None


def read_manifest(path: Path) -> dict[str, Any] | None:
    """Parse a JSON manifest, or None if it is missing or malformed."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError:
        return None
    except json.JSONDecodeError as exc:
        log.warning("Ignoring malformed %s: %s", path.name, exc)
        return None
    return data if isinstance(data, dict) else None


def _lookup(data: dict[str, Any], section: str, key: str) -> str | None:
    value = data.get(section)
    if isinstance(value, dict) and isinstance(value.get(key), str):
        return value[key]
    return None


def runtime_pin(repo_dir: Path, config: ToolchainConfig) -> VersionPin | None:
    """Determine the runtime version the commit requires.

    Order: the version pin file, then ``volta.<runtime>`` in the manifest,
    then ``engines.<runtime>`` when it names one exact version.
    """
    runtime = config.runtime
    version = read_version_file(repo_dir / config.version_file)
    if version:
        return VersionPin(tool=runtime, version=version, source=config.version_file)

    manifest = read_manifest(repo_dir / config.manifest)
    if manifest is None:
        return None
    volta = _lookup(manifest, "volta", runtime)
    if volta:
        return VersionPin(tool=runtime, version=volta.lstrip("v"), source=config.manifest)
    engines = _lookup(manifest, "engines", runtime)
    if engines:
        match = _EXACT_VERSION_RE.match(engines.strip())
        if match:
            return VersionPin(tool=runtime, version=match.group(1), source=config.manifest)
    return None


def package_manager_pin(repo_dir: Path, config: ToolchainConfig) -> VersionPin | None:
    """Determine the package-manager version declared in the manifest.

    Reads ``volta.<manager>``, then a ``packageManager`` field of the form
    ``yarn@1.22.19`` naming the configured manager.
    """
    manifest = read_manifest(repo_dir / config.manifest)
    if manifest is None:
        return None
    name = config.package_manager
    volta = _lookup(manifest, "volta", name)
    if volta:
        return VersionPin(tool=name, version=volta.lstrip("v"), source=config.manifest)
    field_value = manifest.get("packageManager")
    if isinstance(field_value, str):
        match = _PACKAGE_MANAGER_RE.match(field_value.strip())
        if match and match.group("name") == name:
            return VersionPin(tool=name, version=match.group("version"), source=config.manifest)
    return None


# ---------------------------------------------------------------------------
# Runtime version manager
# ---------------------------------------------------------------------------


def _run_checked(
    command: list[str],
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    run_env = dict(os.environ)
    if env:
        run_env.update(env)
    log.debug("Running: %s", " ".join(command))
    return subprocess.run(
        command,
        capture_output=True,
        text=True,
        cwd=str(cwd),
        env=run_env,
        check=True,
    )


def installed_runtimes(manager: str, *, cwd: Path) -> set[str]:
    """Versions the runtime version manager already has installed."""
    proc = _run_checked([manager, "versions", "--bare"], cwd=cwd)
    return {line.strip() for line in proc.stdout.splitlines() if line.strip()}


def package_manager_version(name: str, *, cwd: Path, env: dict[str, str]) -> str | None:
    """Report the active package-manager version, or None if it is not installed."""
    run_env = dict(os.environ)
    run_env.update(env)
    try:
        proc = subprocess.run(
            [name, "--version"],
            capture_output=True,
            text=True,
            cwd=str(cwd),
            env=run_env,
            check=False,
        )
    except FileNotFoundError:
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip().lstrip("v") or None


def sync_toolchain(repo_dir: Path, config: ToolchainConfig) -> dict[str, str]:
    """Make the pinned runtime and package-manager versions available.

    Returns environment overrides for later commands: the manager's
    ``<MANAGER>_VERSION`` variable selects the pinned runtime, whichever
    file the pin came from.

    Raises:
        subprocess.CalledProcessError: if a manager command fails.
        FileNotFoundError: if the runtime version manager is not installed.
    """
    env: dict[str, str] = {}
    if not config.enabled:
        return env

    manager = config.runtime_manager
    runtime = runtime_pin(repo_dir, config)
    if runtime is None:
        log.debug("No runtime version pinned; using the current runtime")
    else:
        env[f"{manager.upper()}_VERSION"] = runtime.version
        if runtime.version not in installed_runtimes(manager, cwd=repo_dir):
            log.info("Installing %s %s (from %s)", runtime.tool, runtime.version, runtime.source)
            _run_checked([manager, "install", runtime.version], cwd=repo_dir)
            _run_checked([manager, "rehash"], cwd=repo_dir)

    pm = package_manager_pin(repo_dir, config)
    if pm is not None:
        current = package_manager_version(pm.tool, cwd=repo_dir, env=env)
        if current != pm.version:
            log.info("Installing %s %s (found %s)", pm.tool, pm.version, current or "none")
            _run_checked(
                ["npm", "install", "--global", f"{pm.tool}@{pm.version}"],
                cwd=repo_dir,
                env=env,
            )
            _run_checked([manager, "rehash"], cwd=repo_dir, env=env)
    return env


# ---------------------------------------------------------------------------
# Dependency installation
# ---------------------------------------------------------------------------


def install_dependencies(
    repo_dir: Path,
    install_command: list[str],
    verbose_install_command: list[str],
    *,
    env: dict[str, str] | None = None,
) -> bool:
    """Install the commit's declared dependencies quietly.

    On failure the verbose command is rerun with its output going straight
    to the terminal so the cause is visible, and False is returned.
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)
    try:
        proc = subprocess.run(
            install_command,
            capture_output=True,
            text=True,
            cwd=str(repo_dir),
            env=run_env,
            check=False,
        )
    except FileNotFoundError as exc:
        log.warning("Dependency install could not start: %s", exc)
        return False
    if proc.returncode == 0:
        return True

    log.warning("Dependency install failed (exit %d); rerunning verbosely", proc.returncode)
    log.debug("install stderr: %s", proc.stderr.strip()[-2000:])
    if verbose_install_command:
        try:
            subprocess.run(verbose_install_command, cwd=str(repo_dir), env=run_env, check=False)
        except FileNotFoundError as exc:
            log.warning("Verbose dependency install could not start: %s", exc)
    return False
