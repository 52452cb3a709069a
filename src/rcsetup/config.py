"""Setup files, precedence resolution, credentials, and atomic writes.

This module handles all file-level configuration for rcsetup:

* **Setup files** -- JSON or YAML documents deserialised into a
  :class:`~rcsetup.models.SetupConfig`. See :func:`load_setup` and
  :func:`save_setup`.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, and the project-local ``rcsetup.json`` into a
  :class:`~rcsetup.models.RunSettings`; :func:`apply_overrides` pushes the
  result into a loaded setup.
* **Credential resolution** -- :func:`resolve_credential` reads the API key
  from an env var, a file, or an interactive prompt.
* **Data directory** -- XDG compliant on Linux/BSD, ``~/.rcsetup/`` on
  macOS and Windows; crash logs live there.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written setup file
or report behind.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from rcsetup.exceptions import ConfigError
from rcsetup.models import ProvisioningReport, RunSettings, SetupConfig

_APP_NAME = "rcsetup"
_PROJECT_CONFIG_FILENAME = "rcsetup.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/rcsetup/`` (default ``~/.local/share/rcsetup/``).
    On macOS/Windows: ``~/.rcsetup/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Setup files ---


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in (".yaml", ".yml")


def _parse_document(text: str, path: Path) -> Any:
    """Parse *text* as YAML for .yaml/.yml files, JSON otherwise."""
    if _is_yaml(path):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc


def load_setup(path: str | Path) -> SetupConfig:
    """Load and validate a setup file.

    Args:
        path: Path to a ``.json``, ``.yaml`` or ``.yml`` file.

    Returns:
        The deserialised :class:`~rcsetup.models.SetupConfig`. Identifier
        and reference checks are separate; see
        :func:`~rcsetup.validation.validate_setup`.

    Raises:
        ConfigError: If the file is missing, unparsable, or does not match
            the setup schema.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Setup file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read setup file {path}: {exc}") from exc

    data = _parse_document(text, path)
    if not isinstance(data, dict):
        raise ConfigError(f"Setup file {path} must contain a mapping at the top level")

    try:
        return SetupConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid setup file {path}: {exc}") from exc


def save_setup(setup: SetupConfig, path: str | Path) -> None:
    """Write *setup* atomically as YAML or JSON, depending on the file suffix."""
    path = Path(path)
    data = setup.model_dump(mode="json", exclude_none=True)
    if _is_yaml(path):
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(data, indent=2) + "\n"
    _atomic_write(path, text)


def save_report(report: ProvisioningReport, path: str | Path) -> None:
    """Write a provisioning report atomically as JSON."""
    data = report.model_dump(mode="json")
    _atomic_write(Path(path), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./rcsetup.json``.

    Recognised keys: ``setup_file``, ``api_key_source``, ``project_id``,
    ``base_url``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Precedence resolution ---

_ENV_VARS = {
    "setup_file": "RCSETUP_CONFIG",
    "api_key_source": "RCSETUP_API_KEY_SOURCE",
    "project_id": "RCSETUP_PROJECT_ID",
    "base_url": "RCSETUP_BASE_URL",
}


def resolve_settings(
    cli_setup_file: Optional[str] = None,
    cli_api_key_source: Optional[str] = None,
    cli_project_id: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> RunSettings:
    """Resolve run settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``RCSETUP_CONFIG``,
           ``RCSETUP_API_KEY_SOURCE``, ``RCSETUP_PROJECT_ID``,
           ``RCSETUP_BASE_URL``)
        3. Project config (``./rcsetup.json``)
        4. Defaults (see :class:`~rcsetup.models.RunSettings`)

    ``project_id`` and ``base_url`` resolved here override the values in
    the setup file; see :func:`apply_overrides`.
    """
    values: dict[str, Any] = {}

    project = load_project_config() or {}
    for key in _ENV_VARS:
        if project.get(key):
            values[key] = project[key]

    for key, env_var in _ENV_VARS.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[key] = env_value

    cli = {
        "setup_file": cli_setup_file,
        "api_key_source": cli_api_key_source,
        "project_id": cli_project_id,
        "base_url": cli_base_url,
    }
    for key, value in cli.items():
        if value is not None:
            values[key] = value

    return RunSettings(**values)


def apply_overrides(setup: SetupConfig, settings: RunSettings) -> SetupConfig:
    """Return *setup* with the project id and base URL from *settings* applied."""
    update: dict[str, Any] = {}
    if settings.project_id:
        update["project_id"] = settings.project_id
    if settings.base_url:
        update["api"] = setup.api.model_copy(update={"base_url": settings.base_url})
    return setup.model_copy(update=update) if update else setup


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if not value:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc
        if not value:
            raise ConfigError(f"Credential file is empty: {path}")
        return value

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for the API key: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("RevenueCat secret API key: ")

    raise ConfigError(f"Unknown credential source format: {source}")
