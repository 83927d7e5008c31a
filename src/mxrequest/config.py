"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for mxrequest:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.mxrequest/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_profiles_dir`.
* **Global config** -- a single :class:`~mxrequest.models.GlobalConfig`
  JSON file storing defaults.
* **Profiles** -- one JSON file per homeserver account, each deserialised
  into a :class:`~mxrequest.models.Profile`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config.
* **Credential resolution** -- :func:`resolve_credential` reads access
  tokens from env vars, files, prompts, or literal ``token:`` descriptors.

All file writes go through :func:`_atomic_write` (temp file, then rename).
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

from mxrequest.exceptions import ConfigError
from mxrequest.models import GlobalConfig, Profile

_APP_NAME = "mxrequest"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "mxrequest.json"

ENV_PROFILE = "MXREQUEST_PROFILE"
ENV_HOMESERVER = "MXREQUEST_HOMESERVER"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/mxrequest/`` (default ``~/.config/mxrequest/``).
    On macOS/Windows: ``~/.mxrequest/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/mxrequest/`` (default ``~/.local/share/mxrequest/``).
    On macOS/Windows: ``~/.mxrequest/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return ``<config_dir>/profiles/``, creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: int = 0o600) -> None:
    """Write *data* to *path* atomically using a temp file and ``os.replace``.

    The temp file lives in the target directory so the rename never crosses
    filesystems. Profiles may embed a token, so files are created ``0600``.
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
        os.chmod(tmp_path, mode)
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


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not valid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names in the profiles directory, sorted."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile does not exist, is not valid JSON, or
            fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    """Persist *profile* atomically as ``<profiles_dir>/<name>.json``."""
    data = profile.model_dump(mode="json")
    _atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a profile's JSON file.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./mxrequest.json`` if present.

    Project-local config sits between global config and environment
    variables in the precedence chain; it typically pins
    ``default_profile`` for a bot's repository.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_homeserver: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_profile``, ``cli_homeserver``)
        2. Environment variables (``MXREQUEST_PROFILE``, ``MXREQUEST_HOMESERVER``)
        3. Project config (``./mxrequest.json``)
        4. User config (``~/.config/mxrequest/config.json``)
        5. Defaults

    Returns:
        A tuple of ``(global_config, active_profile_or_None)``.
    """
    global_cfg = load_global_config()

    resolved_name: Optional[str] = global_cfg.default_profile
    project = load_project_config()
    if project is not None and project.get("default_profile") is not None:
        resolved_name = project["default_profile"]
    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        resolved_name = env_profile
    if cli_profile is not None:
        resolved_name = cli_profile

    if resolved_name is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            resolved_name = profiles[0]

    profile: Optional[Profile] = None
    if resolved_name is not None:
        profile = load_profile(resolved_name)

    if profile is not None:
        env_homeserver = os.environ.get(ENV_HOMESERVER)
        if cli_homeserver is not None:
            profile.homeserver = cli_homeserver
        elif env_homeserver:
            profile.homeserver = env_homeserver

    return global_cfg, profile


def resolve_output_format(cli_format: Optional[str] = None) -> str:
    """Return the output format: ``--json`` / ``--plain`` first, then ``output.format``."""
    if cli_format is not None:
        return cli_format
    return load_global_config().output.format


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve an access token from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads the file, stripped of whitespace
        - ``"prompt"`` -- prompts interactively (requires a TTY)
        - ``"token:VALUE"`` -- the literal token (written by ``mxreq login --save``)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Token file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read token file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for access token: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Access token: ")

    if source.startswith("token:"):
        return source[6:]

    raise ConfigError(f"Unknown credential source format: {source}")
