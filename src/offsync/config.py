"""Where offsync keeps its settings and durable store, and how they layer.

The engine reads one user-level :class:`~offsync.models.EngineConfig`
(backend URL, token source, cache TTLs, retry budget) and lets a project
file, ``OFFSYNC_*`` environment variables and CLI flags override it in
that order. :func:`resolve_config` is the single entry point the CLI and
:func:`offsync.connect` use.

The durable store lives under the data directory, not a cache directory:
queued mutations and offline records must outlive cache cleanups.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from offsync.exceptions import ConfigError
from offsync.models import EngineConfig

_APP_NAME = "offsync"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "offsync.json"

# Environment variable -> EngineConfig attribute.
_ENV_OVERRIDES = {
    "OFFSYNC_BASE_URL": "base_url",
    "OFFSYNC_DATA_DIR": "data_dir",
    "OFFSYNC_TOKEN_SOURCE": "token_source",
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow XDG; everything else gets ``~/.offsync``."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _user_dir(xdg_var: str, xdg_default: tuple[str, ...], *fallback: str) -> Path:
    if _is_xdg_platform():
        root = os.environ.get(xdg_var) or Path.home().joinpath(*xdg_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json``.

    ``$XDG_CONFIG_HOME/offsync`` (``~/.config/offsync``) on XDG platforms,
    ``~/.offsync`` elsewhere. Created on first use.
    """
    return _user_dir("XDG_CONFIG_HOME", (".config",))


def get_data_dir() -> Path:
    """Directory for persistent engine data.

    ``$XDG_DATA_HOME/offsync`` (``~/.local/share/offsync``) on XDG
    platforms, ``~/.offsync/data`` elsewhere. Created on first use.
    """
    return _user_dir("XDG_DATA_HOME", (".local", "share"), "data")


def get_store_dir(config: Optional[EngineConfig] = None) -> Path:
    """Return the directory backing the disk store.

    ``config.data_dir`` wins when set; otherwise ``<data dir>/store``.
    """
    if config is not None and config.data_dir:
        path = Path(config.data_dir).expanduser()
    else:
        path = get_data_dir() / "store"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Writing ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never see a half-written file.

    The temp file shares *path*'s directory; ``os.replace`` is only atomic
    within one filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


# --- User and project files ---


def _engine_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def load_engine_config() -> EngineConfig:
    """Read the user config, or return defaults when there is none.

    Raises:
        ConfigError: The file is not JSON or its values fail validation.
    """
    path = _engine_config_path()
    if not path.is_file():
        return EngineConfig()
    data = _read_json(path, "config")
    try:
        return EngineConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_engine_config(config: EngineConfig) -> None:
    """Write *config* to the user config file."""
    payload = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    _atomic_write(_engine_config_path(), payload)


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``offsync.json`` from the working directory.

    The file holds a partial config, e.g. ``{"sync": {"max_retries": 5}}``;
    it is merged key by key over the user config by :func:`resolve_config`.

    Returns:
        The raw mapping, or ``None`` when the directory has no project file.

    Raises:
        ConfigError: The file is not JSON or its top level is not an object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Layering ---


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_data_dir: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> EngineConfig:
    """Build the effective engine config.

    Later layers win: defaults, user ``config.json``, project
    ``offsync.json``, ``OFFSYNC_BASE_URL`` / ``OFFSYNC_DATA_DIR`` /
    ``OFFSYNC_TOKEN_SOURCE``, then the ``cli_*`` arguments.

    Raises:
        ConfigError: A config file is malformed.
    """
    config = load_engine_config()

    project = load_project_config()
    if project is not None:
        merged = _deep_merge(config.model_dump(mode="json"), project)
        try:
            config = EngineConfig.model_validate(merged)
        except ValueError as exc:
            raise ConfigError(f"Invalid project config: {exc}") from exc

    for var, attr in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            setattr(config, attr, value)

    if cli_base_url is not None:
        config.base_url = cli_base_url
    if cli_data_dir is not None:
        config.data_dir = cli_data_dir
    if cli_format is not None:
        config.output.format = cli_format

    return config


# --- Bearer token sources ---


def _from_env(source: str, name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise ConfigError(f"Environment variable '{name}' is not set (source: {source})")
    return value


def _from_file(source: str, name: str) -> str:
    path = Path(name).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file not found: {path} (source: {source})")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


_CREDENTIAL_SCHEMES: dict[str, Callable[[str, str], str]] = {
    "env": _from_env,
    "file": _from_file,
}


def resolve_credential(source: str) -> str:
    """Turn a ``token_source`` such as ``env:API_TOKEN`` into the token.

    ``env:NAME`` reads an environment variable; ``file:PATH`` reads a file
    and strips surrounding whitespace.

    Raises:
        ConfigError: Unknown scheme, unset variable or unreadable file.
    """
    scheme, sep, name = source.partition(":")
    reader = _CREDENTIAL_SCHEMES.get(scheme) if sep else None
    if reader is None:
        raise ConfigError(f"Unknown credential source format: {source}")
    return reader(source, name)
