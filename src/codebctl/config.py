"""Configuration loader for codebctl.

Values are merged from several sources, later sources winning:

1. Built-in defaults.
2. ``~/.codeb/config.yml`` (or an override path).
3. Environment variables prefixed with ``CODEBCTL_``.
4. The legacy ``CODEB_SERVER_HOST`` / ``CODEB_SERVER_USER`` variables.
5. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export CODEBCTL_SERVER__HOST=203.0.113.10
    export CODEBCTL_REGISTRY__OPTIMISTIC_LOCK=true

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

ENV_PREFIX = "CODEBCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}
LEGACY_ENV_KEYS = {
    "CODEB_SERVER_HOST": ("server", "host"),
    "CODEB_SERVER_USER": ("server", "user"),
}
MAX_CONNECT_TIMEOUT = 10.0


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class ServerConfig:
    """SSH target and remote timeouts."""

    host: str = "141.164.60.51"
    user: str = "root"
    port: int = 22
    connect_timeout: float = 10.0
    command_timeout: float = 30.0
    read_timeout: float = 60.0
    registry_path: str = "/opt/codeb/registry.json"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "host": self.host,
            "user": self.user,
            "port": self.port,
            "connect_timeout": self.connect_timeout,
            "command_timeout": self.command_timeout,
            "read_timeout": self.read_timeout,
            "registry_path": self.registry_path,
        }


@dataclass(frozen=True)
class RegistryConfig:
    """Registry persistence behaviour."""

    optimistic_lock: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"optimistic_lock": self.optimistic_lock}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for codebctl."""

    config_file: Path
    logs_dir: Path
    runtime_dir: Path
    lock_timeout: float
    base_domain: str
    preview_ttl_hours: int
    server: ServerConfig
    registry: RegistryConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "runtime_dir": str(self.runtime_dir),
            "lock_timeout": self.lock_timeout,
            "base_domain": self.base_domain,
            "preview_ttl_hours": self.preview_ttl_hours,
            "server": self.server.to_dict(),
            "registry": self.registry.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.codeb/config.yml",
    "logs_dir": "~/.codeb/logs",
    "runtime_dir": "~/.codeb/run",
    "lock_timeout": 30.0,
    "base_domain": "one-q.xyz",
    "preview_ttl_hours": 72,
    "server": {
        "host": "141.164.60.51",
        "user": "root",
        "port": 22,
        "connect_timeout": 10.0,
        "command_timeout": 30.0,
        "read_timeout": 60.0,
        "registry_path": "/opt/codeb/registry.json",
    },
    "registry": {
        "optimistic_lock": False,
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_SERVER_KEYS = set(cast(Mapping[str, object], DEFAULTS["server"]).keys())
ALLOWED_REGISTRY_KEYS = set(cast(Mapping[str, object], DEFAULTS["registry"]).keys())


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    legacy_values = _build_legacy_overrides(resolved_env)
    if legacy_values:
        _deep_merge(merged, legacy_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    server_map = _as_dict(raw.get("server"), "server")
    unknown = set(server_map.keys()) - ALLOWED_SERVER_KEYS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown server configuration keys: {joined}.")

    registry_map = _as_dict(raw.get("registry"), "registry")
    unknown = set(registry_map.keys()) - ALLOWED_REGISTRY_KEYS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown registry configuration keys: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    server_map = _as_dict(raw.get("server"), "server")
    defaults = ServerConfig()

    host = str(server_map.get("host") or "").strip()
    if not host:
        raise ConfigError("server.host must be a non-empty string.")
    user = str(server_map.get("user") or "").strip()
    if not user:
        raise ConfigError("server.user must be a non-empty string.")

    connect_timeout = _expect_positive_float(
        server_map.get("connect_timeout"),
        "server.connect_timeout",
        default=defaults.connect_timeout,
    )
    if connect_timeout > MAX_CONNECT_TIMEOUT:
        raise ConfigError(
            f"server.connect_timeout must not exceed {MAX_CONNECT_TIMEOUT:g} seconds."
        )

    registry_path = str(server_map.get("registry_path") or "").strip()
    if not registry_path.startswith("/"):
        raise ConfigError("server.registry_path must be an absolute path.")

    server = ServerConfig(
        host=host,
        user=user,
        port=_expect_int(server_map.get("port"), "server.port", default=defaults.port),
        connect_timeout=connect_timeout,
        command_timeout=_expect_positive_float(
            server_map.get("command_timeout"),
            "server.command_timeout",
            default=defaults.command_timeout,
        ),
        read_timeout=_expect_positive_float(
            server_map.get("read_timeout"),
            "server.read_timeout",
            default=defaults.read_timeout,
        ),
        registry_path=registry_path,
    )

    registry_map = _as_dict(raw.get("registry"), "registry")
    registry = RegistryConfig(
        optimistic_lock=_expect_bool(
            registry_map.get("optimistic_lock"), "registry.optimistic_lock", default=False
        ),
    )

    ttl_hours = _expect_int(raw.get("preview_ttl_hours"), "preview_ttl_hours", default=72)
    if ttl_hours <= 0:
        raise ConfigError("preview_ttl_hours must be greater than zero.")

    base_domain = str(raw.get("base_domain") or "").strip().strip(".")
    if not base_domain:
        raise ConfigError("base_domain must be a non-empty string.")

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        logs_dir=_to_path(raw.get("logs_dir")),
        runtime_dir=_to_path(raw.get("runtime_dir")),
        lock_timeout=_expect_positive_float(
            raw.get("lock_timeout"), "lock_timeout", default=30.0
        ),
        base_domain=base_domain,
        preview_ttl_hours=ttl_hours,
        server=server,
        registry=registry,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _build_legacy_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, path in LEGACY_ENV_KEYS.items():
        value = env.get(key)
        if value is None or not value.strip():
            continue
        _assign_nested(overrides, list(path), value.strip())
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "RegistryConfig",
    "ServerConfig",
    "load_config",
]
