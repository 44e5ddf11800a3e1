"""Typed records for the server registry document.

The registry is a single JSON document on the remote host::

    {
      "projects": {"<name>": {...}},
      "previews": {"<project>-<build>": {...}},
      "ports": {"reserved": {...}, "range": {...}, "next_available": {...}},
      "server": {"domains": [...]},
      "updated_at": "2025-01-01T00:00:00Z"
    }

Map keys carry the project name and preview key; they are not repeated in
the record bodies. Parsing is strict: a record with a missing field, a wrong
type, an unknown key or an unknown enum value raises
:class:`~codebctl.errors.RegistryFormatError` instead of being carried
forward half-populated. Unknown *top-level* keys and unknown keys under
``server`` are kept verbatim so other tools sharing the file lose nothing.
"""
from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..errors import RegistryFormatError

_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


class ProjectType(str, Enum):
    """Application runtime of a project."""

    NODEJS = "nodejs"
    NEXTJS = "nextjs"
    REMIX = "remix"
    STATIC = "static"


class DeploymentStatus(str, Enum):
    """Observed or declared state of an environment or preview container."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"


def format_timestamp(value: datetime) -> str:
    """Render *value* as an ISO-8601 UTC string with a ``Z`` suffix."""
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: object, label: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is present."""
    if not isinstance(value, str) or not value.strip():
        raise RegistryFormatError(f"{label} must be an ISO-8601 timestamp string.")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise RegistryFormatError(f"{label} is not a valid timestamp: {value!r}.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


@dataclass
class EnvConfig:
    """Deployment slot of a project in one environment."""

    port: int
    domain: str | None = None
    container: str | None = None
    status: DeploymentStatus = DeploymentStatus.PENDING

    def to_dict(self) -> dict[str, object]:
        """Return the JSON representation."""
        return {
            "port": self.port,
            "domain": self.domain,
            "container": self.container,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: object, label: str) -> EnvConfig:
        """Parse an environment record."""
        data = _expect_record(raw, label, required={"port"}, optional={"domain", "container", "status"})
        return cls(
            port=_expect_port(data["port"], f"{label}.port"),
            domain=_optional_str(data.get("domain"), f"{label}.domain"),
            container=_optional_str(data.get("container"), f"{label}.container"),
            status=_expect_enum(
                DeploymentStatus, data.get("status", "pending"), f"{label}.status"
            ),
        )


@dataclass
class Project:
    """A registered project and its environments."""

    name: str
    created_at: datetime
    type: ProjectType = ProjectType.NODEJS
    git_repo: str | None = None
    updated_at: datetime | None = None
    environments: dict[str, EnvConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return the JSON representation (the name is the enclosing map key)."""
        payload: dict[str, object] = {"created_at": format_timestamp(self.created_at)}
        if self.updated_at is not None:
            payload["updated_at"] = format_timestamp(self.updated_at)
        payload["type"] = self.type.value
        payload["git_repo"] = self.git_repo
        payload["environments"] = {
            env: config.to_dict() for env, config in self.environments.items()
        }
        return payload

    @classmethod
    def from_dict(cls, name: str, raw: object) -> Project:
        """Parse the project stored under *name*."""
        label = f"projects.{name}"
        data = _expect_record(
            raw,
            label,
            required={"created_at"},
            optional={"updated_at", "type", "git_repo", "environments"},
        )
        environments_raw = _expect_mapping(data.get("environments", {}), f"{label}.environments")
        updated_raw = data.get("updated_at")
        return cls(
            name=name,
            created_at=parse_timestamp(data["created_at"], f"{label}.created_at"),
            type=_expect_enum(ProjectType, data.get("type", "nodejs"), f"{label}.type"),
            git_repo=_optional_str(data.get("git_repo"), f"{label}.git_repo"),
            updated_at=(
                parse_timestamp(updated_raw, f"{label}.updated_at")
                if updated_raw is not None
                else None
            ),
            environments={
                env: EnvConfig.from_dict(config, f"{label}.environments.{env}")
                for env, config in environments_raw.items()
            },
        )


@dataclass
class Preview:
    """A short-lived deployment of one build of a project."""

    key: str
    project: str
    build: str
    port: int
    url: str
    container: str
    created_at: datetime
    expires_at: datetime
    status: DeploymentStatus = DeploymentStatus.PENDING
    branch: str | None = None
    pr: str | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once *now* has reached ``expires_at``."""
        return self.expires_at <= now

    def to_dict(self) -> dict[str, object]:
        """Return the JSON representation (the key is the enclosing map key)."""
        return {
            "project": self.project,
            "build": self.build,
            "branch": self.branch,
            "pr": self.pr,
            "port": self.port,
            "url": self.url,
            "container": self.container,
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
        }

    @classmethod
    def from_dict(cls, key: str, raw: object) -> Preview:
        """Parse the preview stored under *key*."""
        label = f"previews.{key}"
        data = _expect_record(
            raw,
            label,
            required={"project", "build", "port", "url", "created_at", "expires_at"},
            optional={"branch", "pr", "container", "status"},
        )
        created_at = parse_timestamp(data["created_at"], f"{label}.created_at")
        expires_at = parse_timestamp(data["expires_at"], f"{label}.expires_at")
        if expires_at <= created_at:
            raise RegistryFormatError(f"{label}.expires_at must be later than created_at.")
        return cls(
            key=key,
            project=_expect_str(data["project"], f"{label}.project"),
            build=_expect_identifier(data["build"], f"{label}.build"),
            branch=_optional_str(data.get("branch"), f"{label}.branch"),
            pr=_optional_identifier(data.get("pr"), f"{label}.pr"),
            port=_expect_port(data["port"], f"{label}.port"),
            url=_expect_str(data["url"], f"{label}.url"),
            container=_optional_str(data.get("container"), f"{label}.container") or key,
            status=_expect_enum(DeploymentStatus, data.get("status", "pending"), f"{label}.status"),
            created_at=created_at,
            expires_at=expires_at,
        )


@dataclass
class PortAllocation:
    """Reserved ports, per-environment ranges and allocation counters."""

    reserved: dict[int, str] = field(default_factory=dict)
    range: dict[str, str] = field(default_factory=dict)
    next_available: dict[str, int] = field(default_factory=dict)

    def range_bounds(self, env_class: str) -> tuple[int, int] | None:
        """Return ``(low, high)`` for *env_class* when a range is configured."""
        raw = self.range.get(env_class)
        if raw is None:
            return None
        match = _RANGE_PATTERN.match(raw)
        if match is None:
            return None
        return int(match.group(1)), int(match.group(2))

    def to_dict(self) -> dict[str, object]:
        """Return the JSON representation."""
        return {
            "reserved": {str(port): service for port, service in self.reserved.items()},
            "range": dict(self.range),
            "next_available": dict(self.next_available),
        }

    @classmethod
    def from_dict(cls, raw: object) -> PortAllocation:
        """Parse the ``ports`` section."""
        data = _expect_record(raw, "ports", required=set(), optional={"reserved", "range", "next_available"})
        reserved: dict[int, str] = {}
        for port_key, service in _expect_mapping(data.get("reserved", {}), "ports.reserved").items():
            try:
                port = int(port_key)
            except ValueError as exc:
                raise RegistryFormatError(
                    f"ports.reserved key {port_key!r} is not a port number."
                ) from exc
            reserved[_expect_port(port, f"ports.reserved.{port_key}")] = _expect_str(
                service, f"ports.reserved.{port_key}"
            )

        ranges: dict[str, str] = {}
        for env, value in _expect_mapping(data.get("range", {}), "ports.range").items():
            text = _expect_str(value, f"ports.range.{env}")
            if _RANGE_PATTERN.match(text) is None:
                raise RegistryFormatError(f"ports.range.{env} must look like 'min-max'.")
            ranges[env] = text

        counters = {
            env: _expect_port(value, f"ports.next_available.{env}")
            for env, value in _expect_mapping(
                data.get("next_available", {}), "ports.next_available"
            ).items()
        }
        return cls(reserved=reserved, range=ranges, next_available=counters)


@dataclass
class ServerInfo:
    """Descriptive data about the host; ``domains`` feeds preview URLs."""

    host: str | None = None
    domains: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return the JSON representation, preserving unknown keys."""
        payload: dict[str, object] = dict(copy.deepcopy(self.extra))
        if self.host is not None:
            payload["host"] = self.host
        payload["domains"] = list(self.domains)
        return payload

    @classmethod
    def from_dict(cls, raw: object) -> ServerInfo:
        """Parse the ``server`` section."""
        data = dict(_expect_mapping(raw, "server"))
        host = _optional_str(data.pop("host", None), "server.host")
        domains_raw = data.pop("domains", [])
        if not isinstance(domains_raw, list):
            raise RegistryFormatError("server.domains must be a list of strings.")
        domains = [
            _expect_str(item, f"server.domains[{index}]")
            for index, item in enumerate(domains_raw)
        ]
        return cls(host=host, domains=domains, extra=data)


@dataclass
class Registry:
    """In-memory copy of the remote registry document.

    Instances are transient: they live for one command invocation and are
    never cached across invocations.
    """

    projects: dict[str, Project] = field(default_factory=dict)
    previews: dict[str, Preview] = field(default_factory=dict)
    ports: PortAllocation = field(default_factory=PortAllocation)
    server: ServerInfo = field(default_factory=ServerInfo)
    updated_at: datetime | None = None
    version: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> Registry:
        """Return a deep copy that can be mutated independently."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, object]:
        """Return the JSON document."""
        payload: dict[str, object] = {
            "projects": {name: project.to_dict() for name, project in self.projects.items()},
            "previews": {key: preview.to_dict() for key, preview in self.previews.items()},
            "ports": self.ports.to_dict(),
            "server": self.server.to_dict(),
            "updated_at": (
                format_timestamp(self.updated_at) if self.updated_at is not None else None
            ),
            "version": self.version,
        }
        for key, value in self.extra.items():
            payload.setdefault(key, copy.deepcopy(value))
        return payload

    @classmethod
    def from_dict(cls, raw: object) -> Registry:
        """Parse and validate a registry document."""
        data = dict(_expect_mapping(raw, "registry"))
        if "projects" not in data:
            raise RegistryFormatError("registry is missing 'projects'.")
        if "ports" not in data:
            raise RegistryFormatError("registry is missing 'ports'.")

        projects_raw = _expect_mapping(data.pop("projects"), "projects")
        previews_raw = _expect_mapping(data.pop("previews", None) or {}, "previews")
        ports = PortAllocation.from_dict(data.pop("ports"))
        server = ServerInfo.from_dict(data.pop("server", None) or {})
        updated_raw = data.pop("updated_at", None)
        version_raw = data.pop("version", 0)
        if isinstance(version_raw, bool) or not isinstance(version_raw, int) or version_raw < 0:
            raise RegistryFormatError("version must be a non-negative integer.")

        return cls(
            projects={name: Project.from_dict(name, body) for name, body in projects_raw.items()},
            previews={key: Preview.from_dict(key, body) for key, body in previews_raw.items()},
            ports=ports,
            server=server,
            updated_at=(
                parse_timestamp(updated_raw, "updated_at") if updated_raw is not None else None
            ),
            version=version_raw,
            extra=data,
        )


# Parsing helpers -----------------------------------------------------------
def _expect_mapping(value: object, label: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise RegistryFormatError(f"{label} must be an object. Got {type(value).__name__}.")
    for key in value:
        if not isinstance(key, str):
            raise RegistryFormatError(f"{label} must use string keys. Got {key!r}.")
    return value


def _expect_record(
    value: object,
    label: str,
    *,
    required: set[str],
    optional: set[str],
) -> Mapping[str, object]:
    data = _expect_mapping(value, label)
    missing = required - set(data)
    if missing:
        raise RegistryFormatError(f"{label} is missing: {', '.join(sorted(missing))}.")
    unknown = set(data) - required - optional
    if unknown:
        raise RegistryFormatError(f"{label} has unknown keys: {', '.join(sorted(unknown))}.")
    return data


def _expect_str(value: object, label: str) -> str:
    if not isinstance(value, str):
        raise RegistryFormatError(f"{label} must be a string. Got {type(value).__name__}.")
    return value


def _optional_str(value: object, label: str) -> str | None:
    if value is None:
        return None
    return _expect_str(value, label)


def _expect_identifier(value: object, label: str) -> str:
    # Build numbers and PR numbers are sometimes stored as JSON numbers.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _expect_str(value, label)


def _optional_identifier(value: object, label: str) -> str | None:
    if value is None:
        return None
    return _expect_identifier(value, label)


def _expect_port(value: object, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RegistryFormatError(f"{label} must be an integer port.")
    if not 1 <= value <= 65535:
        raise RegistryFormatError(f"{label} must be between 1 and 65535. Got {value}.")
    return value


def _expect_enum(enum_type: type[Any], value: object, label: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise RegistryFormatError(
            f"{label} has unsupported value {value!r}. Allowed: {allowed}."
        ) from exc


__all__ = [
    "DeploymentStatus",
    "EnvConfig",
    "PortAllocation",
    "Preview",
    "Project",
    "ProjectType",
    "Registry",
    "ServerInfo",
    "format_timestamp",
    "parse_timestamp",
]
