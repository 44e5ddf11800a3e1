"""Project CRUD over an in-memory registry.

Every function takes a :class:`~codebctl.state.Registry` and returns a new
one; the argument is never mutated, so a failed validation leaves the
caller's copy exactly as it was and nothing reaches ``save``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from .errors import (
    DomainConflictError,
    InvalidNameError,
    ProjectExistsError,
    ProjectNotFoundError,
)
from .ports import PRODUCTION_ENV, PortAllocator, build_domain, domains_in_use
from .state import DeploymentStatus, EnvConfig, Preview, Project, ProjectType, Registry

STAGING_ENV = "staging"
DEFAULT_ENVIRONMENTS = (STAGING_ENV, PRODUCTION_ENV)
DEFAULT_BASE_DOMAIN = "one-q.xyz"
# With an explicit --port P, production gets P and staging gets P + 100.
STAGING_OVERRIDE_OFFSET = 100

_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,48}[a-z0-9])?$")


@dataclass(frozen=True, slots=True)
class ProjectOptions:
    """Inputs accepted by :func:`add_project`."""

    port: int | None = None
    type: ProjectType | str = ProjectType.NODEJS
    git_repo: str | None = None
    base_domain: str = DEFAULT_BASE_DOMAIN


@dataclass(frozen=True, slots=True)
class ProjectPatch:
    """Fields :func:`update_project` may change; ``None`` means unchanged."""

    git_repo: str | None = None
    type: ProjectType | str | None = None
    env: str | None = None
    status: DeploymentStatus | str | None = None
    domain: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectRow:
    """One project × environment pair."""

    name: str
    env: str
    config: EnvConfig

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"project": self.name, "env": self.env, **self.config.to_dict()}


def validate_project_name(name: str) -> str:
    """Return *name* stripped, or raise ``InvalidNameError`` if it is not a DNS-safe label."""
    normalized = name.strip()
    if not _NAME_PATTERN.match(normalized):
        raise InvalidNameError(
            f"Invalid project name '{name}': use lowercase letters, digits and hyphens "
            "(max 50 characters, no leading or trailing hyphen)."
        )
    return normalized


def coerce_project_type(value: ProjectType | str) -> ProjectType:
    """Return *value* as a :class:`ProjectType`."""
    try:
        return ProjectType(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in ProjectType)
        raise InvalidNameError(f"Unsupported project type '{value}'. Allowed: {allowed}.") from exc


def coerce_status(value: DeploymentStatus | str) -> DeploymentStatus:
    """Return *value* as a :class:`DeploymentStatus`."""
    try:
        return DeploymentStatus(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in DeploymentStatus)
        raise InvalidNameError(f"Unsupported status '{value}'. Allowed: {allowed}.") from exc


def get_project(registry: Registry, name: str) -> Project:
    """Return the project named *name*."""
    project = registry.projects.get(name)
    if project is None:
        raise ProjectNotFoundError(name)
    return project


def previews_for(registry: Registry, name: str) -> list[Preview]:
    """Return the previews owned by project *name* in insertion order."""
    return [preview for preview in registry.previews.values() if preview.project == name]


def add_project(
    registry: Registry,
    name: str,
    options: ProjectOptions | None = None,
    *,
    now: datetime | None = None,
    allocator: PortAllocator | None = None,
) -> Registry:
    """Register *name* with ``staging`` and ``production`` environments."""
    options = options or ProjectOptions()
    name = validate_project_name(name)
    if name in registry.projects:
        raise ProjectExistsError(name)
    project_type = coerce_project_type(options.type)
    allocator = allocator or PortAllocator()
    timestamp = now or datetime.now(UTC)

    updated = registry.copy()
    taken = domains_in_use(updated)
    environments: dict[str, EnvConfig] = {}
    for env in DEFAULT_ENVIRONMENTS:
        domain = build_domain(name, env, options.base_domain)
        if domain.lower() in taken:
            raise DomainConflictError(domain)
        override = None
        if options.port is not None:
            override = options.port + STAGING_OVERRIDE_OFFSET if env == STAGING_ENV else options.port
        port = allocator.allocate(
            updated,
            env,
            override=override,
            taken=[config.port for config in environments.values()],
        )
        environments[env] = EnvConfig(
            port=port,
            domain=domain,
            container=f"{name}-{env}",
            status=DeploymentStatus.PENDING,
        )

    updated.projects[name] = Project(
        name=name,
        created_at=timestamp,
        type=project_type,
        git_repo=options.git_repo,
        environments=environments,
    )
    return updated


def update_project(
    registry: Registry,
    name: str,
    patch: ProjectPatch,
    *,
    now: datetime | None = None,
) -> Registry:
    """Apply *patch* to project *name*.

    ``status`` and ``domain`` only apply together with ``env``; an ``env``
    the project does not have is ignored rather than rejected.
    """
    get_project(registry, name)
    updated = registry.copy()
    project = updated.projects[name]

    if patch.git_repo:
        project.git_repo = patch.git_repo
    if patch.type:
        project.type = coerce_project_type(patch.type)

    target = project.environments.get(patch.env) if patch.env else None
    if target is not None:
        if patch.status:
            target.status = coerce_status(patch.status)
        if patch.domain:
            domain = patch.domain.strip().lower()
            if domain != (target.domain or "").lower():
                if domain in domains_in_use(updated):
                    raise DomainConflictError(domain)
                target.domain = domain

    project.updated_at = now or datetime.now(UTC)
    return updated


def remove_project(registry: Registry, name: str) -> tuple[Registry, list[str]]:
    """Remove project *name* and every preview it owns.

    Returns the new registry and the keys of the removed previews.
    """
    get_project(registry, name)
    updated = registry.copy()
    removed = [key for key, preview in updated.previews.items() if preview.project == name]
    for key in removed:
        del updated.previews[key]
    del updated.projects[name]
    return updated, removed


def list_projects(registry: Registry) -> list[ProjectRow]:
    """Flatten projects into one row per environment, in registry order."""
    return [
        ProjectRow(name=name, env=env, config=config)
        for name, project in registry.projects.items()
        for env, config in project.environments.items()
    ]


__all__ = [
    "DEFAULT_BASE_DOMAIN",
    "DEFAULT_ENVIRONMENTS",
    "ProjectOptions",
    "ProjectPatch",
    "ProjectRow",
    "STAGING_ENV",
    "add_project",
    "coerce_project_type",
    "coerce_status",
    "get_project",
    "list_projects",
    "previews_for",
    "remove_project",
    "update_project",
    "validate_project_name",
]
