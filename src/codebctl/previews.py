"""Preview deployments: creation, expiry and promotion planning.

A preview is tied to one build of a registered project and lives until its
``expires_at``. Its container status (pending → running → stopped) is driven
by deployment tooling and the reconciler; expiry is purely a wall-clock
comparison. Promotion only produces a :class:`PromotionPlan`; deploying that
plan is the caller's job.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .errors import (
    DomainConflictError,
    EnvironmentNotFoundError,
    PreviewNotFoundError,
    ProjectNotFoundError,
)
from .ports import PREVIEW_ENV, PortAllocator, domains_in_use, preview_base_domain
from .projects import DEFAULT_BASE_DOMAIN, STAGING_ENV, get_project
from .state import DeploymentStatus, Preview, Registry

DEFAULT_TTL_HOURS = 24


@dataclass(frozen=True, slots=True)
class PreviewOptions:
    """Inputs accepted by :func:`create_preview`."""

    build: str | None = None
    pr: str | None = None
    branch: str | None = None
    ttl_hours: int | None = None


@dataclass(frozen=True, slots=True)
class PreviewRow:
    """A preview with its expiry evaluated at listing time."""

    preview: Preview
    expired: bool

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"key": self.preview.key, **self.preview.to_dict(), "expired": self.expired}


@dataclass(frozen=True, slots=True)
class PromotionPlan:
    """What to deploy, and where, to promote a preview build."""

    preview_key: str
    build: str
    project: str
    environment: str
    domain: str | None

    @property
    def command(self) -> str:
        """Return the deploy invocation that carries out the plan."""
        return f"we deploy {self.project} -e {self.environment} --image {self.build}"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "preview_key": self.preview_key,
            "build": self.build,
            "project": self.project,
            "environment": self.environment,
            "domain": self.domain,
            "command": self.command,
        }


def preview_key(project: str, build: str) -> str:
    """Return the registry key of *project*'s preview for *build*."""
    return f"{project}-{build}"


def create_preview(
    registry: Registry,
    project: str,
    options: PreviewOptions | None = None,
    *,
    now: datetime | None = None,
    default_domain: str = DEFAULT_BASE_DOMAIN,
    allocator: PortAllocator | None = None,
) -> tuple[Registry, Preview]:
    """Register a preview of *project* and return it with the new registry.

    The build id is ``build``, else ``pr``, else ``build-<epoch millis>``.
    An existing preview with the same key is replaced.
    """
    options = options or PreviewOptions()
    if project not in registry.projects:
        raise ProjectNotFoundError(project)
    ttl_hours = DEFAULT_TTL_HOURS if options.ttl_hours is None else options.ttl_hours
    if ttl_hours <= 0:
        raise ValueError("Preview TTL must be a positive number of hours.")

    timestamp = now or datetime.now(UTC)
    build = options.build or options.pr or f"build-{int(timestamp.timestamp() * 1000)}"
    key = preview_key(project, build)
    base_domain = preview_base_domain(registry, default_domain)
    host = f"{key}.{base_domain}"
    if host.lower() in domains_in_use(registry, exclude_preview=key):
        raise DomainConflictError(host)

    updated = registry.copy()
    allocator = allocator or PortAllocator()
    preview = Preview(
        key=key,
        project=project,
        build=build,
        branch=options.branch,
        pr=options.pr,
        port=allocator.allocate(updated, PREVIEW_ENV),
        url=f"https://{host}",
        container=key,
        status=DeploymentStatus.PENDING,
        created_at=timestamp,
        expires_at=timestamp + timedelta(hours=ttl_hours),
    )
    updated.previews[key] = preview
    return updated, preview


def list_previews(registry: Registry, *, now: datetime | None = None) -> list[PreviewRow]:
    """Return all previews in registry order, flagging the expired ones."""
    moment = now or datetime.now(UTC)
    return [
        PreviewRow(preview=preview, expired=preview.is_expired(moment))
        for preview in registry.previews.values()
    ]


def remove_preview(registry: Registry, key: str) -> Registry:
    """Remove the preview stored under *key*."""
    if key not in registry.previews:
        raise PreviewNotFoundError(key)
    updated = registry.copy()
    del updated.previews[key]
    return updated


def remove_expired_previews(registry: Registry, now: datetime) -> tuple[Registry, int]:
    """Drop every preview whose ``expires_at`` is at or before *now*."""
    updated = registry.copy()
    expired = [key for key, preview in updated.previews.items() if preview.is_expired(now)]
    for key in expired:
        del updated.previews[key]
    return updated, len(expired)


def promote_preview(
    registry: Registry,
    key: str,
    target_env: str = STAGING_ENV,
) -> PromotionPlan:
    """Validate a promotion of preview *key* into *target_env* and describe it."""
    preview = registry.previews.get(key)
    if preview is None:
        raise PreviewNotFoundError(key)
    project = get_project(registry, preview.project)
    environment = project.environments.get(target_env)
    if environment is None:
        raise EnvironmentNotFoundError(project.name, target_env)
    return PromotionPlan(
        preview_key=key,
        build=preview.build,
        project=project.name,
        environment=target_env,
        domain=environment.domain,
    )


__all__ = [
    "DEFAULT_TTL_HOURS",
    "PreviewOptions",
    "PreviewRow",
    "PromotionPlan",
    "create_preview",
    "list_previews",
    "preview_key",
    "promote_preview",
    "remove_expired_previews",
    "remove_preview",
]
