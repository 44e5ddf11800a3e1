"""Reconcile registry status fields against live container state."""
from __future__ import annotations

from collections.abc import Collection
from datetime import UTC, datetime

from .previews import remove_expired_previews
from .state import DeploymentStatus, Registry


def expected_container(project: str, env: str, container: str | None) -> str:
    """Return the container name the host should be running for *project*/*env*."""
    return container or f"{project}-{env}"


def sync_with_live_state(
    registry: Registry,
    live_container_names: Collection[str],
    *,
    now: datetime | None = None,
) -> tuple[Registry, int]:
    """Align every status with *live_container_names* and drop expired previews.

    Returns the new registry and the number of real changes: one per status
    transition and one per removed preview. Running it again with the same
    inputs reports zero changes.
    """
    live = set(live_container_names)
    updated, removed = remove_expired_previews(registry, now or datetime.now(UTC))
    changes = removed

    for name, project in updated.projects.items():
        for env, config in project.environments.items():
            running = expected_container(name, env, config.container) in live
            status = DeploymentStatus.RUNNING if running else DeploymentStatus.STOPPED
            if config.status is not status:
                config.status = status
                changes += 1

    for key, preview in updated.previews.items():
        running = (preview.container or key) in live
        status = DeploymentStatus.RUNNING if running else DeploymentStatus.STOPPED
        if preview.status is not status:
            preview.status = status
            changes += 1

    return updated, changes


__all__ = ["expected_container", "sync_with_live_state"]
