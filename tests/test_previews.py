"""Tests for preview deployments."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from codebctl.errors import (
    DomainConflictError,
    EnvironmentNotFoundError,
    PreviewNotFoundError,
    ProjectNotFoundError,
)
from codebctl.previews import (
    DEFAULT_TTL_HOURS,
    PreviewOptions,
    create_preview,
    list_previews,
    promote_preview,
    remove_expired_previews,
    remove_preview,
)
from codebctl.projects import add_project, remove_project
from codebctl.state import DeploymentStatus, Registry

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def with_project(registry: Registry) -> Registry:
    """Return a registry holding project ``myapp``."""
    return add_project(registry, "myapp", now=NOW)


def test_create_preview_for_pull_request(with_project: Registry) -> None:
    """A PR preview is keyed by project and PR and draws one preview port."""
    updated, preview = create_preview(
        with_project,
        "myapp",
        PreviewOptions(pr="123", branch="feature/login", ttl_hours=72),
        now=NOW,
    )

    assert preview.key == "myapp-123"
    assert preview.build == "123"
    assert preview.pr == "123"
    assert preview.branch == "feature/login"
    assert preview.port == 4000
    assert preview.url == "https://myapp-123.one-q.xyz"
    assert preview.container == "myapp-123"
    assert preview.status is DeploymentStatus.PENDING
    assert preview.expires_at - preview.created_at == timedelta(hours=72)
    assert updated.previews["myapp-123"] == preview
    assert updated.ports.next_available["preview"] == 4001
    assert with_project.previews == {}
    assert with_project.ports.next_available["preview"] == 4000


def test_create_preview_defaults(with_project: Registry) -> None:
    """Without build or PR the id is derived from the clock; TTL defaults to 24h."""
    _, preview = create_preview(with_project, "myapp", now=NOW)

    millis = int(NOW.timestamp() * 1000)
    assert preview.build == f"build-{millis}"
    assert preview.key == f"myapp-build-{millis}"
    assert preview.expires_at == NOW + timedelta(hours=DEFAULT_TTL_HOURS)


def test_create_preview_build_wins_over_pr(with_project: Registry) -> None:
    """An explicit build id takes precedence while the PR is still recorded."""
    _, preview = create_preview(
        with_project, "myapp", PreviewOptions(build="a1b2c3", pr="9"), now=NOW
    )

    assert preview.key == "myapp-a1b2c3"
    assert preview.pr == "9"


def test_create_preview_uses_second_server_domain(with_project: Registry) -> None:
    """Preview URLs live under the second configured server domain when present."""
    with_project.server.domains.append("preview.one-q.xyz")

    _, preview = create_preview(with_project, "myapp", PreviewOptions(pr="5"), now=NOW)

    assert preview.url == "https://myapp-5.preview.one-q.xyz"


@pytest.mark.parametrize("ttl", [0, -3])
def test_create_preview_rejects_non_positive_ttl(with_project: Registry, ttl: int) -> None:
    """TTL must be positive."""
    with pytest.raises(ValueError, match="TTL"):
        create_preview(with_project, "myapp", PreviewOptions(pr="1", ttl_hours=ttl), now=NOW)


def test_create_preview_requires_project(registry: Registry) -> None:
    """Previews can only be created for registered projects."""
    with pytest.raises(ProjectNotFoundError):
        create_preview(registry, "ghost", PreviewOptions(pr="1"), now=NOW)


def test_create_preview_rejects_domain_owned_by_environment(with_project: Registry) -> None:
    """A preview named like an environment hostname would shadow it."""
    with pytest.raises(DomainConflictError, match="myapp-staging.one-q.xyz"):
        create_preview(with_project, "myapp", PreviewOptions(build="staging"), now=NOW)


def test_recreating_preview_replaces_it(with_project: Registry) -> None:
    """The same key overwrites the earlier preview with a fresh port."""
    first, _ = create_preview(with_project, "myapp", PreviewOptions(pr="7"), now=NOW)
    later = NOW + timedelta(hours=2)

    second, preview = create_preview(first, "myapp", PreviewOptions(pr="7"), now=later)

    assert list(second.previews) == ["myapp-7"]
    assert preview.port == 4001
    assert preview.created_at == later


def test_list_previews_flags_expired(with_project: Registry) -> None:
    """Expiry is evaluated against the supplied clock, inclusive of expires_at."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="1", ttl_hours=1), now=NOW)
    registry, _ = create_preview(registry, "myapp", PreviewOptions(pr="2", ttl_hours=5), now=NOW)

    rows = list_previews(registry, now=NOW + timedelta(hours=1))

    assert [(row.preview.key, row.expired) for row in rows] == [
        ("myapp-1", True),
        ("myapp-2", False),
    ]
    assert rows[0].to_dict()["expired"] is True


def test_remove_preview(with_project: Registry) -> None:
    """Removing a preview leaves the port counter untouched."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="1"), now=NOW)

    updated = remove_preview(registry, "myapp-1")

    assert updated.previews == {}
    assert updated.ports.next_available["preview"] == 4001
    with pytest.raises(PreviewNotFoundError, match="myapp-1"):
        remove_preview(updated, "myapp-1")


def test_remove_expired_previews(with_project: Registry) -> None:
    """Only previews at or past expires_at are dropped."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="1", ttl_hours=1), now=NOW)
    registry, _ = create_preview(registry, "myapp", PreviewOptions(pr="2", ttl_hours=48), now=NOW)

    updated, removed = remove_expired_previews(registry, NOW + timedelta(hours=3))

    assert removed == 1
    assert list(updated.previews) == ["myapp-2"]
    assert len(registry.previews) == 2

    again, removed_again = remove_expired_previews(updated, NOW + timedelta(hours=3))
    assert removed_again == 0
    assert again == updated


def test_remove_expired_previews_at_exact_expiry(with_project: Registry) -> None:
    """A preview expiring exactly at ``now`` is removed; one a second later is kept."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="1", ttl_hours=1), now=NOW)
    registry, _ = create_preview(
        registry, "myapp", PreviewOptions(pr="2", ttl_hours=1), now=NOW + timedelta(seconds=1)
    )
    deadline = NOW + timedelta(hours=1)

    updated, removed = remove_expired_previews(registry, deadline)

    assert removed == 1
    assert list(updated.previews) == ["myapp-2"]
    _, removed_again = remove_expired_previews(updated, deadline)
    assert removed_again == 0


def test_promote_preview_builds_plan(with_project: Registry) -> None:
    """Promotion targets staging by default and names the deploy command."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(build="42"), now=NOW)

    plan = promote_preview(registry, "myapp-42")

    assert plan.project == "myapp"
    assert plan.environment == "staging"
    assert plan.domain == "myapp-staging.one-q.xyz"
    assert plan.command == "we deploy myapp -e staging --image 42"
    assert promote_preview(registry, "myapp-42", "production").domain == "myapp.one-q.xyz"


def test_promote_preview_of_removed_project(with_project: Registry) -> None:
    """A preview whose project vanished cannot be promoted, and nothing changes."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="3"), now=NOW)
    registry = registry.copy()
    del registry.projects["myapp"]
    snapshot = registry.copy()

    with pytest.raises(ProjectNotFoundError):
        promote_preview(registry, "myapp-3")

    assert registry == snapshot


def test_promote_preview_errors(with_project: Registry) -> None:
    """Unknown previews and environments are reported distinctly."""
    registry, _ = create_preview(with_project, "myapp", PreviewOptions(pr="3"), now=NOW)

    with pytest.raises(PreviewNotFoundError):
        promote_preview(registry, "myapp-999")
    with pytest.raises(EnvironmentNotFoundError, match="qa"):
        promote_preview(registry, "myapp-3", "qa")
    cleaned, removed = remove_project(registry, "myapp")
    assert removed == ["myapp-3"]
    with pytest.raises(PreviewNotFoundError):
        promote_preview(cleaned, "myapp-3")
