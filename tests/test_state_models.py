"""Tests for the typed registry document model."""
from __future__ import annotations

import copy
from datetime import UTC, datetime

import pytest

from codebctl.errors import RegistryFormatError
from codebctl.state import (
    DeploymentStatus,
    ProjectType,
    Registry,
    format_timestamp,
    parse_timestamp,
)


def _document_with_project(base: dict[str, object]) -> dict[str, object]:
    data = copy.deepcopy(base)
    data["projects"] = {
        "myapp": {
            "created_at": "2025-01-01T00:00:00Z",
            "type": "nextjs",
            "git_repo": "git@github.com:acme/myapp.git",
            "environments": {
                "production": {
                    "port": 3000,
                    "domain": "myapp.one-q.xyz",
                    "container": "myapp-production",
                    "status": "running",
                }
            },
        }
    }
    data["previews"] = {
        "myapp-7": {
            "project": "myapp",
            "build": 7,
            "pr": 7,
            "port": 4000,
            "url": "https://myapp-7.one-q.xyz",
            "created_at": "2025-01-01T00:00:00Z",
            "expires_at": "2025-01-02T00:00:00Z",
        }
    }
    return data


def test_registry_parses_typed_records(registry_document: dict[str, object]) -> None:
    """Projects, previews and ports become typed dataclasses."""
    registry = Registry.from_dict(_document_with_project(registry_document))

    project = registry.projects["myapp"]
    assert project.name == "myapp"
    assert project.type is ProjectType.NEXTJS
    assert project.environments["production"].status is DeploymentStatus.RUNNING
    assert project.created_at == datetime(2025, 1, 1, tzinfo=UTC)

    preview = registry.previews["myapp-7"]
    assert preview.build == "7"
    assert preview.pr == "7"
    assert preview.container == "myapp-7"
    assert preview.status is DeploymentStatus.PENDING

    assert registry.ports.reserved[22] == "ssh"
    assert registry.ports.range_bounds("preview") == (4000, 4999)
    assert registry.version == 0


def test_registry_preserves_unknown_top_level_and_server_keys(
    registry_document: dict[str, object],
) -> None:
    """Keys owned by other tools survive a parse/serialise cycle."""
    registry_document["maintenance"] = {"window": "sun 03:00"}
    registry_document["server"] = {"domains": ["one-q.xyz"], "region": "icn"}

    data = Registry.from_dict(registry_document).to_dict()

    assert data["maintenance"] == {"window": "sun 03:00"}
    assert data["server"] == {"domains": ["one-q.xyz"], "region": "icn"}


def test_unknown_record_keys_are_rejected(registry_document: dict[str, object]) -> None:
    """A record with an unexpected field fails validation."""
    data = _document_with_project(registry_document)
    data["projects"]["myapp"]["environments"]["production"]["replicas"] = 2  # type: ignore[index]

    with pytest.raises(RegistryFormatError, match="unknown keys: replicas"):
        Registry.from_dict(data)


@pytest.mark.parametrize(
    ("path", "value", "message"),
    [
        (("projects", "myapp", "type"), "django", "unsupported value"),
        (("projects", "myapp", "environments", "production", "port"), "3000", "integer port"),
        (("projects", "myapp", "environments", "production", "port"), 70000, "between 1 and 65535"),
        (("previews", "myapp-7", "expires_at"), "2024-12-31T00:00:00Z", "later than created_at"),
        (("projects", "myapp", "created_at"), "yesterday", "not a valid timestamp"),
    ],
)
def test_invalid_values_are_rejected(
    registry_document: dict[str, object],
    path: tuple[str, ...],
    value: object,
    message: str,
) -> None:
    """Wrong types, ranges and enum values raise RegistryFormatError."""
    data = _document_with_project(registry_document)
    node: dict[str, object] = data
    for key in path[:-1]:
        node = node[key]  # type: ignore[assignment]
    node[path[-1]] = value

    with pytest.raises(RegistryFormatError, match=message):
        Registry.from_dict(data)


def test_missing_sections_are_rejected(registry_document: dict[str, object]) -> None:
    """``projects`` and ``ports`` are mandatory; ``previews`` is not."""
    del registry_document["previews"]
    Registry.from_dict(registry_document)

    del registry_document["ports"]
    with pytest.raises(RegistryFormatError, match="ports"):
        Registry.from_dict(registry_document)


def test_timestamps_render_in_utc_with_z_suffix() -> None:
    """Timestamps are written as UTC with a ``Z`` suffix and parsed back."""
    value = parse_timestamp("2025-03-04T05:06:07+09:00", "ts")

    assert format_timestamp(value) == "2025-03-03T20:06:07Z"
    assert parse_timestamp("2025-03-03T20:06:07", "ts") == value


def test_copy_is_independent(registry_document: dict[str, object]) -> None:
    """Mutating a copy never leaks into the original."""
    registry = Registry.from_dict(_document_with_project(registry_document))
    clone = registry.copy()

    clone.projects["myapp"].environments["production"].port = 3999
    clone.ports.next_available["preview"] = 4100

    assert registry.projects["myapp"].environments["production"].port == 3000
    assert registry.ports.next_available["preview"] == 4000
