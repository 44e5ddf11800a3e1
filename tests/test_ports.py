"""Tests for port allocation and domain bookkeeping."""
from __future__ import annotations

from datetime import UTC, datetime

import pytest

from codebctl.errors import PortAllocationError
from codebctl.ports import (
    PortAllocator,
    build_domain,
    domains_in_use,
    find_domain_conflicts,
    find_port_conflicts,
    preview_base_domain,
    used_ports,
    validate_registry,
)
from codebctl.previews import PreviewOptions, create_preview
from codebctl.projects import ProjectOptions, add_project, remove_project
from codebctl.state import Registry

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def test_allocate_advances_counter_by_one(registry: Registry) -> None:
    """Each allocation returns the counter and increments it exactly once."""
    allocator = PortAllocator()

    assert allocator.allocate(registry, "preview") == 4000
    assert allocator.allocate(registry, "preview") == 4001
    assert registry.ports.next_available["preview"] == 4002


def test_allocate_seeds_missing_counter_from_range(registry: Registry) -> None:
    """A class with a range but no counter starts at the range's lower bound."""
    del registry.ports.next_available["staging"]

    assert PortAllocator().allocate(registry, "staging") == 3100
    assert registry.ports.next_available["staging"] == 3101


def test_allocate_without_counter_or_range_fails(registry: Registry) -> None:
    """Unknown environment classes cannot be allocated."""
    with pytest.raises(PortAllocationError, match="qa"):
        PortAllocator().allocate(registry, "qa")


def test_allocate_moves_counter_below_range_up(registry: Registry) -> None:
    """A counter pointing below its range, even at a reserved port, starts at the range."""
    registry.ports.next_available["production"] = 443

    assert PortAllocator().allocate(registry, "production") == 3000
    assert registry.ports.next_available["production"] == 3001
    assert find_port_conflicts(registry) == {}


def test_allocate_skips_reserved_and_claimed_ports(registry: Registry) -> None:
    """Reserved ports and ports held by existing entries are stepped over."""
    registry.ports.reserved[3000] = "metrics"
    registry = add_project(registry, "alpha", ProjectOptions(port=3001), now=NOW)

    registry = add_project(registry, "beta", now=NOW)

    beta = registry.projects["beta"].environments
    assert beta["production"].port == 3002
    assert beta["staging"].port == 3100
    assert registry.ports.next_available["production"] == 3003
    assert find_port_conflicts(registry) == {}


def test_allocate_skips_extra_taken_ports(registry: Registry) -> None:
    """Ports passed as already taken are not handed out."""
    allocator = PortAllocator()

    assert allocator.allocate(registry, "preview", taken=[4000, 4001]) == 4002
    assert registry.ports.next_available["preview"] == 4003


def test_allocate_does_not_reuse_removed_ports(registry: Registry) -> None:
    """Ports freed by removing a project are not handed out again."""
    registry = add_project(registry, "alpha", now=NOW)
    registry, _ = remove_project(registry, "alpha")

    registry = add_project(registry, "beta", now=NOW)

    beta = registry.projects["beta"].environments
    assert (beta["staging"].port, beta["production"].port) == (3101, 3001)


def test_allocate_fails_when_range_is_exhausted(registry: Registry) -> None:
    """Running past the end of a range raises instead of spilling into another class."""
    registry.ports.next_available["production"] = 3099
    allocator = PortAllocator()

    assert allocator.allocate(registry, "production") == 3099
    with pytest.raises(PortAllocationError, match="production"):
        allocator.allocate(registry, "production")
    assert registry.ports.next_available["production"] == 3100


def test_sequence_of_adds_keeps_ports_and_domains_unique(registry: Registry) -> None:
    """Filling both project ranges never produces a port or domain collision."""
    for index in range(100):
        registry = add_project(registry, f"app{index}", now=NOW)
        if index % 10 == 0:
            registry, _ = create_preview(
                registry, f"app{index}", PreviewOptions(pr=str(index)), now=NOW
            )
        assert find_port_conflicts(registry) == {}
        assert find_domain_conflicts(registry) == {}

    production = {p.environments["production"].port for p in registry.projects.values()}
    staging = {p.environments["staging"].port for p in registry.projects.values()}
    assert production == set(range(3000, 3100))
    assert staging == set(range(3100, 3200))
    assert {preview.port for preview in registry.previews.values()} == set(range(4000, 4010))
    assert validate_registry(registry) == []

    snapshot = registry.copy()
    with pytest.raises(PortAllocationError, match="staging"):
        add_project(registry, "app100", now=NOW)
    assert registry == snapshot
    assert "app100" not in registry.projects


def test_override_bypasses_counter(registry: Registry) -> None:
    """An explicit port is returned verbatim and leaves the counter alone."""
    assert PortAllocator().allocate(registry, "production", override=22) == 22
    assert registry.ports.next_available["production"] == 3000


def test_build_domain_per_environment() -> None:
    """Production uses the bare project label; other environments get a suffix."""
    assert build_domain("myapp", "production", "one-q.xyz") == "myapp.one-q.xyz"
    assert build_domain("myapp", "staging", "one-q.xyz.") == "myapp-staging.one-q.xyz"


def test_preview_base_domain_prefers_second_server_domain(registry: Registry) -> None:
    """Preview URLs use domains[1], then domains[0], then the default."""
    assert preview_base_domain(registry, "fallback.dev") == "one-q.xyz"
    registry.server.domains.append("preview.one-q.xyz")
    assert preview_base_domain(registry, "fallback.dev") == "preview.one-q.xyz"
    registry.server.domains.clear()
    assert preview_base_domain(registry, "fallback.dev") == "fallback.dev"


def test_used_ports_and_conflicts(registry: Registry) -> None:
    """Usages are sorted by port and collisions with reserved ports are reported."""
    registry = add_project(registry, "alpha", now=NOW)
    registry = add_project(registry, "beta", ProjectOptions(port=443), now=NOW)

    usages = used_ports(registry)
    assert [usage.port for usage in usages] == sorted(usage.port for usage in usages)
    assert {usage.to_dict()["project"] for usage in usages} == {"alpha", "beta"}

    conflicts = find_port_conflicts(registry)
    assert conflicts == {443: ["reserved:https", "beta:production"]}
    problems = validate_registry(registry)
    assert problems == ["Port 443 is claimed by reserved:https, beta:production."]


def test_domains_in_use_and_duplicates(registry: Registry) -> None:
    """Hostnames are collected case-insensitively and duplicates are counted."""
    registry = add_project(registry, "alpha", now=NOW)
    registry.projects["alpha"].environments["staging"].domain = "ALPHA.one-q.xyz"

    assert "alpha.one-q.xyz" in domains_in_use(registry)
    assert find_domain_conflicts(registry) == {"alpha.one-q.xyz": 2}
