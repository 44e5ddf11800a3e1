"""Port and domain allocation for registry entries."""
from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from .errors import PortAllocationError
from .state import Registry

PRODUCTION_ENV = "production"
PREVIEW_ENV = "preview"
MAX_PORT = 65535


class PortAllocationPolicy(str, Enum):
    """How ports released by removed projects and previews are treated."""

    # Counters only move forward; a removed entry's port is never handed out again.
    NEVER_REUSE = "never-reuse"


@dataclass(frozen=True, slots=True)
class PortUsage:
    """One port in use by a project environment or a preview."""

    port: int
    project: str
    env: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"port": self.port, "project": self.project, "env": self.env}


@dataclass(slots=True)
class PortAllocator:
    """Hand out ports from the per-environment counters in ``ports.next_available``."""

    policy: PortAllocationPolicy = PortAllocationPolicy.NEVER_REUSE

    def allocate(
        self,
        registry: Registry,
        env_class: str,
        *,
        override: int | None = None,
        taken: Iterable[int] = (),
    ) -> int:
        """Return the next free port for *env_class* and advance its counter.

        Ports that are reserved or already claimed in *registry* are skipped,
        as are any listed in *taken*. A counter below its configured range is
        moved up to the range start; one past the range end raises
        ``PortAllocationError``. The counter lives in *registry*, so the
        increment only becomes durable once the caller saves it. An explicit
        *override* is returned verbatim without touching the counter or
        checking for collisions.
        """
        if override is not None:
            return override
        if self.policy is not PortAllocationPolicy.NEVER_REUSE:
            raise PortAllocationError(f"Unsupported port allocation policy '{self.policy}'.")

        ports = registry.ports
        bounds = ports.range_bounds(env_class)
        counters = ports.next_available
        if env_class not in counters:
            if bounds is None:
                raise PortAllocationError(
                    f"No port counter or range configured for environment '{env_class}'."
                )
            counters[env_class] = bounds[0]

        claimed = set(ports.reserved) | {usage.port for usage in used_ports(registry)}
        claimed.update(taken)
        port = counters[env_class]
        if bounds is not None:
            port = max(port, bounds[0])
        while port in claimed:
            port += 1
        if port > (bounds[1] if bounds is not None else MAX_PORT):
            raise PortAllocationError(f"No free port left for environment '{env_class}'.")
        counters[env_class] = port + 1
        return port


def build_domain(project: str, env_class: str, base_domain: str) -> str:
    """Return the public hostname of *project* in *env_class*."""
    base = base_domain.strip().strip(".")
    if env_class == PRODUCTION_ENV:
        return f"{project}.{base}"
    return f"{project}-{env_class}.{base}"


def preview_base_domain(registry: Registry, default: str) -> str:
    """Return the base domain for preview URLs (second server domain, then first)."""
    domains = registry.server.domains
    if len(domains) > 1 and domains[1]:
        return domains[1]
    if domains and domains[0]:
        return domains[0]
    return default


def used_ports(registry: Registry) -> list[PortUsage]:
    """Return every port claimed by a project environment or preview, sorted by port."""
    usages: list[PortUsage] = []
    for name, project in registry.projects.items():
        for env, config in project.environments.items():
            usages.append(PortUsage(port=config.port, project=name, env=env))
    for key, preview in registry.previews.items():
        usages.append(PortUsage(port=preview.port, project=preview.project, env=f"preview:{key}"))
    usages.sort(key=lambda usage: usage.port)
    return usages


def find_port_conflicts(registry: Registry) -> dict[int, list[str]]:
    """Return ports claimed more than once (including reserved ports) with their owners."""
    owners: dict[int, list[str]] = {}
    for port, service in registry.ports.reserved.items():
        owners.setdefault(port, []).append(f"reserved:{service}")
    for usage in used_ports(registry):
        owners.setdefault(usage.port, []).append(f"{usage.project}:{usage.env}")
    return {port: names for port, names in sorted(owners.items()) if len(names) > 1}


def _hostnames(registry: Registry, *, exclude_preview: str | None = None) -> list[str]:
    hosts: list[str] = []
    for project in registry.projects.values():
        for config in project.environments.values():
            if config.domain:
                hosts.append(config.domain.lower())
    for key, preview in registry.previews.items():
        if key == exclude_preview:
            continue
        host = urlsplit(preview.url).hostname
        if host:
            hosts.append(host.lower())
    return hosts


def domains_in_use(registry: Registry, *, exclude_preview: str | None = None) -> set[str]:
    """Return every hostname claimed by a project environment or preview."""
    return set(_hostnames(registry, exclude_preview=exclude_preview))


def find_domain_conflicts(registry: Registry) -> dict[str, int]:
    """Return hostnames used by more than one environment or preview, with use counts."""
    counts = Counter(_hostnames(registry))
    return {domain: count for domain, count in sorted(counts.items()) if count > 1}


def validate_registry(registry: Registry) -> list[str]:
    """Return human-readable invariant violations (empty when the registry is consistent)."""
    problems: list[str] = []
    for port, owners in find_port_conflicts(registry).items():
        problems.append(f"Port {port} is claimed by {', '.join(owners)}.")
    for domain, count in find_domain_conflicts(registry).items():
        problems.append(f"Domain {domain} is used by {count} entries.")
    for key, preview in registry.previews.items():
        if preview.project not in registry.projects:
            problems.append(f"Preview {key} references unknown project '{preview.project}'.")
    return problems


__all__ = [
    "MAX_PORT",
    "PRODUCTION_ENV",
    "PREVIEW_ENV",
    "PortAllocationPolicy",
    "PortAllocator",
    "PortUsage",
    "build_domain",
    "domains_in_use",
    "find_domain_conflicts",
    "find_port_conflicts",
    "preview_base_domain",
    "used_ports",
    "validate_registry",
]
