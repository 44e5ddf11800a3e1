"""Registry document model and remote persistence."""
from __future__ import annotations

from .models import (
    DeploymentStatus,
    EnvConfig,
    PortAllocation,
    Preview,
    Project,
    ProjectType,
    Registry,
    ServerInfo,
    format_timestamp,
    parse_timestamp,
)
from .store import RegistryStore, decode_registry, encode_registry

__all__ = [
    "DeploymentStatus",
    "EnvConfig",
    "PortAllocation",
    "Preview",
    "Project",
    "ProjectType",
    "Registry",
    "RegistryStore",
    "ServerInfo",
    "decode_registry",
    "encode_registry",
    "format_timestamp",
    "parse_timestamp",
]
