"""Provider interfaces for codebctl."""
from __future__ import annotations

from .containers import (
    ContainerListing,
    ContainerState,
    ContainerStatusProvider,
    parse_container_listing,
)

__all__ = [
    "ContainerListing",
    "ContainerState",
    "ContainerStatusProvider",
    "parse_container_listing",
]
