"""Live container status read from the remote host's container runtime."""
from __future__ import annotations

from dataclasses import dataclass

from ..remote import RemoteExecutor

LIST_COMMAND = 'podman ps -a --format "{{.Names}}|{{.Status}}"'


@dataclass(frozen=True)
class ContainerState:
    """A container reported by ``podman ps``."""

    name: str
    running: bool
    detail: str = ""


@dataclass(frozen=True)
class ContainerListing:
    """Result of a listing attempt; ``available`` is ``False`` when the host query failed."""

    containers: tuple[ContainerState, ...]
    available: bool = True
    error: str = ""

    def running_names(self) -> set[str]:
        """Return the names of running containers."""
        return {state.name for state in self.containers if state.running}


def parse_container_listing(stdout: str) -> list[ContainerState]:
    """Parse ``name|status`` lines; a status containing ``up`` means running."""
    states: list[ContainerState] = []
    for line in stdout.splitlines():
        name, sep, status = line.strip().partition("|")
        name = name.strip()
        if not name or not sep:
            continue
        states.append(
            ContainerState(name=name, running="up" in status.lower(), detail=status.strip())
        )
    return states


class ContainerStatusProvider:
    """Query container state on the remote host.

    A failed query is not fatal: it yields an empty listing flagged as
    unavailable, and every registry entry is then considered stopped.
    """

    def __init__(self, executor: RemoteExecutor, command: str = LIST_COMMAND) -> None:
        self.executor = executor
        self.command = command

    def list_containers(self) -> ContainerListing:
        """Return the host's containers."""
        result = self.executor.execute(self.command, ignore_failure=True)
        if not result.succeeded:
            return ContainerListing(containers=(), available=False, error=result.stderr.strip())
        return ContainerListing(containers=tuple(parse_container_listing(result.stdout)))


__all__ = [
    "ContainerListing",
    "ContainerState",
    "ContainerStatusProvider",
    "LIST_COMMAND",
    "parse_container_listing",
]
