"""Error taxonomy shared by the registry subsystem.

Transport and storage failures are fatal for the invoking command. Validation
errors carry the offending identifier so the CLI can report it verbatim. No
error in this module implies a retry; operators re-run the command.
"""
from __future__ import annotations

from .exit_codes import ExitCode


class CodebError(RuntimeError):
    """Base class for codebctl failures."""

    exit_code: ExitCode = ExitCode.PROVIDER


# Remote transport ------------------------------------------------------
class RemoteTransportError(CodebError):
    """Raised when the SSH connection cannot be opened, authenticated or times out."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class RemoteExecutionError(CodebError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        detail = stderr.strip() or "no output"
        super().__init__(f"Remote command failed (exit {exit_code}): {detail}")
        self.command = command
        self.remote_exit_code = exit_code
        self.stderr = stderr


# Registry storage ------------------------------------------------------
class RegistryUnavailable(CodebError):
    """Raised when the registry document cannot be read or does not conform."""

    exit_code = ExitCode.ENVIRONMENT


class RegistryFormatError(RegistryUnavailable):
    """Raised when the registry document does not match the expected schema."""


class RegistrySerializationError(CodebError):
    """Raised when the transport-safe encoding does not round-trip."""


class RegistryConflictError(CodebError):
    """Raised when the remote registry changed between load and save."""

    exit_code = ExitCode.ENVIRONMENT

    def __init__(self, expected: int, found: int) -> None:
        super().__init__(
            f"Registry was modified concurrently (loaded version {expected}, "
            f"remote version {found}). Re-run the command."
        )
        self.expected = expected
        self.found = found


# Validation ------------------------------------------------------------
class RegistryValidationError(CodebError):
    """Base class for user-facing validation failures."""

    exit_code = ExitCode.VALIDATION


class ProjectNotFoundError(RegistryValidationError):
    """Raised when a project is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Project '{name}' is not registered.")
        self.name = name


class ProjectExistsError(RegistryValidationError):
    """Raised when adding a project that is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Project '{name}' already exists. Use 'update' instead.")
        self.name = name


class PreviewNotFoundError(RegistryValidationError):
    """Raised when a preview key is not present in the registry."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Preview '{key}' not found.")
        self.key = key


class EnvironmentNotFoundError(RegistryValidationError):
    """Raised when a project has no environment with the requested name."""

    def __init__(self, project: str, environment: str) -> None:
        super().__init__(f"Project '{project}' has no '{environment}' environment.")
        self.project = project
        self.environment = environment


class InvalidNameError(RegistryValidationError):
    """Raised when a project name or option value is malformed."""


class DomainConflictError(RegistryValidationError):
    """Raised when a hostname is already used by another environment or preview."""

    def __init__(self, domain: str) -> None:
        super().__init__(f"Domain '{domain}' is already in use.")
        self.domain = domain


class PortAllocationError(RegistryValidationError):
    """Raised when no port counter exists for an environment class."""


__all__ = [
    "CodebError",
    "DomainConflictError",
    "EnvironmentNotFoundError",
    "InvalidNameError",
    "PortAllocationError",
    "PreviewNotFoundError",
    "ProjectExistsError",
    "ProjectNotFoundError",
    "RegistryConflictError",
    "RegistryFormatError",
    "RegistrySerializationError",
    "RegistryUnavailable",
    "RegistryValidationError",
    "RemoteExecutionError",
    "RemoteTransportError",
]
