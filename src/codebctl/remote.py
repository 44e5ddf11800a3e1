"""Remote command execution over SSH.

:class:`RemoteExecutor` runs exactly one shell command per call on the
configured host and reports its exit status and captured output. It applies
a connect timeout and an overall command timeout, and it never retries:
retry policy belongs to the operator re-running the command.

Arbitrary bytes are shipped to the host with :meth:`RemoteExecutor.write_bytes`,
which base64-encodes the payload locally so that quotes, newlines and
non-ASCII text never reach the remote shell unescaped.
"""
from __future__ import annotations

import base64
import secrets
import shlex
from dataclasses import dataclass
from typing import Protocol

from fabric import Connection
from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import SSHException

from .config import ServerConfig
from .errors import RemoteExecutionError, RemoteTransportError

# Stay well below the kernel's single-argument limit (128 KiB) for ``sh -c``.
MAX_INLINE_PAYLOAD = 96 * 1024


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a remote command."""

    succeeded: bool
    stdout: str
    stderr: str
    exit_code: int


class Transport(Protocol):
    """A non-interactive channel that runs one shell command on a host."""

    def run(self, command: str, *, timeout: float) -> CommandResult:
        """Run *command* and return its result; raise ``RemoteTransportError`` on I/O failure."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


class FabricTransport:
    """SSH transport backed by a lazily-opened Fabric connection."""

    def __init__(self, server: ServerConfig) -> None:
        self.server = server
        self._connection: Connection | None = None

    @property
    def target(self) -> str:
        """Return ``user@host`` for messages."""
        return f"{self.server.user}@{self.server.host}"

    def _connect(self) -> Connection:
        if self._connection is None:
            self._connection = Connection(
                self.server.host,
                user=self.server.user,
                port=self.server.port,
                connect_timeout=self.server.connect_timeout,
                connect_kwargs={"look_for_keys": True},
            )
        return self._connection

    def run(self, command: str, *, timeout: float) -> CommandResult:
        """Run *command* on the remote host."""
        try:
            result = self._connect().run(
                command,
                hide=True,
                warn=True,
                timeout=timeout,
                in_stream=False,
            )
        except CommandTimedOut as exc:
            raise RemoteTransportError(
                f"Command on {self.target} timed out after {timeout:g}s.",
                stderr=str(exc),
            ) from exc
        except (SSHException, OSError) as exc:
            raise RemoteTransportError(
                f"Unable to reach {self.target}: {exc}",
                stderr=str(exc),
            ) from exc
        return CommandResult(
            succeeded=result.exited == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exited,
        )

    def close(self) -> None:
        """Close the SSH connection if it was opened."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class RemoteExecutor:
    """Run shell commands on the remote host with bounded timeouts."""

    def __init__(self, transport: Transport, *, command_timeout: float = 30.0) -> None:
        self.transport = transport
        self.command_timeout = command_timeout

    @classmethod
    def from_config(cls, server: ServerConfig) -> RemoteExecutor:
        """Build an executor for the configured SSH target."""
        return cls(FabricTransport(server), command_timeout=server.command_timeout)

    def __enter__(self) -> RemoteExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying transport."""
        self.transport.close()

    def execute(
        self,
        command: str,
        *,
        timeout: float | None = None,
        ignore_failure: bool = False,
    ) -> CommandResult:
        """Run *command* once and return its result.

        With ``ignore_failure`` the failure modes that would otherwise raise
        (non-zero exit, transport error) are reported as ``succeeded=False``.
        """
        if not command or not command.strip():
            raise ValueError("Remote command must be a non-empty string.")

        effective_timeout = timeout if timeout is not None else self.command_timeout
        try:
            result = self.transport.run(command, timeout=effective_timeout)
        except RemoteTransportError as exc:
            if ignore_failure:
                return CommandResult(
                    succeeded=False,
                    stdout="",
                    stderr=exc.stderr or str(exc),
                    exit_code=-1,
                )
            raise

        if result.exit_code != 0:
            if ignore_failure:
                return CommandResult(
                    succeeded=False,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    exit_code=result.exit_code,
                )
            raise RemoteExecutionError(command, result.exit_code, result.stderr)
        return result

    def read_text(self, path: str, *, timeout: float | None = None) -> str:
        """Return the contents of the remote file at *path*."""
        return self.execute(f"cat {shlex.quote(path)}", timeout=timeout).stdout

    def write_bytes(self, path: str, payload: bytes, *, timeout: float | None = None) -> None:
        """Replace the remote file at *path* with *payload*.

        The payload is decoded into a sibling temp file and moved into place,
        so readers see either the previous content or the new content.
        """
        encoded = base64.b64encode(payload).decode("ascii")
        suffix = secrets.token_hex(4)
        tmp_path = shlex.quote(f"{path}.{suffix}.tmp")
        target = shlex.quote(path)

        if len(encoded) <= MAX_INLINE_PAYLOAD:
            self.execute(
                f"printf '%s' '{encoded}' | base64 -d > {tmp_path} && mv -f {tmp_path} {target}",
                timeout=timeout,
            )
            return

        staging = shlex.quote(f"{path}.{suffix}.b64")
        chunks = [
            encoded[index : index + MAX_INLINE_PAYLOAD]
            for index in range(0, len(encoded), MAX_INLINE_PAYLOAD)
        ]
        try:
            for position, chunk in enumerate(chunks):
                redirect = ">" if position == 0 else ">>"
                self.execute(f"printf '%s' '{chunk}' {redirect} {staging}", timeout=timeout)
            self.execute(
                f"base64 -d {staging} > {tmp_path} && mv -f {tmp_path} {target}",
                timeout=timeout,
            )
        finally:
            self.execute(f"rm -f {staging} {tmp_path}", timeout=timeout, ignore_failure=True)


__all__ = [
    "CommandResult",
    "FabricTransport",
    "MAX_INLINE_PAYLOAD",
    "RemoteExecutor",
    "Transport",
]
