"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import base64
import copy
import json
import re
import shlex
from dataclasses import dataclass, field

import pytest

from codebctl.errors import RemoteTransportError
from codebctl.remote import CommandResult, RemoteExecutor
from codebctl.state import Registry

REGISTRY_PATH = "/opt/codeb/registry.json"

_INLINE_WRITE = re.compile(
    r"^printf '%s' '(?P<data>[A-Za-z0-9+/=]*)' \| base64 -d > (?P<tmp>\S+) "
    r"&& mv -f (?P<src>\S+) (?P<dst>\S+)$"
)
_CHUNK_WRITE = re.compile(r"^printf '%s' '(?P<data>[A-Za-z0-9+/=]*)' (?P<op>>>?) (?P<dst>\S+)$")
_STAGED_DECODE = re.compile(
    r"^base64 -d (?P<staging>\S+) > (?P<tmp>\S+) && mv -f (?P<src>\S+) (?P<dst>\S+)$"
)


def _unquote(token: str) -> str:
    parts = shlex.split(token)
    assert len(parts) == 1, token
    return parts[0]


@dataclass
class FakeTransport:
    """In-memory stand-in for an SSH host with a tiny file system.

    Understands the handful of shell commands the executor emits: ``cat``,
    the base64 write pipelines, ``rm -f`` and the ``podman ps`` listing.
    """

    files: dict[str, bytes] = field(default_factory=dict)
    containers_output: str | None = ""
    commands: list[str] = field(default_factory=list)
    timeouts: list[float] = field(default_factory=list)
    unreachable: bool = False
    closed: bool = False

    def run(self, command: str, *, timeout: float) -> CommandResult:
        self.commands.append(command)
        self.timeouts.append(timeout)
        if self.unreachable:
            raise RemoteTransportError("Unable to reach root@test: Connection refused")

        if command.startswith("podman ps"):
            if self.containers_output is None:
                return CommandResult(False, "", "podman: command not found", 127)
            return CommandResult(True, self.containers_output, "", 0)

        if command.startswith("cat "):
            path = _unquote(command[len("cat ") :])
            if path not in self.files:
                return CommandResult(False, "", f"cat: {path}: No such file or directory", 1)
            return CommandResult(True, self.files[path].decode("utf-8"), "", 0)

        match = _INLINE_WRITE.match(command)
        if match:
            tmp = _unquote(match["tmp"])
            self.files[tmp] = base64.b64decode(match["data"])
            self.files[_unquote(match["dst"])] = self.files.pop(_unquote(match["src"]))
            return CommandResult(True, "", "", 0)

        match = _CHUNK_WRITE.match(command)
        if match:
            staging = _unquote(match["dst"])
            data = match["data"].encode("ascii")
            if match["op"] == ">":
                self.files[staging] = data
            else:
                self.files[staging] = self.files.get(staging, b"") + data
            return CommandResult(True, "", "", 0)

        match = _STAGED_DECODE.match(command)
        if match:
            staging = _unquote(match["staging"])
            tmp = _unquote(match["tmp"])
            self.files[tmp] = base64.b64decode(self.files[staging])
            self.files[_unquote(match["dst"])] = self.files.pop(_unquote(match["src"]))
            return CommandResult(True, "", "", 0)

        if command.startswith("rm -f "):
            for token in shlex.split(command)[2:]:
                self.files.pop(token, None)
            return CommandResult(True, "", "", 0)

        return CommandResult(False, "", f"sh: unsupported command: {command}", 127)

    def close(self) -> None:
        self.closed = True

    # Helpers ------------------------------------------------------------
    def put_json(self, path: str, data: dict[str, object]) -> None:
        self.files[path] = json.dumps(data, ensure_ascii=False).encode("utf-8")

    def get_json(self, path: str = REGISTRY_PATH) -> dict[str, object]:
        return json.loads(self.files[path].decode("utf-8"))


BASE_REGISTRY: dict[str, object] = {
    "projects": {},
    "previews": {},
    "ports": {
        "reserved": {"22": "ssh", "80": "http", "443": "https"},
        "range": {
            "production": "3000-3099",
            "staging": "3100-3199",
            "preview": "4000-4999",
        },
        "next_available": {"staging": 3100, "production": 3000, "preview": 4000},
    },
    "server": {"host": "141.164.60.51", "domains": ["one-q.xyz"]},
    "updated_at": "2025-01-01T00:00:00Z",
}


@pytest.fixture
def registry_document() -> dict[str, object]:
    """Return a fresh copy of an empty registry document."""
    return copy.deepcopy(BASE_REGISTRY)


@pytest.fixture
def fake_transport(registry_document: dict[str, object]) -> FakeTransport:
    """Return a fake host that already holds an empty registry."""
    transport = FakeTransport()
    transport.put_json(REGISTRY_PATH, registry_document)
    return transport


@pytest.fixture
def executor(fake_transport: FakeTransport) -> RemoteExecutor:
    """Return an executor bound to the fake host."""
    return RemoteExecutor(fake_transport, command_timeout=5.0)


@pytest.fixture
def registry(registry_document: dict[str, object]) -> Registry:
    """Return the empty registry document as a typed model."""
    return Registry.from_dict(registry_document)
