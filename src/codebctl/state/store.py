"""Load and persist the remote registry document.

The store performs whole-document reads and whole-document writes through
the :class:`~codebctl.remote.RemoteExecutor`. There is no server-side lock:
two concurrent load → modify → save cycles race, and the last ``save`` wins.
When ``optimistic_lock`` is enabled, :meth:`RegistryStore.save` re-reads the
remote ``version`` first and refuses to overwrite a document that changed
after it was loaded. That check narrows the race window but does not close
it, because the re-read and the write are two separate remote commands.
"""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..errors import (
    RegistryConflictError,
    RegistryFormatError,
    RegistrySerializationError,
    RegistryUnavailable,
    RemoteExecutionError,
    RemoteTransportError,
)
from ..remote import RemoteExecutor
from .models import Registry


def encode_registry(registry: Registry) -> bytes:
    """Serialise *registry* as pretty-printed UTF-8 JSON."""
    text = json.dumps(registry.to_dict(), indent=2, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def decode_registry(payload: str | bytes) -> Registry:
    """Parse a registry document, raising ``RegistryUnavailable`` when it is not usable."""
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RegistryUnavailable(f"Registry is not valid UTF-8: {exc}") from exc
    if not payload.strip():
        raise RegistryUnavailable("Registry document is empty.")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise RegistryUnavailable(f"Registry is not valid JSON: {exc}") from exc
    return Registry.from_dict(data)


def transport_encode(payload: bytes) -> str:
    """Return the base64 form of *payload*, verifying that it decodes back unchanged."""
    encoded = base64.b64encode(payload).decode("ascii")
    if base64.b64decode(encoded, validate=True) != payload:  # pragma: no cover - stdlib invariant
        raise RegistrySerializationError("Base64 encoding of the registry did not round-trip.")
    return encoded


@dataclass
class RegistryStore:
    """Fetch and replace the registry document on the remote host."""

    executor: RemoteExecutor
    path: str = "/opt/codeb/registry.json"
    read_timeout: float | None = None
    optimistic_lock: bool = False
    loaded_version: int | None = field(default=None, init=False)

    def load(self) -> Registry:
        """Return a fresh in-memory copy of the remote registry."""
        try:
            text = self.executor.read_text(self.path, timeout=self.read_timeout)
        except (RemoteExecutionError, RemoteTransportError) as exc:
            raise RegistryUnavailable(
                f"Unable to read registry {self.path}: {exc}"
            ) from exc
        registry = decode_registry(text)
        self.loaded_version = registry.version
        return registry

    def save(self, registry: Registry, *, now: datetime | None = None) -> Registry:
        """Write *registry* to the host and return the stamped copy that was written.

        The caller's object is left untouched. Transport failures propagate as
        ``RemoteTransportError`` / ``RemoteExecutionError``.
        """
        stamped = registry.copy()
        stamped.updated_at = now or datetime.now(UTC)
        stamped.version = registry.version + 1

        if self.optimistic_lock:
            self._check_version(registry.version)

        payload = encode_registry(stamped)
        decoded = base64.b64decode(transport_encode(payload))
        try:
            round_trip = decode_registry(decoded)
        except RegistryFormatError as exc:
            raise RegistrySerializationError(
                f"Serialised registry failed validation: {exc}"
            ) from exc
        if round_trip != stamped:
            raise RegistrySerializationError(
                "Serialised registry does not match the in-memory registry."
            )

        self.executor.write_bytes(self.path, payload)
        self.loaded_version = stamped.version
        return stamped

    def _check_version(self, expected: int) -> None:
        baseline = self.loaded_version if self.loaded_version is not None else expected
        try:
            text = self.executor.read_text(self.path, timeout=self.read_timeout)
        except (RemoteExecutionError, RemoteTransportError) as exc:
            raise RegistryUnavailable(
                f"Unable to re-read registry {self.path} before saving: {exc}"
            ) from exc
        try:
            remote_version = json.loads(text).get("version", 0)
        except (json.JSONDecodeError, AttributeError) as exc:
            raise RegistryUnavailable(f"Remote registry became unreadable: {exc}") from exc
        if remote_version != baseline:
            raise RegistryConflictError(expected=baseline, found=remote_version)


__all__ = [
    "RegistryStore",
    "decode_registry",
    "encode_registry",
    "transport_encode",
]
