"""
Connection Registry contract.

The registry is the only durable state of the service: a set of connection
ids the gateway believes may still be reachable. Both the lifecycle handler
and the dispatcher read and write it, and neither caches it between
invocations.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ConnectionRecord:
    """
    Stored metadata of one connection.

    Attributes:
        connection_id: Opaque id assigned by the gateway.
        connected_at: Epoch seconds of the CONNECT notification.
        expires_at: Epoch seconds after which the entry may be evicted, or None.
    """

    connection_id: str
    connected_at: float
    expires_at: float | None = None

    @classmethod
    def create(cls, connection_id: str, ttl_seconds: int = 0) -> "ConnectionRecord":
        now = time.time()
        return cls(
            connection_id=connection_id,
            connected_at=now,
            expires_at=now + ttl_seconds if ttl_seconds > 0 else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "connectionId": self.connection_id,
            "connectedAt": self.connected_at,
        }
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionRecord":
        return cls(
            connection_id=str(data["connectionId"]),
            connected_at=float(data.get("connectedAt", 0.0)),
            expires_at=float(data["expiresAt"]) if data.get("expiresAt") is not None else None,
        )

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


@runtime_checkable
class ConnectionRegistry(Protocol):
    """
    Durable mapping of connection id to liveness metadata.

    All operations raise RegistryUnavailable when the backing store cannot
    be reached. None of them retry internally.
    """

    async def put(self, connection_id: str) -> None:
        """Idempotent insert; no error if already present."""
        ...

    async def delete(self, connection_id: str) -> None:
        """Idempotent removal; no error if absent."""
        ...

    def list_all(self) -> AsyncIterator[str]:
        """
        Iterate every stored connection id.

        Lazy, finite and one-shot. Concurrent puts/deletes may or may not be
        reflected, but ids already yielded are never corrupted.
        """
        ...

    async def count(self) -> int:
        """Number of stored connections."""
        ...

    async def ping(self) -> bool:
        """Whether the backing store is reachable."""
        ...
