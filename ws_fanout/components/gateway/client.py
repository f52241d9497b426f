"""
Gateway push primitive.

``send(connection_id, data)`` returns on success, raises StaleTargetError
when the gateway reports the connection permanently gone, and raises
TransientPushError for every other failure. Callers never see a raw
transport exception.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from shared.config.logging import get_logger, mask_connection_id
from shared.utils.exceptions import StaleTargetError, TransientPushError
from ws_fanout.components.core.constants import FanoutConstants

logger = get_logger(__name__)


@runtime_checkable
class GatewayClient(Protocol):
    """Push-to-connection primitive exposed by the gateway."""

    async def send(self, connection_id: str, data: bytes) -> None:
        ...

    async def close(self) -> None:
        ...


class HttpGatewayClient:
    """
    Client for a WebSocket gateway management API.

    Posts the payload to ``{endpoint}/@connections/{connection_id}``.
    2xx is success, 410 Gone marks a stale target, anything else is
    transient.

    The underlying httpx.AsyncClient is created once and reused for every
    push; pass ``client`` to inject a preconfigured one (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 5.0,
        max_connections: int = 100,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Gateway endpoint is required")
        self._endpoint = endpoint.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._endpoint,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
            ),
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _url(self, connection_id: str) -> str:
        path = FanoutConstants.CONNECTIONS_PATH.format(
            connection_id=quote(connection_id, safe="")
        )
        return f"{self._endpoint}{path}"

    async def send(self, connection_id: str, data: bytes) -> None:
        try:
            response = await self._client.post(
                self._url(connection_id),
                content=data,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TransientPushError(
                connection_id, f"{type(e).__name__}: {e}"
            ) from e

        if response.status_code == FanoutConstants.STALE_TARGET_STATUS:
            raise StaleTargetError(connection_id, status_code=response.status_code)

        if not response.is_success:
            raise TransientPushError(
                connection_id,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "Pushed to connection",
            connection_id=mask_connection_id(connection_id),
            size=len(data),
        )

    async def close(self) -> None:
        await self._client.aclose()
