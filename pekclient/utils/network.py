"""
socket.io transport for the clustering server.

Wraps a python-socketio AsyncClient behind the small request/acknowledge
and subscription surface the client needs.
"""

import json
from typing import Any, Callable, List, Optional, Protocol

import socketio
from socketio import exceptions as socketio_exceptions
import structlog

from pekclient.utils.error_handling import ConnectionFailedError, RequestTimeoutError


logger = structlog.get_logger(__name__)


class Connection(Protocol):
    """Bidirectional channel to a clustering server."""

    @property
    def id(self) -> Optional[str]: ...

    async def connect(self) -> None: ...

    async def send(self, event: str, payload: Any = None) -> Any: ...

    def on(self, topic: str, handler: Callable[[Any], Any]) -> None: ...

    async def close(self) -> None: ...


class SocketIOConnection:
    """
    Connection to a clustering server over socket.io.

    Requests are emitted with an acknowledgement callback and every round
    trip is bounded by ``request_timeout``.
    """

    def __init__(
        self,
        url: str,
        request_timeout: Optional[float] = 30.0,
        connect_timeout: float = 10.0,
        transports: Optional[List[str]] = None,
    ):
        """
        Args:
            url: Server URL
            request_timeout: Seconds to wait for an acknowledgement (None = forever)
            connect_timeout: Seconds to wait for the connection handshake
            transports: socket.io transports in preference order
        """
        self.url = url
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self.transports = transports or ["websocket", "polling"]
        self._sio = socketio.AsyncClient(reconnection=True, logger=False)

    @property
    def id(self) -> Optional[str]:
        """Session id assigned by the server; used as the client identity."""
        return self._sio.sid

    @property
    def connected(self) -> bool:
        return self._sio.connected

    async def connect(self) -> None:
        try:
            await self._sio.connect(
                self.url,
                transports=self.transports,
                wait_timeout=self.connect_timeout,
            )
        except socketio_exceptions.ConnectionError as e:
            raise ConnectionFailedError(
                f"Failed to connect to server at {self.url}: {e}",
                details={"url": self.url},
            ) from e

        logger.info("connected", url=self.url, sid=self.id)

    async def send(self, event: str, payload: Any = None) -> Any:
        """
        Emit an event and wait for the server acknowledgement.

        Non-string payloads are JSON encoded before sending.

        Returns:
            The acknowledgement payload (the response envelope)

        Raises:
            RequestTimeoutError: If no acknowledgement arrives in time
        """
        if not isinstance(payload, str):
            payload = json.dumps(payload)

        logger.debug("sending", event_name=event)
        try:
            return await self._sio.call(event, payload, timeout=self.request_timeout)
        except socketio_exceptions.TimeoutError as e:
            raise RequestTimeoutError(
                f"No acknowledgement for '{event}' within {self.request_timeout}s",
                details={"event": event, "timeout": self.request_timeout},
            ) from e

    def on(self, topic: str, handler: Callable[[Any], Any]) -> None:
        """Subscribe ``handler`` to messages pushed on ``topic``."""
        self._sio.on(topic, handler)

    async def close(self) -> None:
        if self.connected:
            await self._sio.disconnect()
            logger.info("disconnected", url=self.url)
