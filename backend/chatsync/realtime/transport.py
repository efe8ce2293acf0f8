"""Socket.IO transport session backed by ``python-socketio``.

Each SocketIOSession wraps its own ``socketio.AsyncClient``. Reconnection is
disabled on the client: a lost connection is reported as ``disconnect`` and
the user retries with a new ``join()``, which creates a new session.
"""
import logging
from typing import Any, List, Optional

import socketio

from .connection import CONNECT, DISCONNECT, EventCallback, TransportSession
from .errors import TransportError

logger = logging.getLogger(__name__)


class SocketIOSession(TransportSession):
    """TransportSession over a python-socketio AsyncClient.

    Args:
        url: Backend base URL, e.g. ``http://localhost:3000``.
        socketio_path: Server endpoint path (``socket.io`` by default).
        transports: Allowed engine.io transports, in preference order.
        wait_timeout: Seconds to wait for the namespace handshake.
    """

    def __init__(
        self,
        url: str,
        *,
        socketio_path: str = "socket.io",
        transports: Optional[List[str]] = None,
        wait_timeout: float = 5,
    ) -> None:
        super().__init__()
        self.url = url
        self.socketio_path = socketio_path
        self.transports = transports
        self.wait_timeout = wait_timeout
        self._client = socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
        )
        self._callback: Optional[EventCallback] = None

    def bind(self, callback: EventCallback) -> None:
        self._callback = callback
        self._client.on(CONNECT, self._on_connect)
        self._client.on(DISCONNECT, self._on_disconnect)
        self._client.on("*", self._on_any)

    async def open(self) -> None:
        try:
            await self._client.connect(
                self.url,
                transports=self.transports,
                socketio_path=self.socketio_path,
                wait_timeout=self.wait_timeout,
            )
        except socketio.exceptions.ConnectionError as exc:
            raise TransportError(f"Could not connect to {self.url}: {exc}") from exc

    async def emit(self, event: str, payload: dict) -> None:
        try:
            await self._client.emit(event, payload)
        except socketio.exceptions.SocketIOError as exc:
            raise TransportError(f"Could not emit {event}: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._client.disconnect()
        except socketio.exceptions.SocketIOError as exc:
            raise TransportError(f"Could not disconnect: {exc}") from exc

    # python-socketio handlers; payload-less events arrive as None

    def _on_connect(self) -> None:
        self._deliver(CONNECT, None)

    def _on_disconnect(self, *args: Any) -> None:
        # Newer python-socketio versions pass a disconnect reason
        self._deliver(DISCONNECT, None)

    def _on_any(self, event: str, *args: Any) -> None:
        self._deliver(event, args[0] if args else None)

    def _deliver(self, event: str, payload: Any) -> None:
        if self._callback is None:
            logger.debug("[Transport] Unbound session dropped %r", event)
            return
        self._callback(event, payload)
