"""Transport session ownership and connection lifecycle.

ConnectionManager is the only component that touches the transport. It
holds at most one TransportSession at a time and drives the state machine:

    Disconnected --join()--> Connecting --connect--> Connected
    Connected --first inbound event--> Joined
    any --disconnect / connect failure--> Disconnected

Stale-session guard:
    Every transport callback carries the session that produced it. Once a
    session has been replaced or disposed, its late callbacks are logged and
    ignored so they cannot corrupt the current state.

There is no automatic reconnection. Retry is a fresh ``join()``.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Set

from .errors import TransportError, ValidationError
from .models import ConnectionState, Identity
from .notifications import NotificationCenter
from .router import EventRouter

logger = logging.getLogger(__name__)

# Outbound request names
JOIN_CHAT = "joinChat"
SEND_MESSAGE = "sendMessage"
TYPING = "typing"

# Transport lifecycle events
CONNECT = "connect"
DISCONNECT = "disconnect"

IDENTITY_REQUIRED = "Please enter both username and user ID"


EventCallback = Callable[[str, Any], None]


class TransportSession(ABC):
    """One logical bidirectional connection to the chat backend.

    Implementations deliver every inbound event, including the ``connect``
    and ``disconnect`` lifecycle events, to the callback given to ``bind``.
    """

    def __init__(self) -> None:
        self.session_id = str(uuid.uuid4())

    @abstractmethod
    def bind(self, callback: EventCallback) -> None:
        """Route all inbound events to ``callback(event, payload)``."""

    @abstractmethod
    async def open(self) -> None:
        """Start connecting.

        Raises:
            TransportError: If the transport could not be established.
        """

    @abstractmethod
    async def emit(self, event: str, payload: dict) -> None:
        """Send one request to the backend."""

    @abstractmethod
    async def close(self) -> None:
        """Tear down the connection. Must be safe to call more than once."""


TransportFactory = Callable[[], TransportSession]


def validate_identity(username: Any, user_id: Any) -> Identity:
    """Check join input and return a normalized identity.

    Args:
        username: Display name. Must be non-empty once trimmed.
        user_id: Backend user ID. Must be a positive integer.

    Raises:
        ValidationError: If either value is missing or invalid.
    """
    if not isinstance(username, str) or not username.strip():
        raise ValidationError(IDENTITY_REQUIRED)
    # bool is an int subclass; True is not a user ID
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise ValidationError(IDENTITY_REQUIRED)
    return Identity(username=username.strip(), userId=user_id)


class ConnectionManager:
    """Owns the single transport session and the connection state.

    Args:
        transport_factory: Creates a fresh, unopened TransportSession.
        router_factory: Builds the dispatch table for a new session.
        notifications: Receives status and error notifications.
        on_state_change: Called with the new state after each transition.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        router_factory: Callable[[], EventRouter],
        notifications: NotificationCenter,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
    ) -> None:
        self._transport_factory = transport_factory
        self._router_factory = router_factory
        self._notifications = notifications
        self._on_state_change = on_state_change

        self._session: Optional[TransportSession] = None
        self._router: Optional[EventRouter] = None
        self._identity: Optional[Identity] = None
        self._state = ConnectionState.DISCONNECTED

        # Strong references to fire-and-forget tasks
        self._background_tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def session(self) -> Optional[TransportSession]:
        return self._session

    @property
    def is_joined(self) -> bool:
        return self._state is ConnectionState.JOINED

    # =========================================================================
    # User actions
    # =========================================================================

    async def join(self, identity: Identity) -> TransportSession:
        """Replace any existing session with a new one for ``identity``.

        The transport connect runs in the background; this returns as soon
        as the new session is created and the state is ``Connecting``.

        Raises:
            ValidationError: If the identity is incomplete. No transport
                action is taken in that case.
        """
        try:
            identity = validate_identity(identity.username, identity.userId)
        except ValidationError as exc:
            logger.info("[Conn] Join rejected: %s", exc)
            self._notifications.notify(str(exc), is_error=True)
            raise

        # Swap sessions without awaiting in between: at most one is live
        previous = self._detach()

        session = self._transport_factory()
        self._session = session
        self._router = self._router_factory()
        self._identity = identity
        session.bind(lambda event, payload: self.handle_transport_event(session, event, payload))
        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            "[Conn] Session %s created for %s (userId=%s)",
            session.session_id, identity.username, identity.userId,
        )

        self._spawn(self._open(session))
        if previous is not None:
            await self._close_quietly(previous)
        return session

    async def leave(self) -> None:
        """Explicitly end the session and forget the local identity."""
        previous = self._detach()
        self._identity = None
        if previous is not None:
            await self._close_quietly(previous)

    async def dispose(self) -> None:
        """Close the current session if there is one. Idempotent."""
        previous = self._detach()
        if previous is not None:
            await self._close_quietly(previous)

    def _detach(self) -> Optional[TransportSession]:
        """Forget the current session so its own callbacks become stale."""
        session = self._session
        if session is None:
            return None
        self._session = None
        self._router = None
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("[Conn] Disposing session %s", session.session_id)
        return session

    async def emit(self, event: str, payload: dict) -> bool:
        """Send a request on the current session.

        Returns:
            False if there is no session to send on.
        """
        return await self._send(self._session, event, payload)

    async def _send(
        self, session: Optional[TransportSession], event: str, payload: dict
    ) -> bool:
        if session is None or session is not self._session:
            logger.debug("[Conn] No current session, dropping outbound %s", event)
            return False
        try:
            await session.emit(event, payload)
        except TransportError as exc:
            logger.warning("[Conn] Emit %s failed: %s", event, exc)
            self._notifications.notify(f"Failed to send: {exc}", is_error=True)
            return False
        return True

    # =========================================================================
    # Transport callbacks
    # =========================================================================

    def handle_transport_event(
        self, session: TransportSession, event: str, payload: Any = None
    ) -> None:
        """Entry point for every inbound event from ``session``."""
        if session is not self._session:
            logger.debug(
                "[Conn] Ignoring %r from stale session %s", event, session.session_id
            )
            return

        if event == CONNECT:
            self._on_connect(session)
            return
        if event == DISCONNECT:
            self._on_disconnect(session)
            return

        # Any backend traffic after joinChat means the join was accepted
        if self._state is ConnectionState.CONNECTED:
            self._set_state(ConnectionState.JOINED)

        if self._router is not None:
            self._router.dispatch(event, payload)

    def _on_connect(self, session: TransportSession) -> None:
        identity = self._identity
        self._set_state(ConnectionState.CONNECTED)
        self._notifications.notify("Connected to server")
        logger.info("[Conn] Session %s connected, joining chat", session.session_id)
        self._spawn(
            self._send(
                session,
                JOIN_CHAT,
                {"username": identity.username, "userId": identity.userId},
            )
        )

    def _on_disconnect(self, session: TransportSession) -> None:
        logger.warning("[Conn] Session %s disconnected (was %s)", session.session_id, self._state.value)
        self._session = None
        self._router = None
        self._set_state(ConnectionState.DISCONNECTED)
        self._notifications.notify("Disconnected from server", is_error=True)
        self._spawn(self._close_quietly(session))

    async def _open(self, session: TransportSession) -> None:
        try:
            await session.open()
        except TransportError as exc:
            if session is not self._session:
                logger.debug("[Conn] Connect failure from stale session %s", session.session_id)
                return
            logger.error("[Conn] Connect failed for session %s: %s", session.session_id, exc)
            self._session = None
            self._router = None
            self._set_state(ConnectionState.DISCONNECTED)
            self._notifications.notify("Unable to connect to server", is_error=True)
            await self._close_quietly(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("[Conn] %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    async def _close_quietly(self, session: TransportSession) -> None:
        try:
            await session.close()
        except TransportError as exc:
            logger.debug("[Conn] Close of session %s failed: %s", session.session_id, exc)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for pending background work (connects, emits, closes)."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
