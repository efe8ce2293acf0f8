"""Realtime chat synchronization engine.

ChatEngine wires the components together and is the single entry point
for the presentation layer:

    user action  -> ChatEngine -> ConnectionManager -> transport emit
    transport    -> ConnectionManager (stale-session guard)
                 -> EventRouter -> MessageStore / PresenceTracker /
                                   NotificationCenter / TypingAggregator
                 -> change listeners

Inbound event table:
    recentMessages  list[Message]        MessageStore.replace_history
    newMessage      Message              MessageStore.append
    userJoined      {username}           "<username> joined the chat"
    userLeft        {username}           "<username> left the chat"
    onlineUsers     list[User]           PresenceTracker.set_online
    userTyping      {username,isTyping}  TypingAggregator.handle
    error           {message}            error notification

Everything runs on one asyncio event loop; handlers are synchronous and
complete before the next event is processed.
"""
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from pydantic import BaseModel

from .connection import SEND_MESSAGE, TYPING, ConnectionManager, TransportFactory
from .errors import ProtocolError
from .models import (
    ConnectionState,
    ErrorPayload,
    Identity,
    Message,
    MessageList,
    TypingPayload,
    User,
    UserList,
    UserPresencePayload,
)
from .notifications import DEFAULT_DISPLAY_SECONDS, Notification, NotificationCenter
from .presence import PresenceTracker
from .router import EventRouter, Route
from .store import MessageStore, _utc_now
from .typing_signals import TypingAggregator

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class EngineSnapshot(BaseModel):
    """Read-only view of everything the presentation layer renders."""
    state: ConnectionState
    identity: Optional[Identity] = None
    messages: List[Message]
    onlineUsers: List[User]
    notification: Optional[Notification] = None


class ChatEngine:
    """Client-side realtime chat state, kept in sync with the backend.

    Args:
        transport_factory: Creates a new transport session per join.
        display_seconds: Notification display duration.
        loop: Event loop for the notification timer (running loop if None).
        clock: Local time source for system messages.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        display_seconds: float = DEFAULT_DISPLAY_SECONDS,
        loop=None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.notifications = NotificationCenter(display_seconds=display_seconds, loop=loop)
        self.store = MessageStore(clock=clock)
        self.presence = PresenceTracker()
        self.typing = TypingAggregator(self.store, self._local_username)
        self.connection = ConnectionManager(
            transport_factory,
            router_factory=self.build_router,
            notifications=self.notifications,
            on_state_change=lambda _state: self._changed("state"),
        )
        self._listeners: List[ChangeListener] = []
        self.notifications.add_listener(lambda _n: self._changed("notification"))

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def identity(self) -> Optional[Identity]:
        return self.connection.identity

    def add_listener(self, callback: ChangeListener) -> None:
        """Register a callback fired with the name of each changed facet.

        Facets: ``state``, ``messages``, ``presence``, ``notification``.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: ChangeListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            state=self.state,
            identity=self.identity,
            messages=list(self.store.messages),
            onlineUsers=list(self.presence.online),
            notification=self.notifications.current,
        )

    # =========================================================================
    # User actions
    # =========================================================================

    async def join(self, username: Any, user_id: Any) -> None:
        """Join the chat as ``username``/``user_id``, replacing any session.

        Raises:
            ValidationError: If the identity is incomplete.
        """
        # ConnectionManager validates the identity
        identity = Identity.model_construct(username=username, userId=user_id)
        await self.connection.join(identity)

    async def send_message(self, content: str) -> bool:
        """Send a chat message.

        Nothing is sent unless the session is joined and ``content`` has
        non-whitespace text.

        Returns:
            True if the message was handed to the transport.
        """
        if not self.connection.is_joined:
            logger.debug("[Engine] Not joined, message not sent")
            return False
        if not content or not content.strip():
            return False
        return await self.connection.emit(
            SEND_MESSAGE, {"content": content, "userId": self.identity.userId}
        )

    async def send_typing(self, is_typing: bool = True) -> bool:
        """Tell other users whether the local user is typing."""
        if not self.connection.is_joined:
            return False
        identity = self.identity
        return await self.connection.emit(
            TYPING,
            {"username": identity.username, "userId": identity.userId, "isTyping": is_typing},
        )

    async def leave(self) -> None:
        await self.connection.leave()

    # =========================================================================
    # Inbound dispatch table
    # =========================================================================

    def build_router(self) -> EventRouter:
        """Build the dispatch table for one transport session."""
        routes = {
            "recentMessages": Route(self._on_recent_messages, MessageList.validate_python),
            "newMessage": Route(self._on_new_message, Message.model_validate),
            "userJoined": Route(self._on_user_joined, UserPresencePayload.model_validate),
            "userLeft": Route(self._on_user_left, UserPresencePayload.model_validate),
            "onlineUsers": Route(self._on_online_users, UserList.validate_python),
            "userTyping": Route(self._on_user_typing, TypingPayload.model_validate),
            "error": Route(self._on_backend_error, ErrorPayload.model_validate),
        }
        return EventRouter(routes, on_protocol_error=self._on_protocol_error)

    def _on_recent_messages(self, messages: List[Message]) -> None:
        self.store.replace_history(messages)
        self._changed("messages")

    def _on_new_message(self, message: Message) -> None:
        self.store.append(message)
        self._changed("messages")

    def _on_user_joined(self, payload: UserPresencePayload) -> None:
        self.store.append_system(f"{payload.username} joined the chat")
        self._changed("messages")

    def _on_user_left(self, payload: UserPresencePayload) -> None:
        self.store.append_system(f"{payload.username} left the chat")
        self._changed("messages")

    def _on_online_users(self, users: List[User]) -> None:
        self.presence.set_online(users)
        self._changed("presence")

    def _on_user_typing(self, payload: TypingPayload) -> None:
        if self.typing.handle(payload) is not None:
            self._changed("messages")

    def _on_backend_error(self, payload: ErrorPayload) -> None:
        logger.warning("[Engine] Backend error: %s", payload.message)
        self.notifications.notify(payload.message, is_error=True)

    def _on_protocol_error(self, exc: ProtocolError) -> None:
        self.notifications.notify(f"Ignored malformed '{exc.event}' event", is_error=True)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _local_username(self) -> Optional[str]:
        identity = self.identity
        return identity.username if identity else None

    def _changed(self, facet: str) -> None:
        for callback in list(self._listeners):
            callback(facet)
