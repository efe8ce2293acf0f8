"""Client-side realtime chat synchronization engine.

Components:
    - ConnectionManager: owns the transport session and connection state.
    - EventRouter: validates inbound events and dispatches them.
    - MessageStore: append-only message history.
    - PresenceTracker: online-user snapshot.
    - NotificationCenter: single expiring status notification.
    - TypingAggregator: typing signals to system messages.
    - ChatEngine: wires them together.
"""
from .connection import ConnectionManager, TransportSession, validate_identity
from .engine import ChatEngine, EngineSnapshot
from .errors import BackendError, ChatSyncError, ProtocolError, TransportError, ValidationError
from .models import ConnectionState, Identity, Message, MessageAuthor, User
from .notifications import Notification, NotificationCenter
from .presence import PresenceTracker
from .router import EventRouter, Route
from .store import MessageStore
from .typing_signals import TypingAggregator

__all__ = [
    "BackendError",
    "ChatEngine",
    "ChatSyncError",
    "ConnectionManager",
    "ConnectionState",
    "EngineSnapshot",
    "EventRouter",
    "Identity",
    "Message",
    "MessageAuthor",
    "MessageStore",
    "Notification",
    "NotificationCenter",
    "PresenceTracker",
    "ProtocolError",
    "Route",
    "TransportError",
    "TransportSession",
    "TypingAggregator",
    "User",
    "ValidationError",
    "validate_identity",
]
