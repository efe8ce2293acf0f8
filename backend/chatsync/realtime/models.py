"""Data models for the realtime chat synchronization engine.

Wire payloads arrive from the backend with camelCase keys (``user``,
``createdAt``, ``isTyping``). Each inbound event maps to exactly one of the
payload models below, validated at the EventRouter boundary.

Messages are frozen: once stored they are never edited in place.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# Display name used for locally synthesized system messages
SYSTEM_USERNAME = "System"


class ConnectionState(str, Enum):
    """Lifecycle of the single transport session.

    Attributes:
        DISCONNECTED: No session, or the last one was lost.
        CONNECTING: Session created, waiting for the transport handshake.
        CONNECTED: Transport is up and ``joinChat`` has been emitted.
        JOINED: The backend has started streaming events for this session.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    JOINED = "joined"


class MessageAuthor(BaseModel):
    """Author block of a chat message (``user`` on the wire)."""
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Display name of the sender")
    id: Optional[int] = Field(default=None, description="Backend user ID")


class Message(BaseModel):
    """A single chat message, either backend-authored or system-synthesized.

    Attributes:
        id: Opaque backend identifier (absent on system messages).
        content: Message text.
        author: Sender (``user`` on the wire).
        timestamp: Backend creation time, or local receipt time for
            system messages (``createdAt`` on the wire).
        isSystem: True for locally synthesized lifecycle messages.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Backend message ID")
    content: str = Field(..., description="Message content")
    author: MessageAuthor = Field(..., alias="user")
    timestamp: datetime = Field(..., alias="createdAt")
    isSystem: bool = Field(default=False, description="Locally synthesized")


class User(BaseModel):
    """An online user as reported by the presence snapshot."""
    model_config = ConfigDict(frozen=True)

    id: int
    username: str


class Identity(BaseModel):
    """Local identity supplied before joining.

    Field rules (non-blank username, positive userId) are checked by
    ``validate_identity`` in the connection module, not here.
    """
    model_config = ConfigDict(frozen=True)

    username: str
    userId: int


# =============================================================================
# Inbound payload variants
# =============================================================================


class UserPresencePayload(BaseModel):
    """Payload of ``userJoined`` / ``userLeft``."""
    username: str


class TypingPayload(BaseModel):
    """Payload of ``userTyping``."""
    username: str
    isTyping: bool


class ErrorPayload(BaseModel):
    """Payload of the backend ``error`` event."""
    message: str


MessageList = TypeAdapter(List[Message])
UserList = TypeAdapter(List[User])
