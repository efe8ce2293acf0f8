"""Local bridge between the ChatEngine and a presentation layer.

This module provides:
    - GET  /session/state: Current engine snapshot
    - POST /session/join: Join the chat (replaces any session)
    - POST /session/messages: Send a chat message
    - POST /session/typing: Send a typing signal
    - POST /session/leave: Leave the chat
    - GET  /backend/users, POST /backend/users: REST collaborator passthrough
    - GET  /backend/users/{username}: Look up one user by name
    - GET  /backend/messages/recent: Recent backend messages
    - WebSocket /ws/session: Snapshot pushed on every engine change

Snapshots use the backend's wire names for messages (``user``,
``createdAt``) so a UI written against the backend can render them as-is.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chatsync.realtime.engine import ChatEngine
from chatsync.realtime.errors import BackendError, ValidationError
from chatsync.realtime.models import User
from chatsync.users.client import UsersClient

logger = logging.getLogger(__name__)

router = APIRouter()

_engine: Optional[ChatEngine] = None
_users_client: Optional[UsersClient] = None


def set_engine(engine: Optional[ChatEngine]) -> None:
    global _engine
    _engine = engine


def get_engine() -> ChatEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Chat engine not initialised")
    return _engine


def set_users_client(client: Optional[UsersClient]) -> None:
    global _users_client
    _users_client = client


def get_users_client() -> UsersClient:
    if _users_client is None:
        raise HTTPException(status_code=503, detail="Users client not initialised")
    return _users_client


def snapshot_json(engine: ChatEngine) -> dict:
    return engine.snapshot().model_dump(mode="json", by_alias=True)


class JoinRequest(BaseModel):
    """Identity supplied by the user. Checked by the engine, not here."""
    username: str = ""
    userId: Optional[int] = None


class SendMessageRequest(BaseModel):
    content: str = ""


class TypingRequest(BaseModel):
    isTyping: bool = True


class CreateUserRequest(BaseModel):
    username: str


# =============================================================================
# Session endpoints
# =============================================================================


@router.get("/session/state")
async def get_state() -> dict:
    """Return the current engine snapshot."""
    return snapshot_json(get_engine())


@router.post("/session/join", status_code=202)
async def join(request: JoinRequest):
    """Join the chat.

    The transport connects in the background; poll ``/session/state`` or
    listen on ``/ws/session`` for ``connected``/``joined``.

    Returns:
        202 with the snapshot, or 422 with the validation message.
    """
    engine = get_engine()
    try:
        await engine.join(request.username, request.userId)
    except ValidationError as exc:
        return JSONResponse(status_code=422, content={"error": str(exc)})
    logger.info(f"[Bridge] Join requested for {request.username!r}")
    return snapshot_json(engine)


@router.post("/session/messages", status_code=202)
async def send_message(request: SendMessageRequest) -> dict:
    sent = await get_engine().send_message(request.content)
    return {"sent": sent}


@router.post("/session/typing", status_code=202)
async def send_typing(request: TypingRequest) -> dict:
    sent = await get_engine().send_typing(request.isTyping)
    return {"sent": sent}


@router.post("/session/leave")
async def leave() -> dict:
    engine = get_engine()
    await engine.leave()
    return snapshot_json(engine)


# =============================================================================
# REST collaborator passthrough
# =============================================================================


@router.get("/backend/users", response_model=List[User])
def list_users() -> List[User]:
    try:
        return get_users_client().list_users()
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/backend/users/{username}", response_model=User)
def find_user(username: str) -> User:
    """Look up an existing user so the UI can join without creating one."""
    try:
        user = get_users_client().find_user(username)
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {username!r} not found")
    return user


@router.get("/backend/messages/recent")
def recent_messages() -> List[dict]:
    """Preview of recent backend messages, in the snapshot's wire format."""
    try:
        messages = get_users_client().recent_messages()
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [m.model_dump(mode="json", by_alias=True) for m in messages]


@router.post("/backend/users", response_model=User, status_code=201)
def create_user(request: CreateUserRequest) -> User:
    try:
        return get_users_client().create_user(request.username)
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


# =============================================================================
# Snapshot stream
# =============================================================================


@router.websocket("/ws/session")
async def session_stream(websocket: WebSocket) -> None:
    """Push the full snapshot on connect and after every engine change."""
    engine = get_engine()
    await websocket.accept()

    changes: asyncio.Queue = asyncio.Queue()
    listener = changes.put_nowait
    engine.add_listener(listener)

    # Client frames are ignored; reading them is how a disconnect shows up
    incoming = asyncio.ensure_future(websocket.receive_text())
    change = asyncio.ensure_future(changes.get())
    try:
        await websocket.send_json({"type": "snapshot", "facet": None, **snapshot_json(engine)})
        while True:
            done, _ = await asyncio.wait({incoming, change}, return_when=asyncio.FIRST_COMPLETED)
            if incoming in done:
                incoming.result()
                incoming = asyncio.ensure_future(websocket.receive_text())
            if change in done:
                facet = change.result()
                await websocket.send_json({"type": "snapshot", "facet": facet, **snapshot_json(engine)})
                change = asyncio.ensure_future(changes.get())
    except WebSocketDisconnect:
        logger.info("[Bridge] Snapshot stream closed")
    finally:
        incoming.cancel()
        change.cancel()
        engine.remove_listener(listener)
