"""REST client for the chat backend's user and message endpoints.

Used only to obtain a valid ``userId`` before joining (and optionally to
preview recent messages). The realtime engine never calls it.

Endpoints:
    POST /users            create a user: {"username": "..."}
    GET  /users            list all users
    GET  /messages/recent  recent messages
"""
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from chatsync.realtime.errors import BackendError
from chatsync.realtime.models import Message, MessageList, User, UserList

logger = logging.getLogger(__name__)


class UsersClient:
    """Thin synchronous wrapper over the backend REST API.

    Args:
        base_url: Backend base URL.
        timeout: Per-request timeout in seconds.
        client: Pre-configured httpx client (tests pass one with a
            MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "UsersClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def create_user(self, username: str) -> User:
        """Create a user and return it with its backend-assigned ID.

        Raises:
            BackendError: On HTTP failure or an unexpected response body.
        """
        data = self._request("POST", "/users", json={"username": username})
        logger.info("[Users] Created user %r", username)
        return self._parse(User.model_validate, data, "user")

    def list_users(self) -> List[User]:
        data = self._request("GET", "/users")
        return self._parse(UserList.validate_python, data, "user list")

    def recent_messages(self) -> List[Message]:
        data = self._request("GET", "/messages/recent")
        return self._parse(MessageList.validate_python, data, "message list")

    def find_user(self, username: str) -> Optional[User]:
        """Return the first listed user named ``username``, if any."""
        for user in self.list_users():
            if user.username == username:
                return user
        return None

    def _request(self, method: str, path: str, **kwargs):
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("[Users] %s %s -> %s", method, path, exc.response.status_code)
            raise BackendError(
                f"{method} {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("[Users] %s %s failed: %s", method, path, exc)
            raise BackendError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"{method} {path} returned invalid JSON") from exc

    @staticmethod
    def _parse(validator, data, what: str):
        try:
            return validator(data)
        except PydanticValidationError as exc:
            raise BackendError(f"Unexpected {what} payload from backend") from exc
