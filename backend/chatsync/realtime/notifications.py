"""Single transient status notification with automatic expiry.

At most one notification is live. A newer one replaces it and restarts the
display timer, so the most recent notification always gets its full
duration.

The expiry timer is an ``asyncio.TimerHandle`` owned by the center. All
calls happen on the event loop thread, so cancel-then-reschedule needs no
locking.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Seconds a notification stays visible
DEFAULT_DISPLAY_SECONDS = 3.0


class Notification(BaseModel):
    """A visible status line.

    Attributes:
        text: Text shown to the user.
        isError: Render as an error rather than an informational status.
        expiresAt: Event-loop time (``loop.time()``) at which it clears.
    """
    model_config = ConfigDict(frozen=True)

    text: str
    isError: bool = False
    expiresAt: float


class NotificationCenter:
    """Owns the current notification and its cancelable expiry timer.

    Args:
        display_seconds: How long each notification stays visible.
        loop: Event loop used for scheduling. Defaults to the running loop
            at the time ``notify`` is called.
    """

    def __init__(
        self,
        display_seconds: float = DEFAULT_DISPLAY_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.display_seconds = display_seconds
        self._loop = loop
        self._current: Optional[Notification] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Callable[[Optional[Notification]], None]] = []

    @property
    def current(self) -> Optional[Notification]:
        return self._current

    def add_listener(self, callback: Callable[[Optional[Notification]], None]) -> None:
        """Register a callback fired when a notification is shown or cleared."""
        self._listeners.append(callback)

    def notify(self, text: str, is_error: bool = False) -> Notification:
        """Show a notification, superseding any pending one.

        Args:
            text: Notification text.
            is_error: Whether this is an error notification.

        Returns:
            The notification now visible.
        """
        loop = self._loop or asyncio.get_running_loop()
        self._cancel_timer()

        now = loop.time()
        self._current = Notification(
            text=text,
            isError=is_error,
            expiresAt=now + self.display_seconds,
        )
        self._timer = loop.call_later(self.display_seconds, self._expire)

        if is_error:
            logger.info("[Notify] error: %s", text)
        else:
            logger.debug("[Notify] %s", text)
        self._emit()
        return self._current

    def clear(self) -> None:
        """Drop the current notification and its pending timer."""
        self._cancel_timer()
        if self._current is not None:
            self._current = None
            self._emit()

    def _expire(self) -> None:
        self._timer = None
        self._current = None
        self._emit()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _emit(self) -> None:
        for callback in self._listeners:
            callback(self._current)
