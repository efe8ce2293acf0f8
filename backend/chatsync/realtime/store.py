"""Ordered message history for the current chat session.

The store is append-only: entries keep their position once appended and no
operation removes them. The only way to drop content is ``replace_history``,
which the engine calls once per session on the initial history sync.

Duplicate message IDs are not collapsed. If the backend sends the same
message twice, it appears twice.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Tuple

from .models import SYSTEM_USERNAME, Message, MessageAuthor

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageStore:
    """Append-only message history in insertion order.

    Args:
        clock: Returns the local receipt time stamped on system messages.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._messages: List[Message] = []

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Current history, oldest first."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def replace_history(self, messages: Iterable[Message]) -> None:
        """Overwrite the history with a backend snapshot.

        Args:
            messages: Recent messages in the order the backend sent them.
        """
        self._messages = list(messages)
        logger.debug("[Store] History replaced with %d messages", len(self._messages))

    def append(self, message: Message) -> Message:
        """Add a message to the end of the history.

        Returns:
            The same message (for chaining).
        """
        self._messages.append(message)
        return message

    def append_system(self, text: str) -> Message:
        """Synthesize and append a system message stamped with local time."""
        message = Message(
            content=text,
            author=MessageAuthor(username=SYSTEM_USERNAME),
            timestamp=self._clock(),
            isSystem=True,
        )
        return self.append(message)
