"""Turns inbound typing signals into transient system messages."""
import logging
from typing import Callable, Optional

from .models import Message, TypingPayload
from .store import MessageStore

logger = logging.getLogger(__name__)


class TypingAggregator:
    """Appends "<username> is typing..." for typing signals from other users.

    This is a one-shot signal, not a "currently typing" state: repeated
    signals produce repeated messages and nothing expires them.

    Args:
        store: Message history that receives the system messages.
        local_username: Returns the joined user's name, or None before join.
    """

    def __init__(
        self,
        store: MessageStore,
        local_username: Callable[[], Optional[str]],
    ) -> None:
        self._store = store
        self._local_username = local_username

    def handle(self, payload: TypingPayload) -> Optional[Message]:
        """Process one typing signal.

        Returns:
            The synthesized system message, or None if the signal was ignored.
        """
        if not payload.isTyping:
            return None
        if payload.username == self._local_username():
            # Our own echo
            return None
        return self._store.append_system(f"{payload.username} is typing...")
