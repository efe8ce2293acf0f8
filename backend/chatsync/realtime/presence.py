"""Online-user presence as a replace-on-update snapshot."""
import logging
from typing import Iterable, List, Tuple

from .models import User

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Holds the latest ``onlineUsers`` snapshot.

    Every update swaps in a brand new tuple, so readers only ever see a
    complete snapshot. Partial updates are not merged and uniqueness by
    ``id`` is left to the backend. ``userJoined``/``userLeft`` text events
    do not touch this structure and may disagree with it until the next
    snapshot arrives.
    """

    def __init__(self) -> None:
        self._online: Tuple[User, ...] = ()

    @property
    def online(self) -> Tuple[User, ...]:
        return self._online

    @property
    def count(self) -> int:
        return len(self._online)

    def set_online(self, users: Iterable[User]) -> None:
        self._online = tuple(users)
        logger.debug("[Presence] %d users online", len(self._online))

    def usernames(self) -> List[str]:
        return [user.username for user in self._online]
