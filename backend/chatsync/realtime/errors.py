"""Error taxonomy for the chat synchronization engine.

None of these are fatal. Each one leaves the engine in a well-defined state
(``Disconnected`` at worst) from which a fresh ``join()`` can retry.
"""


class ChatSyncError(Exception):
    """Base class for all engine errors."""


class ValidationError(ChatSyncError):
    """Bad local input (empty username, missing user ID).

    Raised before any transport action is taken.
    """


class TransportError(ChatSyncError):
    """Transport-level connect failure or disconnect."""


class ProtocolError(ChatSyncError):
    """Malformed inbound payload, dropped at the router."""

    def __init__(self, event: str, detail: str) -> None:
        super().__init__(f"Malformed '{event}' payload: {detail}")
        self.event = event
        self.detail = detail


class BackendError(ChatSyncError):
    """Error reported explicitly by the backend, or a failed REST call."""
