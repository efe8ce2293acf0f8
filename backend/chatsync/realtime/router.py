"""Inbound event dispatch table.

The router turns raw transport events into validated payloads and hands
them to exactly one handler. It is a plain dictionary lookup built once per
transport session, so tests can call ``dispatch`` directly without a real
transport.

Rules:
    - Unknown event names are dropped silently (newer backends may send
      events this client does not know about).
    - Payloads that fail validation become a ProtocolError, which is logged
      and reported through ``on_protocol_error``. It never propagates.
    - Dispatch is synchronous, so events are handled strictly in arrival
      order.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import ProtocolError

logger = logging.getLogger(__name__)

Validator = Callable[[Any], Any]
Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Route:
    """One entry of the dispatch table.

    Attributes:
        handler: Receives the validated payload.
        validator: Converts the raw payload into a typed one. None for events
            that carry no payload, in which case the handler gets None.
    """
    handler: Handler
    validator: Optional[Validator] = None


class EventRouter:
    """Validating demultiplexer for inbound transport events.

    Args:
        routes: Mapping of event name to Route.
        on_protocol_error: Called with the ProtocolError for each dropped
            malformed payload.
    """

    def __init__(
        self,
        routes: Mapping[str, Route],
        on_protocol_error: Optional[Callable[[ProtocolError], None]] = None,
    ) -> None:
        self._routes: Dict[str, Route] = dict(routes)
        self._on_protocol_error = on_protocol_error

    def dispatch(self, event: str, payload: Any = None) -> bool:
        """Validate and deliver one event.

        Args:
            event: Transport event name.
            payload: Raw payload as decoded by the transport.

        Returns:
            True if a handler ran, False if the event was dropped.
        """
        route = self._routes.get(event)
        if route is None:
            logger.debug("[Router] Dropping unknown event %r", event)
            return False

        try:
            value = self._validate(event, route, payload)
        except ProtocolError as exc:
            logger.warning("[Router] %s", exc)
            if self._on_protocol_error is not None:
                self._on_protocol_error(exc)
            return False

        route.handler(value)
        return True

    @staticmethod
    def _validate(event: str, route: Route, payload: Any) -> Any:
        if route.validator is None:
            return None
        try:
            return route.validator(payload)
        except PydanticValidationError as exc:
            raise ProtocolError(event, f"{exc.error_count()} validation error(s)") from exc
        except (TypeError, ValueError) as exc:
            raise ProtocolError(event, str(exc)) from exc
