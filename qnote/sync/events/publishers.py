"""
Alert Publisher.

Delivers alerts to in-process subscribers (the UI layer) and logs each
one. A bounded history is kept so a UI that subscribes late can still
show recent alerts.

Usage:
    from qnote.sync.events.publishers import AlertPublisher

    publisher = AlertPublisher()
    unsubscribe = publisher.subscribe(show_banner)
    publisher.publish(NoteSyncFailed(source="sync-engine", payload={...}))
"""

from collections import deque
from collections.abc import Callable

from qnote.sync.core.logging import get_logger
from qnote.sync.events.schemas import AlertEvent, AlertSeverity

logger = get_logger(__name__)

AlertHandler = Callable[[AlertEvent], None]

_LOG_LEVELS = {
    AlertSeverity.INFO: "info",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.ERROR: "error",
}


class AlertPublisher:
    """Publishes alerts to subscribers."""

    def __init__(self, history_size: int = 100) -> None:
        self._handlers: list[AlertHandler] = []
        self._history: deque[AlertEvent] = deque(maxlen=history_size)

    @property
    def history(self) -> list[AlertEvent]:
        """Recent alerts, oldest first."""
        return list(self._history)

    def subscribe(self, handler: AlertHandler) -> Callable[[], None]:
        """
        Register a handler called with every alert.

        Returns:
            Function that removes the handler
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def of_type(self, event_type: str) -> list[AlertEvent]:
        """Recent alerts of one type."""
        return [event for event in self._history if event.event_type == event_type]

    def publish(self, event: AlertEvent) -> None:
        """Record an alert, log it and hand it to every subscriber."""
        self._history.append(event)

        getattr(logger, _LOG_LEVELS[event.severity])(
            "Alert published",
            extra={
                "event_type": event.event_type,
                "event_id": event.event_id,
                "source": event.source,
                **event.payload,
            },
        )

        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Alert handler failed",
                    extra={"event_type": event.event_type, "error": str(e)},
                )
