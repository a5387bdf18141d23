import logging
from typing import Callable, List, Dict

from PySide6.QtCore import QObject, Signal

from src.datasight.models.events import Event

logger = logging.getLogger(__name__)


class EventBusSignaller(QObject):
    """
    A QObject to emit signals on the main (UI) thread.
    """
    signal = Signal(Event)


class EventBus:
    """
    A simple event bus for decoupled communication between components.
    Ensures all event dispatches are handled on the main UI thread, so
    services running on worker threads can notify widgets safely.
    """
    def __init__(self):
        """Initializes the EventBus."""
        self._subscribers: Dict[str, List[Callable]] = {}
        self._signaller = EventBusSignaller()
        self._signaller.signal.connect(self._handle_event_on_main_thread)

    def subscribe(self, event_type: str, callback: Callable):
        """
        Subscribe a callback function to a specific event type.

        Args:
            event_type: The type of event to subscribe to.
            callback: The function to call when the event is dispatched.
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed %s to event '%s'", getattr(callback, "__name__", callback), event_type)

    def dispatch(self, event: Event):
        """
        Dispatch an event to all subscribed callbacks via the UI-thread signal.

        Args:
            event: The Event object to dispatch.
        """
        logger.debug("Dispatching event '%s'", event.event_type)
        self._signaller.signal.emit(event)

    def _handle_event_on_main_thread(self, event: Event):
        """
        Slot connected to the signaller; runs callbacks on the main (UI) thread.
        """
        event_type = event.event_type
        subscribers = self._subscribers.get(event_type)
        if not subscribers:
            logger.debug("No subscribers for event '%s'", event_type)
            return
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.error(
                    "Error in callback %s for event '%s'",
                    getattr(callback, "__name__", callback),
                    event_type,
                    exc_info=True,
                )
