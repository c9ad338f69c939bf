"""Event emitter used for pipeline stage/finish notifications."""
from collections import defaultdict
from typing import Callable, DefaultDict, List
import inspect
import logging

logger = logging.getLogger(__name__)


class EventEmitter:
    """
    Named events with sync or async listeners.

    A failing listener is logged and skipped; it never fails the request
    that emitted the event.
    """

    def __init__(self):
        self._listeners: DefaultDict[str, List[Callable]] = defaultdict(list)

    def on(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners[event_name]
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        # snapshot: listeners may unsubscribe while being notified
        for callback in tuple(self._listeners.get(event_name, ())):
            try:
                outcome = callback(*args, **kwargs)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Listener for '%s' event failed", event_name)
