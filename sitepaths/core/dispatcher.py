import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Type

from sitepaths.core.events import BaseEvent
from sitepaths.core.exceptions import EventHandlingError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Any]


class EventDispatcher:
    """
    Synchronous event dispatcher.

    Handlers are registered per event class and run in registration order,
    inline, in the caller's thread. A failing handler stops dispatch of the
    event and surfaces as EventHandlingError.
    """

    def __init__(self):
        self.event_handler_registry: Dict[Type[BaseEvent], List[EventHandler]] = defaultdict(list)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def register(self, event_type: Type[BaseEvent], handler: EventHandler) -> None:
        if not (inspect.isclass(event_type) and issubclass(event_type, BaseEvent)):
            raise TypeError(f"Invalid event_type '{event_type}'. Must be a class that inherits from BaseEvent.")
        if handler in self.event_handler_registry[event_type]:
            self.logger.debug(f"Handler {_handler_name(handler)} already registered for {event_type.__name__}.")
            return
        self.event_handler_registry[event_type].append(handler)
        self.logger.debug(f"Handler {_handler_name(handler)} registered for event {event_type.__name__}.")

    def unregister(self, event_type: Type[BaseEvent], handler: EventHandler) -> None:
        handlers = self.event_handler_registry.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: Type[BaseEvent]) -> List[EventHandler]:
        return list(self.event_handler_registry.get(event_type, []))

    def dispatch(self, event: BaseEvent) -> int:
        """Runs every handler registered for the event's type. Returns how many ran."""
        event_type = type(event)
        handlers = self.event_handler_registry.get(event_type, [])
        if not handlers:
            self.logger.debug(f"No handlers registered for event {event_type.__name__}.")
            return 0

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(
                    f"Handler {_handler_name(handler)} failed on {event_type.__name__}: {e}", exc_info=True
                )
                raise EventHandlingError(
                    f"Error handling {event_type.__name__}",
                    event_type=event_type.__name__,
                    handler_name=_handler_name(handler),
                    original_exception=e,
                ) from e
        return len(handlers)


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", repr(handler))
