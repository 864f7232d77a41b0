"""Typed in-process event bus for checkout components.

Components that must not import each other (the checkout page and the auth
modal, for instance) talk through this bus. Handlers subscribe to an event
class and only ever receive instances of that class.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthChanged:
    """Session state changed somewhere. `user` is set when the sender already knows it."""
    user: Optional[dict] = None


@dataclass(frozen=True)
class OpenAuthModal:
    """Ask whoever owns the auth modal to open it."""
    tab: str = "login"
    redirect_path: Optional[str] = None


@dataclass(frozen=True)
class LocationChanged:
    """History navigation (back/forward) moved the page to `url`."""
    url: str


class EventBus:
    def __init__(self):
        self._handlers = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable) -> Callable[[], None]:
        """Register `handler` for `event_type`. Returns a callable that unsubscribes it."""
        self._handlers[event_type].append(handler)

        def unsubscribe():
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event) -> int:
        """Deliver `event` to its subscribers. Returns how many received it."""
        handlers = list(self._handlers.get(type(event), ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, type(event).__name__)
        return len(handlers)

    def subscriber_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, ()))
