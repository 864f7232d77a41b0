"""Page location, history and clipboard for the headless checkout."""

import logging
from typing import Optional

from sgcheckout.checkout.events import EventBus, LocationChanged

logger = logging.getLogger(__name__)


class Navigator:
    """Tracks where the checkout "page" is.

    `navigate` is a client-side push (no location event, like pushState).
    `redirect` is a full page load to another site. `back` and `pop_state`
    are history moves and publish `LocationChanged`.
    """

    def __init__(self, url: str, bus: Optional[EventBus] = None):
        self.url = url
        self.history = [url]
        self.redirects = []
        self.reloads = 0
        self._bus = bus

    def navigate(self, url: str):
        logger.info("Navigating to %s", url)
        self.url = url
        self.history.append(url)

    def redirect(self, url: str):
        logger.info("Redirecting to %s", url)
        self.redirects.append(url)
        self.url = url

    def pop_state(self, url: str):
        self.url = url
        if self._bus is not None:
            self._bus.publish(LocationChanged(url=url))

    def back(self):
        if len(self.history) < 2:
            return
        self.history.pop()
        self.pop_state(self.history[-1])

    def reload(self):
        logger.info("Reloading %s", self.url)
        self.reloads += 1


class Clipboard:
    def __init__(self):
        self.contents: Optional[str] = None

    def copy(self, text: str):
        self.contents = text
