import asyncio
import logging
from typing import Callable, Optional

from sgcheckout.checkout.errors import CheckoutError
from sgcheckout.checkout.events import AuthChanged, EventBus
from sgcheckout.checkout.http import ApiClient, EndpointFallback
from sgcheckout.checkout.session import SessionStore

logger = logging.getLogger(__name__)

ME_ENDPOINTS = ("/api/me", "/me")


class AuthGate:
    """Supplies `(user, checking_auth)` to the checkout.

    Fails closed: any doubt about the session (error status, unreachable
    backend, malformed body) clears stored session state and reports no user.
    """

    def __init__(
        self,
        api: ApiClient,
        store: SessionStore,
        bus: EventBus,
        endpoints=ME_ENDPOINTS,
    ):
        self._api = api
        self._store = store
        self._bus = bus
        self._fallback = EndpointFallback(endpoints)
        self._listeners = []
        self._unsubscribe = None
        self._tasks = set()
        self.user: Optional[dict] = None
        self.checking_auth = True

    def add_listener(self, listener: Callable[[Optional[dict], bool], None]) -> Callable[[], None]:
        """Call `listener(user, checking_auth)` on every state change."""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_state(self, user: Optional[dict], checking_auth: bool):
        changed = (user != self.user) or (checking_auth != self.checking_auth)
        self.user = user
        self.checking_auth = checking_auth
        if changed:
            for listener in list(self._listeners):
                listener(user, checking_auth)

    async def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(AuthChanged, self._on_auth_changed)
        await self.refresh()

    def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def refresh(self) -> Optional[dict]:
        """Ask the backend who we are."""
        try:
            response = await self._fallback.send(self._api, "GET")
            user = response.json()
            if not isinstance(user, dict) or user.get("id") is None:
                raise ValueError("Session endpoint returned no user")
        except (CheckoutError, ValueError) as exc:
            logger.info("No authenticated session: %s", exc)
            self._store.clear()
            self._set_state(None, False)
            return None

        self._store.save_user(user)
        self._set_state(user, False)
        return user

    def _on_auth_changed(self, event: AuthChanged):
        if event.user is not None:
            self._store.save_user(event.user)
            self._set_state(event.user, False)
            return
        task = asyncio.ensure_future(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self):
        """Wait for any event-triggered refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
