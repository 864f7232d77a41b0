import asyncio
import logging
from typing import Optional

from sgcheckout.checkout.context import CheckoutContext, success_path
from sgcheckout.checkout.errors import CheckoutError, PreconditionFailed
from sgcheckout.checkout.http import ApiClient, EndpointFallback, json_body
from sgcheckout.checkout.navigation import Navigator
from sgcheckout.checkout.notify import Notifier

logger = logging.getLogger(__name__)

FREE_TICKET_ENDPOINTS = ("/api/tickets/free", "/tickets/free")


class FreeTicketClaim:
    """Claims a zero-price ticket for the signed-in user.

    A claim in flight blocks further claims. Missing identifiers are caught
    before any request goes out.
    """

    def __init__(
        self,
        api: ApiClient,
        notifier: Notifier,
        navigator: Navigator,
        redirect_delay: float = 1.5,
        endpoints=FREE_TICKET_ENDPOINTS,
    ):
        self._api = api
        self._notifier = notifier
        self._navigator = navigator
        self._redirect_delay = redirect_delay
        self._fallback = EndpointFallback(endpoints)
        self.claiming = False

    def check(self, user: Optional[dict], context: CheckoutContext):
        """Raise `PreconditionFailed` when the claim cannot be sent."""
        if user is None:
            raise PreconditionFailed("Authentication Required", "Please sign in to claim your free ticket.")
        if not context.is_free:
            raise PreconditionFailed("Invalid Ticket", "This ticket is not free.")
        if context.event_id is None or context.ticket_id is None:
            raise PreconditionFailed("Invalid Ticket", "Missing event or ticket information.")

    async def claim(self, user: Optional[dict], context: CheckoutContext) -> bool:
        if self.claiming:
            return False

        try:
            self.check(user, context)
        except PreconditionFailed as exc:
            self._notifier.error(exc.title, exc.message)
            return False

        self.claiming = True
        try:
            return await self._send(context)
        finally:
            self.claiming = False

    async def _send(self, context: CheckoutContext) -> bool:
        try:
            response = await self._fallback.send(
                self._api,
                "POST",
                json={
                    "eventId": context.event_id,
                    "eventTitle": context.event_title,
                    "ticketId": context.ticket_id,
                    "ticketName": context.ticket_name,
                },
            )
        except CheckoutError as exc:
            logger.warning("Free ticket claim failed: %s", exc.message)
            self._notifier.error("Claim Failed", exc.message or "Failed to claim free ticket. Please try again.")
            return False

        data = json_body(response)
        self._notifier.toast(
            "Ticket Claimed",
            data.get("message") or f"Your free ticket for {context.event_title or 'this event'} has been claimed.",
        )
        await asyncio.sleep(self._redirect_delay)
        self._navigator.navigate(success_path(context))
        return True
