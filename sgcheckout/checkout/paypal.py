"""PayPal and Cash App, the non-card payment tabs."""

import logging
from typing import Optional

from sgcheckout.checkout.context import CheckoutContext, success_path
from sgcheckout.checkout.errors import CheckoutError
from sgcheckout.checkout.http import ApiClient, EndpointFallback, json_body
from sgcheckout.checkout.navigation import Clipboard, Navigator
from sgcheckout.checkout.notify import Notifier
from sgcheckout.services import cashapp

logger = logging.getLogger(__name__)

PAYPAL_ORDER_ENDPOINTS = ("/payment/paypal-order",)


def order_payload(context: CheckoutContext) -> dict:
    return {
        "amount": float(context.amount),
        "currency": context.currency.lower(),
        "intent": "CAPTURE",
        "eventId": context.event_id,
        "eventTitle": context.event_title,
        "ticketId": context.ticket_id,
        "ticketName": context.ticket_name,
    }


class PayPalCheckout:
    def __init__(self, api: ApiClient, notifier: Notifier, navigator: Navigator, endpoints=PAYPAL_ORDER_ENDPOINTS):
        self._api = api
        self._notifier = notifier
        self._navigator = navigator
        self._fallback = EndpointFallback(endpoints)
        self._endpoints = tuple(endpoints)
        self.order_id: Optional[str] = None

    async def create_order(self, context: CheckoutContext) -> Optional[str]:
        try:
            response = await self._fallback.send(self._api, "POST", json=order_payload(context))
        except CheckoutError as exc:
            self._notifier.error("PayPal Error", exc.message)
            return None
        self.order_id = json_body(response).get("id")
        if not self.order_id:
            self._notifier.error("PayPal Error", "PayPal did not return an order. Please try again.")
        return self.order_id

    async def capture(self, context: CheckoutContext, order_id: Optional[str] = None) -> bool:
        order_id = order_id or self.order_id
        if not order_id:
            self._notifier.error("PayPal Error", "No PayPal order to capture.")
            return False

        capture = EndpointFallback([f"{path}/{order_id}/capture" for path in self._endpoints])
        try:
            response = await capture.send(
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
            self._notifier.error("Payment Failed", exc.message)
            return False

        data = json_body(response)
        if data.get("status") != "COMPLETED":
            logger.warning("PayPal order %s finished with status %s", order_id, data.get("status"))
            self._notifier.error("Payment Failed", "PayPal did not complete the payment. Please try again.")
            return False

        self._notifier.toast("Payment Successful", "Thank you for your purchase! Your ticket has been confirmed.")
        self._navigator.navigate(success_path(context))
        return True

    def refresh(self):
        """The PayPal buttons can only be re-rendered by reloading the page."""
        self._navigator.reload()


class CashAppCheckout:
    def __init__(self, tag: str, notifier: Notifier, navigator: Navigator, clipboard: Clipboard):
        self.tag = tag
        self._notifier = notifier
        self._navigator = navigator
        self._clipboard = clipboard

    def open(self, context: CheckoutContext, mobile: bool = False) -> Optional[str]:
        """Send the buyer to Cash App. On desktop the link is copied instead."""
        try:
            url = cashapp.build_payment_link(self.tag, context.amount)
        except ValueError as exc:
            self._notifier.error("Cash App Error", str(exc))
            return None

        if mobile:
            self._navigator.redirect(url)
        else:
            self._clipboard.copy(url)
            self._notifier.toast("Link Copied", f"Open {url} on your phone to pay with Cash App.")
        return url
