import logging
import uuid
from dataclasses import dataclass

from sgcheckout.checkout.context import CheckoutContext
from sgcheckout.checkout.errors import EndpointError
from sgcheckout.checkout.http import ApiClient, EndpointFallback, json_body

logger = logging.getLogger(__name__)

INTENT_ENDPOINTS = ("/api/payment/create-intent", "/payment/create-intent")


@dataclass(frozen=True)
class PaymentIntentHandle:
    """One live client secret. A retry always gets a new handle."""
    client_secret: str
    request_id: int
    key: tuple


def line_item(context: CheckoutContext) -> dict:
    if context.ticket_id is not None:
        item_id = f"event-ticket-{context.event_id}-{context.ticket_id}"
    elif context.event_id is not None:
        item_id = f"event-ticket-{context.event_id}"
    else:
        item_id = "sg-event-ticket"

    if context.ticket_name:
        name = f"{context.event_title} - {context.ticket_name}"
    else:
        name = context.event_title or "Event Ticket"

    return {"id": item_id, "name": name, "quantity": 1}


def build_intent_payload(context: CheckoutContext) -> dict:
    return {
        "amount": float(context.amount),
        "currency": context.currency.lower(),
        "eventId": context.event_id,
        "eventTitle": context.event_title,
        "ticketId": context.ticket_id,
        "ticketName": context.ticket_name,
        "items": [line_item(context)],
    }


class PaymentIntentBootstrapper:
    """Gets a card-payment client secret from the backend.

    The prefixed route is tried first, then the bare one. A 401 stops the
    sequence. Both attempts share one idempotency key so a primary that
    created an intent before failing is not charged twice.
    """

    def __init__(self, api: ApiClient, endpoints=INTENT_ENDPOINTS):
        self._api = api
        self._fallback = EndpointFallback(endpoints)

    async def create(self, context: CheckoutContext, request_id: int = 0) -> PaymentIntentHandle:
        payload = build_intent_payload(context)
        headers = {"Idempotency-Key": uuid.uuid4().hex}

        response = await self._fallback.send(self._api, "POST", json=payload, headers=headers)
        client_secret = json_body(response).get("clientSecret")
        if not client_secret:
            raise EndpointError(str(response.request.url.path), response.status_code, "Payment intent response had no client secret")

        logger.info("Payment intent ready (request %s)", request_id)
        return PaymentIntentHandle(
            client_secret=client_secret,
            request_id=request_id,
            key=context.intent_key,
        )
