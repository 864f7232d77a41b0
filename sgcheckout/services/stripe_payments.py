"""
Stripe PaymentIntent helpers.

Intents are created server-side with the ticket's database price; the browser
(or the headless checkout client) confirms them with the client secret.
Fulfillment happens when Stripe reports `payment_intent.succeeded`.
"""

import logging
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.models import Event, PaymentProvider, Ticket, User
from sgcheckout.services.fulfillment import fulfill_order, record_failed_payment
from sgcheckout.services.pricing import PricedItem

logger = logging.getLogger(__name__)


def _configure() -> bool:
    settings = get_settings()
    if not settings.stripe_secret_key:
        return False
    stripe.api_key = settings.stripe_secret_key
    return True


def create_payment_intent(
    priced: PricedItem,
    user: User,
    idempotency_key: Optional[str] = None,
):
    """Create a PaymentIntent for one ticket. Raises stripe.StripeError on failure."""
    if not _configure():
        raise RuntimeError("Stripe not configured")

    metadata = {
        "user_id": str(user.id),
        "email": user.email or "",
        "event_id": str(priced.event.id) if priced.event else "",
        "event_title": priced.event_title,
        "ticket_id": str(priced.ticket.id) if priced.ticket else "",
        "ticket_name": priced.ticket_name or "",
    }

    params = dict(
        amount=priced.amount_cents,
        currency=priced.currency,
        automatic_payment_methods={"enabled": True},
        description=priced.description,
        receipt_email=user.email,
        metadata=metadata,
    )
    if idempotency_key:
        params["idempotency_key"] = idempotency_key

    intent = stripe.PaymentIntent.create(**params)
    logger.info(
        "Created PaymentIntent %s for user %s (%s %s)",
        intent.id, user.id, priced.amount_cents, priced.currency,
    )
    return intent


def _int_or_none(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def handle_payment_intent_succeeded(intent_data: dict, db: Session):
    """Fulfil the ticket behind a succeeded PaymentIntent. Safe to call twice."""
    metadata = intent_data.get("metadata") or {}
    intent_id = intent_data.get("id")
    if not intent_id:
        return None

    user = None
    user_id = _int_or_none(metadata.get("user_id"))
    if user_id is not None:
        user = db.query(User).filter(User.id == user_id).first()

    event_id = _int_or_none(metadata.get("event_id"))
    event = db.query(Event).filter(Event.id == event_id).first() if event_id else None

    ticket_id = _int_or_none(metadata.get("ticket_id"))
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first() if ticket_id else None

    email = (
        metadata.get("email")
        or intent_data.get("receipt_email")
        or (user.email if user else None)
    )
    if not email:
        logger.warning("PaymentIntent %s succeeded without a deliverable email", intent_id)
        return None

    return fulfill_order(
        db,
        provider=PaymentProvider.STRIPE,
        payment_reference=intent_id,
        purchase_email=email,
        amount_cents=intent_data.get("amount_received") or intent_data.get("amount") or 0,
        currency=intent_data.get("currency") or "usd",
        user=user,
        event=event,
        ticket=ticket,
        event_title=metadata.get("event_title"),
        ticket_name=metadata.get("ticket_name"),
    )


def handle_payment_intent_failed(intent_data: dict, db: Session):
    intent_id = intent_data.get("id")
    if not intent_id:
        return None
    metadata = intent_data.get("metadata") or {}
    error = intent_data.get("last_payment_error") or {}
    logger.info("PaymentIntent %s failed: %s", intent_id, error.get("message"))
    return record_failed_payment(
        db,
        provider=PaymentProvider.STRIPE,
        payment_reference=intent_id,
        amount_cents=intent_data.get("amount") or 0,
        currency=intent_data.get("currency") or "usd",
        user_id=_int_or_none(metadata.get("user_id")),
        event_id=_int_or_none(metadata.get("event_id")),
    )
