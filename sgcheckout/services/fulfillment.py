"""Turn a completed payment (or a free claim) into an order and a ticket.

Every provider funnels through `fulfill_order`, keyed by the provider's
payment reference so that webhook redeliveries and duplicate captures never
issue a second ticket.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from sgcheckout.models import (
    Event,
    Order,
    OrderStatus,
    PaymentProvider,
    Ticket,
    TicketPurchase,
    TicketStatus,
    User,
)
from sgcheckout.services.email import send_ticket_email
from sgcheckout.services.pricing import format_major_units

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentResult:
    order: Order
    purchase: TicketPurchase
    created: bool


def build_qr_code(event_id: Optional[int], order_id: int) -> str:
    return f"EVENT-{event_id or 0}-ORDER-{order_id}-{int(time.time() * 1000)}"


def find_order(db: Session, payment_reference: str) -> Optional[Order]:
    return db.query(Order).filter(Order.payment_intent_id == payment_reference).first()


def fulfill_order(
    db: Session,
    *,
    provider: PaymentProvider,
    payment_reference: str,
    purchase_email: str,
    amount_cents: int,
    currency: str,
    user: Optional[User] = None,
    event: Optional[Event] = None,
    ticket: Optional[Ticket] = None,
    event_title: Optional[str] = None,
    ticket_name: Optional[str] = None,
    guest_email: Optional[str] = None,
    send_email: bool = True,
) -> FulfillmentResult:
    """Create a completed order plus one confirmed ticket purchase."""
    existing = find_order(db, payment_reference)
    if existing and existing.status == OrderStatus.COMPLETED and existing.purchases:
        logger.info("Order for %s already fulfilled (order %s)", payment_reference, existing.id)
        return FulfillmentResult(order=existing, purchase=existing.purchases[0], created=False)

    title = event.title if event else (event_title or "Event Ticket")
    name = ticket.name if ticket else (ticket_name or "Free Ticket")

    order = existing or Order(payment_intent_id=payment_reference)
    order.user_id = user.id if user else None
    order.event_id = event.id if event else None
    order.provider = provider
    order.amount_cents = amount_cents
    order.currency = currency.lower()
    order.status = OrderStatus.COMPLETED
    order.guest_email = guest_email
    order.items = json.dumps([{
        "eventId": event.id if event else None,
        "eventTitle": title,
        "ticketId": ticket.id if ticket else None,
        "ticketName": name,
        "quantity": 1,
        "price": amount_cents,
    }])
    if not existing:
        db.add(order)
    db.flush()

    purchase = TicketPurchase(
        user_id=user.id if user else None,
        ticket_id=ticket.id if ticket else None,
        event_id=event.id if event else None,
        order_id=order.id,
        quantity=1,
        unit_price_cents=amount_cents,
        total_price_cents=amount_cents,
        purchase_email=purchase_email,
        qr_code=build_qr_code(event.id if event else None, order.id),
    )
    db.add(purchase)

    if ticket is not None and ticket.remaining_quantity is not None:
        ticket.remaining_quantity = max(ticket.remaining_quantity - 1, 0)
        # Auto sold-out check
        if ticket.remaining_quantity == 0:
            ticket.status = TicketStatus.SOLD_OUT

    db.commit()
    db.refresh(order)
    db.refresh(purchase)

    logger.info(
        "Fulfilled %s order %s (purchase %s) for %s",
        provider.value, order.id, purchase.id, purchase_email,
    )

    if send_email:
        send_ticket_email(
            to_email=purchase_email,
            recipient_name=(user.display_name or user.username) if user else None,
            event_title=title,
            ticket_name=name,
            amount=format_major_units(amount_cents, currency),
            currency=currency,
            order_id=order.id,
            qr_code=purchase.qr_code,
        )

    return FulfillmentResult(order=order, purchase=purchase, created=True)


def record_failed_payment(
    db: Session,
    *,
    provider: PaymentProvider,
    payment_reference: str,
    amount_cents: int,
    currency: str,
    user_id: Optional[int] = None,
    event_id: Optional[int] = None,
) -> Order:
    """Record (or mark) an order as failed. Completed orders are left alone."""
    order = find_order(db, payment_reference)
    if order and order.status == OrderStatus.COMPLETED:
        return order
    if not order:
        order = Order(
            payment_intent_id=payment_reference,
            provider=provider,
            amount_cents=amount_cents,
            currency=currency.lower(),
            user_id=user_id,
            event_id=event_id,
        )
        db.add(order)
    order.status = OrderStatus.FAILED
    db.commit()
    db.refresh(order)
    logger.warning("Payment %s failed (order %s)", payment_reference, order.id)
    return order
