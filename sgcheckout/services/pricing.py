"""Server-side price resolution for checkout.

Clients send an amount for display purposes only. Whenever a ticket is
identified the charge amount comes from the database.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from sgcheckout.models import Event, Ticket, TicketStatus

SUPPORTED_CURRENCIES = {"usd", "cad"}
ZERO_DECIMAL_CURRENCIES = {"jpy", "krw", "vnd", "clp"}

UNAVAILABLE_MESSAGES = {
    TicketStatus.SOLD_OUT: "This ticket type is sold out and no longer available.",
    TicketStatus.OFF_SALE: "This ticket type is not currently available for purchase.",
    TicketStatus.STAFF_ONLY: "This ticket type is restricted and not available for public purchase.",
}


@dataclass
class PricedItem:
    amount_cents: int
    currency: str
    event: Optional[Event]
    ticket: Optional[Ticket]
    event_title: str
    ticket_name: Optional[str]

    @property
    def description(self) -> str:
        if self.ticket_name:
            return f"{self.event_title} - {self.ticket_name}"
        return self.event_title


def to_minor_units(amount, currency: str) -> int:
    """29.99 USD -> 2999. Uses decimal rounding, never float truncation."""
    value = Decimal(str(amount))
    if currency.lower() not in ZERO_DECIMAL_CURRENCIES:
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_major_units(amount_cents: int, currency: str) -> str:
    """2999 USD -> '29.99'."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return str(amount_cents)
    return f"{Decimal(amount_cents) / 100:.2f}"


def normalize_currency(currency: Optional[str]) -> str:
    code = (currency or "usd").strip().lower()
    if code not in SUPPORTED_CURRENCIES:
        raise HTTPException(status_code=400, detail=f"Unsupported currency: {code.upper()}")
    return code


def ensure_ticket_available(ticket: Ticket):
    """Raise 400 when a ticket type cannot be sold right now."""
    message = UNAVAILABLE_MESSAGES.get(ticket.status)
    if message:
        raise HTTPException(status_code=400, detail=message)
    if ticket.remaining_quantity is not None and ticket.remaining_quantity <= 0:
        raise HTTPException(status_code=400, detail="This ticket type has no remaining capacity.")


def load_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def load_ticket(db: Session, ticket_id: int, event_id: Optional[int] = None) -> Ticket:
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    if event_id is not None and ticket.event_id != event_id:
        raise HTTPException(status_code=400, detail="Ticket does not belong to this event")
    return ticket


def resolve_price(
    db: Session,
    *,
    client_amount: Optional[float],
    currency: Optional[str],
    event_id: Optional[int] = None,
    ticket_id: Optional[int] = None,
    event_title: Optional[str] = None,
    ticket_name: Optional[str] = None,
) -> PricedItem:
    """Work out what to charge.

    A known ticket is priced from the database in its own currency. Without a
    ticket the client amount is accepted (custom or donation-style payments).
    """
    event = load_event(db, event_id) if event_id is not None else None

    if ticket_id is not None:
        ticket = load_ticket(db, ticket_id, event_id)
        ensure_ticket_available(ticket)
        event = event or ticket.event
        return PricedItem(
            amount_cents=ticket.price_cents,
            currency=ticket.currency.lower(),
            event=event,
            ticket=ticket,
            event_title=event.title,
            ticket_name=ticket.name,
        )

    if client_amount is None:
        raise HTTPException(status_code=400, detail="Amount is required")

    code = normalize_currency(currency)
    return PricedItem(
        amount_cents=to_minor_units(client_amount, code),
        currency=code,
        event=event,
        ticket=None,
        event_title=event.title if event else (event_title or "Event Ticket"),
        ticket_name=ticket_name,
    )
