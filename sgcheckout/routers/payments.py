import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.database import get_db
from sgcheckout.dependencies import get_current_user, require_user
from sgcheckout.models import PaymentProvider, User
from sgcheckout.rate_limit import limiter
from sgcheckout.schemas import (
    CashAppLinkResponse,
    CreateIntentRequest,
    CreateIntentResponse,
    PayPalCaptureRequest,
    PayPalCaptureResponse,
    PayPalOrderRequest,
    PayPalOrderResponse,
)
from sgcheckout.services import cashapp, paypal
from sgcheckout.services.fulfillment import fulfill_order, record_failed_payment
from sgcheckout.services.pricing import (
    format_major_units,
    load_event,
    load_ticket,
    resolve_price,
    to_minor_units,
)
from sgcheckout.services.stripe_payments import create_payment_intent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payments"])

EMAIL_REQUIRED_MESSAGE = "Email address is required for ticket delivery"


@router.post("/create-intent", response_model=CreateIntentResponse)
@limiter.limit("30/minute")
def create_intent(
    request: Request,
    body: CreateIntentRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Create a Stripe PaymentIntent and hand back its client secret."""
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    if not user.email:
        return JSONResponse(
            status_code=400,
            content={"error": "Email required", "detail": EMAIL_REQUIRED_MESSAGE, "requiresEmail": True},
        )

    priced = resolve_price(
        db,
        client_amount=body.amount,
        currency=body.currency,
        event_id=body.event_id,
        ticket_id=body.ticket_id,
        event_title=body.event_title,
        ticket_name=body.ticket_name,
    )
    if priced.amount_cents <= 0:
        raise HTTPException(status_code=400, detail="Free tickets must be claimed, not paid for")

    if priced.ticket is None:
        logger.info("Custom-amount intent for user %s: %s %s", user.id, body.amount, priced.currency)

    try:
        intent = create_payment_intent(priced, user, idempotency_key=idempotency_key)
    except stripe.StripeError as e:
        logger.warning("Stripe refused PaymentIntent for user %s: %s", user.id, e)
        raise HTTPException(status_code=400, detail=getattr(e, "user_message", None) or str(e))

    return CreateIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        amount_cents=priced.amount_cents,
        currency=priced.currency,
    )


@router.post("/paypal-order", response_model=PayPalOrderResponse)
@limiter.limit("30/minute")
def create_paypal_order(
    request: Request,
    body: PayPalOrderRequest,
    db: Session = Depends(get_db),
):
    """Create a PayPal order. Ticket prices come from the database, never the client."""
    if not paypal.is_configured():
        raise HTTPException(status_code=500, detail="PayPal not configured")
    if body.intent.upper() not in ("CAPTURE", "AUTHORIZE"):
        raise HTTPException(status_code=400, detail="Invalid intent")

    priced = resolve_price(
        db,
        client_amount=body.amount,
        currency=body.currency,
        event_id=body.event_id,
        ticket_id=body.ticket_id,
        event_title=body.event_title,
        ticket_name=body.ticket_name,
    )
    if priced.amount_cents <= 0:
        raise HTTPException(status_code=400, detail="Invalid amount. Amount must be a positive number.")

    try:
        order = paypal.create_order(priced, intent=body.intent)
    except paypal.PayPalError as e:
        logger.error("PayPal order creation failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to create order.")

    return PayPalOrderResponse(id=order["id"], status=order.get("status", "CREATED"))


@router.post("/paypal-order/{order_id}/capture", response_model=PayPalCaptureResponse)
def capture_paypal_order(
    order_id: str,
    body: Optional[PayPalCaptureRequest] = None,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Capture an approved PayPal order and issue the ticket."""
    if not paypal.is_configured():
        raise HTTPException(status_code=500, detail="PayPal not configured")
    body = body or PayPalCaptureRequest()

    try:
        capture = paypal.capture_order(order_id)
    except paypal.PayPalError as e:
        logger.error("PayPal capture failed for %s: %s", order_id, e)
        raise HTTPException(status_code=502, detail="Failed to capture order.")

    status = capture.get("status", "")
    if status != "COMPLETED" or body.event_id is None:
        return PayPalCaptureResponse(id=order_id, status=status)

    value, currency = paypal.captured_amount(capture)
    currency = (currency or "usd").lower()
    amount_cents = to_minor_units(value or 0, currency)

    event = load_event(db, body.event_id)
    ticket = load_ticket(db, body.ticket_id, body.event_id) if body.ticket_id is not None else None
    if ticket is not None and (amount_cents != ticket.price_cents or currency != ticket.currency.lower()):
        logger.error(
            "PayPal order %s captured %s %s but ticket %s costs %s %s",
            order_id, amount_cents, currency, ticket.id, ticket.price_cents, ticket.currency,
        )
        record_failed_payment(
            db,
            provider=PaymentProvider.PAYPAL,
            payment_reference=order_id,
            amount_cents=amount_cents,
            currency=currency,
            user_id=user.id if user else None,
            event_id=event.id,
        )
        raise HTTPException(status_code=400, detail="Captured amount does not match ticket price")

    payer_email, _ = paypal.payer_details(capture)
    email = payer_email or (user.email if user else None)
    if not email:
        raise HTTPException(status_code=400, detail=EMAIL_REQUIRED_MESSAGE)

    result = fulfill_order(
        db,
        provider=PaymentProvider.PAYPAL,
        payment_reference=order_id,
        purchase_email=email,
        amount_cents=amount_cents,
        currency=currency,
        user=user,
        event=event,
        ticket=ticket,
        event_title=body.event_title,
        ticket_name=body.ticket_name,
        guest_email=None if user else email,
    )
    return PayPalCaptureResponse(
        id=order_id,
        status=status,
        order_id=result.order.id,
        ticket_id=result.purchase.id,
        qr_code=result.purchase.qr_code,
    )


@router.get("/cashapp-link", response_model=CashAppLinkResponse)
def get_cashapp_link(
    amount: Optional[float] = Query(None, gt=0),
    event_id: Optional[int] = Query(None, alias="eventId"),
    ticket_id: Optional[int] = Query(None, alias="ticketId"),
    db: Session = Depends(get_db),
):
    """Cash App deep link for a manual payment."""
    settings = get_settings()
    priced = resolve_price(
        db,
        client_amount=amount,
        currency="usd",
        event_id=event_id,
        ticket_id=ticket_id,
    )
    value = format_major_units(priced.amount_cents, priced.currency)
    try:
        url = cashapp.build_payment_link(settings.cashapp_tag, value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CashAppLinkResponse(
        url=url,
        tag=f"${cashapp.normalize_tag(settings.cashapp_tag)}",
        amount=cashapp.format_amount(value),
    )
