import json
import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.database import get_db
from sgcheckout.services.stripe_payments import (
    handle_payment_intent_failed,
    handle_payment_intent_succeeded,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """Handle Stripe webhook events."""
    settings = get_settings()

    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    stripe.api_key = settings.stripe_secret_key
    payload = await request.body()

    # Verify webhook signature if secret is configured
    if settings.stripe_webhook_secret:
        if not stripe_signature:
            raise HTTPException(status_code=400, detail="Missing signature")
        try:
            event = stripe.Webhook.construct_event(
                payload,
                stripe_signature,
                settings.stripe_webhook_secret,
            )
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid payload")
        except stripe.SignatureVerificationError:
            raise HTTPException(status_code=400, detail="Invalid signature")
        event = event.to_dict()
    else:
        # For development without webhook secret
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid payload")

    event_type = event.get("type")
    event_data = event.get("data", {}).get("object", {})
    logger.info("Stripe webhook received: %s", event_type)

    if event_type == "payment_intent.succeeded":
        handle_payment_intent_succeeded(event_data, db)
    elif event_type == "payment_intent.payment_failed":
        handle_payment_intent_failed(event_data, db)

    return {"status": "success"}
