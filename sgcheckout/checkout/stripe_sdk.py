"""Client-side Stripe confirmation with a publishable key.

Stripe lets a publishable key confirm a PaymentIntent as long as the
intent's client secret is supplied, which is what Stripe.js does in a
browser.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import stripe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmResult:
    status: Optional[str] = None
    error: Optional[str] = None
    redirect_url: Optional[str] = None


def intent_id_from_secret(client_secret: str) -> str:
    """pi_123_secret_abc -> pi_123"""
    intent_id, sep, _ = client_secret.partition("_secret_")
    if not sep or not intent_id:
        raise ValueError("Malformed client secret")
    return intent_id


class StripeSdk:
    def __init__(self, publishable_key: str):
        if not publishable_key:
            raise ValueError("Stripe publishable key is required")
        self.publishable_key = publishable_key

    @property
    def is_test_mode(self) -> bool:
        return self.publishable_key.startswith("pk_test_")

    async def confirm_payment(
        self,
        client_secret: str,
        payment_method: str,
        return_url: str,
    ) -> ConfirmResult:
        """Confirm the intent. A redirect is only reported when Stripe needs one."""
        try:
            intent = await stripe.PaymentIntent.confirm_async(
                intent_id_from_secret(client_secret),
                client_secret=client_secret,
                payment_method=payment_method,
                return_url=return_url,
                api_key=self.publishable_key,
            )
        except stripe.CardError as e:
            return ConfirmResult(status="requires_payment_method", error=e.user_message or "Your card was declined.")
        except stripe.StripeError as e:
            logger.warning("Stripe confirmation failed: %s", e)
            return ConfirmResult(error=e.user_message or "Payment could not be processed. Please try again.")

        redirect_url = None
        next_action = intent.get("next_action") or {}
        if next_action.get("type") == "redirect_to_url":
            redirect_url = (next_action.get("redirect_to_url") or {}).get("url")
        return ConfirmResult(status=intent.get("status"), redirect_url=redirect_url)
