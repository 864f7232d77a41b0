"""Card payment form bound to a single client secret.

    NOT_READY -> READY -> SUBMITTING -> SUCCEEDED
                  ^           |
                  +-- FAILED <+

The form becomes READY once the SDK is attached and either the payment
element reports complete input, the SDK signals readiness, or a grace delay
runs out. A slow-load warning is raised if none of that has happened after
a few seconds; it never blocks the user.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

from sgcheckout.checkout.context import CheckoutContext, success_path, success_url
from sgcheckout.checkout.navigation import Navigator
from sgcheckout.checkout.notify import Notifier

logger = logging.getLogger(__name__)


class FormState(str, enum.Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentElement:
    """The card input. `complete` flips once a usable payment method is entered."""

    def __init__(self):
        self.payment_method: Optional[str] = None
        self.complete = False
        self._listeners = []

    def on_change(self, listener: Callable[[bool], None]):
        self._listeners.append(listener)

    def update(self, payment_method: Optional[str]):
        self.payment_method = payment_method or None
        self.complete = self.payment_method is not None
        for listener in list(self._listeners):
            listener(self.complete)


class StripePaymentForm:
    def __init__(
        self,
        client_secret: str,
        context: CheckoutContext,
        *,
        notifier: Notifier,
        navigator: Navigator,
        base_url: str,
        ready_grace_delay: float = 1.0,
        slow_warning_after: float = 5.0,
    ):
        self.client_secret = client_secret
        self.context = context
        self.state = FormState.NOT_READY
        self.slow_warning = False
        self.element = PaymentElement()
        self.element.on_change(self._on_element_change)
        self.sdk = None
        self._notifier = notifier
        self._navigator = navigator
        self._base_url = base_url
        self._ready_grace_delay = ready_grace_delay
        self._slow_warning_after = slow_warning_after
        self._timers = []
        self._disposed = False

    # Lifecycle

    def mount(self):
        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(self._slow_warning_after, self._on_slow_load))

    def attach_sdk(self, sdk):
        """The provider SDK finished loading."""
        if self._disposed:
            return
        self.sdk = sdk
        if self.element.complete:
            self._mark_ready("element complete")
            return
        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(self._ready_grace_delay, self._mark_ready, "grace delay"))

    def sdk_ready(self):
        """Explicit readiness signal from the SDK; preferred over the grace delay."""
        self._mark_ready("sdk ready")

    def dispose(self):
        self._disposed = True
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def can_submit(self) -> bool:
        return not self._disposed and self.state in (FormState.READY, FormState.FAILED)

    # Readiness

    def _on_element_change(self, complete: bool):
        if complete:
            self._mark_ready("element complete")

    def _mark_ready(self, reason: str):
        if self._disposed or self.sdk is None or self.state != FormState.NOT_READY:
            return
        logger.debug("Payment form ready (%s)", reason)
        self.state = FormState.READY
        self.slow_warning = False

    def _on_slow_load(self):
        if self.state == FormState.NOT_READY and not self._disposed:
            logger.warning("Payment form is taking longer than expected to load")
            self.slow_warning = True

    # Submission

    async def submit(self, payment_method: Optional[str] = None) -> bool:
        if payment_method:
            self.element.update(payment_method)

        if not self.can_submit:
            if self.state == FormState.NOT_READY:
                self._notifier.error(
                    "Payment Form Not Ready",
                    "Please wait for the payment form to load completely and try again.",
                )
            return False

        if not self.element.payment_method:
            self._notifier.error("Payment Failed", "Please enter your payment details.")
            return False

        self.state = FormState.SUBMITTING
        try:
            result = await self.sdk.confirm_payment(
                self.client_secret,
                self.element.payment_method,
                success_url(self._base_url, self.context),
            )
        except Exception:
            logger.exception("Unexpected error confirming payment")
            self.state = FormState.FAILED
            self._notifier.error(
                "Payment Error",
                "An unexpected error occurred. Please try again or use a different payment method.",
            )
            return False

        if result.error:
            self.state = FormState.FAILED
            self._notifier.error("Payment Failed", result.error)
            return False

        if result.status == "succeeded":
            self.state = FormState.SUCCEEDED
            self._notifier.toast(
                "Payment Successful",
                "Thank you for your purchase! Your ticket has been confirmed.",
            )
            self._navigator.navigate(success_path(self.context))
            return True

        if result.redirect_url:
            # Stays SUBMITTING: the page is leaving for the provider's auth step
            self._navigator.redirect(result.redirect_url)
            return True

        if result.status == "processing":
            self.state = FormState.SUCCEEDED
            self._notifier.toast("Payment Processing", "We'll email your ticket once the payment clears.")
            self._navigator.navigate(success_path(self.context))
            return True

        self.state = FormState.FAILED
        self._notifier.error("Payment Failed", "Payment could not be processed. Please try again.")
        return False
