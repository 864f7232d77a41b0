"""The checkout page, minus the pixels.

`CheckoutController` reads the checkout parameters from the current URL,
waits for the auth gate, and then drives exactly one of three branches:
auth required, free ticket, or paid (card, PayPal or Cash App). It owns the
live payment intent and the card form built on it.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sgcheckout.checkout.auth_gate import AuthGate
from sgcheckout.checkout.context import (
    Branch,
    CheckoutContext,
    checkout_redirect_path,
    select_branch,
)
from sgcheckout.checkout.errors import AuthenticationRequired, CheckoutError, EndpointError
from sgcheckout.checkout.events import EventBus, LocationChanged, OpenAuthModal
from sgcheckout.checkout.free_ticket import FreeTicketClaim
from sgcheckout.checkout.http import ApiClient
from sgcheckout.checkout.intents import PaymentIntentBootstrapper, PaymentIntentHandle
from sgcheckout.checkout.navigation import Navigator
from sgcheckout.checkout.notify import Notifier
from sgcheckout.checkout.payment_form import FormState, StripePaymentForm
from sgcheckout.checkout.paypal import CashAppCheckout, PayPalCheckout

logger = logging.getLogger(__name__)


class PaymentTab(str, enum.Enum):
    CARD = "card"
    PAYPAL = "paypal"
    CASHAPP = "cashapp"


@dataclass(frozen=True)
class CheckoutView:
    branch: Branch
    summary: str
    tab: PaymentTab
    loading_intent: bool
    intent_error: Optional[str]
    form_state: Optional[FormState]
    slow_warning: bool
    claiming: bool


class CheckoutController:
    def __init__(
        self,
        *,
        api: ApiClient,
        bus: EventBus,
        notifier: Notifier,
        navigator: Navigator,
        auth_gate: AuthGate,
        bootstrapper: PaymentIntentBootstrapper,
        free_claim: FreeTicketClaim,
        paypal: PayPalCheckout,
        cashapp: CashAppCheckout,
        sdk=None,
        base_url: str = "http://localhost:8000",
        ready_grace_delay: float = 1.0,
        slow_warning_after: float = 5.0,
        email_modal_delay: float = 2.0,
    ):
        self.api = api
        self.bus = bus
        self.notifier = notifier
        self.navigator = navigator
        self.auth_gate = auth_gate
        self.bootstrapper = bootstrapper
        self.free_claim = free_claim
        self.paypal = paypal
        self.cashapp = cashapp
        self.sdk = sdk
        self.base_url = base_url
        self.ready_grace_delay = ready_grace_delay
        self.slow_warning_after = slow_warning_after
        self.email_modal_delay = email_modal_delay

        self.context = CheckoutContext()
        self.tab = PaymentTab.CARD
        self.intent: Optional[PaymentIntentHandle] = None
        self._intent_key = None
        self.form: Optional[StripePaymentForm] = None
        self.intent_error: Optional[str] = None
        self.loading_intent = False

        self._request_seq = 0
        self._latest_request = 0
        self._inflight_key = None
        self._tasks = set()
        self._timers = []
        self._cleanups = []
        self._mounted = False

    # Lifecycle

    async def mount(self):
        if self._mounted:
            return
        self._mounted = True
        self.context = CheckoutContext.from_url(self.navigator.url)
        logger.info("Checkout mounted: %s", self.context.summary)

        self._cleanups.append(self.bus.subscribe(LocationChanged, self._on_location_changed))
        self._cleanups.append(self.auth_gate.add_listener(self._on_auth_state))
        await self.auth_gate.start()
        await self.sync_intent()

    def unmount(self):
        for cleanup in self._cleanups:
            cleanup()
        self._cleanups.clear()
        self.auth_gate.stop()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        self._invalidate_intent()
        self._mounted = False

    async def aclose(self):
        self.unmount()
        await self.api.aclose()

    async def wait_idle(self):
        """Let scheduled intent syncs and auth refreshes settle."""
        await self.auth_gate.wait_idle()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.auth_gate.wait_idle()

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # State

    @property
    def user(self) -> Optional[dict]:
        return self.auth_gate.user

    @property
    def branch(self) -> Branch:
        return select_branch(self.auth_gate.checking_auth, self.auth_gate.user, self.context.amount)

    def view(self) -> CheckoutView:
        return CheckoutView(
            branch=self.branch,
            summary=self.context.summary,
            tab=self.tab,
            loading_intent=self.loading_intent,
            intent_error=self.intent_error,
            form_state=self.form.state if self.form else None,
            slow_warning=bool(self.form and self.form.slow_warning),
            claiming=self.free_claim.claiming,
        )

    def _on_auth_state(self, user: Optional[dict], checking_auth: bool):
        if user is None:
            self._invalidate_intent()
            return
        owner_key = self._intent_key or self._inflight_key
        if owner_key is not None and owner_key[-1] != user.get("id"):
            logger.info("Signed-in user changed, dropping payment intent")
            self._invalidate_intent()
        if not checking_auth and self._mounted:
            self._spawn(self.sync_intent())

    def _on_location_changed(self, event: LocationChanged):
        context = CheckoutContext.from_url(event.url)
        if context == self.context:
            return
        logger.info("Checkout parameters changed: %s", context.summary)
        self.context = context
        self._spawn(self.sync_intent())

    # Payment intent

    def _current_intent_key(self) -> tuple:
        """Checkout parameters plus the buyer; an intent never outlives either."""
        user_id = self.user.get("id") if self.user else None
        return self.context.intent_key + (user_id,)

    def _invalidate_intent(self):
        """Drop the live intent and make any in-flight request stale."""
        self._request_seq += 1
        self._latest_request = self._request_seq
        self._inflight_key = None
        self.loading_intent = False
        self.intent = None
        self._intent_key = None
        if self.form is not None:
            self.form.dispose()
            self.form = None

    async def sync_intent(self) -> Optional[PaymentIntentHandle]:
        """Make sure the live intent matches the current parameters.

        Does nothing outside the paid branch, when the live intent already
        matches, or when a request for the same parameters is in flight.
        """
        if self.branch != Branch.PAID:
            if self.intent is not None or self._inflight_key is not None:
                self._invalidate_intent()
            return None
        key = self._current_intent_key()
        if self.intent is not None and self._intent_key == key:
            return self.intent
        if self._inflight_key == key:
            return None
        return await self._request_intent()

    async def retry(self) -> Optional[PaymentIntentHandle]:
        """Try Again: always asks for a brand new client secret."""
        if self.branch != Branch.PAID:
            return None
        return await self._request_intent()

    async def _request_intent(self) -> Optional[PaymentIntentHandle]:
        self._invalidate_intent()
        request_id = self._latest_request
        context = self.context
        key = self._current_intent_key()
        self._inflight_key = key
        self.loading_intent = True
        self.intent_error = None

        try:
            handle = await self.bootstrapper.create(context, request_id=request_id)
        except CheckoutError as exc:
            if request_id != self._latest_request:
                return None
            self._inflight_key = None
            self.loading_intent = False
            self._on_intent_error(exc)
            return None
        except Exception:
            if request_id != self._latest_request:
                return None
            logger.exception("Unexpected error creating payment intent")
            self._inflight_key = None
            self.loading_intent = False
            self._on_intent_error(CheckoutError("Could not initialize payment. Please try again."))
            return None

        if request_id != self._latest_request:
            logger.info("Discarding payment intent from superseded request %s", request_id)
            return None

        self._inflight_key = None
        self.loading_intent = False
        self.intent = handle
        self._intent_key = key
        self.form = self._build_form(handle, context)
        return handle

    def _build_form(self, handle: PaymentIntentHandle, context: CheckoutContext) -> StripePaymentForm:
        form = StripePaymentForm(
            handle.client_secret,
            context,
            notifier=self.notifier,
            navigator=self.navigator,
            base_url=self.base_url,
            ready_grace_delay=self.ready_grace_delay,
            slow_warning_after=self.slow_warning_after,
        )
        form.mount()
        if self.sdk is not None:
            form.attach_sdk(self.sdk)
        return form

    def _on_intent_error(self, exc: CheckoutError):
        if isinstance(exc, EndpointError) and exc.requires_email:
            self.intent_error = exc.message
            self.notifier.error(
                "Email Required",
                "Please add an email address to your profile to receive your tickets.",
            )
            loop = asyncio.get_running_loop()
            self._timers.append(
                loop.call_later(self.email_modal_delay, self.bus.publish, OpenAuthModal(tab="profile"))
            )
            return

        if isinstance(exc, AuthenticationRequired):
            self.intent_error = exc.message
            self.notifier.error("Authentication Required", "Your session has expired. Please sign in again.")
            return

        logger.warning("Payment intent creation failed: %s", exc.message)
        self.intent_error = "Could not initialize payment. Please try again."
        self.notifier.error("Error", self.intent_error)

    # Actions

    def sign_in(self) -> int:
        return self._open_auth_modal("login")

    def create_account(self) -> int:
        return self._open_auth_modal("register")

    def _open_auth_modal(self, tab: str) -> int:
        redirect_path = checkout_redirect_path(self.context, self.navigator.url)
        return self.bus.publish(OpenAuthModal(tab=tab, redirect_path=redirect_path))

    async def claim_free_ticket(self) -> bool:
        if self.branch == Branch.LOADING:
            return False
        return await self.free_claim.claim(self.user, self.context)

    async def submit_card(self, payment_method: Optional[str] = None) -> bool:
        if self.branch != Branch.PAID:
            return False
        if self.form is None:
            self.notifier.error(
                "Payment Form Not Ready",
                "Please wait for the payment form to load completely and try again.",
            )
            return False
        return await self.form.submit(payment_method)

    def select_tab(self, tab) -> PaymentTab:
        self.tab = PaymentTab(tab)
        return self.tab

    async def start_paypal(self) -> Optional[str]:
        if self.branch != Branch.PAID:
            return None
        return await self.paypal.create_order(self.context)

    async def approve_paypal(self, order_id: Optional[str] = None) -> bool:
        if self.branch != Branch.PAID:
            return False
        return await self.paypal.capture(self.context, order_id)

    def refresh_paypal(self):
        self.paypal.refresh()

    def open_cashapp(self, mobile: bool = False) -> Optional[str]:
        if self.branch != Branch.PAID:
            return None
        return self.cashapp.open(self.context, mobile=mobile)

    def back(self):
        self.navigator.back()
