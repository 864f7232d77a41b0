from typing import Optional

import httpx

from sgcheckout.checkout.auth_gate import AuthGate
from sgcheckout.checkout.controller import CheckoutController
from sgcheckout.checkout.events import EventBus
from sgcheckout.checkout.free_ticket import FreeTicketClaim
from sgcheckout.checkout.http import ApiClient
from sgcheckout.checkout.intents import PaymentIntentBootstrapper
from sgcheckout.checkout.navigation import Clipboard, Navigator
from sgcheckout.checkout.notify import Notifier
from sgcheckout.checkout.paypal import CashAppCheckout, PayPalCheckout
from sgcheckout.checkout.session import SessionStore
from sgcheckout.checkout.stripe_sdk import StripeSdk
from sgcheckout.config import Settings, get_settings


def build_checkout(
    url: str,
    *,
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
    bus: Optional[EventBus] = None,
    sdk=None,
    clipboard: Optional[Clipboard] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CheckoutController:
    """Wire a checkout for `url` from settings. Pass `transport` to talk to an in-process app."""
    settings = settings or get_settings()
    store = store or SessionStore(settings.checkout_session_file or None)
    bus = bus or EventBus()
    if sdk is None and settings.stripe_publishable_key:
        sdk = StripeSdk(settings.stripe_publishable_key)

    api = ApiClient(
        settings.checkout_api_base_url,
        store,
        timeout=settings.checkout_request_timeout,
        transport=transport,
    )
    notifier = Notifier()
    navigator = Navigator(url, bus=bus)

    return CheckoutController(
        api=api,
        bus=bus,
        notifier=notifier,
        navigator=navigator,
        auth_gate=AuthGate(api, store, bus),
        bootstrapper=PaymentIntentBootstrapper(api),
        free_claim=FreeTicketClaim(api, notifier, navigator, redirect_delay=settings.free_claim_redirect_delay),
        paypal=PayPalCheckout(api, notifier, navigator),
        cashapp=CashAppCheckout(settings.cashapp_tag, notifier, navigator, clipboard or Clipboard()),
        sdk=sdk,
        base_url=settings.base_url,
        ready_grace_delay=settings.element_ready_grace_delay,
        slow_warning_after=settings.slow_load_warning_after,
        email_modal_delay=settings.email_required_modal_delay,
    )
