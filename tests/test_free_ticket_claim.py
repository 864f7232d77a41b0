"""Tests for the client-side free ticket claim and the PayPal/Cash App tabs."""

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from sgcheckout.checkout.context import CheckoutContext
from sgcheckout.checkout.free_ticket import FreeTicketClaim
from sgcheckout.checkout.http import ApiClient
from sgcheckout.checkout.navigation import Clipboard, Navigator
from sgcheckout.checkout.notify import Notifier
from sgcheckout.checkout.paypal import CashAppCheckout, PayPalCheckout
from sgcheckout.checkout.session import SessionStore

USER = {"id": 1, "username": "alice"}
FREE = CheckoutContext(amount=Decimal("0"), event_id=7, event_title="Carnival", ticket_id=3, ticket_name="GA")


def _setup(handler, redirect_delay=0.01):
    api = ApiClient("http://testserver", SessionStore(), transport=httpx.MockTransport(handler))
    notifier = Notifier()
    navigator = Navigator("/checkout?amount=0&eventId=7&ticketId=3")
    return FreeTicketClaim(api, notifier, navigator, redirect_delay=redirect_delay), api, notifier, navigator


class TestFreeTicketClaim:
    @pytest.mark.asyncio
    async def test_claims_once_then_navigates(self):
        calls = []

        def handler(request):
            calls.append((request.url.path, json.loads(request.content)))
            return httpx.Response(201, json={"success": True, "message": "Free ticket claimed successfully!"})

        claim, api, notifier, navigator = _setup(handler)
        assert await claim.claim(USER, FREE) is True
        await api.aclose()

        assert calls == [("/api/tickets/free", {"eventId": 7, "eventTitle": "Carnival", "ticketId": 3, "ticketName": "GA"})]
        assert notifier.titles() == ["Ticket Claimed"]
        assert navigator.url == "/payment-success?eventId=7&eventTitle=Carnival&ticketId=3&ticketName=GA"
        assert claim.claiming is False

    @pytest.mark.asyncio
    async def test_toast_shows_before_navigation(self):
        claim, api, notifier, navigator = _setup(
            lambda request: httpx.Response(201, json={"success": True}), redirect_delay=0.2,
        )
        task = asyncio.ensure_future(claim.claim(USER, FREE))
        await asyncio.sleep(0.05)
        assert notifier.titles() == ["Ticket Claimed"]
        assert navigator.url.startswith("/checkout")
        assert await task is True
        assert navigator.url.startswith("/payment-success")
        await api.aclose()

    @pytest.mark.asyncio
    async def test_missing_event_id_makes_no_request(self):
        calls = []
        claim, api, notifier, navigator = _setup(lambda request: calls.append(request))
        context = CheckoutContext.from_url("/checkout?amount=0&ticketId=3")

        assert await claim.claim(USER, context) is False
        await api.aclose()
        assert calls == []
        assert notifier.titles() == ["Invalid Ticket"]
        assert navigator.url.startswith("/checkout")

    @pytest.mark.asyncio
    async def test_missing_user(self):
        calls = []
        claim, api, notifier, _ = _setup(lambda request: calls.append(request))
        assert await claim.claim(None, FREE) is False
        await api.aclose()
        assert calls == []
        assert notifier.titles() == ["Authentication Required"]

    @pytest.mark.asyncio
    async def test_falls_back_to_bare_route(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path == "/api/tickets/free":
                return httpx.Response(404)
            return httpx.Response(201, json={"success": True})

        claim, api, _, _ = _setup(handler)
        assert await claim.claim(USER, FREE) is True
        await api.aclose()
        assert calls == ["/api/tickets/free", "/tickets/free"]

    @pytest.mark.asyncio
    async def test_server_rejection(self):
        claim, api, notifier, navigator = _setup(
            lambda request: httpx.Response(400, json={"detail": "This ticket is not free"}),
        )
        assert await claim.claim(USER, FREE) is False
        await api.aclose()
        assert notifier.toasts[-1].title == "Claim Failed"
        assert notifier.toasts[-1].description == "This ticket is not free"
        assert claim.claiming is False
        assert navigator.url.startswith("/checkout")

    @pytest.mark.asyncio
    async def test_double_click_is_ignored(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={"success": True})

        claim, api, _, _ = _setup(handler, redirect_delay=0.02)
        results = await asyncio.gather(claim.claim(USER, FREE), claim.claim(USER, FREE))
        await api.aclose()
        assert sorted(results) == [False, True]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_plain_text_success_body(self):
        claim, api, notifier, navigator = _setup(lambda request: httpx.Response(201, text="Created"))
        assert await claim.claim(USER, FREE) is True
        assert claim.claiming is False
        assert notifier.toasts[-1].description == "Your free ticket for Carnival has been claimed."
        assert navigator.url.startswith("/payment-success")

        # The flow is not stuck; a second press goes out again
        assert await claim.claim(USER, FREE) is True
        await api.aclose()

    @pytest.mark.asyncio
    async def test_json_list_success_body(self):
        claim, api, notifier, _ = _setup(lambda request: httpx.Response(201, json=["ok"]))
        assert await claim.claim(USER, FREE) is True
        await api.aclose()
        assert notifier.titles() == ["Ticket Claimed"]
        assert claim.claiming is False

    @pytest.mark.asyncio
    async def test_paid_ticket_makes_no_request(self):
        calls = []
        claim, api, notifier, _ = _setup(lambda request: calls.append(request))
        paid = CheckoutContext(amount=Decimal("29.99"), event_id=7, ticket_id=3)

        assert await claim.claim(USER, paid) is False
        await api.aclose()
        assert calls == []
        assert notifier.toasts[-1].title == "Invalid Ticket"
        assert notifier.toasts[-1].description == "This ticket is not free."



class TestPayPalCheckout:
    @pytest.mark.asyncio
    async def test_order_and_capture(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path == "/payment/paypal-order":
                return httpx.Response(200, json={"id": "ORDER-1", "status": "CREATED"})
            return httpx.Response(200, json={"id": "ORDER-1", "status": "COMPLETED"})

        api = ApiClient("http://testserver", SessionStore(), transport=httpx.MockTransport(handler))
        notifier, navigator = Notifier(), Navigator("/checkout")
        paypal = PayPalCheckout(api, notifier, navigator)
        context = CheckoutContext(amount=Decimal("29.99"), event_id=7, event_title="Carnival")

        assert await paypal.create_order(context) == "ORDER-1"
        assert await paypal.capture(context) is True
        await api.aclose()

        assert calls == ["/payment/paypal-order", "/payment/paypal-order/ORDER-1/capture"]
        assert navigator.url == "/payment-success?eventId=7&eventTitle=Carnival"

    @pytest.mark.asyncio
    async def test_capture_not_completed(self):
        api = ApiClient(
            "http://testserver",
            SessionStore(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "PENDING"})),
        )
        notifier, navigator = Notifier(), Navigator("/checkout")
        paypal = PayPalCheckout(api, notifier, navigator)
        assert await paypal.capture(CheckoutContext(amount=Decimal("5")), "ORDER-1") is False
        await api.aclose()
        assert notifier.titles() == ["Payment Failed"]
        assert navigator.url == "/checkout"

    @pytest.mark.asyncio
    async def test_non_json_replies(self):
        api = ApiClient(
            "http://testserver",
            SessionStore(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>ok</html>")),
        )
        notifier, navigator = Notifier(), Navigator("/checkout")
        paypal = PayPalCheckout(api, notifier, navigator)
        context = CheckoutContext(amount=Decimal("29.99"), event_id=7)

        assert await paypal.create_order(context) is None
        assert await paypal.capture(context, "ORDER-1") is False
        await api.aclose()
        assert notifier.titles() == ["PayPal Error", "Payment Failed"]
        assert navigator.url == "/checkout"


    def test_refresh_reloads(self):
        navigator = Navigator("/checkout")
        PayPalCheckout(None, Notifier(), navigator).refresh()
        assert navigator.reloads == 1


class TestCashAppCheckout:
    def test_desktop_copies_link(self):
        notifier, navigator, clipboard = Notifier(), Navigator("/checkout"), Clipboard()
        cashapp = CashAppCheckout("$SGEvents", notifier, navigator, clipboard)
        url = cashapp.open(CheckoutContext(amount=Decimal("29.99")))
        assert url == "https://cash.app/$SGEvents/29.99"
        assert clipboard.contents == url
        assert notifier.titles() == ["Link Copied"]
        assert navigator.redirects == []

    def test_mobile_redirects(self):
        notifier, navigator, clipboard = Notifier(), Navigator("/checkout"), Clipboard()
        cashapp = CashAppCheckout("SGEvents", notifier, navigator, clipboard)
        cashapp.open(CheckoutContext(amount=Decimal("30.00")), mobile=True)
        assert navigator.redirects == ["https://cash.app/$SGEvents/30"]
        assert clipboard.contents is None
