"""Tests for the auth gate, session store and event bus."""

import json

import httpx
import pytest

from sgcheckout.checkout.auth_gate import AuthGate
from sgcheckout.checkout.events import AuthChanged, EventBus, OpenAuthModal
from sgcheckout.checkout.http import ApiClient
from sgcheckout.checkout.session import SessionStore

USER = {"id": 1, "username": "alice", "email": "alice@example.com"}


def _gate(handler, store=None, bus=None):
    store = store or SessionStore()
    bus = bus or EventBus()
    api = ApiClient("http://testserver", store, transport=httpx.MockTransport(handler))
    return AuthGate(api, store, bus), store, bus, api


class TestAuthGate:
    @pytest.mark.asyncio
    async def test_success_caches_user(self):
        gate, store, _, api = _gate(lambda request: httpx.Response(200, json=USER))
        states = []
        gate.add_listener(lambda user, checking: states.append((user, checking)))

        assert gate.checking_auth is True
        await gate.start()
        await api.aclose()

        assert gate.user == USER
        assert gate.checking_auth is False
        assert store.user == USER
        assert states == [(USER, False)]

    @pytest.mark.asyncio
    async def test_401_fails_closed_without_fallback(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(401, json={"detail": "Authentication required"})

        store = SessionStore()
        store.save_login("stale-token", USER)
        gate, _, _, api = _gate(handler, store=store)
        await gate.start()
        await api.aclose()

        assert gate.user is None
        assert gate.checking_auth is False
        assert store.user is None
        assert store.session_id is None
        assert calls == ["/api/me"]

    @pytest.mark.asyncio
    async def test_server_error_tries_bare_route(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path == "/api/me":
                return httpx.Response(404)
            return httpx.Response(200, json=USER)

        gate, _, _, api = _gate(handler)
        await gate.start()
        await api.aclose()
        assert calls == ["/api/me", "/me"]
        assert gate.user == USER

    @pytest.mark.asyncio
    async def test_unreachable_backend_fails_closed(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        store = SessionStore()
        store.save_user(USER)
        gate, _, _, api = _gate(handler, store=store)
        await gate.start()
        await api.aclose()
        assert gate.user is None
        assert store.user is None

    @pytest.mark.asyncio
    async def test_malformed_body_fails_closed(self):
        gate, _, _, api = _gate(lambda request: httpx.Response(200, json=["not", "a", "user"]))
        await gate.start()
        await api.aclose()
        assert gate.user is None

    @pytest.mark.asyncio
    async def test_auth_changed_with_user_skips_fetch(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(401)

        gate, store, bus, api = _gate(handler)
        await gate.start()
        assert calls == ["/api/me"]

        bus.publish(AuthChanged(user=USER))
        await gate.wait_idle()
        await api.aclose()

        assert calls == ["/api/me"]
        assert gate.user == USER
        assert store.user == USER

    @pytest.mark.asyncio
    async def test_auth_changed_without_user_refetches(self):
        responses = [httpx.Response(401), httpx.Response(200, json=USER)]
        gate, _, bus, api = _gate(lambda request: responses.pop(0))
        await gate.start()
        assert gate.user is None

        bus.publish(AuthChanged())
        await gate.wait_idle()
        await api.aclose()
        assert gate.user == USER

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self):
        gate, _, bus, api = _gate(lambda request: httpx.Response(200, json=USER))
        await gate.start()
        assert bus.subscriber_count(AuthChanged) == 1
        gate.stop()
        await api.aclose()
        assert bus.subscriber_count(AuthChanged) == 0


class TestEventBus:
    def test_typed_delivery(self):
        bus = EventBus()
        seen = []
        bus.subscribe(OpenAuthModal, seen.append)
        assert bus.publish(AuthChanged()) == 0
        assert bus.publish(OpenAuthModal(tab="register", redirect_path="/checkout?eventId=1")) == 1
        assert seen == [OpenAuthModal(tab="register", redirect_path="/checkout?eventId=1")]

    def test_unsubscribe(self):
        bus = EventBus()
        unsubscribe = bus.subscribe(AuthChanged, lambda event: None)
        unsubscribe()
        unsubscribe()
        assert bus.subscriber_count(AuthChanged) == 0

    def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(AuthChanged, broken)
        bus.subscribe(AuthChanged, seen.append)
        assert bus.publish(AuthChanged()) == 2
        assert len(seen) == 1


class TestSessionStore:
    def test_bearer_prefers_session_id(self):
        store = SessionStore()
        store.set_token("firebase")
        assert store.auth_headers() == {"Authorization": "Bearer firebase"}
        store.save_login("session")
        assert store.auth_headers() == {"Authorization": "Bearer session"}

    def test_empty_store_sends_no_auth(self):
        assert SessionStore().auth_headers() == {}

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / "session.json"
        store = SessionStore(str(path))
        store.save_login("session", USER)

        assert json.loads(path.read_text()) == {"sg_session_id": "session", "user": USER}
        reloaded = SessionStore(str(path))
        assert reloaded.user == USER
        assert reloaded.session_id == "session"

        reloaded.clear()
        assert SessionStore(str(path)).user is None

    def test_unreadable_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert SessionStore(str(path)).user is None
