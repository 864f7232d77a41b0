"""PayPal Orders v2 REST client.

Uses OAuth client credentials; access tokens are cached until shortly before
they expire.
"""

import logging
import threading
import time
from typing import Optional

import requests as http_requests

from sgcheckout.config import get_settings
from sgcheckout.services.pricing import PricedItem, format_major_units

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15
TOKEN_EXPIRY_MARGIN_SECONDS = 60

_token_lock = threading.Lock()
_token_cache = {"token": None, "expires_at": 0.0}


class PayPalError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def is_configured() -> bool:
    settings = get_settings()
    return bool(settings.paypal_client_id and settings.paypal_client_secret)


def _get_access_token() -> str:
    settings = get_settings()
    with _token_lock:
        if _token_cache["token"] and _token_cache["expires_at"] > time.time():
            return _token_cache["token"]

        try:
            resp = http_requests.post(
                f"{settings.paypal_api_base}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(settings.paypal_client_id, settings.paypal_client_secret),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except http_requests.RequestException as exc:
            raise PayPalError(f"PayPal auth request failed: {exc}") from exc

        if resp.status_code != 200:
            raise PayPalError("PayPal authentication failed", resp.status_code)

        body = resp.json()
        _token_cache["token"] = body["access_token"]
        _token_cache["expires_at"] = (
            time.time() + int(body.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN_SECONDS
        )
        return _token_cache["token"]


def reset_token_cache():
    with _token_lock:
        _token_cache["token"] = None
        _token_cache["expires_at"] = 0.0


def _request(method: str, path: str, json_body: Optional[dict] = None) -> dict:
    settings = get_settings()
    headers = {
        "Authorization": f"Bearer {_get_access_token()}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }
    try:
        resp = http_requests.request(
            method,
            f"{settings.paypal_api_base}{path}",
            json=json_body,
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except http_requests.RequestException as exc:
        raise PayPalError(f"PayPal request failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        logger.warning("PayPal %s %s returned %s: %s", method, path, resp.status_code, resp.text[:500])
        raise PayPalError(f"PayPal returned HTTP {resp.status_code}", resp.status_code)
    return resp.json()


def create_order(priced: PricedItem, intent: str = "CAPTURE") -> dict:
    """Create a PayPal order for one ticket."""
    custom_id = None
    if priced.event:
        custom_id = f"event_{priced.event.id}"
        if priced.ticket:
            custom_id += f"_ticket_{priced.ticket.id}"

    purchase_unit = {
        "amount": {
            "currency_code": priced.currency.upper(),
            "value": format_major_units(priced.amount_cents, priced.currency),
        },
        "description": priced.description[:127],
    }
    if custom_id:
        purchase_unit["custom_id"] = custom_id

    order = _request("POST", "/v2/checkout/orders", {
        "intent": intent.upper(),
        "purchase_units": [purchase_unit],
    })
    logger.info("Created PayPal order %s (%s)", order.get("id"), custom_id)
    return order


def capture_order(order_id: str) -> dict:
    return _request("POST", f"/v2/checkout/orders/{order_id}/capture")


def payer_details(capture: dict) -> tuple[Optional[str], Optional[str]]:
    """(email, full name) of the payer, where PayPal reports them."""
    payer = capture.get("payer") or {}
    name = payer.get("name") or {}
    full_name = " ".join(p for p in (name.get("given_name"), name.get("surname")) if p) or None
    return payer.get("email_address"), full_name


def captured_amount(capture: dict) -> tuple[Optional[str], Optional[str]]:
    """(value, currency_code) of the first capture in the first purchase unit."""
    for unit in capture.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures:
            amount = captures[0].get("amount") or {}
            return amount.get("value"), amount.get("currency_code")
        amount = unit.get("amount") or {}
        if amount:
            return amount.get("value"), amount.get("currency_code")
    return None, None
