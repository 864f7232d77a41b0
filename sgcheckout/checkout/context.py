"""Checkout parameters read from the page URL, and the URLs built from them."""

import enum
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
CHECKOUT_PATH = "/checkout"
SUCCESS_PATH = "/payment-success"
CENT = Decimal("0.01")

# Query keys owned by the checkout; everything else in the URL is passed through.
CONTEXT_KEYS = ("amount", "eventId", "title", "eventTitle", "currency", "ticketId", "ticketName")


class Branch(str, enum.Enum):
    LOADING = "loading"
    AUTH_REQUIRED = "auth_required"
    FREE_TICKET = "free_ticket"
    PAID = "paid"


def select_branch(checking_auth: bool, user: Optional[dict], amount) -> Branch:
    """Which checkout screen to show. Pure; no side effects."""
    if checking_auth:
        return Branch.LOADING
    if user is None:
        return Branch.AUTH_REQUIRED
    if Decimal(amount) == 0:
        return Branch.FREE_TICKET
    return Branch.PAID


def _parse_amount(raw: Optional[str]) -> Decimal:
    if raw is None or raw.strip() == "":
        return Decimal("0")
    try:
        value = Decimal(raw.strip())
        # Whole cents, rounded the way the server converts to minor units
        value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        logger.warning("Ignoring invalid amount %r", raw)
        return Decimal("0")
    if value < 0:
        logger.warning("Ignoring invalid amount %r", raw)
        return Decimal("0")
    return value.copy_abs()


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric id %r", raw)
        return None


@dataclass(frozen=True)
class CheckoutContext:
    amount: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    event_id: Optional[int] = None
    event_title: str = ""
    ticket_id: Optional[int] = None
    ticket_name: str = ""

    @classmethod
    def from_url(cls, url: str) -> "CheckoutContext":
        """Build a context from a full URL, a path with a query, or a bare query string."""
        query = urlsplit(url).query if ("?" in url or "://" in url) else url
        params = dict(parse_qsl(query, keep_blank_values=True))
        currency = (params.get("currency") or DEFAULT_CURRENCY).strip().upper() or DEFAULT_CURRENCY
        return cls(
            amount=_parse_amount(params.get("amount")),
            currency=currency,
            event_id=_parse_int(params.get("eventId")),
            event_title=params.get("title") or params.get("eventTitle") or "",
            ticket_id=_parse_int(params.get("ticketId")),
            ticket_name=params.get("ticketName") or "",
        )

    @property
    def is_free(self) -> bool:
        return self.amount == 0

    @property
    def intent_key(self) -> tuple:
        """Parameters that, when changed, need a fresh payment intent."""
        return (self.amount, self.currency, self.event_id, self.ticket_id)

    @property
    def formatted_amount(self) -> str:
        return f"${self.amount:.2f}"

    @property
    def summary(self) -> str:
        parts = [self.event_title or "Event Ticket"]
        if self.ticket_name:
            parts.append(self.ticket_name)
        parts.append(self.formatted_amount)
        return " / ".join(parts)

    def query_pairs(self) -> list:
        pairs = []
        if self.event_id is not None:
            pairs.append(("eventId", str(self.event_id)))
        if self.event_title:
            pairs.append(("title", self.event_title))
        pairs.append(("amount", format(self.amount, "f")))
        pairs.append(("currency", self.currency))
        if self.ticket_id is not None:
            pairs.append(("ticketId", str(self.ticket_id)))
        if self.ticket_name:
            pairs.append(("ticketName", self.ticket_name))
        return pairs

    def success_pairs(self) -> list:
        pairs = []
        if self.event_id is not None:
            pairs.append(("eventId", str(self.event_id)))
        if self.event_title:
            pairs.append(("eventTitle", self.event_title))
        if self.ticket_id is not None:
            pairs.append(("ticketId", str(self.ticket_id)))
        if self.ticket_name:
            pairs.append(("ticketName", self.ticket_name))
        return pairs


def checkout_redirect_path(context: CheckoutContext, current_url: str = CHECKOUT_PATH) -> str:
    """Where to come back to after signing in.

    Unrelated query parameters on the current URL are kept in their original
    order; the checkout's own parameters are re-attached from `context`.
    """
    parts = urlsplit(current_url)
    passthrough = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in CONTEXT_KEYS
    ]
    query = urlencode(passthrough + context.query_pairs())
    return urlunsplit(("", "", parts.path or CHECKOUT_PATH, query, ""))


def success_path(context: CheckoutContext) -> str:
    pairs = context.success_pairs()
    return f"{SUCCESS_PATH}?{urlencode(pairs)}" if pairs else SUCCESS_PATH


def success_url(base_url: str, context: CheckoutContext) -> str:
    return base_url.rstrip("/") + success_path(context)
