from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional
from sgcheckout.models import UserRole


class CamelModel(BaseModel):
    """Base for wire schemas; the browser speaks camelCase (eventId, clientSecret)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ============== Auth Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: UserRole = UserRole.USER


class LoginResponse(CamelModel):
    token: str
    expires_at: datetime
    user: UserResponse


# ============== Payment Schemas ==============

class LineItem(CamelModel):
    id: str
    name: str
    quantity: int = Field(default=1, ge=1)


class CreateIntentRequest(CamelModel):
    amount: float = Field(ge=0)  # Decimal currency units, e.g. 29.99
    currency: str = "usd"
    event_id: Optional[int] = None
    event_title: Optional[str] = None
    ticket_id: Optional[int] = None
    ticket_name: Optional[str] = None
    items: list[LineItem] = []


class CreateIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    amount_cents: int
    currency: str


class PayPalOrderRequest(CamelModel):
    currency: str = "usd"
    intent: str = "CAPTURE"
    amount: Optional[float] = None  # Ignored whenever a ticket price is known
    event_id: Optional[int] = None
    event_title: Optional[str] = None
    ticket_id: Optional[int] = None
    ticket_name: Optional[str] = None


class PayPalOrderResponse(CamelModel):
    id: str
    status: str


class PayPalCaptureRequest(CamelModel):
    event_id: Optional[int] = None
    event_title: Optional[str] = None
    ticket_id: Optional[int] = None
    ticket_name: Optional[str] = None


class PayPalCaptureResponse(CamelModel):
    id: str
    status: str
    order_id: Optional[int] = None
    ticket_id: Optional[int] = None
    qr_code: Optional[str] = None


class CashAppLinkResponse(CamelModel):
    url: str
    tag: str
    amount: str


# ============== Free Ticket Schemas ==============

class FreeTicketRequest(CamelModel):
    event_id: Optional[int] = None
    event_title: Optional[str] = None
    ticket_id: Optional[int] = None
    ticket_name: Optional[str] = None
    guest_email: Optional[EmailStr] = None


class FreeTicketResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    order_id: Optional[int] = None
    ticket_id: Optional[int] = None
    qr_code: Optional[str] = None

