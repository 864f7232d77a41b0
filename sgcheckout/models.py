from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from sgcheckout.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class TicketStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD_OUT = "sold_out"
    OFF_SALE = "off_sale"
    STAFF_ONLY = "staff_only"


class PaymentProvider(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    CASHAPP = "cashapp"
    FREE = "free"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PurchaseStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    purchases = relationship("TicketPurchase", back_populates="user")


class AuthSession(Base):
    """Server-side login session, addressed by an opaque bearer token."""
    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(String(20), nullable=True)  # YYYY-MM-DD format
    venue_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    tickets = relationship("Ticket", back_populates="event", cascade="all, delete-orphan")


class Ticket(Base):
    """A ticket type on sale for an event (GA, VIP, ...)."""
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    name = Column(String(100), nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(Enum(TicketStatus), default=TicketStatus.AVAILABLE)
    remaining_quantity = Column(Integer, nullable=True)  # None = unlimited
    created_at = Column(DateTime(timezone=True), default=utcnow)

    event = relationship("Event", back_populates="tickets")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)
    payment_intent_id = Column(String(255), unique=True, nullable=False, index=True)
    provider = Column(Enum(PaymentProvider), nullable=False)
    amount_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING)
    guest_email = Column(String(255), nullable=True)
    items = Column(Text, nullable=True)  # JSON-encoded line items
    created_at = Column(DateTime(timezone=True), default=utcnow)

    purchases = relationship("TicketPurchase", back_populates="order", cascade="all, delete-orphan")


class TicketPurchase(Base):
    __tablename__ = "ticket_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    total_price_cents = Column(Integer, nullable=False, default=0)
    status = Column(Enum(PurchaseStatus), default=PurchaseStatus.CONFIRMED)
    purchase_email = Column(String(255), nullable=False)
    qr_code = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="purchases")
    ticket = relationship("Ticket")
    event = relationship("Event")
    order = relationship("Order", back_populates="purchases")
