import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from sgcheckout.database import get_db
from sgcheckout.dependencies import get_current_user, require_user
from sgcheckout.models import PaymentProvider, TicketPurchase, User, UserRole
from sgcheckout.rate_limit import limiter
from sgcheckout.schemas import FreeTicketRequest, FreeTicketResponse
from sgcheckout.services.fulfillment import fulfill_order
from sgcheckout.services.pricing import ensure_ticket_available, load_event, load_ticket
from sgcheckout.services.qrcode import generate_qr_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post("/free", response_model=FreeTicketResponse, status_code=201)
@limiter.limit("20/minute")
def claim_free_ticket(
    request: Request,
    claim: FreeTicketRequest,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Claim a zero-priced ticket without going through a payment provider."""
    if user is None and not claim.guest_email:
        raise HTTPException(
            status_code=401,
            detail="Authentication required or guest email needed for free ticket claim",
        )

    if claim.event_id is None:
        raise HTTPException(status_code=400, detail="Event ID is required")

    event = load_event(db, claim.event_id)

    ticket = None
    if claim.ticket_id is not None:
        ticket = load_ticket(db, claim.ticket_id, claim.event_id)
        ensure_ticket_available(ticket)
        if ticket.price_cents > 0:
            raise HTTPException(status_code=400, detail="This ticket is not free")

    purchase_email = claim.guest_email or (user.email if user else None)
    if not purchase_email:
        raise HTTPException(status_code=400, detail="Email address is required for ticket delivery")

    result = fulfill_order(
        db,
        provider=PaymentProvider.FREE,
        payment_reference=f"free-{int(time.time() * 1000)}-{user.id if user else 'guest'}",
        purchase_email=purchase_email,
        amount_cents=0,
        currency=ticket.currency if ticket else "usd",
        user=user,
        event=event,
        ticket=ticket,
        event_title=claim.event_title,
        ticket_name=claim.ticket_name,
        guest_email=claim.guest_email,
    )

    return FreeTicketResponse(
        success=True,
        message="Free ticket claimed successfully!",
        order_id=result.order.id,
        ticket_id=result.purchase.id,
        qr_code=result.purchase.qr_code,
    )


@router.get("/{purchase_id}/qr")
def get_ticket_qr_code(
    purchase_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """QR code image for one of the current user's tickets."""
    purchase = db.query(TicketPurchase).filter(TicketPurchase.id == purchase_id).first()
    if not purchase:
        raise HTTPException(status_code=404, detail="Ticket not found")
    if purchase.user_id != user.id and user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Access denied")

    return Response(content=generate_qr_code(purchase.qr_code), media_type="image/png")
