"""Server-rendered checkout and success pages."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from sgcheckout.checkout.context import Branch, CheckoutContext, checkout_redirect_path, select_branch
from sgcheckout.config import get_settings
from sgcheckout.dependencies import get_current_user
from sgcheckout.models import User
from sgcheckout.services import cashapp

router = APIRouter(tags=["pages"])

templates_dir = Path(__file__).parent.parent / "templates"
jinja_env = Environment(loader=FileSystemLoader(str(templates_dir)), autoescape=select_autoescape())


def _get_branding():
    settings = get_settings()
    return {"org_name": settings.org_name, "org_color": settings.org_color}


@router.get("/checkout", response_class=HTMLResponse)
def checkout_page(request: Request, user: Optional[User] = Depends(get_current_user)):
    """Checkout page. The branch is decided server-side from the session cookie."""
    settings = get_settings()
    current_url = request.url.path + (f"?{request.url.query}" if request.url.query else "")
    context = CheckoutContext.from_url(current_url)
    branch = select_branch(False, user, context.amount)

    cashapp_url = None
    if branch == Branch.PAID:
        cashapp_url = cashapp.build_payment_link(settings.cashapp_tag, context.amount)

    template = jinja_env.get_template("checkout.html")
    return HTMLResponse(content=template.render(
        **_get_branding(),
        branch=branch.value,
        summary=context.summary,
        user=user,
        redirect_path=checkout_redirect_path(context, current_url),
        can_claim=context.event_id is not None and context.ticket_id is not None,
        publishable_key=settings.stripe_publishable_key,
        cashapp_url=cashapp_url,
    ))


@router.get("/payment-success", response_class=HTMLResponse)
def payment_success_page(
    event_title: Optional[str] = Query(None, alias="eventTitle"),
    ticket_name: Optional[str] = Query(None, alias="ticketName"),
):
    template = jinja_env.get_template("payment_success.html")
    return HTMLResponse(content=template.render(
        **_get_branding(),
        event_title=event_title,
        ticket_name=ticket_name,
    ))
