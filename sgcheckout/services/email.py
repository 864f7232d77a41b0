import logging
from pathlib import Path
from typing import Optional

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from sgcheckout.config import get_settings
from sgcheckout.services.qrcode import generate_qr_code_base64

logger = logging.getLogger(__name__)

# Set up Jinja2 template environment
templates_dir = Path(__file__).parent.parent / "templates"
env = Environment(loader=FileSystemLoader(str(templates_dir)), autoescape=select_autoescape())


def _send_email(to_email: str, subject: str, html_content: str) -> bool:
    """Internal helper to send emails via Resend."""
    settings = get_settings()

    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not configured, skipping email to %s", to_email)
        return False

    resend.api_key = settings.resend_api_key

    try:
        resend.Emails.send({
            "from": settings.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        })
        return True
    except Exception:
        logger.exception("Failed to send email to %s", to_email)
        return False


def send_ticket_email(
    to_email: str,
    recipient_name: Optional[str],
    event_title: str,
    ticket_name: Optional[str],
    amount: str,
    currency: str,
    order_id: int,
    qr_code: str,
) -> bool:
    """Send a ticket confirmation email with the QR code inline."""
    settings = get_settings()

    template = env.get_template("ticket_email.html")
    html_content = template.render(
        org_name=settings.org_name,
        org_color=settings.org_color,
        recipient_name=recipient_name or "there",
        event_title=event_title,
        ticket_name=ticket_name or "General Admission",
        amount=amount,
        currency=currency.upper(),
        order_id=order_id,
        qr_code=qr_code,
        qr_code_base64=generate_qr_code_base64(qr_code),
    )

    return _send_email(to_email, f"Your Ticket for {event_title}", html_content)
