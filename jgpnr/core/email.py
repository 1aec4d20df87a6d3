# jgpnr/core/email.py
"""
Email service using Resend for sending transactional emails.
"""
import logging
from typing import Optional

import resend

from jgpnr.core.config import settings

logger = logging.getLogger(__name__)


def init_resend():
    """Initialize Resend with API key."""
    resend.api_key = settings.RESEND_API_KEY


def format_naira(amount_kobo: int) -> str:
    return f"₦{amount_kobo / 100:,.2f}"


def _send(to_email: str, subject: str, html_content: str) -> dict:
    init_resend()
    params = {
        "from": f"JGPNR Paintball <noreply@{settings.RESEND_FROM_DOMAIN}>",
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }
    try:
        response = resend.Emails.send(params)
        logger.info(f"Email '{subject}' sent to {to_email}")
        return {"success": True, "id": response.get("id")}
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return {"success": False, "error": str(e)}


def send_order_confirmation(
    to_email: str,
    customer_name: str,
    order_number: str,
    quantity: int,
    amount: int,
) -> dict:
    """
    Send the order confirmation email. Amount is in kobo.
    """
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <h2>Order Received</h2>
        <p>Hi {customer_name},</p>
        <p>We have received your order <strong>{order_number}</strong>.</p>
        <p><strong>Tickets:</strong> {quantity}<br>
           <strong>Total:</strong> {format_naira(amount)}</p>
        <p>Your tickets will be activated once payment is confirmed.</p>
        <p>JGPNR Paintball</p>
    </body>
    </html>
    """
    return _send(to_email, f"Order {order_number} received", html_content)


def send_payment_receipt(
    to_email: str,
    order_number: str,
    payment_reference: str,
    paid_amount: Optional[int] = None,
) -> dict:
    amount_html = (
        f"<p><strong>Amount Paid:</strong> {format_naira(paid_amount)}</p>"
        if paid_amount is not None
        else ""
    )
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <h2>Payment Received</h2>
        <p>Payment for order <strong>{order_number}</strong> is confirmed.</p>
        <p><strong>Reference:</strong> {payment_reference}</p>
        {amount_html}
        <p>Your QR tickets are now active. Present them at the gate.</p>
        <p>JGPNR Paintball</p>
    </body>
    </html>
    """
    return _send(to_email, f"Payment receipt for {order_number}", html_content)
