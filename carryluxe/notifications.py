import logging
from typing import Dict, Optional, Tuple

import resend

from .config import Settings

logger = logging.getLogger(__name__)


def send_email_via_resend(payload: Dict[str, object]) -> Tuple[bool, Optional[str]]:
    if not getattr(resend, "api_key", None):
        return False, "Resend API key is not configured."

    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)

    return True, None


def format_order_email(order: Dict) -> Tuple[str, str]:
    product = order.get("product") or {}
    subject = f"CarryLuxe - New Order #{order.get('id')}"
    lines = [
        "New order received:",
        "",
        f"Order ID: {order.get('id')}",
        f"Product: {product.get('name') or 'Unknown'}",
        f"Price: {product.get('price') if product.get('price') is not None else 'n/a'}",
        f"Name: {order.get('name', '')}",
        f"Email: {order.get('email', '')}",
        f"Phone: {order.get('phone', '')}",
        f"Address: {order.get('address', '')}",
        f"Note: {order.get('note', '')}",
        f"Date: {order.get('date', '')}",
    ]
    return subject, "\n".join(lines)


class OrderNotifier:
    """Emails the operator about each new order. One attempt, no retries."""

    def __init__(self, settings: Settings):
        self.settings = settings
        # resend reads a module-level key; it is set once, at startup.
        if settings.resend_api_key:
            resend.api_key = settings.resend_api_key.strip()

    def notify_new_order(self, order: Dict) -> Tuple[bool, Optional[str]]:
        recipient = self.settings.notify_recipient
        subject, text_body = format_order_email(order)

        if not recipient:
            logger.info("No operator address configured, order email skipped. Subject: %s", subject)
            return False, "No recipient configured."
        if not self.settings.resend_api_key:
            logger.info("No mail provider configured, order email skipped. Subject: %s", subject)
            return False, "Resend API key is not configured."

        payload: Dict[str, object] = {
            "from": self.settings.mail_from,
            "to": [recipient],
            "subject": subject,
            "text": text_body,
        }
        sent, error_details = send_email_via_resend(payload)
        if sent:
            logger.info("Order email sent for order %s", order.get("id"))
        else:
            logger.error("Order email failed for order %s: %s", order.get("id"), error_details)
        return sent, error_details
