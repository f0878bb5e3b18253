"""
Payment-related email templates.
"""

from html import escape

from libs.common.currency import format_money
from libs.common.emails.core import send_email
from services.communications_service.templates.base import (
    HEADER_BLUE,
    detail_box,
    sign_off,
    wrap_html,
)


async def send_payment_success_email(
    to_email: str,
    customer_name: str,
    order_id: str,
    transaction_id: str,
    gateway: str,
    amount,
    currency: str,
    paid_at: str,
) -> bool:
    """
    Send a receipt once a payment has been verified.
    """
    amount_display = format_money(amount, currency)
    subject = f"Payment Received - Order #{order_id}"

    body = f"""Hi {customer_name},

We've received your payment of {amount_display} for order #{order_id}.

Payment Details:
- Transaction: {transaction_id}
- Method: {gateway}
- Paid at: {paid_at}

Your order is now being processed.
"""

    html_body = wrap_html(
        title="Payment Successful",
        header_color=HEADER_BLUE,
        body_html=(
            f"<p>Hi {escape(customer_name)},</p>"
            f"<p>We've received your payment of <strong>{amount_display}</strong>.</p>"
            + detail_box(
                {
                    "Order": f"#{order_id}",
                    "Transaction": transaction_id,
                    "Method": gateway,
                    "Paid at": paid_at,
                }
            )
            + "<p>Your order is now being processed.</p>"
            + sign_off()
        ),
    )
    return await send_email(to_email, subject, body, html_body=html_body)
