"""
Order-related email templates.
"""

from html import escape

from libs.common.currency import format_money
from libs.common.emails.core import send_email
from services.communications_service.templates.base import (
    detail_box,
    sign_off,
    wrap_html,
)


async def send_order_confirmation_email(
    to_email: str,
    customer_name: str,
    order_id: str,
    order_date: str,
    status: str,
    items: list[dict],  # [{"name": str, "quantity": int, "unit_price": Decimal, "subtotal": Decimal}]
    total,
    currency: str = "USD",
) -> bool:
    """
    Send the confirmation email for a newly placed order.
    """
    subject = f"Order Confirmation - #{order_id}"

    items_text = "\n".join(
        f"  - {item['name']} x{item['quantity']} @ {format_money(item['unit_price'], currency)}"
        f" = {format_money(item['subtotal'], currency)}"
        for item in items
    )
    body = f"""Hi {customer_name},

Thank you for your order! We've received it and will process it shortly.

Order #{order_id}
Date: {order_date}
Status: {status}

Items:
{items_text}

Total: {format_money(total, currency)}
"""

    rows_html = "".join(
        f"<tr><td>{escape(item['name'])}</td>"
        f"<td>{item['quantity']}</td>"
        f"<td>{format_money(item['unit_price'], currency)}</td>"
        f"<td>{format_money(item['subtotal'], currency)}</td></tr>"
        for item in items
    )
    html_body = wrap_html(
        title="Order Confirmation",
        body_html=(
            f"<p>Hi {escape(customer_name)},</p>"
            "<p>Thank you for your order! We've received it and will process it shortly.</p>"
            + detail_box({"Order": f"#{order_id}", "Date": order_date, "Status": status})
            + "<table><tr><th>Item</th><th>Qty</th><th>Price</th><th>Subtotal</th></tr>"
            + rows_html
            + "</table>"
            + f"<p><strong>Total: {format_money(total, currency)}</strong></p>"
            + sign_off()
        ),
    )
    return await send_email(to_email, subject, body, html_body=html_body)
