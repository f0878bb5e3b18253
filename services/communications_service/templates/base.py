"""
Shared email layout for ShopCore.

Usage:
    from services.communications_service.templates.base import wrap_html, detail_box

    html = wrap_html(
        title="Order confirmed",
        body_html="<p>Hi Ada, ...</p>" + detail_box({"Order": "#123"}),
    )
"""

from html import escape

# ─── Color presets ────────────────────────────────────────────────────
HEADER_GREEN = "#4caf50"
HEADER_BLUE = "#0284c7"


def wrap_html(title: str, body_html: str, header_color: str = HEADER_GREEN) -> str:
    """Wrap inner content in the standard email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{escape(title)}</title>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background-color: {header_color}; color: #fff; padding: 20px; text-align: center; }}
        .content {{ padding: 20px; background-color: #f9f9f9; }}
        .detail-box {{ background-color: #fff; padding: 15px; margin: 20px 0; border-radius: 5px; }}
        .detail-row {{ margin: 6px 0; }}
        .footer {{ text-align: center; padding: 20px; color: #777; font-size: 12px; }}
        table {{ width: 100%; border-collapse: collapse; }}
        th, td {{ padding: 8px; text-align: left; border-bottom: 1px solid #eee; }}
    </style>
</head>
<body>
<div class="container">
    <div class="header"><h1>{escape(title)}</h1></div>
    <div class="content">
{body_html}
    </div>
    <div class="footer">This is an automated message, please do not reply.</div>
</div>
</body>
</html>
"""


def detail_box(rows: dict[str, str]) -> str:
    """Render label/value pairs in a bordered box."""
    inner = "".join(
        f'<div class="detail-row"><strong>{escape(label)}:</strong> {escape(str(value))}</div>'
        for label, value in rows.items()
    )
    return f'<div class="detail-box">{inner}</div>'


def sign_off() -> str:
    return "<p>Thank you for shopping with us.</p>"
