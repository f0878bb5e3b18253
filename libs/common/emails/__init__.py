"""
ShopCore email package.

Modules:
- core: Base send_email function (SMTP)

Email templates live in services/communications_service/templates/.
"""
