"""
Digest email rendering.

This module builds the subject and HTML body of the "expiring tomorrow"
reminder. It performs no I/O.
"""

import logging
from html import escape
from typing import Sequence

from domain.expiry import format_expiry_date
from domain.models import ExpiringItem, User

logger = logging.getLogger(__name__)

DIGEST_SUBJECT = "Reminder: Items expiring tomorrow"

_CELL_STYLE = "padding:6px 10px;border-bottom:1px solid #eee;"
_HEADER_STYLE = "text-align:left;padding:6px 10px;"
_BUTTON_STYLE = (
    "background:#14b8a6; color:white; padding:8px 20px; border:none; "
    "border-radius:4px; text-decoration:none; font-size:16px;"
)


def build_login_url(base_url: str) -> str:
    """
    Build the sign-in link for the app.

    Example:
        >>> build_login_url("https://tracker.vercel.app/")
        'https://tracker.vercel.app/login'
    """
    return f"{base_url.rstrip('/')}/login"


def _render_row(expiring: ExpiringItem) -> str:
    return (
        f'<tr>'
        f'<td style="{_CELL_STYLE}">{escape(expiring.item.name)}</td>'
        f'<td style="{_CELL_STYLE}">{escape(format_expiry_date(expiring.item.expiry_date))}</td>'
        f'</tr>'
    )


def render_digest_html(
    user: User,
    items: Sequence[ExpiringItem],
    login_url: str
) -> str:
    """
    Render the digest body: greeting, one table row per item, login link.

    Args:
        user: Recipient
        items: Expiring items of this user (at least one)
        login_url: Sign-in page of the app

    Returns:
        str: HTML body

    Raises:
        ValueError: If items is empty
    """
    if not items:
        raise ValueError("Cannot render a digest without items")

    rows = "\n".join(_render_row(expiring) for expiring in items)

    return f"""
<h2 style="font-family:sans-serif">Hi {escape(user.greeting_name)},</h2>
<p>The following items from your expiry tracker app are expiring <b>tomorrow</b>:</p>
<table style="border-collapse:collapse;background:#f0fdfa">
<tr>
<th style="{_HEADER_STYLE}">Item</th>
<th style="{_HEADER_STYLE}">Expiry Date</th>
</tr>
{rows}
</table>
<p style="margin-top:20px">
<a href="{escape(login_url, quote=True)}" style="{_BUTTON_STYLE}">Login to review</a>
</p>
<p style="color:#666;font-size:13px;">This is an automated reminder from your expiry tracker app.</p>
""".strip()
