"""Rendering helpers for menu rows, cart lines and notices."""

from __future__ import annotations

from decimal import Decimal

from rich.text import Text

from qrmenu.config import CURRENCY
from qrmenu.constant import CATEGORY_STYLES, DEFAULT_CATEGORY_STYLE
from qrmenu.models import CartLine, MenuItem, Notice, NoticeLevel, Session, format_amount

NOTICE_STYLES: dict[NoticeLevel, str] = {
    NoticeLevel.SUCCESS: "bold #ffffff on #2e8b57",
    NoticeLevel.ERROR: "bold #ffffff on #c0392b",
    NoticeLevel.INFO: "bold #ffffff on #2f6db5",
}


def badge_style(category: str) -> str:
    """Return a consistent badge style for category tags."""
    return CATEGORY_STYLES.get(category, DEFAULT_CATEGORY_STYLE)


def format_price(amount: Decimal) -> str:
    return f"{format_amount(amount)} {CURRENCY}"


def format_menu_row(item: MenuItem) -> Text:
    """Render a menu row with a colored category tag."""
    text = Text()
    if item.category:
        text.append(f" {item.category} ", style=badge_style(item.category))
        text.append(" ")
    text.append(item.name, style="bold")
    text.append(f"  {format_price(item.price)}")
    return text


def format_cart_line(line: CartLine) -> Text:
    text = Text()
    text.append(line.name, style="bold")
    text.append(f" ({format_price(line.price)}/each)", style="dim")
    text.append(f"  x{line.quantity}")
    text.append(f"  = {format_price(line.subtotal)}")
    return text


def format_notice(notice: Notice | None) -> Text:
    if notice is None:
        return Text()
    return Text(f" {notice.text} ", style=NOTICE_STYLES[notice.level])


def format_session(session: Session) -> str:
    if not session.ready:
        return "Connecting..."
    return f"User ID: {session.user_id or 'Guest'}"
