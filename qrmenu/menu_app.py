"""Main Textual app class."""

from __future__ import annotations

import structlog
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import Header, Static

from qrmenu.config import APP_ID
from qrmenu.data import MenuSource
from qrmenu.errors import BootstrapError, IdentityError, PersistenceError
from qrmenu.identity import SessionBootstrap
from qrmenu.models import CartLine, MenuItem, Notice, Session
from qrmenu.notices import NoticeBoard
from qrmenu.ordering import OrderDesk
from qrmenu.persistence import PersistenceClient
from qrmenu.rendering import format_cart_line, format_menu_row, format_notice, format_price, format_session

log = structlog.get_logger(__name__)

MSG_LOAD_FAILED = "An error occurred while loading the app."
MSG_SCAN_DONE = "QR code scan simulated. Menu loaded."
KEY_HELP = "Tab pane  Enter add  +/- qty  D remove  S scan QR  Ctrl+S order  Ctrl+Q quit"


class QrMenuApp(App):
    """A Textual app for browsing the menu and placing an order."""

    TITLE = "QR Menu & Order"
    SUB_TITLE = "Connecting..."

    CSS = """
    Screen {
        layout: vertical;
    }

    #notice {
        height: 1;
        content-align: center middle;
        width: 100%;
    }

    #main-layout {
        height: 1fr;
    }

    #menu-pane {
        width: 3fr;
        border: round $secondary;
        padding: 1;
    }

    #cart-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #menu-pane.active, #cart-pane.active {
        border: heavy $primary;
    }

    #menu-list, #cart-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-total {
        text-style: bold;
        margin-top: 1;
    }

    #status-bar {
        height: 2;
        padding: 0 1;
        color: $text-muted;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    pane = reactive("menu")
    menu_index = reactive(0)
    cart_index = reactive(0)

    BINDINGS = [
        ("up", "move(-1)", "Up"),
        ("down", "move(1)", "Down"),
        ("k", "move(-1)", "Up"),
        ("j", "move(1)", "Down"),
        Binding("tab", "switch_pane", "Switch pane", priority=True),
        ("enter", "add_selected", "Add"),
        ("a", "add_selected", "Add"),
        ("plus", "increase_selected", "+1"),
        ("minus", "decrease_selected", "-1"),
        ("d", "remove_selected", "Remove"),
        ("delete", "remove_selected", "Remove"),
        ("s", "simulate_scan", "Scan QR"),
        Binding("ctrl+s", "checkout", "Place order", priority=True),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        persistence: PersistenceClient,
        sessions: SessionBootstrap,
        menu_source: MenuSource,
        app_id: str = APP_ID,
    ) -> None:
        super().__init__()
        self.sessions = sessions
        self.menu_source = menu_source
        self.menu_items: list[MenuItem] = []
        self.notices = NoticeBoard(self.set_timer, on_change=self._on_notice)
        self.desk = OrderDesk(persistence, sessions, self.notices, app_id)
        sessions.subscribe(self._on_session)

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(id="notice")
        with Horizontal(id="main-layout"):
            with Vertical(id="menu-pane"):
                yield Static("Menu", classes="pane-title")
                yield Static("Loading menu...", id="menu-list")
            with Vertical(id="cart-pane"):
                yield Static("Cart", classes="pane-title")
                yield Static(id="cart-list")
                yield Static(id="cart-total")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self._refresh_all()
        self.run_worker(self._start(), group="startup", exclusive=True)

    def on_unmount(self) -> None:
        self.sessions.close()

    async def _start(self) -> None:
        try:
            await self.sessions.start()
        except BootstrapError:
            self.notices.error(MSG_LOAD_FAILED)
        await self._load_menu()

    async def _load_menu(self) -> bool:
        try:
            items = await self.menu_source.load()
        except (PersistenceError, IdentityError):
            log.exception("menu_load_failed")
            self.notices.error(MSG_LOAD_FAILED)
            return False

        self.menu_items = items
        if self.menu_index >= len(items):
            self.menu_index = 0
        log.info("menu_loaded", items=len(items))
        self._refresh_menu()
        return True

    async def _scan(self) -> None:
        if await self._load_menu():
            self.notices.info(MSG_SCAN_DONE)

    async def _checkout(self) -> None:
        await self.desk.checkout()
        self._refresh_cart()

    def action_move(self, delta: int) -> None:
        if self.pane == "menu":
            if not self.menu_items:
                return
            self.menu_index = (self.menu_index + delta) % len(self.menu_items)
            self._refresh_menu()
            return

        lines = self.desk.lines
        if not lines:
            return
        self.cart_index = (self.cart_index + delta) % len(lines)
        self._refresh_cart()

    def action_switch_pane(self) -> None:
        self.pane = "cart" if self.pane == "menu" else "menu"
        self._refresh_all()

    def action_add_selected(self) -> None:
        if self.pane == "cart":
            self.action_increase_selected()
            return

        item = self._selected_menu_item()
        if item is None:
            return
        self.desk.add_item(item)
        self._refresh_cart()

    def action_increase_selected(self) -> None:
        if self.pane == "menu":
            self.action_add_selected()
            return

        line = self._selected_cart_line()
        if line is None:
            return
        self.desk.increase_quantity(line.id)
        self._refresh_cart()

    def action_decrease_selected(self) -> None:
        item_id = self._selected_item_id()
        if item_id is None:
            return
        self.desk.decrease_quantity(item_id)
        self._refresh_cart()

    def action_remove_selected(self) -> None:
        item_id = self._selected_item_id()
        if item_id is None:
            return
        self.desk.remove_item(item_id)
        self._refresh_cart()

    def action_checkout(self) -> None:
        self.run_worker(self._checkout(), group="checkout")

    def action_simulate_scan(self) -> None:
        self.run_worker(self._scan(), group="scan")

    def _selected_menu_item(self) -> MenuItem | None:
        if not (0 <= self.menu_index < len(self.menu_items)):
            return None
        return self.menu_items[self.menu_index]

    def _selected_cart_line(self) -> CartLine | None:
        lines = self.desk.lines
        if not (0 <= self.cart_index < len(lines)):
            return None
        return lines[self.cart_index]

    def _selected_item_id(self) -> str | None:
        if self.pane == "cart":
            line = self._selected_cart_line()
            return line.id if line is not None else None
        item = self._selected_menu_item()
        return item.id if item is not None else None

    def _on_notice(self, notice: Notice | None) -> None:
        try:
            widget = self.query_one("#notice", Static)
        except NoMatches:
            return
        widget.update(format_notice(notice))

    def _on_session(self, session: Session) -> None:
        self.sub_title = "Ready" if session.ready else "Connecting..."
        self._refresh_status()

    def _refresh_all(self) -> None:
        self._refresh_menu()
        self._refresh_cart()
        self._refresh_status()

    def _refresh_menu(self) -> None:
        try:
            pane = self.query_one("#menu-pane", Vertical)
            menu_widget = self.query_one("#menu-list", Static)
        except NoMatches:
            return
        pane.set_class(self.pane == "menu", "active")
        if not self.menu_items:
            return

        lines = Text()
        for idx, item in enumerate(self.menu_items):
            if idx > 0:
                lines.append("\n")
            selected = self.pane == "menu" and idx == self.menu_index
            lines.append("➤ " if selected else "  ")
            lines.append_text(format_menu_row(item))
        menu_widget.update(lines)

    def _refresh_cart(self) -> None:
        try:
            pane = self.query_one("#cart-pane", Vertical)
            cart_widget = self.query_one("#cart-list", Static)
            total_widget = self.query_one("#cart-total", Static)
        except NoMatches:
            return
        pane.set_class(self.pane == "cart", "active")
        total_widget.update(f"Total: {format_price(self.desk.cart.total_amount())}")

        cart_lines = self.desk.lines
        if not cart_lines:
            self.cart_index = 0
            cart_widget.update("Your cart is empty.")
            return

        if self.cart_index >= len(cart_lines):
            self.cart_index = len(cart_lines) - 1

        lines = Text()
        for idx, line in enumerate(cart_lines):
            if idx > 0:
                lines.append("\n")
            selected = self.pane == "cart" and idx == self.cart_index
            lines.append("➤ " if selected else "  ")
            lines.append_text(format_cart_line(line))
        cart_widget.update(lines)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        bar.update(f"{format_session(self.sessions.session)}\n{KEY_HELP}")
