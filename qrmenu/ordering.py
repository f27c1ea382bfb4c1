"""The order desk: cart operations, notices and checkout."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from qrmenu.cart import Cart
from qrmenu.config import NOTICE_LONG_SECONDS, NOTICE_SHORT_SECONDS
from qrmenu.errors import IdentityError, PersistenceError, ValidationError
from qrmenu.identity import SessionBootstrap
from qrmenu.models import CartLine, MenuItem, Order, Session
from qrmenu.notices import NoticeBoard
from qrmenu.persistence import PersistenceClient, orders_collection_path

log = structlog.get_logger(__name__)

MSG_ITEM_ADDED = "{name} added to cart."
MSG_ITEM_REMOVED = "Item removed from cart."
MSG_CART_EMPTY = "Your cart is empty, please add items."
MSG_NOT_CONNECTED = "Could not connect to place the order."
MSG_CHECKOUT_BUSY = "Order is already being sent."
MSG_ORDER_PLACED = "Your order has been received!"
MSG_ORDER_FAILED = "An error occurred while sending your order."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderDesk:
    """Cart engine used by the UI.

    Collaborators are injected: ``persistence`` stores placed orders and
    ``sessions`` supplies the current user. Every operation runs to
    completion synchronously except ``checkout``, which awaits the store
    write before it takes the placed lines off the cart.
    """

    def __init__(
        self,
        persistence: PersistenceClient,
        sessions: SessionBootstrap,
        notices: NoticeBoard,
        app_id: str,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.cart = Cart()
        self.persistence = persistence
        self.sessions = sessions
        self.notices = notices
        self.app_id = app_id
        self._clock = clock
        self._checkout_in_flight = False

    @property
    def checkout_in_flight(self) -> bool:
        return self._checkout_in_flight

    @property
    def lines(self) -> list[CartLine]:
        return self.cart.lines

    def add_item(self, item: MenuItem) -> CartLine:
        line = self.cart.add(item)
        self.notices.success(MSG_ITEM_ADDED.format(name=item.name), NOTICE_SHORT_SECONDS)
        log.debug("item_added", item_id=item.id, quantity=line.quantity)
        return line

    def increase_quantity(self, item_id: str) -> CartLine | None:
        line = self.cart.increase(item_id)
        if line is not None:
            self.notices.success(MSG_ITEM_ADDED.format(name=line.name), NOTICE_SHORT_SECONDS)
            log.debug("item_increased", item_id=item_id, quantity=line.quantity)
        return line

    def decrease_quantity(self, item_id: str) -> CartLine | None:
        line = self.cart.decrease(item_id)
        if line is not None:
            log.debug("item_decreased", item_id=item_id, quantity=line.quantity)
        return line

    def remove_item(self, item_id: str) -> CartLine | None:
        line = self.cart.remove(item_id)
        self.notices.info(MSG_ITEM_REMOVED, NOTICE_SHORT_SECONDS)
        if line is not None:
            log.debug("item_removed", item_id=item_id)
        return line

    def total(self) -> str:
        return self.cart.total()

    def build_order(self, session: Session) -> Order:
        """Snapshot the cart; raises ValidationError when checkout is not allowed."""
        if self.cart.is_empty():
            raise ValidationError(MSG_CART_EMPTY)
        if not session.connected:
            raise ValidationError(MSG_NOT_CONNECTED)
        assert session.user_id is not None
        return Order(
            items=self.cart.snapshot(),
            total=self.cart.total(),
            order_date=self._clock(),
            user_id=session.user_id,
        )

    async def checkout(self, session: Session | None = None) -> str | None:
        """Place the cart as an order; returns the stored id or None."""
        if session is None:
            session = self.sessions.session

        if self._checkout_in_flight:
            log.info("checkout_blocked", reason="in_flight", uid=session.user_id)
            self.notices.info(MSG_CHECKOUT_BUSY, NOTICE_SHORT_SECONDS)
            return None

        try:
            order = self.build_order(session)
        except ValidationError as exc:
            log.info("checkout_blocked", reason=str(exc), uid=session.user_id, lines=len(self.cart))
            self.notices.error(str(exc), NOTICE_LONG_SECONDS)
            return None

        assert session.user_id is not None
        path = orders_collection_path(self.app_id, session.user_id)
        self._checkout_in_flight = True
        try:
            order_id = await self.persistence.create_order(path, order)
        except (PersistenceError, IdentityError):
            log.exception("checkout_failed", uid=order.user_id, collection=path, lines=len(order.items))
            self.notices.error(MSG_ORDER_FAILED, NOTICE_LONG_SECONDS)
            return None
        finally:
            self._checkout_in_flight = False

        # Lines added while the write was in flight stay in the cart.
        self.cart.discard(order.items)
        self.notices.success(MSG_ORDER_PLACED, NOTICE_LONG_SECONDS)
        log.info("checkout_saved", uid=order.user_id, order_id=order_id, lines=len(order.items), total=order.total)
        return order_id
