"""Domain models for qr-menu-order."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

ORDER_STATUS_PENDING = "pending"

_CENTS = Decimal("0.01")


def format_amount(amount: Decimal) -> str:
    """Round half-up to two places and render as a plain decimal string."""
    return str(amount.quantize(_CENTS, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class MenuItem:
    """A dish or drink on the menu."""

    id: str
    name: str
    price: Decimal
    category: str
    image_url: str = ""

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")


@dataclass
class CartLine:
    """One distinct menu item in the cart with its quantity."""

    id: str
    name: str
    price: Decimal
    category: str
    image_url: str
    quantity: int = 1

    @classmethod
    def from_menu_item(cls, item: MenuItem, quantity: int = 1) -> CartLine:
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            category=item.category,
            image_url=item.image_url,
            quantity=quantity,
        )

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderLine:
    """A cart line as it is frozen into a placed order."""

    id: str
    name: str
    price: Decimal
    quantity: int

    @classmethod
    def from_cart_line(cls, line: CartLine) -> OrderLine:
        return cls(id=line.id, name=line.name, price=line.price, quantity=line.quantity)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class Order:
    """Snapshot of a cart taken at checkout time."""

    items: tuple[OrderLine, ...]
    total: str
    order_date: datetime
    user_id: str
    status: str = ORDER_STATUS_PENDING

    def to_document(self) -> dict[str, Any]:
        """Return the record written to the document store."""
        return {
            "items": [line.to_document() for line in self.items],
            "total": self.total,
            "orderDate": int(self.order_date.timestamp() * 1000),
            "status": self.status,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class Session:
    """Identity state as seen by the cart engine."""

    user_id: str | None = None
    ready: bool = False

    @property
    def connected(self) -> bool:
        return self.ready and bool(self.user_id)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notice:
    """A transient user-facing status message."""

    text: str
    level: NoticeLevel
    duration: float
