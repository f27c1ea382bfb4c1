"""In-memory shopping cart."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from qrmenu.models import CartLine, MenuItem, OrderLine, format_amount


class Cart:
    """Insertion-ordered cart lines keyed by menu item id."""

    def __init__(self) -> None:
        self._lines: list[CartLine] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id: object) -> bool:
        return self._find(item_id) is not None

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, item_id: str) -> CartLine | None:
        return self._find(item_id)

    def add(self, item: MenuItem) -> CartLine:
        """Add one unit of an item, merging into its existing line."""
        line = self._find(item.id)
        if line is not None:
            line.quantity += 1
            return line

        line = CartLine.from_menu_item(item)
        self._lines.append(line)
        return line

    def increase(self, item_id: str) -> CartLine | None:
        line = self._find(item_id)
        if line is None:
            return None
        line.quantity += 1
        return line

    def decrease(self, item_id: str) -> CartLine | None:
        """Take one unit off a line; the line is dropped when it reaches zero."""
        line = self._find(item_id)
        if line is None:
            return None

        line.quantity -= 1
        if line.quantity <= 0:
            self._lines.remove(line)
        return line

    def remove(self, item_id: str) -> CartLine | None:
        line = self._find(item_id)
        if line is not None:
            self._lines.remove(line)
        return line

    def clear(self) -> None:
        self._lines.clear()

    def discard(self, items: Iterable[OrderLine]) -> None:
        """Take placed quantities off the cart, keeping anything added since."""
        for item in items:
            line = self._find(item.id)
            if line is None:
                continue
            line.quantity -= item.quantity
            if line.quantity <= 0:
                self._lines.remove(line)

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def total_amount(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal("0"))

    def total(self) -> str:
        return format_amount(self.total_amount())

    def snapshot(self) -> tuple[OrderLine, ...]:
        """Copy the lines into immutable order lines."""
        return tuple(OrderLine.from_cart_line(line) for line in self._lines)

    def _find(self, item_id: object) -> CartLine | None:
        for line in self._lines:
            if line.id == item_id:
                return line
        return None
