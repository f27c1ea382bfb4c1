"""Menu sources: the compiled-in list or a Firestore collection."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import structlog

from qrmenu.constant import MENU_ITEMS, PLACEHOLDER_IMAGE_URL
from qrmenu.errors import PersistenceError
from qrmenu.models import MenuItem
from qrmenu.persistence import FirestoreClient, menu_collection_path

log = structlog.get_logger(__name__)


def menu_item_from_record(item_id: str, record: dict[str, Any]) -> MenuItem:
    """Build a MenuItem from a loosely-typed record (static or stored)."""
    try:
        # str() first so float prices keep their printed value, not binary noise.
        price = Decimal(str(record["price"]))
    except (KeyError, InvalidOperation) as exc:
        raise ValueError(f"menu item {item_id!r} has no valid price") from exc

    return MenuItem(
        id=item_id,
        name=str(record.get("name") or item_id),
        price=price,
        category=str(record.get("category") or ""),
        image_url=str(record.get("imageUrl") or record.get("image_url") or PLACEHOLDER_IMAGE_URL),
    )


STATIC_MENU: list[MenuItem] = [menu_item_from_record(raw["id"], raw) for raw in MENU_ITEMS]


class MenuSource(Protocol):
    async def load(self) -> list[MenuItem]: ...


class StaticMenuSource:
    """The menu compiled into the app."""

    def __init__(self, items: list[MenuItem] | None = None) -> None:
        self._items = list(items if items is not None else STATIC_MENU)

    async def load(self) -> list[MenuItem]:
        return list(self._items)


class FirestoreMenuSource:
    """Menu documents under ``artifacts/<app_id>/menu``; the doc id is the item id."""

    def __init__(self, client: FirestoreClient, app_id: str) -> None:
        self._client = client
        self._path = menu_collection_path(app_id)

    async def load(self) -> list[MenuItem]:
        items: list[MenuItem] = []
        for doc_id, record in await self._client.list_documents(self._path):
            try:
                items.append(menu_item_from_record(doc_id, record))
            except ValueError as exc:
                log.warning("menu_item_skipped", doc_id=doc_id, error=str(exc))
        if not items:
            raise PersistenceError(f"No menu items found in {self._path}")
        return items

