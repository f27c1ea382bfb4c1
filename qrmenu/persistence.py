"""Order persistence: Cloud Firestore over REST, or SQLite when offline."""

from __future__ import annotations

import re
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol
from uuid import uuid4

import httpx
import structlog

from qrmenu.errors import IdentityError, PersistenceError
from qrmenu.models import Order

log = structlog.get_logger(__name__)

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

TokenProvider = Callable[[], Awaitable[str | None]]


class PersistenceClient(Protocol):
    async def create_order(self, collection_path: str, order: Order) -> str:
        """Store an order and return its document id."""
        ...


def orders_collection_path(app_id: str, user_id: str) -> str:
    return f"artifacts/{app_id}/users/{user_id}/orders"


def menu_collection_path(app_id: str) -> str:
    return f"artifacts/{app_id}/menu"


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, (float, Decimal)):
        return {"doubleValue": float(value)}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in data.items()}


_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def _parse_timestamp(raw: str) -> datetime:
    # Firestore sends nanoseconds; datetime keeps microseconds.
    trimmed = _FRACTION_RE.sub(r".\1", raw).replace("Z", "+00:00")
    return datetime.fromisoformat(trimmed)


def decode_value(value: dict[str, Any]) -> Any:
    """Decode a Firestore REST ``Value`` into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


class FirestoreClient:
    """Thin Firestore REST client authorised with the user's id token."""

    def __init__(
        self,
        project_id: str,
        http: httpx.AsyncClient,
        token_provider: TokenProvider,
        database: str = "(default)",
    ) -> None:
        self._http = http
        self._token_provider = token_provider
        self.documents_url = f"{FIRESTORE_BASE_URL}/projects/{project_id}/databases/{database}/documents"

    async def create_order(self, collection_path: str, order: Order) -> str:
        return await self.add_document(collection_path, order.to_document())

    async def add_document(self, collection_path: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return that id."""
        url = f"{self.documents_url}/{collection_path.strip('/')}"
        try:
            headers = await self._headers()
            resp = await self._http.post(url, json={"fields": encode_fields(data)}, headers=headers)
            resp.raise_for_status()
            name = resp.json().get("name", "")
        except (httpx.HTTPError, IdentityError, ValueError) as exc:
            raise PersistenceError(f"Could not write to {collection_path}: {exc}") from exc

        doc_id = name.rsplit("/", 1)[-1]
        log.info("document_created", collection=collection_path, doc_id=doc_id)
        return doc_id

    async def list_documents(self, collection_path: str) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(doc_id, data)`` for every document in a collection."""
        url = f"{self.documents_url}/{collection_path.strip('/')}"
        documents: list[tuple[str, dict[str, Any]]] = []
        page_token: str | None = None
        try:
            headers = await self._headers()
            while True:
                params = {"pageToken": page_token} if page_token else None
                resp = await self._http.get(url, params=params, headers=headers)
                resp.raise_for_status()
                payload = resp.json()
                for doc in payload.get("documents", []):
                    doc_id = doc["name"].rsplit("/", 1)[-1]
                    documents.append((doc_id, decode_fields(doc.get("fields", {}))))
                page_token = payload.get("nextPageToken")
                if not page_token:
                    break
        except (httpx.HTTPError, IdentityError, KeyError, ValueError) as exc:
            raise PersistenceError(f"Could not read {collection_path}: {exc}") from exc
        return documents

    async def _headers(self) -> dict[str, str]:
        token = await self._token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteOrderStore:
    """Local order store used when no Firebase project is configured."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    collection_path TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    order_date INTEGER NOT NULL,
                    user_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    total TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS order_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_id TEXT NOT NULL,
                    line_index INTEGER NOT NULL,
                    item_id TEXT NOT NULL,
                    item_name TEXT NOT NULL,
                    price TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    FOREIGN KEY(order_id) REFERENCES orders(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_orders_collection
                    ON orders(collection_path);

                CREATE INDEX IF NOT EXISTS idx_order_items_order_id_line
                    ON order_items(order_id, line_index);
                """
            )

    async def create_order(self, collection_path: str, order: Order) -> str:
        order_id = uuid4().hex
        document = order.to_document()
        try:
            self.bootstrap_schema()
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO orders (id, collection_path, created_at, order_date, user_id, status, total)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        order_id,
                        collection_path,
                        _utc_now_iso(),
                        document["orderDate"],
                        order.user_id,
                        order.status,
                        order.total,
                    ),
                )
                for idx, line in enumerate(order.items):
                    conn.execute(
                        """
                        INSERT INTO order_items (order_id, line_index, item_id, item_name, price, quantity)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (order_id, idx, line.id, line.name, str(line.price), line.quantity),
                    )
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"Could not save order: {exc}") from exc

        log.info("order_saved_locally", order_id=order_id, collection=collection_path, lines=len(order.items))
        return order_id
