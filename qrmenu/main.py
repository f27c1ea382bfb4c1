"""Entry point for the qr-menu-order Textual app."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from qrmenu.config import (
    APP_ID,
    CREDENTIALS_PATH,
    DB_PATH,
    FIREBASE_CONFIG_RAW,
    HTTP_TIMEOUT_SECONDS,
    INITIAL_AUTH_TOKEN,
    LOG_PATH,
    MENU_SOURCE,
    FirebaseConfig,
    load_firebase_config,
)
from qrmenu.data import FirestoreMenuSource, MenuSource, StaticMenuSource
from qrmenu.errors import ConfigError
from qrmenu.identity import FirebaseIdentityClient, IdentityClient, LocalIdentityClient, SessionBootstrap
from qrmenu.log import configure_logging
from qrmenu.menu_app import QrMenuApp
from qrmenu.persistence import FirestoreClient, PersistenceClient, SqliteOrderStore

log = structlog.get_logger(__name__)


def build_app(firebase: FirebaseConfig | None, http: httpx.AsyncClient, menu_source: str = MENU_SOURCE) -> QrMenuApp:
    """Wire the identity, persistence and menu collaborators into the app."""
    identity: IdentityClient
    persistence: PersistenceClient
    menu: MenuSource

    if firebase is None:
        if menu_source != "static":
            raise ConfigError(f"MENU_SOURCE={menu_source!r} needs FIREBASE_CONFIG")
        log.info("offline_mode", db_path=DB_PATH)
        identity = LocalIdentityClient(CREDENTIALS_PATH)
        store = SqliteOrderStore(DB_PATH)
        store.bootstrap_schema()
        persistence = store
        menu = StaticMenuSource()
    else:
        log.info("firebase_mode", project_id=firebase.project_id, app_id=APP_ID)
        firebase_identity = FirebaseIdentityClient(firebase.api_key, http, CREDENTIALS_PATH)
        firestore = FirestoreClient(firebase.project_id, http, firebase_identity.get_id_token)
        identity = firebase_identity
        persistence = firestore
        if menu_source == "firestore":
            menu = FirestoreMenuSource(firestore, APP_ID)
        elif menu_source == "static":
            menu = StaticMenuSource()
        else:
            raise ConfigError(f"Unknown MENU_SOURCE {menu_source!r}")

    sessions = SessionBootstrap(identity, initial_token=INITIAL_AUTH_TOKEN)
    return QrMenuApp(persistence, sessions, menu, app_id=APP_ID)


async def run() -> None:
    configure_logging(LOG_PATH)
    firebase = load_firebase_config(FIREBASE_CONFIG_RAW)
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as http:
        app = build_app(firebase, http)
        await app.run_async()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
