"""Tests for collaborator wiring."""

import httpx
import pytest

from qrmenu import main
from qrmenu.config import FirebaseConfig
from qrmenu.data import FirestoreMenuSource, StaticMenuSource
from qrmenu.errors import ConfigError
from qrmenu.identity import FirebaseIdentityClient, LocalIdentityClient
from qrmenu.persistence import FirestoreClient, SqliteOrderStore


@pytest.fixture(autouse=True)
def local_paths(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "DB_PATH", str(tmp_path / "orders.db"))
    monkeypatch.setattr(main, "CREDENTIALS_PATH", str(tmp_path / "identity.json"))


async def test_offline_mode_uses_local_collaborators(tmp_path):
    async with httpx.AsyncClient() as http:
        app = main.build_app(None, http, menu_source="static")
    assert isinstance(app.desk.persistence, SqliteOrderStore)
    assert isinstance(app.sessions.identity, LocalIdentityClient)
    assert isinstance(app.menu_source, StaticMenuSource)
    assert (tmp_path / "orders.db").exists()


async def test_firebase_mode_uses_rest_clients():
    async with httpx.AsyncClient() as http:
        app = main.build_app(FirebaseConfig(api_key="k", project_id="p"), http, menu_source="firestore")
    assert isinstance(app.desk.persistence, FirestoreClient)
    assert isinstance(app.sessions.identity, FirebaseIdentityClient)
    assert isinstance(app.menu_source, FirestoreMenuSource)


async def test_firestore_menu_needs_firebase():
    async with httpx.AsyncClient() as http:
        with pytest.raises(ConfigError):
            main.build_app(None, http, menu_source="firestore")


async def test_unknown_menu_source_is_rejected():
    async with httpx.AsyncClient() as http:
        with pytest.raises(ConfigError):
            main.build_app(FirebaseConfig(api_key="k", project_id="p"), http, menu_source="csv")
