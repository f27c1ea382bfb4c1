"""Runtime configuration for identity, persistence and the UI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from qrmenu.errors import ConfigError

load_dotenv()

APP_ID = os.getenv("APP_ID", "default-app-id")
FIREBASE_CONFIG_RAW = os.getenv("FIREBASE_CONFIG", "")
INITIAL_AUTH_TOKEN = os.getenv("INITIAL_AUTH_TOKEN") or None
MENU_SOURCE = os.getenv("MENU_SOURCE", "static")

DB_PATH = os.getenv("DB_PATH", "data/orders.db")
CREDENTIALS_PATH = os.getenv("CREDENTIALS_PATH", "data/identity.json")
LOG_PATH = os.getenv("QRMENU_LOG_PATH", "logs/qrmenu.log")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# Notice lifetimes in seconds.
NOTICE_SHORT_SECONDS = 2.0
NOTICE_LONG_SECONDS = 3.0

CURRENCY = "TL"


@dataclass(frozen=True)
class FirebaseConfig:
    """The subset of the web SDK config object the REST clients need."""

    api_key: str
    project_id: str


def load_firebase_config(raw: str) -> FirebaseConfig | None:
    """Parse a FIREBASE_CONFIG JSON string; empty means offline mode."""
    if not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"FIREBASE_CONFIG is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("FIREBASE_CONFIG must be a JSON object")

    api_key = data.get("apiKey")
    project_id = data.get("projectId")
    if not api_key or not project_id:
        raise ConfigError("FIREBASE_CONFIG needs both apiKey and projectId")
    return FirebaseConfig(api_key=str(api_key), project_id=str(project_id))
