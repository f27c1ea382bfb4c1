"""Anonymous per-device identity and the session bootstrap."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Protocol
from uuid import uuid4

import httpx
import structlog

from qrmenu.errors import BootstrapError, IdentityError
from qrmenu.models import Session

log = structlog.get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh id tokens this many seconds before they actually expire.
TOKEN_REFRESH_MARGIN_SECONDS = 60

AuthListener = Callable[[str | None], None]
SessionListener = Callable[[Session], None]


class IdentityClient(Protocol):
    def get_current_user(self) -> str | None: ...

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]: ...

    async def restore(self) -> None: ...

    async def sign_in_anonymously(self) -> str: ...

    async def sign_in_with_token(self, token: str) -> str: ...

    async def get_id_token(self) -> str | None: ...


class _AuthState:
    """Current user id plus auth-change listeners."""

    def __init__(self) -> None:
        self._user_id: str | None = None
        self._listeners: list[AuthListener] = []

    def get_current_user(self) -> str | None:
        return self._user_id

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user_id: str | None) -> None:
        if user_id == self._user_id:
            return
        self._user_id = user_id
        for listener in list(self._listeners):
            listener(user_id)


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("credentials_unreadable", path=str(path), error=str(exc))
        return None
    return data if isinstance(data, dict) else None


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@dataclass
class Credentials:
    uid: str
    id_token: str
    refresh_token: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at - TOKEN_REFRESH_MARGIN_SECONDS


class FirebaseIdentityClient(_AuthState):
    """Firebase Authentication over the Identity Toolkit REST API.

    Credentials are cached in ``credentials_path`` so the anonymous user id
    survives restarts on the same device.
    """

    def __init__(
        self,
        api_key: str,
        http: httpx.AsyncClient,
        credentials_path: str | Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._http = http
        self._credentials_path = Path(credentials_path)
        self._clock = clock
        self._credentials: Credentials | None = None

    async def restore(self) -> None:
        data = _read_json(self._credentials_path)
        if data is None:
            return
        try:
            credentials = Credentials(**data)
        except TypeError:
            log.warning("credentials_malformed", path=str(self._credentials_path))
            return

        self._credentials = credentials
        if credentials.expired(self._clock()):
            try:
                await self._refresh()
            except IdentityError as exc:
                if not isinstance(exc.__cause__, httpx.HTTPStatusError):
                    raise
                # Revoked or deleted user: start over with a fresh sign-in.
                log.warning("credentials_rejected", error=str(exc))
                self._credentials = None
                self._credentials_path.unlink(missing_ok=True)
                return
        self._set_user(self._credentials.uid)

    async def sign_in_anonymously(self) -> str:
        payload = await self._post(f"{IDENTITY_TOOLKIT_URL}/accounts:signUp", json={"returnSecureToken": True})
        return self._accept(_reply_field(payload, "localId"), payload)

    async def sign_in_with_token(self, token: str) -> str:
        payload = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithCustomToken",
            json={"token": token, "returnSecureToken": True},
        )
        lookup = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:lookup",
            json={"idToken": _reply_field(payload, "idToken")},
        )
        try:
            uid = lookup["users"][0]["localId"]
        except (KeyError, IndexError, TypeError) as exc:
            raise IdentityError("Token sign-in returned no user") from exc
        return self._accept(uid, payload)

    async def get_id_token(self) -> str | None:
        if self._credentials is None:
            return None
        if self._credentials.expired(self._clock()):
            await self._refresh()
        return self._credentials.id_token

    async def _refresh(self) -> None:
        assert self._credentials is not None
        payload = await self._post(
            SECURE_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": self._credentials.refresh_token},
        )
        self._store(
            Credentials(
                uid=payload.get("user_id", self._credentials.uid),
                id_token=_reply_field(payload, "id_token"),
                refresh_token=_reply_field(payload, "refresh_token"),
                expires_at=self._clock() + _expires_in(payload, "expires_in"),
            )
        )
        log.debug("id_token_refreshed", uid=self._credentials.uid)

    def _accept(self, uid: str, payload: dict[str, Any]) -> str:
        self._store(
            Credentials(
                uid=uid,
                id_token=_reply_field(payload, "idToken"),
                refresh_token=_reply_field(payload, "refreshToken"),
                expires_at=self._clock() + _expires_in(payload, "expiresIn"),
            )
        )
        log.info("signed_in", uid=uid)
        self._set_user(uid)
        return uid

    def _store(self, credentials: Credentials) -> None:
        self._credentials = credentials
        _write_json(self._credentials_path, asdict(credentials))

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._http.post(url, params={"key": self._api_key}, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise IdentityError(f"Identity provider refused the request: {_error_message(exc.response)}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}") from exc


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {resp.status_code}"


def _reply_field(payload: Any, key: str) -> str:
    try:
        value = payload[key]
    except (KeyError, TypeError) as exc:
        raise IdentityError(f"Identity provider reply is missing {key!r}") from exc
    if not isinstance(value, str) or not value:
        raise IdentityError(f"Identity provider reply has an invalid {key!r}")
    return value


def _expires_in(payload: Any, key: str) -> int:
    try:
        return int(payload[key])
    except (KeyError, TypeError, ValueError) as exc:
        raise IdentityError(f"Identity provider reply has an invalid {key!r}") from exc


class LocalIdentityClient(_AuthState):
    """Offline stand-in: a random device id kept in a local file."""

    def __init__(self, credentials_path: str | Path) -> None:
        super().__init__()
        self._credentials_path = Path(credentials_path)

    async def restore(self) -> None:
        data = _read_json(self._credentials_path)
        if data and data.get("uid"):
            self._set_user(str(data["uid"]))

    async def sign_in_anonymously(self) -> str:
        uid = uuid4().hex
        try:
            _write_json(self._credentials_path, {"uid": uid})
        except OSError as exc:
            raise IdentityError(f"Could not store device id: {exc}") from exc
        log.info("signed_in_locally", uid=uid)
        self._set_user(uid)
        return uid

    async def sign_in_with_token(self, token: str) -> str:
        raise IdentityError("Custom token sign-in needs a Firebase project")

    async def get_id_token(self) -> str | None:
        return None


class SessionBootstrap:
    """Resolves the user id once at startup and publishes the session."""

    def __init__(self, identity: IdentityClient, initial_token: str | None = None) -> None:
        self.identity = identity
        self._initial_token = initial_token
        self._session = Session()
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def session(self) -> Session:
        return self._session

    def subscribe(self, callback: SessionListener) -> None:
        self._listeners.append(callback)

    async def start(self) -> Session:
        """Sign in if needed; raises BootstrapError and stays not-ready on failure."""
        try:
            await self.identity.restore()
            if self._unsubscribe is None:
                self._unsubscribe = self.identity.on_auth_change(self._on_auth_change)
            if self.identity.get_current_user() is None:
                if self._initial_token:
                    log.info("signing_in_with_token")
                    await self.identity.sign_in_with_token(self._initial_token)
                else:
                    log.info("signing_in_anonymously")
                    await self.identity.sign_in_anonymously()
        except IdentityError as exc:
            log.exception("bootstrap_failed")
            self._publish(Session(user_id=self.identity.get_current_user(), ready=False))
            raise BootstrapError(str(exc)) from exc

        self._publish(Session(user_id=self.identity.get_current_user(), ready=True))
        log.info("session_ready", uid=self._session.user_id)
        return self._session

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_auth_change(self, user_id: str | None) -> None:
        self._publish(Session(user_id=user_id, ready=self._session.ready))

    def _publish(self, session: Session) -> None:
        if session == self._session:
            return
        self._session = session
        for listener in list(self._listeners):
            listener(session)
