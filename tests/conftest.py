import asyncio
from decimal import Decimal

import pytest

from qrmenu.data import STATIC_MENU
from qrmenu.errors import IdentityError, PersistenceError
from qrmenu.identity import LocalIdentityClient, SessionBootstrap
from qrmenu.models import MenuItem, Session
from qrmenu.notices import NoticeBoard
from qrmenu.ordering import OrderDesk


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.stopped = False

    def stop(self):
        self.stopped = True

    def fire(self):
        if not self.stopped:
            self.callback()


class FakeScheduler:
    """Stands in for App.set_timer; timers fire only when told to."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


class FakePersistence:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.release = None

    async def create_order(self, collection_path, order):
        self.calls.append((collection_path, order))
        if self.release is not None:
            await self.release.wait()
        if self.fail:
            raise PersistenceError("write failed")
        return f"order-{len(self.calls)}"

    def hold(self):
        """Make create_order block until the returned event is set."""
        self.release = asyncio.Event()
        return self.release


class UnreachableIdentity(LocalIdentityClient):
    async def sign_in_anonymously(self):
        raise IdentityError("identity provider unreachable")


@pytest.fixture
def menu():
    return {item.name: item for item in STATIC_MENU}


@pytest.fixture
def simit():
    return MenuItem(id="1", name="Simit", price=Decimal("15.00"), category="Kahvaltılık")


@pytest.fixture
def cay():
    return MenuItem(id="2", name="Çay", price=Decimal("10.00"), category="İçecekler")


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def notices(scheduler):
    return NoticeBoard(scheduler)


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def sessions(tmp_path):
    return SessionBootstrap(LocalIdentityClient(tmp_path / "identity.json"))


@pytest.fixture
def ready_session():
    return Session(user_id="user-1", ready=True)


@pytest.fixture
def desk(persistence, sessions, notices):
    return OrderDesk(persistence, sessions, notices, app_id="test-app")
