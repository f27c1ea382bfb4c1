"""Tests for the order desk (cart engine with notices and checkout)."""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
from structlog.testing import capture_logs

from qrmenu.errors import IdentityError
from qrmenu.identity import FirebaseIdentityClient
from qrmenu.models import NoticeLevel, OrderLine, Session
from qrmenu.ordering import (
    MSG_CART_EMPTY,
    MSG_CHECKOUT_BUSY,
    MSG_ITEM_REMOVED,
    MSG_NOT_CONNECTED,
    MSG_ORDER_FAILED,
    MSG_ORDER_PLACED,
    OrderDesk,
)
from qrmenu.persistence import FirestoreClient


class TestCartOperations:
    def test_add_item_posts_short_success_notice(self, desk, notices, simit):
        desk.add_item(simit)
        assert notices.current.text == "Simit added to cart."
        assert notices.current.level == NoticeLevel.SUCCESS
        assert notices.current.duration == 2.0

    def test_remove_item_posts_info_notice(self, desk, notices, simit):
        desk.add_item(simit)
        desk.remove_item("1")
        assert notices.current.text == MSG_ITEM_REMOVED
        assert notices.current.level == NoticeLevel.INFO
        assert desk.lines == []

    def test_decrease_posts_no_notice(self, desk, notices, scheduler, simit):
        desk.add_item(simit)
        desk.add_item(simit)
        posted = len(scheduler.timers)
        desk.decrease_quantity("1")
        assert len(scheduler.timers) == posted
        assert desk.cart.get("1").quantity == 1

    def test_increase_quantity_adds_one_unit(self, desk, simit):
        desk.add_item(simit)
        desk.increase_quantity("1")
        assert desk.cart.get("1").quantity == 2

    def test_scenario_total(self, desk, simit, cay):
        desk.add_item(simit)
        desk.add_item(cay)
        desk.add_item(cay)
        assert [(line.name, line.quantity) for line in desk.lines] == [("Simit", 1), ("Çay", 2)]
        assert desk.total() == "35.00"


class TestCheckoutPreconditions:
    async def test_empty_cart_never_calls_store(self, desk, persistence, notices, ready_session):
        assert await desk.checkout(ready_session) is None
        assert persistence.calls == []
        assert notices.current.text == MSG_CART_EMPTY
        assert notices.current.level == NoticeLevel.ERROR
        assert notices.current.duration == 3.0

    async def test_not_ready_session_is_refused(self, desk, persistence, notices, simit):
        desk.add_item(simit)
        assert await desk.checkout(Session(user_id="user-1", ready=False)) is None
        assert persistence.calls == []
        assert notices.current.text == MSG_NOT_CONNECTED
        assert desk.cart.get("1").quantity == 1

    async def test_missing_user_id_is_refused(self, desk, persistence, notices, simit):
        desk.add_item(simit)
        assert await desk.checkout(Session(user_id=None, ready=True)) is None
        assert persistence.calls == []
        assert notices.current.text == MSG_NOT_CONNECTED

    async def test_defaults_to_bootstrap_session(self, desk, persistence, notices, simit):
        desk.add_item(simit)
        # The bootstrap has not started yet.
        assert await desk.checkout() is None
        assert notices.current.text == MSG_NOT_CONNECTED

        await desk.sessions.start()
        assert await desk.checkout() == "order-1"
        path, _ = persistence.calls[0]
        assert path == f"artifacts/test-app/users/{desk.sessions.session.user_id}/orders"


class TestCheckout:
    async def test_success_writes_snapshot_and_clears_cart(self, persistence, sessions, notices, simit, cay):
        placed_at = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        desk = OrderDesk(persistence, sessions, notices, app_id="test-app", clock=lambda: placed_at)
        desk.add_item(simit)
        desk.add_item(cay)
        desk.add_item(cay)

        order_id = await desk.checkout(Session(user_id="user-1", ready=True))

        assert order_id == "order-1"
        path, order = persistence.calls[0]
        assert path == "artifacts/test-app/users/user-1/orders"
        assert order.items == (
            OrderLine(id="1", name="Simit", price=Decimal("15.00"), quantity=1),
            OrderLine(id="2", name="Çay", price=Decimal("10.00"), quantity=2),
        )
        assert order.total == "35.00"
        assert order.status == "pending"
        assert order.user_id == "user-1"
        assert order.order_date == placed_at
        assert desk.lines == []
        assert desk.total() == "0.00"
        assert notices.current.text == MSG_ORDER_PLACED
        assert notices.current.duration == 3.0

    async def test_failure_leaves_cart_unchanged(self, desk, persistence, notices, ready_session, simit):
        persistence.fail = True
        desk.add_item(simit)
        desk.add_item(simit)

        assert await desk.checkout(ready_session) is None

        assert len(persistence.calls) == 1
        assert desk.cart.get("1").quantity == 2
        assert notices.current.text == MSG_ORDER_FAILED
        assert notices.current.level == NoticeLevel.ERROR
        assert not desk.checkout_in_flight

    async def test_retry_after_failure_succeeds(self, desk, persistence, ready_session, simit):
        persistence.fail = True
        desk.add_item(simit)
        await desk.checkout(ready_session)
        persistence.fail = False
        assert await desk.checkout(ready_session) == "order-2"
        assert desk.lines == []

    async def test_overlapping_checkout_is_rejected(self, desk, persistence, notices, ready_session, simit):
        release = persistence.hold()
        desk.add_item(simit)

        first = asyncio.create_task(desk.checkout(ready_session))
        await asyncio.sleep(0)
        assert desk.checkout_in_flight

        assert await desk.checkout(ready_session) is None
        assert notices.current.text == MSG_CHECKOUT_BUSY
        assert notices.current.level == NoticeLevel.INFO

        release.set()
        assert await first == "order-1"
        assert len(persistence.calls) == 1
        assert not desk.checkout_in_flight

    async def test_items_added_during_checkout_stay_in_cart(self, desk, persistence, ready_session, simit, cay):
        release = persistence.hold()
        desk.add_item(simit)

        pending = asyncio.create_task(desk.checkout(ready_session))
        await asyncio.sleep(0)
        desk.add_item(simit)
        desk.add_item(cay)
        release.set()

        assert await pending == "order-1"
        _, order = persistence.calls[0]
        assert order.items == (OrderLine(id="1", name="Simit", price=Decimal("15.00"), quantity=1),)
        assert [(line.id, line.quantity) for line in desk.lines] == [("1", 1), ("2", 1)]
        assert desk.total() == "25.00"

    async def test_checkout_events_carry_user_id(self, desk, persistence, ready_session, simit):
        desk.add_item(simit)
        with capture_logs() as logs:
            await desk.checkout(ready_session)
            persistence.fail = True
            desk.add_item(simit)
            await desk.checkout(ready_session)

        events = {entry["event"]: entry for entry in logs}
        assert events["checkout_saved"]["uid"] == "user-1"
        assert events["checkout_failed"]["uid"] == "user-1"


class TestCheckoutWithExpiredToken:
    async def test_refresh_failure_leaves_cart_unchanged(self, sessions, notices, ready_session, simit, tmp_path):
        (tmp_path / "firebase.json").write_text(
            json.dumps({"uid": "user-1", "id_token": "id", "refresh_token": "ref", "expires_at": 5000.0})
        )
        now = [1000.0]

        def handler(request):
            raise httpx.ConnectError("network down", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            identity = FirebaseIdentityClient("k", http, tmp_path / "firebase.json", clock=lambda: now[0])
            await identity.restore()
            now[0] = 9000.0
            firestore = FirestoreClient("demo-project", http, identity.get_id_token)
            desk = OrderDesk(firestore, sessions, notices, app_id="test-app")
            desk.add_item(simit)

            assert await desk.checkout(ready_session) is None

        assert desk.cart.get("1").quantity == 1
        assert notices.current.text == MSG_ORDER_FAILED
        assert notices.current.level == NoticeLevel.ERROR
        assert not desk.checkout_in_flight

    async def test_identity_error_from_store_is_reported(self, sessions, notices, ready_session, simit):
        class ExpiredSessionStore:
            async def create_order(self, collection_path, order):
                raise IdentityError("Identity provider unreachable: network down")

        desk = OrderDesk(ExpiredSessionStore(), sessions, notices, app_id="test-app")
        desk.add_item(simit)

        assert await desk.checkout(ready_session) is None
        assert len(desk.lines) == 1
        assert notices.current.text == MSG_ORDER_FAILED
