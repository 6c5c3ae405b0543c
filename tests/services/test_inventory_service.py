"""InventoryService 테스트 — 상태 알림, 더티 이벤트, 묶음 UI 갱신"""

import asyncio

import pytest

from src.core.errors import (
    ActorOfflineError,
    InsufficientFundsError,
    InvalidItemError,
    StackFullError,
)
from src.core.event_types import EventTypes
from src.core.inventory import Item
from src.services.notifier import NotificationKind


def _inventory_pushes(services, actor_id):
    return [n for n in services.channel.drain(actor_id) if n.kind == NotificationKind.INVENTORY]


class TestOpenSession:
    def test_restores_snapshot(self, services):
        services.inventory.open_session(
            1,
            {
                "currency": 250,
                "items": [{"name": "Iron Ore", "item_id": "ore001", "stack_count": 5}],
            },
        )
        assert services.inventory.get_balance(1) == 250
        assert services.inventory.get_inventory(1).get_item_count() == 5

    def test_legacy_list_snapshot(self, make_services):
        services = make_services(starting_currency=30)
        services.inventory.open_session(1, [{"name": "Sword", "item_id": "sword001", "max_stack": 1}])
        assert services.inventory.get_balance(1) == 30
        assert "sword001" in services.inventory.get_inventory(1)

    def test_garbage_snapshot_starts_fresh(self, services):
        services.inventory.open_session(1, "corrupted")
        assert services.inventory.get_inventory(1).get_item_count() == 0

    def test_idempotent(self, services):
        first = services.inventory.open_session(1, None)
        assert services.inventory.open_session(1, {"currency": 999}) is first
        assert services.inventory.get_balance(1) == 0

    def test_snapshot_offline_is_none(self, services):
        assert services.inventory.snapshot(42) is None

    def test_operations_on_offline_actor(self, services):
        with pytest.raises(ActorOfflineError):
            services.inventory.pickup(42, "potion001")


class TestAddRemove:
    def test_status_messages(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "potion001")
            services.inventory.pickup(1, "potion001")
            services.inventory.remove_item(1, "potion001")
            services.inventory.remove_item(1, "potion001")
            return services.statuses(1)

        assert asyncio.run(scenario()) == [
            "New item added: Harming Potion",
            "Item stack increased: Harming Potion",
            "Item stack decreased: Harming Potion",
            "Item removed: Harming Potion",
        ]

    def test_failed_add_reports_and_raises(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "sword001")
            services.channel.drain(1)
            with pytest.raises(StackFullError):
                services.inventory.pickup(1, "sword001")
            return services.statuses(1)

        statuses = asyncio.run(scenario())
        assert len(statuses) == 1
        assert statuses[0].startswith("Failed to add item")

    def test_invalid_item(self, services):
        async def scenario():
            services.inventory.open_session(1, None)
            with pytest.raises(InvalidItemError):
                services.inventory.add_item(1, Item(name="Blank", item_id=""))

        asyncio.run(scenario())
        assert not services.persistence.is_dirty(1)

    def test_remove_absent_is_silent(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            assert services.inventory.remove_item(1, "nothing") is None
            return services.statuses(1)

        assert asyncio.run(scenario()) == []
        assert not services.persistence.is_dirty(1)

    def test_change_marks_dirty(self, services):
        events = []
        services.bus.subscribe(EventTypes.INVENTORY_CHANGED, lambda e: events.append(e.data))

        async def scenario():
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "ore001")

        asyncio.run(scenario())
        assert services.persistence.is_dirty(1)
        assert events == [{"actor_id": 1, "reason": "add_item"}]


class TestUseItem:
    def test_use_until_broken(self, services):
        broken = []
        services.bus.subscribe(EventTypes.ITEM_BROKEN, lambda e: broken.append(e.data["item_id"]))

        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "potion001")  # durability 1
            services.channel.drain(1)
            assert services.inventory.use_item(1, "potion001") is True
            assert services.inventory.use_item(1, "potion001") is False
            return services.statuses(1)

        assert asyncio.run(scenario()) == ["Item broken: Harming Potion"]
        assert broken == ["potion001"]

    def test_use_missing_item(self, services):
        async def scenario():
            services.inventory.open_session(1, None)
            with pytest.raises(InvalidItemError):
                services.inventory.use_item(1, "sword001")

        asyncio.run(scenario())


class TestCurrency:
    def test_credit_debit(self, make_services):
        services = make_services(starting_currency=100)

        async def scenario():
            services.inventory.open_session(1, None)
            assert services.inventory.credit(1, 50) == 150
            assert services.inventory.debit(1, 120) == 30
            with pytest.raises(InsufficientFundsError):
                services.inventory.debit(1, 31)
            assert services.inventory.get_balance(1) == 30

        asyncio.run(scenario())

    def test_snapshot_includes_currency(self, make_services):
        services = make_services(starting_currency=75)

        async def scenario():
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "gem001")

        asyncio.run(scenario())
        snap = services.inventory.snapshot(1)
        assert snap["currency"] == 75
        assert [r["item_id"] for r in snap["items"]] == ["gem001"]


class TestBatchedUi:
    def test_many_changes_one_push(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            for _ in range(5):
                services.inventory.pickup(1, "ore001")
            assert _inventory_pushes(services, 1) == []
            await asyncio.sleep(0.05)
            return _inventory_pushes(services, 1)

        pushes = asyncio.run(scenario())
        assert len(pushes) == 1
        assert pushes[0].payload[0]["stack_count"] == 5
        assert pushes[0].data == {"currency": 0, "count": 5, "limit": 50}

    def test_change_after_flush_pushes_again(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "ore001")
            await asyncio.sleep(0.05)
            services.inventory.pickup(1, "ore001")
            await asyncio.sleep(0.05)
            return _inventory_pushes(services, 1)

        pushes = asyncio.run(scenario())
        assert [p.data["count"] for p in pushes] == [1, 2]

    def test_close_session_cancels_pending_push(self, services):
        async def scenario():
            services.channel.open(1)
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "ore001")
            services.inventory.close_session(1)
            await asyncio.sleep(0.05)
            return _inventory_pushes(services, 1)

        assert asyncio.run(scenario()) == []

    def test_closed_channel_is_tolerated(self, services):
        async def scenario():
            services.inventory.open_session(1, None)
            services.inventory.pickup(1, "ore001")
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert services.inventory.get_inventory(1).get_item_count() == 1
