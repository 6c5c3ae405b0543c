"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from src.core.errors import TransientStoreError
from src.core.event_bus import EventBus
from src.core.inventory import ItemCatalog
from src.db.store import MemoryStore
from src.services.earnings_ledger import EarningsLedger
from src.services.inventory_service import InventoryService
from src.services.marketplace_service import MarketplaceService
from src.services.notifier import NotificationKind, OutboxChannel
from src.services.persistence_queue import PersistenceQueue
from src.services.session_service import SessionService

ITEM_CATALOG_PATH = Path("src/data/items.json")

UI_FLUSH_DELAY = 0.01


class FlakyStore(MemoryStore):
    """호출 기록 + 실패 주입 + 호출 대기(gate)가 가능한 MemoryStore

    gate를 clear()하면 해당 호출이 set()될 때까지 멈춘다.
    *_started는 호출이 들어왔음을 알린다.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_get = False
        self.fail_set_prefixes: set[str] = set()
        self.get_calls: list[str] = []
        self.set_calls: list[str] = []
        self.get_gate = asyncio.Event()
        self.get_gate.set()
        self.get_started = asyncio.Event()
        self.set_gate = asyncio.Event()
        self.set_gate.set()
        self.set_started = asyncio.Event()

    async def get(self, key: str) -> Optional[Any]:
        self.get_calls.append(key)
        self.get_started.set()
        await self.get_gate.wait()
        if self.fail_get:
            raise TransientStoreError(f"get {key} unavailable")
        return await super().get(key)

    async def set(self, key: str, value: Any) -> None:
        self.set_calls.append(key)
        self.set_started.set()
        await self.set_gate.wait()
        if any(key.startswith(prefix) for prefix in self.fail_set_prefixes):
            raise TransientStoreError(f"set {key} unavailable")
        await super().set(key, value)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@dataclass
class Services:
    bus: EventBus
    channel: OutboxChannel
    store: FlakyStore
    catalog: ItemCatalog
    inventory: InventoryService
    persistence: PersistenceQueue
    ledger: EarningsLedger
    market: MarketplaceService
    sessions: SessionService
    clock: FakeClock

    def statuses(self, actor_id: int) -> list[str]:
        """채널에 쌓인 상태 문자열만 (비우면서)"""
        return [
            n.payload
            for n in self.channel.drain(actor_id)
            if n.kind == NotificationKind.STATUS
        ]


@pytest.fixture()
def catalog() -> ItemCatalog:
    """items.json 카탈로그"""
    c = ItemCatalog()
    c.load_from_json(ITEM_CATALOG_PATH)
    return c


@pytest.fixture()
def make_services(catalog) -> Callable[..., Services]:
    """서비스 그래프 팩토리 (인메모리 저장소)"""

    def _make(
        require_ownership: bool = True,
        listing_ttl: Optional[float] = None,
        starter_kit: tuple[str, ...] = (),
        inventory_limit: int = 50,
        starting_currency: int = 0,
        store: Optional[FlakyStore] = None,
    ) -> Services:
        store = store or FlakyStore()
        bus = EventBus()
        channel = OutboxChannel()
        clock = FakeClock()
        inventory = InventoryService(
            bus,
            channel,
            catalog,
            inventory_limit=inventory_limit,
            ui_flush_delay=UI_FLUSH_DELAY,
            starting_currency=starting_currency,
        )
        persistence = PersistenceQueue(
            store, bus, inventory.snapshot, inventory.is_connected, interval=3600
        )
        ledger = EarningsLedger(store, bus)
        market = MarketplaceService(
            store,
            bus,
            inventory,
            ledger,
            channel,
            require_ownership=require_ownership,
            listing_ttl=listing_ttl,
            clock=clock,
        )
        sessions = SessionService(
            bus, channel, inventory, persistence, market, ledger, starter_kit=starter_kit
        )
        return Services(
            bus, channel, store, catalog, inventory, persistence, ledger, market, sessions, clock
        )

    return _make


@pytest.fixture()
def services(make_services) -> Services:
    """기본 구성: 소유권 검사 ON, 시작 아이템 없음"""
    return make_services()
