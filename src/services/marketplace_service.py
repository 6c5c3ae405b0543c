"""마켓 Service — 판매 등록/구매/카테고리 조회, 오프라인 판매자 장부 적립

등록 집합은 단일 blob(market:listings)으로 저장한다.
등록 집합 변경은 마켓 락 하나로 직렬화한다 (단일 writer).

구매 순서 (저장소에 다중 키 트랜잭션이 없으므로 보상 방식):
1. 검증 (등록 존재, 구매자 접속, 잔고, 인벤토리 여유) — 실패 시 변화 없음
2. 예약: 구매자 잔고 차감 + 아이템 지급 (인메모리, 동기)
3. 등록 제거 후 등록 집합 저장
4. 판매자 접속 중이면 라이브 잔고 적립, 아니면 장부 적립
3/4에서 저장소가 실패하면 예약과 등록 제거를 되돌리고 예외를 올린다.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Callable, Optional

from src.core.errors import (
    ActorOfflineError,
    BuyerInventoryFullError,
    GameError,
    InsufficientFundsError,
    InvalidPriceError,
    ListingNotFoundError,
    MalformedRecordError,
    NotOwnerError,
    TransientStoreError,
)
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.inventory import Item
from src.core.inventory.models import DEFAULT_CATEGORY
from src.core.logging import get_logger
from src.core.market import Listing, filter_by_category, new_listing_id
from src.core.timers import PeriodicTask
from src.db.store import LISTINGS_KEY, KeyValueStore
from src.services.earnings_ledger import EarningsLedger
from src.services.inventory_service import InventoryService
from src.services.notifier import (
    Notification,
    NotificationChannel,
    NotificationKind,
    send_status,
)

logger = get_logger(__name__)

LISTING_EXPIRY_CHECK_SECONDS = 30.0


class MarketplaceService:
    """판매 등록 CRUD + 구매 프로토콜"""

    def __init__(
        self,
        store: KeyValueStore,
        event_bus: EventBus,
        inventory_service: InventoryService,
        ledger: EarningsLedger,
        channel: NotificationChannel,
        require_ownership: bool = True,
        listing_ttl: Optional[float] = None,
        expiry_interval: float = LISTING_EXPIRY_CHECK_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._bus = event_bus
        self._inventory = inventory_service
        self._ledger = ledger
        self._channel = channel
        self._require_ownership = require_ownership
        self._listing_ttl = listing_ttl
        self._clock = clock
        self._listings: dict[str, Listing] = {}
        self._lock = asyncio.Lock()
        self._expirer = PeriodicTask(
            expiry_interval, self.expire_listings, name="listing-expiry"
        )

    # === 시작/종료 ===

    async def load(self) -> int:
        """저장된 등록 집합 복원. 형식 오류 레코드는 건너뛴다.

        저장소 실패는 그대로 올린다. 빈 집합으로 시작하면 다음 저장에서
        기존 등록을 덮어쓰게 되므로 시작 자체를 실패시킨다.
        """
        raw = await self._store.get(LISTINGS_KEY)
        self._listings = {}
        if raw is None:
            return 0
        if not isinstance(raw, list):
            logger.warning("Listing blob is not a list, ignoring: %r", type(raw))
            return 0

        for record in raw:
            try:
                listing = Listing.from_record(record)
            except MalformedRecordError as e:
                logger.warning("Skipping listing record: %s", e)
                continue
            self._listings[listing.listing_id] = listing

        logger.info("Loaded %d marketplace listings", len(self._listings))
        return len(self._listings)

    def start(self) -> None:
        if self._listing_ttl is not None:
            self._expirer.start()

    async def stop(self) -> None:
        await self._expirer.stop()

    # === 조회 ===

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        """만료된 등록은 없는 것으로 본다."""
        listing = self._listings.get(listing_id)
        if listing is None or listing.is_expired(self._clock()):
            return None
        return listing

    def active_listings(self) -> list[Listing]:
        now = self._clock()
        return [
            listing
            for listing in self._listings.values()
            if not listing.is_expired(now)
        ]

    def list_by_category(self, category: Optional[str]) -> list[Listing]:
        return filter_by_category(self._listings.values(), category, self._clock())

    def send_category_results(self, actor_id: int, category: Optional[str]) -> list[Listing]:
        """카테고리 조회 + 결과를 액터 채널로 푸시."""
        listings = self.list_by_category(category)
        try:
            self._channel.send(
                actor_id,
                Notification(
                    NotificationKind.LISTINGS,
                    [listing.to_record() for listing in listings],
                    data={"category": category},
                ),
            )
        except Exception as e:
            logger.warning("Failed to send listings to actor %s: %s", actor_id, e)
        return listings

    # === 등록 ===

    async def list_item(
        self,
        seller_id: int,
        item_id: str,
        price: int,
        category: Optional[str] = None,
        item_name: Optional[str] = None,
    ) -> Listing:
        """판매 등록.

        소유권 정책 ON: 판매자가 보유한 아이템만. 1개를 인벤토리에서 빼서 보관.
        소유권 정책 OFF: 자유 등록 (소유 검사/보관 없음).

        Raises:
            InvalidPriceError, NotOwnerError, ActorOfflineError, TransientStoreError
        """
        try:
            listing = await self._create_listing(
                seller_id, item_id, price, category, item_name
            )
        except GameError as e:
            send_status(self._channel, seller_id, f"Listing failed: {e}")
            raise

        send_status(
            self._channel,
            seller_id,
            f"Listed {listing.item_name} for {listing.price}.",
        )
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.LISTING_CREATED,
                data={
                    "listing_id": listing.listing_id,
                    "seller_id": seller_id,
                    "item_id": listing.item_id,
                    "price": listing.price,
                },
                source="marketplace_service",
            )
        )
        return listing

    async def _create_listing(
        self,
        seller_id: int,
        item_id: str,
        price: int,
        category: Optional[str],
        item_name: Optional[str],
    ) -> Listing:
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise InvalidPriceError(f"Price must be a positive integer: {price!r}")

        async with self._lock:
            escrow: Optional[Item] = None
            if self._require_ownership:
                held = self._inventory.get_inventory(seller_id).get(item_id)
                if held is None:
                    raise NotOwnerError(f"You do not own {item_id}.")
                name = item_name or held.name
                category = category or held.category
                escrow = dataclasses.replace(held, stack_count=1)
                self._inventory.remove_item(seller_id, item_id)
            else:
                definition = self._inventory.catalog.get(item_id)
                name = item_name or (definition.name if definition else item_id)
                category = category or (
                    definition.category if definition else DEFAULT_CATEGORY
                )

            now = self._clock()
            listing = Listing(
                listing_id=new_listing_id(),
                item_id=item_id,
                item_name=name,
                category=category,
                price=price,
                seller_id=seller_id,
                expires_at=(
                    now + self._listing_ttl if self._listing_ttl is not None else None
                ),
                escrowed=escrow is not None,
            )
            self._listings[listing.listing_id] = listing

            try:
                await self._persist()
            except TransientStoreError:
                del self._listings[listing.listing_id]
                if escrow is not None:
                    self._give_back(seller_id, escrow)
                raise

        logger.info(
            "Listing %s created: %s by seller %s for %d",
            listing.listing_id,
            listing.item_id,
            seller_id,
            price,
        )
        return listing

    # === 구매 ===

    async def purchase(self, buyer_id: int, listing_id: str) -> Listing:
        """구매. 성공 시 판매된 Listing 반환.

        Raises:
            ListingNotFoundError, ActorOfflineError, InsufficientFundsError,
            BuyerInventoryFullError, TransientStoreError
        """
        try:
            listing, paid_live = await self._execute_purchase(buyer_id, listing_id)
        except GameError as e:
            send_status(self._channel, buyer_id, f"Purchase failed: {e}")
            raise

        send_status(
            self._channel,
            buyer_id,
            f"Purchased {listing.item_name} for {listing.price}.",
        )
        if paid_live:
            send_status(
                self._channel,
                listing.seller_id,
                f"Sold {listing.item_name} for {listing.price}.",
            )
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.LISTING_SOLD,
                data={
                    "listing_id": listing.listing_id,
                    "buyer_id": buyer_id,
                    "seller_id": listing.seller_id,
                    "price": listing.price,
                    "paid_live": paid_live,
                },
                source="marketplace_service",
            )
        )
        return listing

    async def _execute_purchase(
        self, buyer_id: int, listing_id: str
    ) -> tuple[Listing, bool]:
        async with self._lock:
            listing = self.get_listing(listing_id)
            if listing is None:
                raise ListingNotFoundError(f"Listing not found: {listing_id}")
            if not self._inventory.is_connected(buyer_id):
                raise ActorOfflineError(f"Actor {buyer_id} is not connected.")
            if self._inventory.get_balance(buyer_id) < listing.price:
                raise InsufficientFundsError(
                    f"Insufficient funds for {listing.item_name} ({listing.price})."
                )
            if not self._inventory.get_inventory(buyer_id).can_add(listing.item_id):
                raise BuyerInventoryFullError("Your inventory is full.")

            # 예약
            self._inventory.debit(buyer_id, listing.price, reason="purchase")
            item = self._inventory.catalog.create_item(
                listing.item_id, listing.item_name, listing.category
            )
            self._inventory.add_item(buyer_id, item)

            del self._listings[listing_id]
            try:
                await self._persist()
            except TransientStoreError:
                self._listings[listing_id] = listing
                self._undo_reservation(buyer_id, listing)
                raise

            # 저장 이후 시점의 접속 상태로 적립 경로를 결정한다
            if self._inventory.is_connected(listing.seller_id):
                self._inventory.credit(listing.seller_id, listing.price, reason="sale")
                paid_live = True
            else:
                try:
                    await self._ledger.credit(listing.seller_id, listing.price)
                except TransientStoreError:
                    self._listings[listing_id] = listing
                    self._undo_reservation(buyer_id, listing)
                    try:
                        await self._persist()
                    except TransientStoreError:
                        logger.error(
                            "Listing %s restored in memory but not in store", listing_id
                        )
                    raise
                paid_live = False

        logger.info(
            "Listing %s sold to %s (seller %s, %s)",
            listing_id,
            buyer_id,
            listing.seller_id,
            "live" if paid_live else "ledger",
        )
        return listing, paid_live

    def _undo_reservation(self, buyer_id: int, listing: Listing) -> None:
        if not self._inventory.is_connected(buyer_id):
            logger.error(
                "Cannot roll back purchase of %s: buyer %s disconnected",
                listing.listing_id,
                buyer_id,
            )
            return
        self._inventory.remove_item(buyer_id, listing.item_id)
        self._inventory.credit(buyer_id, listing.price, reason="purchase_refund")

    # === 만료 ===

    async def expire_listings(self) -> int:
        """만료 등록 정리. 보관 아이템은 접속 중인 판매자에게 돌려준다.

        오프라인 판매자의 보관 등록은 숨김 상태로 남겨 두고
        재접속 시 reclaim_expired()로 돌려준다.
        """
        return await self._expire(
            lambda listing: (
                not listing.escrowed
                or self._inventory.is_connected(listing.seller_id)
            )
        )

    async def reclaim_expired(self, seller_id: int) -> int:
        """재접속한 판매자의 만료 등록 회수."""
        return await self._expire(lambda listing: listing.seller_id == seller_id)

    async def _expire(self, predicate: Callable[[Listing], bool]) -> int:
        async with self._lock:
            now = self._clock()
            expired = [
                listing
                for listing in self._listings.values()
                if listing.is_expired(now) and predicate(listing)
            ]
            if not expired:
                return 0

            for listing in expired:
                del self._listings[listing.listing_id]
            try:
                await self._persist()
            except TransientStoreError:
                for listing in expired:
                    self._listings[listing.listing_id] = listing
                logger.warning("Failed to persist expired listings, will retry")
                return 0

            for listing in expired:
                if listing.escrowed:
                    self._give_back(
                        listing.seller_id,
                        self._inventory.catalog.create_item(
                            listing.item_id, listing.item_name, listing.category
                        ),
                    )
                self._bus.emit(
                    GameEvent(
                        event_type=EventTypes.LISTING_EXPIRED,
                        data={
                            "listing_id": listing.listing_id,
                            "seller_id": listing.seller_id,
                        },
                        source="marketplace_service",
                    )
                )

        logger.info("Expired %d listings", len(expired))
        return len(expired)

    # === 내부 ===

    def _give_back(self, seller_id: int, item: Item) -> None:
        """보관 아이템 반환. 판매자 인벤토리가 거부하면 에러 로그."""
        try:
            self._inventory.add_item(seller_id, item)
        except GameError as e:
            logger.error(
                "Could not return %s to seller %s: %s", item.item_id, seller_id, e
            )

    async def _persist(self) -> None:
        await self._store.set(
            LISTINGS_KEY,
            [listing.to_record() for listing in self._listings.values()],
        )
