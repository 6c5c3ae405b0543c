"""인벤토리 Service — 접속 중 액터의 인메모리 상태, UI 푸시, EventBus 통신

인벤토리 규칙은 Core(src.core.inventory)에 있다.
이 서비스는 변경 후처리만 담당한다:
- 묶음 UI 갱신 (Debouncer)
- inventory_changed 이벤트 발행 → PersistenceQueue가 더티 마크
- 클라이언트 상태 알림
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from src.core.errors import (
    ActorOfflineError,
    GameError,
    InsufficientFundsError,
    InvalidItemError,
)
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.inventory import DEFAULT_INVENTORY_LIMIT, Inventory, Item, ItemCatalog
from src.core.logging import get_logger
from src.core.timers import Debouncer
from src.services.notifier import (
    Notification,
    NotificationChannel,
    NotificationKind,
    send_status,
)

logger = get_logger(__name__)

UI_FLUSH_DELAY_SECONDS = 0.1


@dataclass
class PlayerSession:
    """접속 중 액터 한 명의 인메모리 상태"""

    actor_id: int
    inventory: Inventory
    currency: int
    ui_debouncer: Debouncer


class InventoryService:
    """인벤토리 CRUD + 통화 + UI 갱신"""

    def __init__(
        self,
        event_bus: EventBus,
        channel: NotificationChannel,
        catalog: ItemCatalog,
        inventory_limit: int = DEFAULT_INVENTORY_LIMIT,
        ui_flush_delay: float = UI_FLUSH_DELAY_SECONDS,
        starting_currency: int = 0,
    ):
        self._bus = event_bus
        self._channel = channel
        self._catalog = catalog
        self._inventory_limit = inventory_limit
        self._ui_flush_delay = ui_flush_delay
        self._starting_currency = starting_currency
        self._sessions: dict[int, PlayerSession] = {}

    @property
    def catalog(self) -> ItemCatalog:
        return self._catalog

    # === 세션 ===

    def is_connected(self, actor_id: int) -> bool:
        return actor_id in self._sessions

    def connected_ids(self) -> list[int]:
        return list(self._sessions)

    def open_session(
        self, actor_id: int, snapshot: Any = None
    ) -> PlayerSession:
        """인벤토리 생성 + 저장 스냅샷 복원. 이미 열려 있으면 그대로 반환.

        snapshot 형식: {"currency": int, "items": [...]}.
        아이템 레코드 리스트만 있는 구형식도 받는다 (currency 기본값).
        """
        existing = self._sessions.get(actor_id)
        if existing is not None:
            return existing

        inventory = Inventory(actor_id, limit=self._inventory_limit)
        currency = self._starting_currency
        records: list[Any] = []

        if isinstance(snapshot, dict):
            records = snapshot.get("items") or []
            try:
                currency = max(0, int(snapshot.get("currency", currency)))
            except (TypeError, ValueError):
                logger.warning("Bad currency in snapshot for actor %s", actor_id)
        elif isinstance(snapshot, list):
            records = snapshot
        elif snapshot is not None:
            logger.warning(
                "Unrecognized snapshot for actor %s (%s), starting fresh",
                actor_id,
                type(snapshot).__name__,
            )

        if not isinstance(records, list):
            logger.warning("Snapshot items for actor %s is not a list", actor_id)
            records = []

        loaded = inventory.load_from(records)
        debouncer = Debouncer(
            self._ui_flush_delay,
            lambda pending: self.update_ui(actor_id),
            name=f"ui-flush-{actor_id}",
        )
        session = PlayerSession(actor_id, inventory, currency, debouncer)
        self._sessions[actor_id] = session
        logger.info(
            "Opened session for actor %s (%d records, currency=%d)",
            actor_id,
            loaded,
            currency,
        )
        return session

    def close_session(self, actor_id: int) -> Optional[PlayerSession]:
        """인메모리 인벤토리 제거 (저장소는 건드리지 않음)."""
        session = self._sessions.pop(actor_id, None)
        if session is not None:
            session.ui_debouncer.cancel()
            logger.info("Evicted inventory for actor %s", actor_id)
        return session

    def get_session(self, actor_id: int) -> PlayerSession:
        session = self._sessions.get(actor_id)
        if session is None:
            raise ActorOfflineError(f"Actor {actor_id} is not connected.")
        return session

    def get_inventory(self, actor_id: int) -> Inventory:
        return self.get_session(actor_id).inventory

    def snapshot(self, actor_id: int) -> Optional[dict[str, Any]]:
        """저장용 전체 스냅샷. 접속 중이 아니면 None."""
        session = self._sessions.get(actor_id)
        if session is None:
            return None
        return {
            "currency": session.currency,
            "items": session.inventory.snapshot(),
        }

    # === 아이템 ===

    def add_item(self, actor_id: int, item: Item) -> Item:
        """아이템 추가 + UI 예약 + 더티 마크.

        실패 시 상태 알림을 보낸 뒤 예외를 그대로 올린다.
        """
        inventory = self.get_inventory(actor_id)
        stacked = item is not None and getattr(item, "item_id", None) in inventory
        try:
            record = inventory.add_item(item)
        except GameError as e:
            send_status(self._channel, actor_id, f"Failed to add item: {e}")
            raise

        if stacked:
            send_status(self._channel, actor_id, f"Item stack increased: {record.name}")
        else:
            send_status(self._channel, actor_id, f"New item added: {record.name}")
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.ITEM_ADDED,
                data={"actor_id": actor_id, "item_id": record.item_id},
                source="inventory_service",
            )
        )
        self._changed(actor_id, "add_item")
        return record

    def pickup(self, actor_id: int, item_id: str) -> Item:
        """카탈로그 정의로 새 Item을 만들어 추가."""
        return self.add_item(actor_id, self._catalog.create_item(item_id))

    def remove_item(self, actor_id: int, item_id: str) -> Optional[Item]:
        """스택 -1. 없으면 None (no-op, 알림/더티 없음)."""
        inventory = self.get_inventory(actor_id)
        item = inventory.remove_item(item_id)
        if item is None:
            return None

        if item.stack_count == 0:
            send_status(self._channel, actor_id, f"Item removed: {item.name}")
            self._bus.emit(
                GameEvent(
                    event_type=EventTypes.ITEM_DESTROYED,
                    data={"actor_id": actor_id, "item_id": item_id},
                    source="inventory_service",
                )
            )
        else:
            send_status(self._channel, actor_id, f"Item stack decreased: {item.name}")
        self._changed(actor_id, "remove_item")
        return item

    def use_item(self, actor_id: int, item_id: str) -> bool:
        """내구도 1 소모. 반환: 사용 성공 여부 (False = 파손 상태)."""
        item = self.get_inventory(actor_id).get(item_id)
        if item is None:
            send_status(self._channel, actor_id, f"Item not in inventory: {item_id}")
            raise InvalidItemError(f"Item not in inventory: {item_id}")

        if not item.use():
            send_status(self._channel, actor_id, f"Item broken: {item.name}")
            self._bus.emit(
                GameEvent(
                    event_type=EventTypes.ITEM_BROKEN,
                    data={"actor_id": actor_id, "item_id": item_id},
                    source="inventory_service",
                )
            )
            return False

        self._changed(actor_id, "use_item")
        return True

    # === 통화 ===

    def get_balance(self, actor_id: int) -> int:
        return self.get_session(actor_id).currency

    def credit(self, actor_id: int, amount: int, reason: str = "credit") -> int:
        """잔고 증가. 반환: 새 잔고."""
        session = self.get_session(actor_id)
        session.currency += amount
        self._changed(actor_id, reason)
        return session.currency

    def debit(self, actor_id: int, amount: int, reason: str = "debit") -> int:
        """잔고 차감. 부족하면 InsufficientFundsError (변경 없음)."""
        session = self.get_session(actor_id)
        if session.currency < amount:
            raise InsufficientFundsError(
                f"Insufficient funds ({session.currency} < {amount})."
            )
        session.currency -= amount
        self._changed(actor_id, reason)
        return session.currency

    # === UI ===

    def schedule_ui(self, actor_id: int, reason: str = "update") -> None:
        session = self._sessions.get(actor_id)
        if session is not None:
            session.ui_debouncer.mark(reason)

    def update_ui(self, actor_id: int) -> None:
        """스냅샷 푸시. 접속 중이 아니면 no-op. 실패는 로그만 (다음 변경이 새로 보냄)."""
        session = self._sessions.get(actor_id)
        if session is None:
            return
        try:
            self._channel.send(
                actor_id,
                Notification(
                    NotificationKind.INVENTORY,
                    session.inventory.snapshot(),
                    data={
                        "currency": session.currency,
                        "count": session.inventory.get_item_count(),
                        "limit": session.inventory.limit,
                    },
                ),
            )
        except Exception as e:
            logger.warning("Failed to update UI for actor %s: %s", actor_id, e)

    def _changed(self, actor_id: int, reason: str) -> None:
        self.schedule_ui(actor_id, reason)
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.INVENTORY_CHANGED,
                data={"actor_id": actor_id, "reason": reason},
                source="inventory_service",
            )
        )
