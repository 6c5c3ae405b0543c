"""세션 Service — 액터 접속/해제 신호 처리

connect:    채널 열기 → 저장본 로드 → 인벤토리 생성 → (신규) 시작 아이템
            → 장부 정산 → 만료 등록 회수 → UI 골격 + 첫 스냅샷
disconnect: 스냅샷 → 인메모리 제거 (UI 예약 취소) → 채널 닫기 → 강제 저장

같은 액터의 connect/disconnect는 액터별 잠금으로 한 번에 하나씩 처리한다.
재접속은 진행 중인 해제 저장이 끝난 뒤에 로드하고,
로드 도중 들어온 해제는 세션이 열린 뒤에 처리된다.
"""

from __future__ import annotations

from typing import Any, Optional

from src.core.errors import GameError, TransientStoreError
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.locks import KeyedLocks
from src.core.logging import get_logger
from src.services.earnings_ledger import EarningsLedger
from src.services.inventory_service import InventoryService
from src.services.marketplace_service import MarketplaceService
from src.services.notifier import (
    Notification,
    NotificationKind,
    OutboxChannel,
    send_status,
)
from src.services.persistence_queue import PersistenceQueue

logger = get_logger(__name__)

# 신규 플레이어 지급 아이템 (카탈로그 ID)
STARTER_KIT: tuple[str, ...] = ("potion001", "sword001")


class SessionService:
    """접속 수명주기 오케스트레이션"""

    def __init__(
        self,
        event_bus: EventBus,
        channel: OutboxChannel,
        inventory_service: InventoryService,
        persistence: PersistenceQueue,
        marketplace: MarketplaceService,
        ledger: EarningsLedger,
        starter_kit: tuple[str, ...] = STARTER_KIT,
    ):
        self._bus = event_bus
        self._channel = channel
        self._inventory = inventory_service
        self._persistence = persistence
        self._marketplace = marketplace
        self._ledger = ledger
        self._starter_kit = starter_kit
        self._transitions = KeyedLocks()

    async def connect(self, actor_id: int) -> dict[str, Any]:
        """접속 처리. 이미 접속 중이면 현재 상태만 반환 (멱등).

        진행 중인 같은 액터의 connect/disconnect가 있으면 끝난 뒤에 처리한다.
        반환: {"actor_id", "fresh", "claimed", "reclaimed"}
        """
        async with self._transitions.hold(actor_id):
            if self._inventory.is_connected(actor_id):
                return {"actor_id": actor_id, "fresh": False, "claimed": 0, "reclaimed": 0}
            return await self._open(actor_id)

    async def disconnect(self, actor_id: int) -> bool:
        """접속 해제. 반환: 강제 저장 성공 여부 (접속 중이 아니었으면 False).

        로드 중인 connect가 있으면 세션이 열린 뒤에 해제한다.
        """
        async with self._transitions.hold(actor_id):
            return await self._close(actor_id)

    async def shutdown(self) -> int:
        """서비스 종료 — 접속 중인 모든 액터 해제. 반환: 저장 성공 수."""
        saved = 0
        for actor_id in self._inventory.connected_ids():
            if await self.disconnect(actor_id):
                saved += 1
        return saved

    @property
    def transition_count(self) -> int:
        return len(self._transitions)

    # === 내부 ===

    async def _open(self, actor_id: int) -> dict[str, Any]:
        self._channel.open(actor_id)
        snapshot = await self._persistence.load(actor_id)
        self._inventory.open_session(actor_id, snapshot)
        send_status(self._channel, actor_id, "Inventory loaded.")

        fresh = snapshot is None
        if fresh:
            self._grant_starter_kit(actor_id)

        claimed = await self._claim_earnings(actor_id)
        reclaimed = await self._marketplace.reclaim_expired(actor_id)
        if reclaimed:
            send_status(
                self._channel,
                actor_id,
                f"{reclaimed} expired listing(s) returned to your inventory.",
            )

        if self._inventory.is_connected(actor_id):
            self._send_ui_scaffold(actor_id)
            self._inventory.schedule_ui(actor_id, "connect")

        self._bus.emit(
            GameEvent(
                event_type=EventTypes.ACTOR_CONNECTED,
                data={"actor_id": actor_id, "fresh": fresh},
                source="session_service",
            )
        )
        logger.info("Actor %s connected (fresh=%s, claimed=%d)", actor_id, fresh, claimed)
        return {
            "actor_id": actor_id,
            "fresh": fresh,
            "claimed": claimed,
            "reclaimed": reclaimed,
        }

    async def _close(self, actor_id: int) -> bool:
        snapshot: Optional[dict[str, Any]] = self._inventory.snapshot(actor_id)
        if snapshot is None:
            return False

        # 스냅샷 직후 제거. 저장을 기다리는 동안의 변경(판매 대금 등)은
        # 오프라인 경로(장부)로 간다.
        self._inventory.close_session(actor_id)
        self._channel.close(actor_id)
        saved = await self._persistence.save_on_disconnect(actor_id, snapshot)

        self._bus.emit(
            GameEvent(
                event_type=EventTypes.ACTOR_DISCONNECTED,
                data={"actor_id": actor_id, "saved": saved},
                source="session_service",
            )
        )
        logger.info("Actor %s disconnected (saved=%s)", actor_id, saved)
        return saved

    def _grant_starter_kit(self, actor_id: int) -> None:
        for item_id in self._starter_kit:
            try:
                self._inventory.pickup(actor_id, item_id)
            except GameError as e:
                logger.warning(
                    "Starter item %s not granted to actor %s: %s", item_id, actor_id, e
                )
        if self._starter_kit:
            send_status(self._channel, actor_id, "New items added to your inventory.")

    async def _claim_earnings(self, actor_id: int) -> int:
        try:
            amount = await self._ledger.claim(actor_id)
        except TransientStoreError as e:
            logger.warning("Earnings claim failed for actor %s: %s", actor_id, e)
            return 0
        if amount <= 0:
            return 0

        if not self._inventory.is_connected(actor_id):
            # 정산 도중 세션이 사라짐 → 장부로 되돌린다 (실패 시 장부가 보류 후 재시도)
            logger.warning("Actor %s left during earnings claim, re-crediting", actor_id)
            await self._ledger.restore(actor_id, amount)
            return 0

        self._inventory.credit(actor_id, amount, reason="earnings_claim")
        # 장부는 이미 0. 라이브 잔고를 바로 저장해 둔다.
        await self._persistence.save_now(actor_id)
        send_status(
            self._channel,
            actor_id,
            f"You earned {amount} from marketplace sales while away.",
        )
        return amount

    def _send_ui_scaffold(self, actor_id: int) -> None:
        inventory = self._inventory.get_inventory(actor_id)
        try:
            self._channel.send(
                actor_id,
                Notification(
                    NotificationKind.UI,
                    {"title": "Inventory", "limit": inventory.limit},
                ),
            )
        except Exception as e:
            logger.warning("Failed to send UI scaffold to actor %s: %s", actor_id, e)
