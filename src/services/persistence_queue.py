"""인벤토리 저장 큐 — 더티 마크 + 주기 스윕 + 강제 저장

보장:
- 액터당 동시에 진행 중인 저장은 최대 하나 (액터별 asyncio.Lock)
- 저장 실패 시 더티 유지 → 다음 스윕에서 재시도 (at-least-once)
- 저장 중에 새로 찍힌 더티 마크는 그 저장으로 지워지지 않는다 (버전 카운터)
- 한 액터의 실패가 다른 액터 저장을 막지 않는다
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from src.core.errors import TransientStoreError
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.locks import KeyedLocks
from src.core.logging import get_logger
from src.core.timers import PeriodicTask
from src.db.store import KeyValueStore, inventory_key

logger = get_logger(__name__)

SAVE_SWEEP_INTERVAL_SECONDS = 60.0

SnapshotProvider = Callable[[int], Optional[dict[str, Any]]]
OnlineCheck = Callable[[int], bool]


class PersistenceQueue:
    """액터 인벤토리 스냅샷 저장 스케줄러"""

    def __init__(
        self,
        store: KeyValueStore,
        event_bus: EventBus,
        snapshot_provider: SnapshotProvider,
        is_online: OnlineCheck,
        interval: float = SAVE_SWEEP_INTERVAL_SECONDS,
    ):
        self._store = store
        self._bus = event_bus
        self._snapshot_provider = snapshot_provider
        self._is_online = is_online
        # actor_id → 더티 버전. 마크마다 증가.
        self._dirty: dict[int, int] = {}
        self._locks = KeyedLocks()
        # 접속 해제 시 강제 저장에 실패한 마지막 스냅샷
        self._parked: dict[int, dict[str, Any]] = {}
        self._sweeper = PeriodicTask(interval, self.sweep, name="inventory-save-sweep")
        self._register_event_handlers()

    def _register_event_handlers(self) -> None:
        """EventBus 구독"""
        self._bus.subscribe(EventTypes.INVENTORY_CHANGED, self._on_inventory_changed)

    # === 더티 관리 ===

    def mark_dirty(self, actor_id: int) -> None:
        """멱등. 몇 번을 호출해도 큐에는 한 번만 있다."""
        self._dirty[actor_id] = self._dirty.get(actor_id, 0) + 1

    def is_dirty(self, actor_id: int) -> bool:
        return actor_id in self._dirty

    def dirty_ids(self) -> list[int]:
        return list(self._dirty)

    def parked_ids(self) -> list[int]:
        return list(self._parked)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def is_saving(self, actor_id: int) -> bool:
        return self._locks.is_held(actor_id)

    # === 저장/로드 ===

    async def save_now(
        self, actor_id: int, snapshot: Optional[dict[str, Any]] = None
    ) -> bool:
        """즉시 저장. 같은 액터의 진행 중 저장이 있으면 끝날 때까지 기다린다.

        snapshot 미지정 시 provider에서 저장 직전에 가져온다.
        성공 시 저장 시작 전까지의 더티 마크만 지운다.
        반환: 성공 여부.
        """
        async with self._locks.hold(actor_id):
            version = self._dirty.get(actor_id)
            if snapshot is None:
                snapshot = self._snapshot_provider(actor_id)
            if snapshot is None:
                logger.debug("No snapshot for actor %s, nothing to save", actor_id)
                return False

            try:
                await self._store.set(inventory_key(actor_id), snapshot)
            except TransientStoreError as e:
                logger.warning("Failed to save inventory for actor %s: %s", actor_id, e)
                self._dirty.setdefault(actor_id, 0)
                return False

            if self._dirty.get(actor_id) == version:
                self._dirty.pop(actor_id, None)
            self._parked.pop(actor_id, None)
            logger.debug("Saved inventory for actor %s", actor_id)
            return True

    async def save_on_disconnect(
        self, actor_id: int, snapshot: dict[str, Any]
    ) -> bool:
        """접속 해제 시 강제 저장.

        실패하면 스냅샷을 보관해 두고 스윕마다 재시도한다.
        (인메모리 인벤토리는 곧 제거되므로 provider로 다시 만들 수 없다)
        """
        self.mark_dirty(actor_id)
        saved = await self.save_now(actor_id, snapshot)
        if not saved:
            self._parked[actor_id] = snapshot
            logger.warning(
                "Parked final snapshot for actor %s until the store recovers", actor_id
            )
        return saved

    async def load(self, actor_id: int) -> Optional[Any]:
        """저장된 스냅샷. 없거나 일시 실패면 None (새 인벤토리로 시작).

        보관 중인 스냅샷이 있으면 저장소보다 우선한다 (아직 저장 안 된 최신본).
        같은 액터의 진행 중 저장이 끝난 뒤에 읽는다.
        로드는 접속 직후 세션을 열기 전에만 호출한다.
        """
        async with self._locks.hold(actor_id):
            parked = self._parked.pop(actor_id, None)
            if parked is not None:
                # 이후로는 라이브 세션이 저장 대상. 더티를 남겨 다음 스윕에서 저장.
                self._dirty.setdefault(actor_id, 0)
                logger.info("Restoring parked snapshot for actor %s", actor_id)
                return parked
            try:
                return await self._store.get(inventory_key(actor_id))
            except TransientStoreError as e:
                logger.warning(
                    "Failed to load inventory for actor %s, starting fresh: %s",
                    actor_id,
                    e,
                )
                return None

    # === 스윕 ===

    async def sweep(self) -> int:
        """더티 + 접속 중 액터 저장. 보관 스냅샷 재시도.

        작업 집합은 스윕 시작 시점의 복사본이다. 스윕 도중 찍힌 마크는
        _dirty에 남아 다음 주기에 처리된다.
        이미 저장 중인 액터는 건너뛴다 (더티 유지).
        반환: 저장 성공 수.
        """
        working = list(self._dirty)
        saved = 0
        for actor_id in working:
            if actor_id in self._parked:
                snapshot = self._parked[actor_id]
            elif self._is_online(actor_id):
                snapshot = None
            else:
                continue
            if self.is_saving(actor_id):
                logger.debug("Save already in flight for actor %s, skipping", actor_id)
                continue
            if await self.save_now(actor_id, snapshot):
                saved += 1

        if working:
            logger.info(
                "Save sweep: %d/%d saved, %d still dirty",
                saved,
                len(working),
                len(self._dirty),
            )
        return saved

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()

    # === EventBus 핸들러 ===

    def _on_inventory_changed(self, event: GameEvent) -> None:
        actor_id = event.data.get("actor_id")
        if actor_id is not None:
            self.mark_dirty(actor_id)
