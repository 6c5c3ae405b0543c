"""판매 수익 장부 — 오프라인 판매자의 미지급 금액

저장소 read-modify-write는 판매자별 asyncio.Lock으로 직렬화한다.
같은 오프라인 판매자 물건이 동시에 팔려도 적립이 유실되지 않는다.

claim으로 꺼낸 금액을 되돌리다 저장소가 실패하면 메모리에 보류해 두고
(unsettled) 주기 정산에서 다시 쓴다. 다음 claim은 보류분도 함께 지급한다.
"""

from __future__ import annotations

from src.core.errors import TransientStoreError
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.locks import KeyedLocks
from src.core.logging import get_logger
from src.core.timers import PeriodicTask
from src.db.store import KeyValueStore, earnings_key

logger = get_logger(__name__)

SETTLE_INTERVAL_SECONDS = 60.0


class EarningsLedger:
    """seller_id → 미지급 누적액 (음수 불가)"""

    def __init__(
        self,
        store: KeyValueStore,
        event_bus: EventBus,
        settle_interval: float = SETTLE_INTERVAL_SECONDS,
    ):
        self._store = store
        self._bus = event_bus
        self._locks = KeyedLocks()
        # seller_id → 저장소에 아직 못 쓴 되돌림 금액
        self._unsettled: dict[int, int] = {}
        self._settler = PeriodicTask(
            settle_interval, self.settle, name="earnings-settle"
        )

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    async def _read(self, seller_id: int) -> int:
        raw = await self._store.get(earnings_key(seller_id))
        if raw is None:
            return 0
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            logger.warning(
                "Malformed earnings balance for seller %s: %r, treating as 0",
                seller_id,
                raw,
            )
            return 0

    async def balance(self, seller_id: int) -> int:
        """현재 미지급액 (읽기 전용). 보류분 포함."""
        return await self._read(seller_id) + self._unsettled.get(seller_id, 0)

    def unsettled(self, seller_id: int) -> int:
        return self._unsettled.get(seller_id, 0)

    def unsettled_ids(self) -> list[int]:
        return list(self._unsettled)

    async def credit(self, seller_id: int, amount: int) -> int:
        """미지급액 += amount. 반환: 새 잔액.

        Raises:
            ValueError: amount <= 0
            TransientStoreError: 저장소 실패 (잔액 변화 없음)
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive: {amount}")

        async with self._locks.hold(seller_id):
            current = await self._read(seller_id)
            new_balance = current + amount
            await self._store.set(earnings_key(seller_id), new_balance)

        logger.info(
            "Ledger credit: seller %s +%d (balance %d)", seller_id, amount, new_balance
        )
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.EARNINGS_CREDITED,
                data={"seller_id": seller_id, "amount": amount},
                source="earnings_ledger",
            )
        )
        return new_balance

    async def claim(self, actor_id: int) -> int:
        """미지급액을 0으로 초기화하고 그 금액을 반환 (보류분 포함).

        라이브 잔고 반영은 호출자가 한다. 0으로 쓰기가 성공한 뒤에만
        금액을 돌려주므로 저장소 실패 시 이중 지급이 없다.

        Raises:
            TransientStoreError: 저장소 실패 (장부 그대로, 지급 없음)
        """
        async with self._locks.hold(actor_id):
            stored = await self._read(actor_id)
            if stored > 0:
                await self._store.set(earnings_key(actor_id), 0)
            amount = stored + self._unsettled.pop(actor_id, 0)
            if amount <= 0:
                return 0

        logger.info("Ledger claim: actor %s collected %d", actor_id, amount)
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.EARNINGS_CLAIMED,
                data={"actor_id": actor_id, "amount": amount},
                source="earnings_ledger",
            )
        )
        return amount

    async def restore(self, actor_id: int, amount: int) -> bool:
        """claim으로 꺼냈지만 지급하지 못한 금액을 장부로 되돌린다.

        저장소가 실패하면 보류해 두고 settle()이 재시도한다.
        반환: 저장소 반영 여부.
        """
        try:
            await self.credit(actor_id, amount)
            return True
        except TransientStoreError as e:
            self._unsettled[actor_id] = self._unsettled.get(actor_id, 0) + amount
            logger.warning(
                "Holding %d for actor %s until the store recovers: %s",
                amount,
                actor_id,
                e,
            )
            return False

    async def settle(self) -> int:
        """보류분을 저장소에 적립. 반환: 정산된 판매자 수."""
        settled = 0
        for seller_id in list(self._unsettled):
            # claim과 같은 잠금 아래에서 보류분을 읽어야 이중 지급이 없다
            async with self._locks.hold(seller_id):
                amount = self._unsettled.get(seller_id, 0)
                if amount <= 0:
                    self._unsettled.pop(seller_id, None)
                    continue
                try:
                    current = await self._read(seller_id)
                    await self._store.set(earnings_key(seller_id), current + amount)
                except TransientStoreError as e:
                    logger.warning("Settle failed for seller %s: %s", seller_id, e)
                    continue
                remaining = self._unsettled.get(seller_id, 0) - amount
                if remaining > 0:
                    self._unsettled[seller_id] = remaining
                else:
                    self._unsettled.pop(seller_id, None)
            settled += 1
        if settled:
            logger.info("Earnings settle: %d seller(s) settled", settled)
        return settled

    def start(self) -> None:
        self._settler.start()

    async def stop(self) -> None:
        await self._settler.stop()
