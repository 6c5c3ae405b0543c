"""인벤토리 — 용량/스택 규칙 (순수 Python, 알림/저장 무관)

불변식:
- 모든 stack_count 합계 <= limit
- item_id당 레코드 하나
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from src.core.errors import (
    InvalidItemError,
    InventoryError,
    InventoryFullError,
    MalformedRecordError,
    StackFullError,
)

from .models import Item

logger = logging.getLogger(__name__)

DEFAULT_INVENTORY_LIMIT = 50


class Inventory:
    """액터 한 명의 인벤토리. 소유 액터만 변경한다."""

    def __init__(self, owner_id: int, limit: int = DEFAULT_INVENTORY_LIMIT) -> None:
        self.owner_id = owner_id
        self.limit = limit
        self.items: dict[str, Item] = {}

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.items

    def __len__(self) -> int:
        return len(self.items)

    def get(self, item_id: str) -> Optional[Item]:
        return self.items.get(item_id)

    def get_item_count(self) -> int:
        """전체 스택 단위 합계"""
        return sum(item.stack_count for item in self.items.values())

    def can_add(self, item_id: str, units: int = 1) -> bool:
        """add_item이 용량/스택 제한으로 거부하지 않을지 미리 확인."""
        if self.get_item_count() + units > self.limit:
            return False
        existing = self.items.get(item_id)
        return existing is None or not existing.is_full

    def add_item(self, item: Item) -> Item:
        """아이템 추가.

        같은 ID가 있으면 스택 +1, 없으면 레코드 삽입 (전달된 스택 수 유지).
        반환: 인벤토리에 실제로 들어있는 레코드.

        Raises:
            InvalidItemError: Item이 아니거나 필드가 범위를 벗어남
            InventoryFullError: 추가 후 합계가 limit 초과
            StackFullError: 같은 ID의 스택이 이미 max_stack
        """
        if not isinstance(item, Item) or not item.is_valid() or item.stack_count < 1:
            raise InvalidItemError("Invalid item.")

        existing = self.items.get(item.item_id)
        incoming = 1 if existing is not None else item.stack_count

        if self.get_item_count() + incoming > self.limit:
            raise InventoryFullError(
                f"Inventory full ({self.get_item_count()}/{self.limit})."
            )

        if existing is not None:
            if existing.is_full:
                raise StackFullError(
                    f"Stack full: {existing.name} ({existing.max_stack})."
                )
            existing.increase_stack(1)
            return existing

        self.items[item.item_id] = item
        return item

    def remove_item(self, item_id: str) -> Optional[Item]:
        """스택 -1. 없으면 None (no-op).

        반환된 Item의 stack_count가 0이면 레코드가 제거된 것이다.
        """
        item = self.items.get(item_id)
        if item is None:
            return None
        if item.decrease_stack(1):
            del self.items[item_id]
        return item

    def snapshot(self) -> list[dict[str, Any]]:
        """읽기 전용 스냅샷 (UI 푸시 + 저장용). 삽입 순서 유지."""
        return [item.to_record() for item in self.items.values()]

    def load_from(self, records: Iterable[Any]) -> int:
        """저장 레코드로 복원. 저장 순서대로 add_item.

        형식 오류/추가 거부 레코드는 경고 후 건너뛴다.
        반환: 복원된 레코드 수.
        """
        loaded = 0
        for record in records:
            try:
                self.add_item(Item.from_record(record))
                loaded += 1
            except (MalformedRecordError, InventoryError) as e:
                logger.warning(
                    "Skipping inventory record for actor %s: %s", self.owner_id, e
                )
        return loaded
