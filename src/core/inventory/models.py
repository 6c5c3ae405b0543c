"""아이템 도메인 모델 (DB 무관)"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from src.core.errors import MalformedRecordError

DEFAULT_MAX_STACK = 64
DEFAULT_DURABILITY = 100
DEFAULT_DESCRIPTION = "No Description"
DEFAULT_RARITY = "Common"
DEFAULT_CATEGORY = "Miscellaneous"


@dataclass
class Item:
    """인벤토리 한 칸 = 아이템 정의 하나 + 런타임 스택 수/내구도.

    item_id는 스택 개체가 아니라 아이템 *정의* 단위로 유일하다.
    """

    name: str
    item_id: str  # "potion001"
    description: str = DEFAULT_DESCRIPTION
    max_stack: int = DEFAULT_MAX_STACK
    stack_count: int = 1  # 0 ~ max_stack
    durability: int = DEFAULT_DURABILITY
    rarity: str = DEFAULT_RARITY
    category: str = DEFAULT_CATEGORY
    is_quest_item: bool = False

    def increase_stack(self, amount: int) -> None:
        """max_stack에서 조용히 잘린다."""
        self.stack_count = min(self.stack_count + amount, self.max_stack)

    def decrease_stack(self, amount: int) -> bool:
        """0 미만으로 내려가지 않는다. 반환: 스택 소진 여부 (소유 인벤토리가 레코드 제거)."""
        self.stack_count = max(self.stack_count - amount, 0)
        return self.stack_count == 0

    def use(self) -> bool:
        """내구도 1 소모. 이미 0이면 False (파손 상태). 예외 없음."""
        if self.durability > 0:
            self.durability -= 1
            return True
        return False

    @property
    def is_full(self) -> bool:
        return self.stack_count >= self.max_stack

    def is_valid(self) -> bool:
        return (
            isinstance(self.item_id, str)
            and bool(self.item_id)
            and isinstance(self.name, str)
            and isinstance(self.max_stack, int)
            and self.max_stack > 0
            and isinstance(self.stack_count, int)
            and 0 <= self.stack_count <= self.max_stack
            and isinstance(self.durability, int)
            and self.durability >= 0
        )

    def to_record(self) -> dict[str, Any]:
        """저장/UI용 dict"""
        return asdict(self)

    @classmethod
    def from_record(cls, record: Any) -> "Item":
        """저장 레코드 → Item. 스택 수 보존.

        필수: name, item_id. 나머지는 기본값.
        알 수 없는 키는 무시한다 (구버전/타 버전 레코드 호환).
        """
        if not isinstance(record, dict):
            raise MalformedRecordError(f"item record is not a mapping: {record!r}")

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in record.items() if k in known}
        try:
            item = cls(**kwargs)
        except TypeError as e:
            raise MalformedRecordError(f"item record missing fields: {e}") from e

        if not item.is_valid():
            raise MalformedRecordError(
                f"item record out of bounds: {record.get('item_id', '?')}"
            )
        return item
