"""아이템 정의 카탈로그 — JSON 로드 + 동적 등록

인벤토리에 들어가는 Item은 카탈로그 정의에서 새로 찍어낸다.
카탈로그에 없는 ID는 기본값(max_stack 64, 내구도 100)으로 만든다.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_DESCRIPTION,
    DEFAULT_DURABILITY,
    DEFAULT_MAX_STACK,
    DEFAULT_RARITY,
    Item,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemDefinition:
    """아이템 정의 — 불변. items.json에서 로드."""

    item_id: str
    name: str
    description: str = DEFAULT_DESCRIPTION
    max_stack: int = DEFAULT_MAX_STACK
    durability: int = DEFAULT_DURABILITY
    rarity: str = DEFAULT_RARITY
    category: str = DEFAULT_CATEGORY
    is_quest_item: bool = False

    def create(self, stack_count: int = 1) -> Item:
        return Item(
            name=self.name,
            item_id=self.item_id,
            description=self.description,
            max_stack=self.max_stack,
            stack_count=stack_count,
            durability=self.durability,
            rarity=self.rarity,
            category=self.category,
            is_quest_item=self.is_quest_item,
        )


class ItemCatalog:
    """
    아이템 정의 저장소.
    초기 데이터(JSON) + 동적 등록 정의 관리.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, ItemDefinition] = {}

    def load_from_json(self, path: str | Path) -> int:
        """items.json 로드. 반환: 로드된 수량.

        max_stack은 양의 정수여야 한다. 잘못된 항목은 경고 후 건너뛴다.
        """
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            raw_list: list[dict] = json.load(f)

        count = 0
        for raw in raw_list:
            try:
                definition = ItemDefinition(
                    item_id=raw["item_id"],
                    name=raw["name"],
                    description=raw.get("description", DEFAULT_DESCRIPTION),
                    max_stack=int(raw.get("max_stack", DEFAULT_MAX_STACK)),
                    durability=int(raw.get("durability", DEFAULT_DURABILITY)),
                    rarity=raw.get("rarity", DEFAULT_RARITY),
                    category=raw.get("category", DEFAULT_CATEGORY),
                    is_quest_item=bool(raw.get("is_quest_item", False)),
                )
                if definition.max_stack <= 0:
                    raise ValueError(f"max_stack must be positive: {definition.max_stack}")
                self._definitions[definition.item_id] = definition
                count += 1
            except (KeyError, ValueError) as e:
                logger.warning(
                    "Failed to load item definition %s: %s", raw.get("item_id", "?"), e
                )

        logger.info("Loaded %d item definitions from %s", count, path)
        return count

    def register(self, definition: ItemDefinition) -> None:
        """동적 정의 등록. 이미 존재하는 item_id면 경고 로그 후 덮어쓴다."""
        if definition.item_id in self._definitions:
            logger.warning("Overwriting existing item definition: %s", definition.item_id)
        self._definitions[definition.item_id] = definition

    def get(self, item_id: str) -> Optional[ItemDefinition]:
        """O(1) 조회. 없으면 None."""
        return self._definitions.get(item_id)

    def create_item(
        self, item_id: str, name: str | None = None, category: str | None = None
    ) -> Item:
        """정의에서 새 Item(stack 1) 생성. 정의가 없으면 기본값 Item."""
        definition = self._definitions.get(item_id)
        if definition is not None:
            return definition.create()
        return Item(
            name=name or item_id,
            item_id=item_id,
            category=category or DEFAULT_CATEGORY,
        )

    def get_all(self) -> list[ItemDefinition]:
        return list(self._definitions.values())

    def count(self) -> int:
        return len(self._definitions)
