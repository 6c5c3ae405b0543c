"""마켓 도메인 모델 (DB 무관)"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any, Optional

from src.core.errors import MalformedRecordError


def new_listing_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Listing:
    """활성 판매 등록 하나. price > 0."""

    listing_id: str
    item_id: str
    item_name: str
    category: str
    price: int
    seller_id: int

    expires_at: Optional[float] = None  # epoch seconds, None = 만료 없음
    escrowed: bool = False  # 판매자 인벤토리에서 1개를 빼서 보관 중인지

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Any) -> "Listing":
        if not isinstance(record, dict):
            raise MalformedRecordError(f"listing record is not a mapping: {record!r}")
        try:
            listing = cls(
                listing_id=str(record["listing_id"]),
                item_id=str(record["item_id"]),
                item_name=str(record["item_name"]),
                category=str(record["category"]),
                price=int(record["price"]),
                seller_id=int(record["seller_id"]),
                expires_at=(
                    float(record["expires_at"])
                    if record.get("expires_at") is not None
                    else None
                ),
                escrowed=bool(record.get("escrowed", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedRecordError(f"bad listing record: {e}") from e
        if listing.price <= 0:
            raise MalformedRecordError(
                f"listing {listing.listing_id} has non-positive price"
            )
        return listing
