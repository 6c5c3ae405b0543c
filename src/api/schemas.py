"""API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class PickupRequest(BaseModel):
    """아이템 획득 요청 (카탈로그 ID)"""

    item_id: str = Field(..., min_length=1, max_length=64, description="아이템 정의 ID")


class CreateListingRequest(BaseModel):
    """판매 등록 요청. 가격 검증은 서비스에서 (InvalidPrice)."""

    seller_id: int = Field(..., description="판매자 액터 ID")
    item_id: str = Field(..., min_length=1, max_length=64)
    price: int = Field(..., description="판매가 (양수)")
    category: Optional[str] = Field(None, description="미지정 시 아이템 카테고리")
    item_name: Optional[str] = Field(None, description="자유 등록 시 표시 이름")


class PurchaseRequest(BaseModel):
    """구매 요청"""

    buyer_id: int = Field(..., description="구매자 액터 ID")
    listing_id: str = Field(..., min_length=1)


# === Response Schemas ===


class ItemInfo(BaseModel):
    """인벤토리 아이템"""

    name: str
    item_id: str
    description: str
    max_stack: int
    stack_count: int
    durability: int
    rarity: str
    category: str
    is_quest_item: bool = False


class InventoryPageResponse(BaseModel):
    """본인 인벤토리 페이지 조회 응답"""

    Page: int
    PageSize: int
    TotalItems: int
    Inventory: list[ItemInfo] = []


class ConnectResponse(BaseModel):
    actor_id: int
    fresh: bool
    claimed: int = 0
    reclaimed: int = 0


class DisconnectResponse(BaseModel):
    actor_id: int
    saved: bool


class ItemActionResponse(BaseModel):
    """아이템 추가/제거/사용 응답"""

    success: bool
    message: str
    item: Optional[ItemInfo] = None
    item_count: int


class NotificationInfo(BaseModel):
    kind: str
    payload: Any = None
    data: dict[str, Any] = {}


class ListingInfo(BaseModel):
    """판매 등록 정보"""

    listing_id: str
    item_id: str
    item_name: str
    category: str
    price: int
    seller_id: int
    expires_at: Optional[float] = None


class PurchaseResponse(BaseModel):
    success: bool
    listing: ListingInfo
    balance: int


class ErrorResponse(BaseModel):
    """에러 응답"""

    detail: str
