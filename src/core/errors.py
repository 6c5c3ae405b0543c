"""도메인 예외 계층

모든 예외는 `code` 속성을 가진다. API 계층은 code로 HTTP 상태를 결정하고,
서비스 계층은 메시지를 그대로 클라이언트 상태 알림으로 보낸다.
"""


class GameError(Exception):
    """인벤토리/마켓 공통 기반 예외"""

    code = "GameError"


# === Inventory ===


class InventoryError(GameError):
    code = "InventoryError"


class InvalidItemError(InventoryError):
    code = "InvalidItem"


class InventoryFullError(InventoryError):
    code = "InventoryFull"


class StackFullError(InventoryFullError):
    """같은 ID의 스택이 이미 max_stack에 도달. 초과분을 버리지 않고 거부한다."""

    code = "StackFull"


# === Marketplace ===


class MarketError(GameError):
    code = "MarketError"


class InvalidPriceError(MarketError):
    code = "InvalidPrice"


class NotOwnerError(MarketError):
    code = "NotOwner"


class ListingNotFoundError(MarketError):
    code = "NotFound"


class InsufficientFundsError(MarketError):
    code = "InsufficientFunds"


class BuyerInventoryFullError(MarketError):
    code = "BuyerInventoryFull"


class ActorOfflineError(MarketError):
    """접속 중이 아닌 액터의 인메모리 상태가 필요한 요청"""

    code = "ActorOffline"


# === Storage ===


class StoreError(GameError):
    code = "StoreError"


class TransientStoreError(StoreError):
    """get/set 일시 실패. 재시도 가능."""

    code = "TransientStoreError"


class MalformedRecordError(GameError):
    """저장된 레코드 형식 오류. 해당 레코드만 건너뛴다."""

    code = "MalformedRecord"
