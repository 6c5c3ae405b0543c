"""API 의존성 주입 + 도메인 예외 → HTTP 변환"""

from fastapi import HTTPException, Request

from src.core.errors import (
    ActorOfflineError,
    BuyerInventoryFullError,
    GameError,
    InsufficientFundsError,
    InvalidItemError,
    InvalidPriceError,
    InventoryFullError,
    ListingNotFoundError,
    NotOwnerError,
    TransientStoreError,
)
from src.services.inventory_service import InventoryService
from src.services.marketplace_service import MarketplaceService
from src.services.notifier import OutboxChannel
from src.services.session_service import SessionService

_STATUS_BY_ERROR: list[tuple[type[GameError], int]] = [
    (InvalidItemError, 400),
    (InvalidPriceError, 400),
    (NotOwnerError, 403),
    (ListingNotFoundError, 404),
    (InsufficientFundsError, 409),
    (BuyerInventoryFullError, 409),
    (InventoryFullError, 409),
    (ActorOfflineError, 409),
    (TransientStoreError, 503),
]


def to_http_error(error: GameError) -> HTTPException:
    """도메인 예외를 HTTPException으로. detail은 "code: message"."""
    status = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status = code
            break
    return HTTPException(status_code=status, detail=f"{error.code}: {error}")


def get_session_service(request: Request) -> SessionService:
    """SessionService 인스턴스 반환 (의존성 주입)"""
    service: SessionService = request.app.state.session_service
    return service


def get_inventory_service(request: Request) -> InventoryService:
    """InventoryService 인스턴스 반환 (의존성 주입)"""
    service: InventoryService = request.app.state.inventory_service
    return service


def get_marketplace_service(request: Request) -> MarketplaceService:
    """MarketplaceService 인스턴스 반환 (의존성 주입)"""
    service: MarketplaceService = request.app.state.marketplace_service
    return service


def get_channel(request: Request) -> OutboxChannel:
    """알림 채널 반환 (의존성 주입)"""
    channel: OutboxChannel = request.app.state.channel
    return channel
