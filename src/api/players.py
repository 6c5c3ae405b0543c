"""Player session & inventory endpoints."""

from fastapi import APIRouter, Depends, Query

from src.api.deps import (
    get_channel,
    get_inventory_service,
    get_session_service,
    to_http_error,
)
from src.api.schemas import (
    ConnectResponse,
    DisconnectResponse,
    ErrorResponse,
    InventoryPageResponse,
    ItemActionResponse,
    ItemInfo,
    NotificationInfo,
    PickupRequest,
)
from src.core.errors import GameError
from src.core.logging import get_logger
from src.core.market import paginate_inventory
from src.services.inventory_service import InventoryService
from src.services.notifier import OutboxChannel
from src.services.session_service import SessionService

logger = get_logger(__name__)

router = APIRouter(prefix="/players", tags=["players"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/{actor_id}/connect",
    response_model=ConnectResponse,
    responses={503: {"model": ErrorResponse}},
)
async def connect_player(
    actor_id: int,
    sessions: SessionService = Depends(get_session_service),
) -> ConnectResponse:
    """
    접속 신호

    인벤토리를 로드하고, 오프라인 동안의 판매 대금을 정산합니다.
    """
    try:
        result = await sessions.connect(actor_id)
    except GameError as e:
        raise to_http_error(e)
    return ConnectResponse(**result)


@router.post(
    "/{actor_id}/disconnect",
    response_model=DisconnectResponse,
    responses={503: {"model": ErrorResponse}},
)
async def disconnect_player(
    actor_id: int,
    sessions: SessionService = Depends(get_session_service),
) -> DisconnectResponse:
    """접속 해제 신호 — 즉시 저장 후 메모리에서 제거"""
    try:
        saved = await sessions.disconnect(actor_id)
    except GameError as e:
        raise to_http_error(e)
    return DisconnectResponse(actor_id=actor_id, saved=saved)


@router.get("/{actor_id}/notifications", response_model=list[NotificationInfo])
async def drain_notifications(
    actor_id: int,
    channel: OutboxChannel = Depends(get_channel),
) -> list[NotificationInfo]:
    """쌓인 클라이언트 알림을 꺼내 비운다."""
    return [
        NotificationInfo(kind=n.kind, payload=n.payload, data=n.data)
        for n in channel.drain(actor_id)
    ]


@router.get(
    "/{actor_id}/inventory",
    response_model=InventoryPageResponse,
    responses=_ERROR_RESPONSES,
)
async def get_inventory_page(
    actor_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> InventoryPageResponse:
    """본인 인벤토리 페이지 조회"""
    try:
        items = inventory_service.get_inventory(actor_id).snapshot()
    except GameError as e:
        raise to_http_error(e)
    return InventoryPageResponse(**paginate_inventory(items, page, page_size))


@router.post(
    "/{actor_id}/items",
    response_model=ItemActionResponse,
    responses=_ERROR_RESPONSES,
)
async def pickup_item(
    actor_id: int,
    request: PickupRequest,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> ItemActionResponse:
    """아이템 획득"""
    try:
        item = inventory_service.pickup(actor_id, request.item_id)
        count = inventory_service.get_inventory(actor_id).get_item_count()
    except GameError as e:
        raise to_http_error(e)
    return ItemActionResponse(
        success=True,
        message=f"Added {item.name}",
        item=ItemInfo(**item.to_record()),
        item_count=count,
    )


@router.delete(
    "/{actor_id}/items/{item_id}",
    response_model=ItemActionResponse,
    responses=_ERROR_RESPONSES,
)
async def remove_item(
    actor_id: int,
    item_id: str,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> ItemActionResponse:
    """아이템 1개 제거 (없으면 변화 없음)"""
    try:
        item = inventory_service.remove_item(actor_id, item_id)
        count = inventory_service.get_inventory(actor_id).get_item_count()
    except GameError as e:
        raise to_http_error(e)
    if item is None:
        return ItemActionResponse(
            success=False, message=f"{item_id} not in inventory", item_count=count
        )
    return ItemActionResponse(
        success=True,
        message=f"Removed {item.name}",
        item=ItemInfo(**item.to_record()),
        item_count=count,
    )


@router.post(
    "/{actor_id}/items/{item_id}/use",
    response_model=ItemActionResponse,
    responses=_ERROR_RESPONSES,
)
async def use_item(
    actor_id: int,
    item_id: str,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> ItemActionResponse:
    """아이템 사용 — 내구도 1 소모"""
    try:
        used = inventory_service.use_item(actor_id, item_id)
        inventory = inventory_service.get_inventory(actor_id)
    except GameError as e:
        raise to_http_error(e)
    item = inventory.get(item_id)
    return ItemActionResponse(
        success=used,
        message="Used" if used else "Item broken",
        item=ItemInfo(**item.to_record()) if item else None,
        item_count=inventory.get_item_count(),
    )
