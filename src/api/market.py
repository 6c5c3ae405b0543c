"""Marketplace endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_inventory_service, get_marketplace_service, to_http_error
from src.api.schemas import (
    CreateListingRequest,
    ErrorResponse,
    ListingInfo,
    PurchaseRequest,
    PurchaseResponse,
)
from src.core.errors import GameError
from src.core.logging import get_logger
from src.core.market import Listing
from src.services.inventory_service import InventoryService
from src.services.marketplace_service import MarketplaceService

logger = get_logger(__name__)

router = APIRouter(prefix="/market", tags=["market"])


def _build_listing_info(listing: Listing) -> ListingInfo:
    """Listing을 ListingInfo로 변환"""
    return ListingInfo(
        listing_id=listing.listing_id,
        item_id=listing.item_id,
        item_name=listing.item_name,
        category=listing.category,
        price=listing.price,
        seller_id=listing.seller_id,
        expires_at=listing.expires_at,
    )


@router.get("/listings", response_model=list[ListingInfo])
async def list_by_category(
    category: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None, description="결과를 알림으로도 받을 액터"),
    market: MarketplaceService = Depends(get_marketplace_service),
) -> list[ListingInfo]:
    """
    카테고리별 판매 목록

    category 미지정/미존재 시 빈 목록.
    """
    if actor_id is not None:
        listings = market.send_category_results(actor_id, category)
    else:
        listings = market.list_by_category(category)
    return [_build_listing_info(listing) for listing in listings]


@router.post(
    "/listings",
    response_model=ListingInfo,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_listing(
    request: CreateListingRequest,
    market: MarketplaceService = Depends(get_marketplace_service),
) -> ListingInfo:
    """판매 등록"""
    try:
        listing = await market.list_item(
            seller_id=request.seller_id,
            item_id=request.item_id,
            price=request.price,
            category=request.category,
            item_name=request.item_name,
        )
    except GameError as e:
        logger.info("Listing rejected for seller %s: %s", request.seller_id, e)
        raise to_http_error(e)
    return _build_listing_info(listing)


@router.post(
    "/purchase",
    response_model=PurchaseResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def purchase(
    request: PurchaseRequest,
    market: MarketplaceService = Depends(get_marketplace_service),
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> PurchaseResponse:
    """구매"""
    try:
        listing = await market.purchase(request.buyer_id, request.listing_id)
        balance = inventory_service.get_balance(request.buyer_id)
    except GameError as e:
        logger.info("Purchase rejected for buyer %s: %s", request.buyer_id, e)
        raise to_http_error(e)
    return PurchaseResponse(
        success=True, listing=_build_listing_info(listing), balance=balance
    )
