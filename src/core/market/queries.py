"""마켓 조회 — 카테고리 필터 + 인벤토리 페이지네이션 (순수 함수)"""

from typing import Any, Iterable, Optional

from .models import Listing

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def filter_by_category(
    listings: Iterable[Listing], category: Optional[str], now: float
) -> list[Listing]:
    """category가 비었거나 일치하는 등록이 없으면 빈 리스트. 만료 등록 제외."""
    if not category:
        return []
    return [
        listing
        for listing in listings
        if listing.category == category and not listing.is_expired(now)
    ]


def paginate_inventory(
    items: list[dict[str, Any]], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> dict[str, Any]:
    """인벤토리 스냅샷 페이지 슬라이스.

    page는 1부터. 범위를 벗어난 page는 빈 Inventory.
    page_size는 1~MAX_PAGE_SIZE로 보정.
    """
    page = max(1, page)
    page_size = min(max(1, page_size), MAX_PAGE_SIZE)
    start = (page - 1) * page_size
    return {
        "Page": page,
        "PageSize": page_size,
        "TotalItems": len(items),
        "Inventory": items[start : start + page_size],
    }
