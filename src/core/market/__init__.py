"""마켓 Core — 판매 등록 모델 + 조회"""

from .models import Listing, new_listing_id
from .queries import filter_by_category, paginate_inventory

__all__ = ["Listing", "new_listing_id", "filter_by_category", "paginate_inventory"]
