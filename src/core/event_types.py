"""이벤트 유형 상수"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # inventory
    INVENTORY_CHANGED = "inventory_changed"
    ITEM_ADDED = "item_added"
    ITEM_DESTROYED = "item_destroyed"
    ITEM_BROKEN = "item_broken"

    # session
    ACTOR_CONNECTED = "actor_connected"
    ACTOR_DISCONNECTED = "actor_disconnected"

    # marketplace
    LISTING_CREATED = "listing_created"
    LISTING_SOLD = "listing_sold"
    LISTING_EXPIRED = "listing_expired"

    # earnings ledger
    EARNINGS_CREDITED = "earnings_credited"
    EARNINGS_CLAIMED = "earnings_claimed"
