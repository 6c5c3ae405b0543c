"""Inventory & Marketplace Core"""
__version__ = "0.1.0"

from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.inventory import Inventory, Item, ItemCatalog, ItemDefinition
from src.core.market import Listing, filter_by_category, paginate_inventory
from src.core.timers import Debouncer, PeriodicTask

__all__ = [
    "EventBus",
    "GameEvent",
    "EventTypes",
    "Inventory",
    "Item",
    "ItemCatalog",
    "ItemDefinition",
    "Listing",
    "filter_by_category",
    "paginate_inventory",
    "Debouncer",
    "PeriodicTask",
]
