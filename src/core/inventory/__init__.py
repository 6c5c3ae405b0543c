"""인벤토리 Core — 순수 Python, 저장소/알림 무관"""

from .catalog import ItemCatalog, ItemDefinition
from .inventory import DEFAULT_INVENTORY_LIMIT, Inventory
from .models import Item

__all__ = [
    "Item",
    "Inventory",
    "DEFAULT_INVENTORY_LIMIT",
    "ItemCatalog",
    "ItemDefinition",
]
