"""Field registries, one per entity kind."""

from .inventory import INVENTORY_FIELDS
from .product import PRODUCT_FIELDS
from .store import DAYS, FEATURE_FIELDS, STORE_FIELDS

__all__ = ["DAYS", "FEATURE_FIELDS", "INVENTORY_FIELDS", "PRODUCT_FIELDS", "STORE_FIELDS"]
