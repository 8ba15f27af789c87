"""Field definitions for inventory line items (one product at one store)."""

from __future__ import annotations

from ..normalize import to_int
from ..transform import FieldContext, FieldRegistry

INVENTORY_FIELDS = FieldRegistry("inventory", id_field="store_id")


@INVENTORY_FIELDS.field("product_id")
def _product_id(ctx: FieldContext) -> int:
    return int(ctx.lookup("productId"))


@INVENTORY_FIELDS.field("store_id")
def _store_id(ctx: FieldContext) -> int:
    return int(ctx.lookup("locationNumber"))


@INVENTORY_FIELDS.field("quantity")
def _quantity(ctx: FieldContext) -> int:
    return max(to_int(ctx.lookup("quantity")) or 0, 0)


@INVENTORY_FIELDS.field("updated_on")
def _updated_on(ctx: FieldContext) -> str | None:
    value = ctx.lookup("updatedOn")
    return str(value)[:10] if value else None


__all__ = ["INVENTORY_FIELDS"]
