"""Field definitions for product records.

``inventoryCount`` is not part of the upstream product payload; the
orchestrator copies it in from the inventory listing before the record is
normalized, and the inventory aggregates below are derived from it.
"""

from __future__ import annotations

from ..normalize import tagify, titlecase, to_bool_flag, to_float, to_int
from ..transform import FieldContext, FieldRegistry

PRODUCT_FIELDS = FieldRegistry("product")


@PRODUCT_FIELDS.field("id")
def _id(ctx: FieldContext) -> int:
    return int(ctx.lookup("itemNumber"))


@PRODUCT_FIELDS.field("name")
def _name(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("itemName"))


@PRODUCT_FIELDS.field("tags")
def _tags(ctx: FieldContext) -> str:
    return tagify(
        ctx.name,
        ctx.primary_category,
        ctx.secondary_category,
        ctx.origin,
        ctx.producer_name,
        ctx.package,
    )


@PRODUCT_FIELDS.field("price_in_cents")
def _price_in_cents(ctx: FieldContext) -> int:
    return to_int(ctx.lookup("priceInCents")) or 0


@PRODUCT_FIELDS.field("regular_price_in_cents")
def _regular_price_in_cents(ctx: FieldContext) -> int:
    regular = to_int(ctx.lookup("regularPriceInCents"))
    return ctx.price_in_cents if regular is None else regular


@PRODUCT_FIELDS.field("limited_time_offer_savings_in_cents")
def _lto_savings(ctx: FieldContext) -> int:
    return max(ctx.regular_price_in_cents - ctx.price_in_cents, 0)


@PRODUCT_FIELDS.field("has_limited_time_offer")
def _has_lto(ctx: FieldContext) -> bool:
    return ctx.limited_time_offer_savings_in_cents > 0


@PRODUCT_FIELDS.field("package_unit_volume_in_milliliters")
def _unit_volume(ctx: FieldContext) -> int:
    return to_int(ctx.lookup("unitVolumeInMilliliters")) or 0


@PRODUCT_FIELDS.field("total_package_units")
def _units(ctx: FieldContext) -> int:
    return to_int(ctx.lookup("totalPackageUnits")) or 1


@PRODUCT_FIELDS.field("volume_in_milliliters")
def _volume(ctx: FieldContext) -> int:
    return ctx.package_unit_volume_in_milliliters * ctx.total_package_units


@PRODUCT_FIELDS.field("alcohol_content")
def _alcohol_content(ctx: FieldContext) -> int | None:
    # Upstream reports percent; stored as hundredths of a percent.
    value = to_float(ctx.lookup("alcoholPercent"))
    return None if value is None else int(round(value * 100))


@PRODUCT_FIELDS.field("primary_category")
def _primary_category(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("primaryCategory"))


@PRODUCT_FIELDS.field("secondary_category")
def _secondary_category(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("secondaryCategory"))


@PRODUCT_FIELDS.field("origin")
def _origin(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("origin"))


@PRODUCT_FIELDS.field("producer_name")
def _producer_name(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("producerName"))


@PRODUCT_FIELDS.field("package")
def _package(ctx: FieldContext) -> str | None:
    container = ctx.lookup("containerType")
    if not container or not ctx.package_unit_volume_in_milliliters:
        return None
    prefix = f"{ctx.total_package_units} x " if ctx.total_package_units > 1 else ""
    return f"{prefix}{ctx.package_unit_volume_in_milliliters} mL {str(container).lower()}"


@PRODUCT_FIELDS.field("stock_type")
def _stock_type(ctx: FieldContext) -> str | None:
    value = ctx.lookup("stockType")
    return str(value).upper() if value else None


@PRODUCT_FIELDS.field("is_discontinued")
def _is_discontinued(ctx: FieldContext) -> bool:
    return to_bool_flag(ctx.lookup("discontinuedCode"))


@PRODUCT_FIELDS.field("is_vqa")
def _is_vqa(ctx: FieldContext) -> bool:
    return to_bool_flag(ctx.lookup("vqaCode"))


@PRODUCT_FIELDS.field("is_kosher")
def _is_kosher(ctx: FieldContext) -> bool:
    return to_bool_flag(ctx.lookup("kosherCode"))


@PRODUCT_FIELDS.field("inventory_count")
def _inventory_count(ctx: FieldContext) -> int:
    return to_int(ctx.lookup("inventoryCount")) or 0


@PRODUCT_FIELDS.field("inventory_price_in_cents")
def _inventory_price(ctx: FieldContext) -> int:
    return ctx.price_in_cents * ctx.inventory_count


@PRODUCT_FIELDS.field("inventory_volume_in_milliliters")
def _inventory_volume(ctx: FieldContext) -> int:
    return ctx.volume_in_milliliters * ctx.inventory_count


__all__ = ["PRODUCT_FIELDS"]
