"""Field definitions for store records."""

from __future__ import annotations

import calendar

from ..normalize import (
    canonical_postal_code,
    format_phone,
    slug,
    tagify,
    time_to_msm,
    titlecase,
    to_bool_flag,
    to_float,
    to_int,
)
from ..transform import FieldContext, FieldRegistry

STORE_FIELDS = FieldRegistry("store")

# Output field -> raw "<key>Code" flag carrying "Y" when the feature exists.
FEATURE_FIELDS = {
    "has_wheelchair_accessability": "wheelChair",
    "has_bilingual_services": "bilingual",
    "has_product_consultant": "wineConsultant",
    "has_tasting_bar": "tastingBar",
    "has_beer_cold_room": "beerColdRoom",
    "has_special_occasion_permits": "specialPermit",
    "has_vintages_corner": "vintageCorner",
    "has_transit_access": "transitAccess",
}

# Sunday first, matching the upstream week layout.
DAYS = [calendar.day_name[(index + 6) % 7].lower() for index in range(7)]


@STORE_FIELDS.field("id")
def _id(ctx: FieldContext) -> int:
    return int(ctx.lookup("locationNumber"))


@STORE_FIELDS.field("name")
def _name(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("locationIntersection"))


@STORE_FIELDS.field("tags")
def _tags(ctx: FieldContext) -> str:
    return tagify(ctx.name, ctx.address_line_1, ctx.address_line_2, ctx.city, ctx.postal_code)


@STORE_FIELDS.field("kind")
def _kind(ctx: FieldContext) -> str:
    return slug(ctx.lookup("locationTypeDescription"))


@STORE_FIELDS.field("address_line_1")
def _address_line_1(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("locationAddress1"))


@STORE_FIELDS.field("address_line_2")
def _address_line_2(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("locationAddress2")) or None


@STORE_FIELDS.field("city")
def _city(ctx: FieldContext) -> str | None:
    return titlecase(ctx.lookup("locationCityName"))


@STORE_FIELDS.field("postal_code")
def _postal_code(ctx: FieldContext) -> str | None:
    return canonical_postal_code(ctx.lookup("postalCode"))


@STORE_FIELDS.field("telephone")
def _telephone(ctx: FieldContext) -> str | None:
    return format_phone(ctx.lookup("phoneAreaCode"), ctx.lookup("phoneNumber1"))


@STORE_FIELDS.field("fax")
def _fax(ctx: FieldContext) -> str | None:
    return format_phone(ctx.lookup("phoneAreaCode"), ctx.lookup("faxNumber"))


@STORE_FIELDS.field("latitude")
def _latitude(ctx: FieldContext) -> float | None:
    return to_float(ctx.lookup("latitude"))


@STORE_FIELDS.field("longitude")
def _longitude(ctx: FieldContext) -> float | None:
    return to_float(ctx.lookup("longitude"))


@STORE_FIELDS.field("landmark_name")
def _landmark_name(ctx: FieldContext) -> str | None:
    value = ctx.lookup("anchorStoreName")
    if not value:
        return None
    return titlecase(value).replace("Mkt", "Market")


def _hour_field(key: str):
    def compute(ctx: FieldContext) -> int | None:
        return time_to_msm(ctx.lookup(key))

    return compute


def _feature_field(key: str):
    def compute(ctx: FieldContext) -> bool:
        return to_bool_flag(ctx.lookup(f"{key}Code"))

    return compute


for _day in DAYS:
    STORE_FIELDS.add(f"{_day}_open", _hour_field(f"{_day}OpenHour"))
    STORE_FIELDS.add(f"{_day}_close", _hour_field(f"{_day}CloseHour"))

for _field_name, _key in FEATURE_FIELDS.items():
    STORE_FIELDS.add(_field_name, _feature_field(_key))


@STORE_FIELDS.field("has_parking")
def _has_parking(ctx: FieldContext) -> bool:
    return (to_int(ctx.lookup("parkSpaceQuantity")) or 0) > 0


__all__ = ["DAYS", "FEATURE_FIELDS", "STORE_FIELDS"]
