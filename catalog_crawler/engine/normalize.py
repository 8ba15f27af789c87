"""Pure string, time and number helpers used by field definitions."""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable

_SMALL_WORDS = frozenset(
    {"a", "an", "and", "at", "by", "de", "des", "du", "en", "for", "in", "la", "le", "of", "on", "the", "to"}
)
_UPPER_WORDS = frozenset(
    {"lcbo", "vqa", "ne", "nw", "se", "sw", "ii", "iii", "iv", "vi", "vii", "viii", "ix", "usa", "uk"}
)
_ORDINAL = re.compile(r"^\d+(st|nd|rd|th)$")
_ELISION = re.compile(r"^([a-zà-ÿ])'(.+)$")
_MC_PREFIX = re.compile(r"^mc([a-zà-ÿ]{2,})$")
_TIME = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?::(?P<second>\d{2}))?\s*(?P<meridiem>[ap]\.?m\.?)?\s*$",
    re.IGNORECASE,
)
_TAG_SPLIT = re.compile(r"[^0-9a-z]+")
_WHITESPACE = re.compile(r"\s+")


def _capitalize_segment(segment: str) -> str:
    match = _ELISION.match(segment)
    if match:
        return match.group(1).upper() + "'" + match.group(2).capitalize()
    match = _MC_PREFIX.match(segment)
    if match:
        return "Mc" + match.group(1).capitalize()
    return segment.capitalize()


def _titlecase_word(word: str, first: bool) -> str:
    lower = word.lower()
    bare = lower.strip(".,;:()")
    if bare in _UPPER_WORDS:
        return word.upper()
    if _ORDINAL.match(bare):
        return lower
    if not first and bare in _SMALL_WORDS:
        return lower
    pieces = re.split(r"([-/(])", lower)
    return "".join(_capitalize_segment(piece) if piece not in "-/(" else piece for piece in pieces)


def titlecase(text: str | None) -> str | None:
    """Capitalize names and addresses the way a postal directory would.

    Small connecting words stay lower case unless they open the string,
    ordinals keep a lower case suffix (``1st``), directional and institutional
    abbreviations stay upper case, and segments after hyphens, slashes and
    French elisions (``l'``, ``d'``) are capitalized too.
    """

    if text is None:
        return None
    words = str(text).split()
    return " ".join(_titlecase_word(word, index == 0) for index, word in enumerate(words))


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tagify(*values: Any) -> str:
    """Build a lowercase, deduplicated, space separated token string."""

    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        text = strip_accents(str(value)).lower().replace("'", "")
        for token in _TAG_SPLIT.split(text):
            if token:
                seen.setdefault(token, None)
    return " ".join(seen)


def time_to_msm(value: Any) -> int | None:
    """Convert a wall clock time into minutes since midnight."""

    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    match = _TIME.match(text)
    if not match:
        raise ValueError(f"unrecognised time value: {value!r}")
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = (match.group("meridiem") or "").lower().replace(".", "")
    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"hour out of range for 12h clock: {value!r}")
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    if minute > 59 or hour > 24 or (hour == 24 and minute):
        raise ValueError(f"time out of range: {value!r}")
    return hour * 60 + minute


def format_phone(area_code: Any, number: Any) -> str | None:
    if number in (None, ""):
        return None
    number_text = str(number).strip()
    if area_code in (None, ""):
        return number_text
    return f"({str(area_code).strip()}) {number_text}"


def canonical_postal_code(value: Any) -> str | None:
    if value is None:
        return None
    return _WHITESPACE.sub("", str(value)).upper() or None


def to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return int(float(str(value).strip().replace(",", "")))


def to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return float(str(value).strip().replace(",", ""))


def to_bool_flag(value: Any, yes: str = "Y") -> bool:
    if isinstance(value, bool):
        return value
    return value == yes


def slug(value: str) -> str:
    return _WHITESPACE.sub("_", value.strip().lower())


def dollars_to_cents(value: Any) -> int | None:
    amount = to_float(value)
    if amount is None:
        return None
    return int(round(amount * 100))


__all__ = [
    "canonical_postal_code",
    "dollars_to_cents",
    "format_phone",
    "slug",
    "strip_accents",
    "tagify",
    "time_to_msm",
    "titlecase",
    "to_bool_flag",
    "to_float",
    "to_int",
]
