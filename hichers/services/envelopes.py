"""Response envelope normalization for the Hichers API.

List endpoints wrap their rows inconsistently: a bare array, or an array
under `data`, `response`, `offers` (already in the dashboard shape) or
`loyaltySchemes` / `programs`. Every caller goes through
`normalize_list_envelope` instead of probing keys itself.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class EnvelopeShape(str, Enum):
    BARE_LIST = "bare_list"
    DATA = "data"
    RESPONSE = "response"
    OFFERS = "offers"
    SCHEMES = "schemes"
    UNKNOWN = "unknown"


# Checked in order; the first key holding a list wins.
_KEYED_SHAPES: tuple[tuple[str, EnvelopeShape], ...] = (
    ("data", EnvelopeShape.DATA),
    ("response", EnvelopeShape.RESPONSE),
    ("offers", EnvelopeShape.OFFERS),
    ("loyaltySchemes", EnvelopeShape.SCHEMES),
    ("programs", EnvelopeShape.SCHEMES),
)


@dataclass
class ListEnvelope:
    shape: EnvelopeShape
    items: list[dict] = field(default_factory=list)
    key: str | None = None


def detect_envelope(raw: Any) -> tuple[EnvelopeShape, str | None]:
    """Return the envelope shape and the key holding the rows."""
    if isinstance(raw, list):
        return EnvelopeShape.BARE_LIST, None
    if isinstance(raw, dict):
        for key, shape in _KEYED_SHAPES:
            if isinstance(raw.get(key), list):
                return shape, key
    return EnvelopeShape.UNKNOWN, None


def normalize_list_envelope(raw: Any) -> ListEnvelope:
    """Collapse any known list envelope into `ListEnvelope(items=[...])`.

    Non-dict rows are dropped; an unknown envelope yields no items.
    """
    shape, key = detect_envelope(raw)
    if shape is EnvelopeShape.UNKNOWN:
        return ListEnvelope(shape=shape)
    rows = raw if key is None else raw[key]
    return ListEnvelope(
        shape=shape,
        items=[row for row in rows if isinstance(row, dict)],
        key=key,
    )


def pick(raw: dict, *keys: str, default: Any = None) -> Any:
    """First non-empty value among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return default


def as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)


def format_amount(value: Any) -> str | None:
    """Render a numeric form/remote value without float noise ("20.0" -> "20")."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


_DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def normalize_inbound_date(value: Any) -> str:
    """Remote dates ("2025-01-15", "2025/01/15", ISO timestamps) -> "YYYY-MM-DD"."""
    if not isinstance(value, str):
        return ""
    match = _DATE_RE.match(value.strip())
    if not match:
        return ""
    year, month, day = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


def to_outbound_date(value: Any) -> str:
    """Dates sent to the remote API always use forward slashes."""
    if value is None:
        return ""
    text = value.isoformat() if hasattr(value, "isoformat") else str(value)
    return normalize_inbound_date(text).replace("-", "/")


def normalize_time(value: Any, default: str) -> str:
    """"9:5" / "09:05:00" / "9" -> "HH:MM"."""
    if value is None or str(value).strip() == "":
        return default
    parts = str(value).strip().split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        return default
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return default
    return f"{hours:02d}:{minutes:02d}"
