"""Ordered field and record-array extractors for tolerant vendor parsing."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

RecordLocator = Callable[[Any], Optional[list]]


def first_present(record: Mapping[str, Any], names: Iterable[str]) -> Any:
    """Return the first value that is present, non-null and not blank."""
    for name in names:
        value = record.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_float(value: Any) -> Optional[float]:
    """Convert vendor numeric value to float when possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.strip().replace(" ", "").replace(",", "")
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def round_money(value: float) -> float:
    return round(value, 2)


def unit_price_from_total(total: Any, quantity: Any) -> float:
    """Derive unit price from a line total; zero quantity yields 0."""
    total_value = to_float(total) or 0.0
    quantity_value = to_float(quantity) or 0.0
    if quantity_value == 0:
        return 0.0
    return round_money(total_value / quantity_value)


def _bare_list(body: Any) -> Optional[list]:
    return body if isinstance(body, list) else None


def under(key: str) -> RecordLocator:
    """Locator for `{key: [...]}` bodies."""

    def locate(body: Any) -> Optional[list]:
        if isinstance(body, dict) and isinstance(body.get(key), list):
            return body[key]
        return None

    locate.__name__ = f"under_{key}"
    return locate


DEFAULT_RECORD_LOCATORS: tuple[RecordLocator, ...] = (
    _bare_list,
    under("results"),
    under("Results"),
    under("Items"),
    under("items"),
    under("data"),
)


def extract_records(
    body: Any, locators: Sequence[RecordLocator] = DEFAULT_RECORD_LOCATORS
) -> Optional[list]:
    """Return the record array from the first matching locator, else None."""
    for locate in locators:
        records = locate(body)
        if records is not None:
            return records
    return None



def compact(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop None values so absent fields are omitted from vendor payloads."""
    return {key: value for key, value in payload.items() if value is not None}
