"""Flattening of raw catalog rows into display-ready product records."""

import json
import logging
from typing import Any

from catalog_search.schemas.search import ProductRecord
from catalog_search.utils.text import normalize_text

logger = logging.getLogger(__name__)

ATTRIBUTE_BAG_FIELD = "all_attributes"

# Never shown to callers or sent to the LLM
INTERNAL_FIELDS = frozenset({ATTRIBUTE_BAG_FIELD, "embedding", "_id"})


def parse_attribute_bag(value: Any) -> dict[str, Any] | None:
    """
    Parse the nested attribute bag of a row.

    The bag is stored either as a JSON string or as an embedded document.
    Returns None when the value is missing or not a JSON object.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        parsed = json.loads(value)
        if isinstance(parsed, dict):
            return parsed
        raise ValueError(f"attribute bag is a JSON {type(parsed).__name__}, expected an object")
    raise ValueError(f"unsupported attribute bag type: {type(value).__name__}")


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = normalize_text(value)
        return cleaned or None
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, list):
        items = [cleaned for cleaned in map(_clean_value, value) if cleaned is not None]
        return items or None
    if isinstance(value, dict):
        mapping = {}
        for key, item in value.items():
            cleaned = _clean_value(item)
            if cleaned is not None:
                mapping[key] = cleaned
        return mapping or None
    # datetimes, ObjectIds, Decimal128 and the like
    return str(value)


def flatten_record(record: ProductRecord) -> ProductRecord:
    """
    Merge top-level fields with the attribute bag into one flat mapping.

    Keys are de-duplicated case-insensitively, top level first. Empty
    values (including empty nested lists and mappings) are dropped and do
    not claim their key. Strings are normalized at every nesting level.
    """
    flat: ProductRecord = {}
    seen: set[str] = set()

    def _add(key: str, value: Any) -> None:
        lower_key = key.lower()
        if lower_key in seen:
            return
        cleaned = _clean_value(value)
        if cleaned is None:
            return
        seen.add(lower_key)
        flat[key] = cleaned

    for key, value in record.items():
        if key in INTERNAL_FIELDS:
            continue
        _add(key, value)

    try:
        attributes = parse_attribute_bag(record.get(ATTRIBUTE_BAG_FIELD))
    except (ValueError, TypeError) as e:
        identifier = record.get("sku") or record.get("product_code") or record.get("name") or "unknown"
        logger.warning(f"⚠️ Could not parse {ATTRIBUTE_BAG_FIELD} for {identifier}: {e}")
        attributes = None

    if attributes:
        for key, value in attributes.items():
            if key in INTERNAL_FIELDS:
                continue
            _add(key, value)

    return flat


def flatten_records(records: list[ProductRecord]) -> list[ProductRecord]:
    return [flatten_record(record) for record in records]


def serialize_record(record: ProductRecord) -> str:
    """Compact JSON text of a record, used for keyword matching."""
    return json.dumps(record, ensure_ascii=False, default=str)
