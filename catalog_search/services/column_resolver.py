"""Maps logical product attributes to the physical columns of a catalog."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Priority-ordered candidate column names per logical attribute
COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "identifier": ("sku", "SKU", "product_code", "productCode", "part_number", "id"),
    "name": ("product_name", "productName", "name", "Name", "title"),
    "description": ("description", "Description", "desc"),
    "family": ("family", "Family", "product_family", "productFamily"),
    "product_type": ("product_type", "productType", "type", "Type", "category", "Category"),
    "specification": ("specification", "Specification", "spec", "Spec"),
    "application": ("application", "Application", "applications", "use"),
    "full_text": ("searchable_text", "searchableText", "full_text"),
}

# Columns searched by the broad keyword fallback
FALLBACK_ATTRIBUTES = ("identifier", "name", "full_text")


def candidates_for(attribute: str) -> tuple[str, ...]:
    try:
        return COLUMN_SYNONYMS[attribute]
    except KeyError:
        raise ValueError(f"Unknown logical attribute: {attribute}") from None


def first_present(attribute: str, keys: Iterable[str]) -> str | None:
    """First synonym of ``attribute`` contained in ``keys``."""
    available = keys if isinstance(keys, (set, frozenset, Mapping)) else set(keys)
    for candidate in candidates_for(attribute):
        if candidate in available:
            return candidate
    return None


def lookup(record: Mapping[str, Any], attribute: str) -> Any:
    """Value of the first synonym of ``attribute`` holding a non-empty value in ``record``."""
    for candidate in candidates_for(attribute):
        value = record.get(candidate)
        if value not in (None, ""):
            return value
    return None


class ColumnResolver:
    """
    Resolves logical attributes against one discovered schema.

    Built once per request from the probed column set; each attribute is
    resolved at most once.
    """

    def __init__(self, columns: Iterable[str]):
        self.columns: list[str] = list(columns)
        self._column_set = frozenset(self.columns)
        self._resolved: dict[str, str | None] = {}

    def has_column(self, column: str) -> bool:
        return column in self._column_set

    def resolve(self, attribute: str) -> str | None:
        if attribute not in self._resolved:
            column = first_present(attribute, self._column_set)
            self._resolved[attribute] = column
            if column is None:
                logger.debug(f"No column for '{attribute}' among {len(self.columns)} columns")
        return self._resolved[attribute]

    def resolve_many(self, attributes: Iterable[str]) -> list[str]:
        """Resolved columns for ``attributes``, skipping missing ones and duplicates."""
        resolved: list[str] = []
        for attribute in attributes:
            column = self.resolve(attribute)
            if column and column not in resolved:
                resolved.append(column)
        return resolved
