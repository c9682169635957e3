"""Keyword relevance scoring for analytical answers"""

import logging

from catalog_search.core.config import settings
from catalog_search.schemas.search import ProductRecord
from catalog_search.services.column_resolver import lookup
from catalog_search.utils.records import serialize_record
from catalog_search.utils.text import extract_search_terms

logger = logging.getLogger(__name__)

OCCURRENCE_POINTS = 2

# Bonus when the keyword appears in the field, highest first
FIELD_WEIGHTS = (
    ("identifier", 50),
    ("name", 30),
    ("application", 20),
    ("description", 10),
)


def _field_text(record: ProductRecord, attribute: str) -> str:
    value = lookup(record, attribute)
    return str(value).lower() if value is not None else ""


def score_record(record: ProductRecord, keywords: list[str]) -> int:
    """
    Score one record against the query keywords.

    Every occurrence of a keyword anywhere in the record adds a small
    amount; presence in an identifying field adds a fixed bonus so that
    identifier and name matches outrank incidental mentions.
    """
    text = serialize_record(record).lower()
    fields = {attribute: _field_text(record, attribute) for attribute, _ in FIELD_WEIGHTS}

    score = 0
    for keyword in extract_search_terms(keywords):
        needle = keyword.lower()
        score += text.count(needle) * OCCURRENCE_POINTS
        for attribute, weight in FIELD_WEIGHTS:
            if needle in fields[attribute]:
                score += weight
    return score


def rank_records(
    records: list[ProductRecord], keywords: list[str], limit: int = settings.RANKING_TOP_K
) -> list[ProductRecord]:
    """Sort by descending relevance (ties keep their order) and keep the top ``limit``."""
    if not keywords:
        return records
    scored = [(score_record(record, keywords), record) for record in records]
    scored.sort(key=lambda item: item[0], reverse=True)
    ranked = [record for _, record in scored[:limit]]
    logger.info(f"✅ Ranked {len(records)} products by relevance, keeping {len(ranked)}")
    return ranked
