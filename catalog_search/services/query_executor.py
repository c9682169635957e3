"""
Query executor: turns a SearchIntent plus user facets into catalog queries.

Facets and intent clauses are layered into one MongoDB filter document. When
the structured query finds nothing, a broad keyword search over the
identifying columns is tried once.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from catalog_search.core.config import settings
from catalog_search.schemas.search import (
    FacetFilters,
    FilterClause,
    ProductRecord,
    QuestionType,
    SearchIntent,
)
from catalog_search.services.catalog import ProductCatalog
from catalog_search.services.column_resolver import FALLBACK_ATTRIBUTES, ColumnResolver, lookup
from catalog_search.utils.records import ATTRIBUTE_BAG_FIELD, parse_attribute_bag
from catalog_search.utils.text import MIN_TERM_LENGTH, compact_term, extract_search_terms

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS = {"gt": "$gt", "lt": "$lt", "gte": "$gte", "lte": "$lte"}
TEXT_OPERATORS = ("eq", "ilike")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass
class ExecutionResult:
    """Raw rows produced for one request"""

    records: list[ProductRecord] = field(default_factory=list)
    primary_count: int = 0
    used_fallback: bool = False
    search_terms: list[str] = field(default_factory=list)


# ============================================================================
# Predicate construction
# ============================================================================


def like_to_regex(pattern: str) -> str:
    """
    Translate an ILIKE pattern into an anchored regular expression.

    ``%`` matches any run of characters and ``_`` a single character;
    everything else is literal.
    """
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return f"^{''.join(parts)}$"


def coerce_number(value: Any) -> Any:
    if not isinstance(value, str) or not NUMBER_PATTERN.match(value.strip()):
        return value
    text = value.strip()
    return float(text) if "." in text else int(text)


def clause_to_condition(clause: FilterClause) -> dict[str, Any]:
    """Convert one filter clause to a MongoDB condition."""
    column, operator, value = clause.column, clause.operator, clause.value

    if operator == "ilike":
        return {column: {"$regex": like_to_regex(str(value)), "$options": "is"}}

    if operator in COMPARISON_OPERATORS:
        return {column: {COMPARISON_OPERATORS[operator]: coerce_number(value)}}

    number = coerce_number(value)
    # Numeric strings match both the text and the numeric form
    candidates = [value, number] if number is not value else [value]
    if operator == "neq":
        return {column: {"$nin": candidates}}
    if len(candidates) == 1:
        return {column: value}
    return {column: {"$in": candidates}}


def combine_all(conditions: list[dict[str, Any]]) -> dict[str, Any]:
    if not conditions:
        return {}
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def facet_matches(record: ProductRecord, attribute: str, expected: str) -> bool:
    """Whether the record carries ``expected`` for ``attribute`` at top level or in its attribute bag."""
    if lookup(record, attribute) == expected:
        return True
    try:
        attributes = parse_attribute_bag(record.get(ATTRIBUTE_BAG_FIELD))
    except (ValueError, TypeError):
        return False
    return bool(attributes) and lookup(attributes, attribute) == expected


def filter_in_memory(records: list[ProductRecord], pending: dict[str, str]) -> list[ProductRecord]:
    if not pending:
        return records
    filtered = [
        record
        for record in records
        if all(facet_matches(record, attribute, value) for attribute, value in pending.items())
    ]
    logger.info(f"🔍 In-memory facet filter: {len(records)} → {len(filtered)} products")
    return filtered


def fallback_terms(intent: SearchIntent) -> list[str]:
    """Bare search terms from the intent's text clauses and its keywords."""
    values = [clause.value for clause in intent.filters if clause.operator in TEXT_OPERATORS]
    return extract_search_terms([str(value) for value in values] + intent.search_keywords)


class QueryExecutor:
    """Builds and runs the primary and fallback catalog queries for one intent"""

    def __init__(self, catalog: ProductCatalog):
        self.catalog = catalog

    def build_facet_conditions(
        self, facets: FacetFilters | None, resolver: ColumnResolver
    ) -> tuple[list[dict[str, Any]], dict[str, str]]:
        """
        Split active facets into database conditions and in-memory filters.

        Returns:
            (conditions for facets with a matching column, {attribute: value} to post-filter)
        """
        conditions: list[dict[str, Any]] = []
        pending: dict[str, str] = {}
        if not facets:
            return conditions, pending

        for attribute, value in facets.active().items():
            column = resolver.resolve(attribute)
            if column:
                conditions.append({column: value})
                logger.info(f"🎯 Applied {attribute} filter on column '{column}': {value}")
            else:
                pending[attribute] = value
                logger.info(f"⚠️ No {attribute} column in catalog, will filter in memory")
        return conditions, pending

    def build_intent_condition(self, intent: SearchIntent, resolver: ColumnResolver) -> dict[str, Any] | None:
        """Combine the intent's valid clauses with its AND/OR mode."""
        if not intent.filters:
            return None

        valid = []
        for clause in intent.filters:
            if resolver.has_column(clause.column):
                valid.append(clause)
            else:
                logger.warning(f"⚠️ Column '{clause.column}' not found, dropping filter")
        logger.info(f"✅ Valid filters: {len(valid)}/{len(intent.filters)} ({intent.search_type} logic)")

        conditions = [clause_to_condition(clause) for clause in valid]
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        if intent.search_type == "any":
            return {"$or": conditions}
        return {"$and": conditions}

    def build_sort(self, intent: SearchIntent, resolver: ColumnResolver) -> list[tuple[str, int]] | None:
        order_by = intent.order_by
        if not order_by:
            return None
        if not resolver.has_column(order_by.column):
            logger.warning(f"⚠️ Order column '{order_by.column}' not found, ignoring ordering")
            return None
        logger.info(f"📊 Ordering by: {order_by.column}")
        return [(order_by.column, 1 if order_by.ascending else -1)]

    def resolve_limit(self, intent: SearchIntent) -> int | None:
        """Row cap: analytical queries never exceed the analytical cap; others use the intent's limit."""
        if intent.question_type == QuestionType.ANALYTICAL:
            cap = settings.ANALYTICAL_DEFAULT_LIMIT
            return min(intent.limit, cap) if intent.limit else cap
        return intent.limit

    def build_fallback_condition(self, terms: list[str], resolver: ColumnResolver) -> dict[str, Any] | None:
        """One OR predicate of ``%term%`` matches across identifier, name and full-text columns."""
        columns = resolver.resolve_many(FALLBACK_ATTRIBUTES)
        if not columns or not terms:
            return None

        variants: list[str] = []
        for term in terms:
            for variant in (term, compact_term(term)):
                if len(variant) >= MIN_TERM_LENGTH and variant not in variants:
                    variants.append(variant)

        conditions = [
            clause_to_condition(FilterClause(column=column, operator="ilike", value=f"%{variant}%"))
            for variant in variants
            for column in columns
        ]
        return {"$or": conditions}

    async def execute(
        self, intent: SearchIntent, facets: FacetFilters | None, resolver: ColumnResolver
    ) -> ExecutionResult:
        """
        Run the primary query, then the broad fallback if it found nothing.

        The fallback runs only when the primary query returned zero rows and
        the intent carried at least one filter clause.
        """
        facet_conditions, pending = self.build_facet_conditions(facets, resolver)
        intent_condition = self.build_intent_condition(intent, resolver)
        if intent_condition is None and not intent.filters:
            logger.info("📦 No search filters - returning products matching user selections")

        query = combine_all(facet_conditions + ([intent_condition] if intent_condition else []))
        limit = self.resolve_limit(intent)
        logger.info(f"📊 Applying limit: {limit if limit else 'none'}")

        rows = await self.catalog.find(query, sort=self.build_sort(intent, resolver), limit=limit)
        rows = filter_in_memory(rows, pending)
        logger.info(f"✅ Found {len(rows)} products")

        if rows or not intent.filters:
            return ExecutionResult(records=rows, primary_count=len(rows))

        terms = fallback_terms(intent)
        fallback_condition = self.build_fallback_condition(terms, resolver)
        if fallback_condition is None:
            logger.info("⚠️ No usable terms or columns for fallback search")
            return ExecutionResult(records=[], primary_count=0, search_terms=terms)

        logger.info(f"🔄 No results - trying broad fallback search for: {terms}")
        fallback_query = combine_all(facet_conditions + [fallback_condition])
        rows = await self.catalog.find(
            fallback_query, limit=settings.FALLBACK_SEARCH_LIMIT, action="Fallback search"
        )
        rows = filter_in_memory(rows, pending)
        logger.info(f"✅ Fallback search found {len(rows)} products")
        return ExecutionResult(records=rows, primary_count=0, used_fallback=True, search_terms=terms)
