"""Search service: the natural-language search pipeline for one request"""

import logging
import re

from catalog_search.core.config import settings
from catalog_search.schemas.search import (
    FacetFilters,
    FilterOptions,
    FilterOptionsResponse,
    MetaResponse,
    ProductRecord,
    QuestionType,
    SearchResponse,
)
from catalog_search.services.answer_synthesizer import AnswerSynthesizer, get_answer_synthesizer
from catalog_search.services.catalog import ProductCatalog, get_product_catalog
from catalog_search.services.column_resolver import ColumnResolver, lookup
from catalog_search.services.query_executor import QueryExecutor, combine_all, filter_in_memory
from catalog_search.services.query_interpreter import QueryInterpreter, get_query_interpreter
from catalog_search.services.relevance_ranker import rank_records
from catalog_search.services.response_shaper import ResponseShaper, list_response, no_results_response
from catalog_search.utils.records import ATTRIBUTE_BAG_FIELD, flatten_records, parse_attribute_bag

logger = logging.getLogger(__name__)

FILTER_OPTION_ATTRIBUTES = {
    "families": "family",
    "product_types": "product_type",
    "specifications": "specification",
}

META_LIST_SCAN_LIMIT = 1000
META_LIST_SHOWN_FAMILIES = 20
META_LIST_SHOWN_TYPES = 15

# A product code or bare number means the question is about specific products
SPECIFIC_PRODUCT_PATTERN = re.compile(r"\b([a-z]{2,}\s*\d{3,}|[a-z]+[/-][a-z]*\s*\d+|\d{3,})\b", re.IGNORECASE)
COUNT_PATTERNS = (
    re.compile(r"^how many (products?|items?|entries?)(\s+(are|do|in)(\s+(there|we have))?)?\??$"),
    re.compile(r"^total (number of )?(products?|items?)\??$"),
    re.compile(r"^count (of )?(products?|items?)\??$"),
)
LIST_PATTERNS = (
    re.compile(r"^what (are|is) (the |all )?(product )?(families|types|categories)( (do you have|are there|in the (catalog|database)))?\??$"),
    re.compile(r"^what (kinds|types) of products( (do you have|are there))?\??$"),
    re.compile(r"^(list|show)( me)?( all)?( the)?( product)? (families|types|categories)\??$"),
)
OVERVIEW_PATTERNS = (
    re.compile(r"^what('s| is) in (the |this |your )?(database|catalog)\??$"),
    re.compile(r"^tell me about (the |this |your )?(database|catalog)\??$"),
    re.compile(r"^(database|catalog) (info|information|overview|summary)\??$"),
)


def detect_meta_question(query: str) -> str | None:
    """
    Recognize questions about the catalog itself rather than its products.

    Patterns must match the whole query, so product questions that merely
    mention types or families still go to the interpreter.

    Returns:
        "count", "list", "overview" or None
    """
    lower_query = query.lower().strip()
    if SPECIFIC_PRODUCT_PATTERN.search(query):
        return None
    if any(pattern.search(lower_query) for pattern in COUNT_PATTERNS):
        return "count"
    if any(pattern.search(lower_query) for pattern in LIST_PATTERNS):
        return "list"
    if any(pattern.search(lower_query) for pattern in OVERVIEW_PATTERNS):
        return "overview"
    return None


def _collect(values: set[str], value) -> None:
    if value is None:
        return
    text = str(value).strip()
    if text:
        values.add(text)


def collect_filter_options(records: list[ProductRecord]) -> FilterOptions:
    """Distinct facet values across top-level columns and attribute bags"""
    collected: dict[str, set[str]] = {key: set() for key in FILTER_OPTION_ATTRIBUTES}
    for record in records:
        try:
            attributes = parse_attribute_bag(record.get(ATTRIBUTE_BAG_FIELD))
        except (ValueError, TypeError):
            attributes = None
        for key, attribute in FILTER_OPTION_ATTRIBUTES.items():
            _collect(collected[key], lookup(record, attribute))
            if attributes:
                _collect(collected[key], lookup(attributes, attribute))
    return FilterOptions(**{key: sorted(values) for key, values in collected.items()})


def _bullets(values: list[str], shown: int, noun: str) -> str:
    lines = "\n".join(f"• {value}" for value in values[:shown])
    if len(values) > shown:
        lines += f"\n_...and {len(values) - shown} more {noun}_"
    return lines


class SearchService:
    """
    Runs the natural-language search pipeline.

    Flow:
    1. Schema probe (columns + preview)
    2. Query interpretation (LLM) into a SearchIntent
    3. Query execution with facet filters and keyword fallback
    4. Flattening / text cleanup of the rows
    5. Ranking + AI answer for analytical and attribute questions
    6. Response shaping by question type

    Catalog failures propagate as CatalogError; LLM failures degrade.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        interpreter: QueryInterpreter,
        synthesizer: AnswerSynthesizer,
    ):
        self.catalog = catalog
        self.interpreter = interpreter
        self.executor = QueryExecutor(catalog)
        self.shaper = ResponseShaper(synthesizer)

    async def search(self, user_query: str, facets: FacetFilters | None = None) -> SearchResponse:
        logger.info(f"🔍 User query: {user_query}")
        logger.info(f"🎯 Applied filters: {facets.active() if facets else {}}")

        meta_type = detect_meta_question(user_query)
        if meta_type:
            logger.info(f"🎯 Detected meta-question type: {meta_type}")
            return await self.answer_meta_question(meta_type, facets)

        schema = await self.catalog.probe_schema()
        resolver = ColumnResolver(schema.columns)

        intent = self.interpreter.interpret(user_query, schema, facets)
        execution = await self.executor.execute(intent, facets, resolver)

        records = flatten_records(execution.records)
        if not records:
            logger.info("📭 No products found")
            return no_results_response()

        question_type = intent.question_type
        if question_type == QuestionType.ANALYTICAL:
            if intent.search_keywords:
                records = rank_records(records, intent.search_keywords)
            return self.shaper.analytical(user_query, records)

        if question_type == QuestionType.COMPARISON:
            return self.shaper.comparison(user_query, records, intent.compare_products)

        if question_type == QuestionType.SPECIFIC:
            return self.shaper.specific(user_query, records, intent.attribute_question)

        return list_response(records)

    # ========================================================================
    # Filter options
    # ========================================================================

    async def get_filter_options(self) -> FilterOptionsResponse:
        logger.info("📋 Loading filter options...")
        records = await self.catalog.find(
            {}, limit=settings.FILTER_OPTIONS_SCAN_LIMIT, action="Filter options scan"
        )
        options = collect_filter_options(records)
        logger.info(
            f"✅ Filter options loaded: {len(options.families)} families, "
            f"{len(options.product_types)} types, {len(options.specifications)} specs"
        )
        return FilterOptionsResponse(filter_options=options)

    # ========================================================================
    # Meta questions
    # ========================================================================

    async def answer_meta_question(self, meta_type: str, facets: FacetFilters | None) -> MetaResponse:
        schema = await self.catalog.probe_schema()
        resolver = ColumnResolver(schema.columns)

        if meta_type == "count":
            return await self._count_products(facets, resolver)
        if meta_type == "list":
            return await self._list_categories(resolver)
        return await self._overview(resolver)

    async def _count_products(self, facets: FacetFilters | None, resolver: ColumnResolver) -> MetaResponse:
        conditions, pending = self.executor.build_facet_conditions(facets, resolver)
        query = combine_all(conditions)
        if pending:
            rows = await self.catalog.find(query, limit=settings.FILTER_OPTIONS_SCAN_LIMIT, action="Count scan")
            count = len(filter_in_memory(rows, pending))
        else:
            count = await self.catalog.count(query)
        logger.info(f"✅ Total products: {count}")

        filter_text = " with applied filters" if facets and facets.active() else ""
        summary = f"**Product Count**\n\nI found **{count:,} products**{filter_text}."
        if count > 100:
            summary += "\n\nYou can use filters or search for specific products to narrow down the results."
        return MetaResponse(meta_type="count", summary=summary, count=count)

    async def _distinct(self, resolver: ColumnResolver, attribute: str, limit: int) -> list[str]:
        column = resolver.resolve(attribute)
        if not column:
            return []
        return await self.catalog.distinct(column, limit)

    async def _list_categories(self, resolver: ColumnResolver) -> MetaResponse:
        families = await self._distinct(resolver, "family", META_LIST_SCAN_LIMIT)
        types = await self._distinct(resolver, "product_type", META_LIST_SCAN_LIMIT)
        logger.info(f"✅ Found {len(families)} families, {len(types)} types")

        summary = (
            "**Product Categories Overview**\n\n"
            f"**Product Families ({len(families)} total):**\n"
            f"{_bullets(families, META_LIST_SHOWN_FAMILIES, 'families')}\n\n"
            f"**Product Types ({len(types)} total):**\n"
            f"{_bullets(types, META_LIST_SHOWN_TYPES, 'types')}\n\n"
            "You can filter by any of these categories using the filter options in the search interface."
        )
        return MetaResponse(meta_type="list", summary=summary, families=families, types=types)

    async def _overview(self, resolver: ColumnResolver) -> MetaResponse:
        total = await self.catalog.count({})
        families = await self._distinct(resolver, "family", 500)

        examples = ", ".join(families[:5]) if families else "none recorded"
        summary = (
            "**Product Database Overview**\n\n"
            f"**Total Products:** {total:,}\n\n"
            f"**Product Families:** {len(families)} unique families including {examples}.\n\n"
            "**Search Capabilities:**\n"
            "• Natural language search across all product specifications\n"
            "• Compare products side-by-side\n"
            "• Filter by family, type, and specification\n"
            "• AI-powered product recommendations"
        )
        return MetaResponse(
            meta_type="overview",
            summary=summary,
            total_count=total,
            family_count=len(families),
        )


def get_search_service() -> SearchService:
    return SearchService(
        catalog=get_product_catalog(),
        interpreter=get_query_interpreter(),
        synthesizer=get_answer_synthesizer(),
    )
