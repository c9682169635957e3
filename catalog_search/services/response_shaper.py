"""Builds the final payload for each question type."""

import logging
import re

from catalog_search.core.exceptions import SynthesisError
from catalog_search.schemas.search import (
    AnalyticalResponse,
    ComparisonResponse,
    ExtractedData,
    ListResponse,
    ProductRecord,
    SpecificResponse,
)
from catalog_search.services.answer_synthesizer import AnswerSynthesizer
from catalog_search.services.column_resolver import lookup
from catalog_search.utils.records import serialize_record

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = (
    "No products matched your question. Try a shorter product code, fewer words, "
    "or clear the family / type / specification filters."
)
ATTRIBUTE_DEGRADED_MESSAGE = "Found product but couldn't extract specific answer. Showing full details."

COMPACT_PATTERN = re.compile(r"[\s\-]")

# Attributes whose distinct values name the kind of comparison, checked in order
COMPARISON_ATTRIBUTES = ("family", "product_type", "specification")


def _compact(text: str) -> str:
    return COMPACT_PATTERN.sub("", text).lower()


def no_results_response() -> ListResponse:
    return ListResponse(results=[], count=0, message=NO_RESULTS_MESSAGE)


def list_response(records: list[ProductRecord], message: str | None = None) -> ListResponse:
    return ListResponse(results=records, count=len(records), message=message)


def select_comparison_products(records: list[ProductRecord], targets: list[str]) -> list[ProductRecord]:
    """
    Pick the two records to compare.

    Each target claims the first not-yet-chosen record whose serialization
    contains it (case-, whitespace- and hyphen-insensitive). When fewer
    than two targets resolve, the first two records are used.
    """
    serialized = [_compact(serialize_record(record)) for record in records]
    chosen: list[int] = []
    for target in targets:
        needle = _compact(target)
        if not needle:
            continue
        for index, text in enumerate(serialized):
            if index not in chosen and needle in text:
                chosen.append(index)
                break

    if len(chosen) >= 2:
        return [records[index] for index in chosen[:2]]
    return records[:2]


def detect_comparison_type(products: list[ProductRecord]) -> str:
    if len(products) < 2:
        return "general"
    for attribute in COMPARISON_ATTRIBUTES:
        values = [lookup(product, attribute) for product in products]
        present = [str(value) for value in values if value not in (None, "")]
        distinct = set(present)
        if len(distinct) > 1 and len(distinct) == len(products):
            logger.info(f"✅ Different {attribute} values detected - {attribute} comparison")
            return attribute
    return "general"


class ResponseShaper:
    """Selects and fills the response shape for a classified question"""

    def __init__(self, synthesizer: AnswerSynthesizer):
        self.synthesizer = synthesizer

    def comparison(
        self, query: str, records: list[ProductRecord], compare_products: list[str]
    ) -> ComparisonResponse | ListResponse:
        logger.info(f"🔄 Comparison mode - found {len(records)} products")
        if len(records) < 2:
            return list_response(
                records,
                message=f"Found only {len(records)} product(s). Need at least 2 products for comparison.",
            )

        products = select_comparison_products(records, compare_products)
        comparison_type = detect_comparison_type(products)
        return ComparisonResponse(
            products=products,
            compare_products=compare_products,
            total_found=len(records),
            comparison_type=comparison_type,
            comparison_summary=self.synthesizer.compare(query, products, comparison_type),
        )

    def analytical(self, query: str, records: list[ProductRecord]) -> AnalyticalResponse:
        logger.info(f"🤖 Analytical mode - generating AI summary from {len(records)} products")
        return AnalyticalResponse(
            summary=self.synthesizer.summarize(query, records),
            results=records,
            count=len(records),
            message=f"Analysis based on {len(records)} product(s)",
        )

    def specific(
        self, query: str, records: list[ProductRecord], attribute_question: str | None
    ) -> SpecificResponse | ListResponse:
        product = records[0]
        question = attribute_question or query
        try:
            answer = self.synthesizer.extract_attribute(question, product)
        except SynthesisError as e:
            logger.error(f"❌ AI extraction error: {e}")
            return list_response([product], message=ATTRIBUTE_DEGRADED_MESSAGE)

        identifier = lookup(product, "identifier") or lookup(product, "name") or "N/A"
        return SpecificResponse(
            answer=answer,
            extracted_data=ExtractedData(sku=str(identifier), question=question),
            full_product=product,
        )
