"""
Answer synthesizer: LLM prose over a bounded set of candidate products.

Product payloads are size-limited before they reach the model. Summaries
and comparisons never raise; attribute extraction raises SynthesisError so
the caller can fall back to showing the product itself.
"""

import json
import logging
from functools import lru_cache

from catalog_search.core.config import settings
from catalog_search.core.exceptions import SynthesisError
from catalog_search.schemas.search import ProductRecord
from catalog_search.services.column_resolver import COLUMN_SYNONYMS
from catalog_search.services.llm_client import LLMClient, get_llm_client, is_token_limit_error
from catalog_search.utils.text import normalize_text

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_MESSAGE = "Unable to generate AI summary at this time. Please review the product details below."
COMPARISON_FALLBACK_MESSAGE = (
    "Unable to generate comparison analysis at this time. Please review the comparison table below."
)
ATTRIBUTE_NOT_FOUND = "Information not available in product data"

# Kept whole when a record has to be shortened, in priority order
PRIORITY_ATTRIBUTES = (
    "identifier",
    "name",
    "description",
    "family",
    "specification",
    "product_type",
    "application",
)
PRIORITY_EXTRA_FIELDS = ("color", "colour", "features", "benefits", "temperature", "resistance")
PRIORITY_FIELDS = tuple(
    dict.fromkeys(
        [column for attribute in PRIORITY_ATTRIBUTES for column in COLUMN_SYNONYMS[attribute]]
        + list(PRIORITY_EXTRA_FIELDS)
    )
)

PRODUCT_SEPARATOR = "\n\n---\n\n"
CHARS_PER_TOKEN = 4
MAX_SUMMARY_ATTEMPTS = 2

SUMMARY_SYSTEM_PROMPT = """You are an expert technical product consultant.

Your task is to provide comprehensive, insightful answers based on the product data provided.

GUIDELINES:
- Answer the user's question directly before anything else
- Use specific product details and technical specifications as evidence
- Explain WHY products are used (applications, benefits, specifications)
- When asked about "best" products, analyze ALL products and recommend based on application requirements, specifications, standards and performance
- When several products qualify, list them all and explain the trade-offs between them
- Always cite specific product names/SKUs when making claims
- Use bullet points for features and benefits
- Be conversational but professional

FORMAT YOUR RESPONSE:
1. **Direct Answer** - Start with a clear answer to the question
2. **Recommended Products** - List specific products with SKUs
3. **Key Benefits/Features** - Explain why each product is suitable
4. **Technical Details** - Include relevant specifications
5. **Applications** - Explain where/how it's used
6. **Comparison** - If multiple options, explain differences and when to use each

PRODUCT DATA ({count} products analyzed):
{products}"""

ATTRIBUTE_SYSTEM_PROMPT = """You are a product information assistant. Extract the answer to the user's question from the product data below.

RULES:
- Answer directly and concisely
- Use ONLY the product data below; if the information is not there, say "{not_found}"
- Extract ALL relevant information
- Format lists with bullet points using "•"
- Plain text only, no HTML

PRODUCT DATA:
{product}"""

COMPARISON_SYSTEM_PROMPT = """You are an expert technical product consultant. You are comparing {count} products.

COMPARISON TYPE: {comparison_type}

Provide a detailed comparison analysis highlighting:
1. **Key Differences** - What makes each product unique
2. **Similarities** - What they have in common
3. **Use Cases** - When to use each product
4. **Technical Distinctions** - Important specification differences
5. **Recommendations** - Which product is best for specific applications

Cite actual product names/SKUs, lead with the most important differences and keep it concise.

PRODUCTS TO COMPARE:
{products}"""


def _dump(record: ProductRecord) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False, default=str)


def serialize_for_prompt(record: ProductRecord, max_length: int = settings.SUMMARY_PRODUCT_MAX_CHARS) -> str:
    """
    JSON text of a record bounded by ``max_length``.

    Records over budget keep their priority fields and then gain other
    fields in order for as long as the text stays under the budget.
    """
    full = _dump(record)
    if len(full) <= max_length:
        return full

    truncated: ProductRecord = {field: record[field] for field in PRIORITY_FIELDS if record.get(field)}
    for key, value in record.items():
        if key in truncated:
            continue
        candidate = {**truncated, key: value}
        if len(_dump(candidate)) < max_length:
            truncated[key] = value
    return _dump(truncated)


class AnswerSynthesizer:
    """Generates analytical summaries, attribute answers and comparisons"""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client
        # (max products, max chars per product), tried in order until the payload fits
        self.budget_stages = (
            (settings.SUMMARY_MAX_PRODUCTS, settings.SUMMARY_PRODUCT_MAX_CHARS),
            (settings.SUMMARY_REDUCED_PRODUCTS, settings.SUMMARY_REDUCED_PRODUCT_MAX_CHARS),
        )

    def build_summary_payload(self, records: list[ProductRecord]) -> tuple[str, int]:
        """
        Serialize candidates within the token budget.

        Returns:
            (combined product text, number of products included)
        """
        combined, selected = "", []
        for max_products, max_chars in self.budget_stages:
            selected = records[:max_products]
            combined = PRODUCT_SEPARATOR.join(serialize_for_prompt(record, max_chars) for record in selected)
            estimated_tokens = len(combined) / CHARS_PER_TOKEN
            if estimated_tokens <= settings.SUMMARY_TOKEN_BUDGET:
                break
            logger.warning(
                f"⚠️ Data too large ({estimated_tokens:.0f} tokens) for {len(selected)} products, reducing"
            )
        return combined, len(selected)

    def summarize(self, query: str, records: list[ProductRecord]) -> str:
        """
        Answer an analytical question from the given products.

        A token-limit rejection is retried once with fewer products; any other
        failure returns a fixed message.
        """
        candidates = list(records)
        token_retry_used = False

        for _ in range(MAX_SUMMARY_ATTEMPTS):
            payload, included = self.build_summary_payload(candidates)
            logger.info(f"🤖 Generating AI summary from {included} products ({len(payload)} chars)")
            try:
                summary = self.llm_client.complete(
                    system_prompt=SUMMARY_SYSTEM_PROMPT.format(count=included, products=payload),
                    user_prompt=query,
                    model=settings.SUMMARY_MODEL,
                    temperature=0.3,
                    max_tokens=2000,
                )
            except Exception as e:
                retry_size = settings.SUMMARY_TOKEN_RETRY_PRODUCTS
                if not token_retry_used and is_token_limit_error(e) and len(candidates) > retry_size:
                    logger.warning(f"🔄 Token limit hit ({e}), retrying with {retry_size} products")
                    token_retry_used = True
                    candidates = candidates[:retry_size]
                    continue
                logger.error(f"❌ AI summary generation error: {e}")
                return SUMMARY_FALLBACK_MESSAGE

            return normalize_text(summary) or SUMMARY_FALLBACK_MESSAGE

        return SUMMARY_FALLBACK_MESSAGE

    def extract_attribute(self, question: str, record: ProductRecord) -> str:
        """
        Answer "what is the X of Y" from a single product.

        Raises:
            SynthesisError: the model call failed or returned nothing
        """
        product = serialize_for_prompt(record, settings.ATTRIBUTE_PRODUCT_MAX_CHARS)
        try:
            answer = self.llm_client.complete(
                system_prompt=ATTRIBUTE_SYSTEM_PROMPT.format(not_found=ATTRIBUTE_NOT_FOUND, product=product),
                user_prompt=question,
                model=settings.ATTRIBUTE_MODEL,
                temperature=0.1,
                max_tokens=1000,
            )
        except Exception as e:
            raise SynthesisError(f"Attribute extraction failed: {e}") from e

        answer = normalize_text(answer)
        if not answer:
            raise SynthesisError("Attribute extraction returned an empty answer")
        return answer

    def compare(self, query: str, products: list[ProductRecord], comparison_type: str) -> str:
        products_text = PRODUCT_SEPARATOR.join(
            serialize_for_prompt(product, settings.SUMMARY_PRODUCT_MAX_CHARS) for product in products
        )
        logger.info(f"🤖 Generating comparison analysis (type: {comparison_type})")
        try:
            analysis = self.llm_client.complete(
                system_prompt=COMPARISON_SYSTEM_PROMPT.format(
                    count=len(products), comparison_type=comparison_type, products=products_text
                ),
                user_prompt=query,
                model=settings.SUMMARY_MODEL,
                temperature=0.3,
                max_tokens=1500,
            )
        except Exception as e:
            logger.error(f"❌ Comparison analysis error: {e}")
            return COMPARISON_FALLBACK_MESSAGE
        return normalize_text(analysis) or COMPARISON_FALLBACK_MESSAGE


@lru_cache
def get_answer_synthesizer() -> AnswerSynthesizer:
    """Get cached answer synthesizer instance"""
    return AnswerSynthesizer(llm_client=get_llm_client())
