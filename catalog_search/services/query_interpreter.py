"""Query interpreter: turns a free-text question into a structured SearchIntent using an LLM"""

import json
import logging
from functools import lru_cache

from catalog_search.core.config import settings
from catalog_search.schemas.search import FacetFilters, SearchIntent
from catalog_search.services.catalog import CatalogSchema
from catalog_search.services.llm_client import LLMClient, get_llm_client

logger = logging.getLogger(__name__)


INTERPRETATION_RULES = """QUESTION TYPES (pick exactly one "questionType"):

1. **ANALYTICAL** (why, how, what makes, explain, tell me about, what is [product], benefits, uses, best, recommend, which product):
 - questionType: "analytical"
 - Answered by an AI summary over the matching products
 - Use "any" searchType (OR logic) across identifier, name, family and full-text columns
 - Set limit: 100 (keeps the summary affordable)
 - Put the product identifiers / application words in "searchKeywords"

2. **SINGLE PRODUCT LOOKUP** (e.g. "PS 870", "PR-148", "show me P/S510 products"):
 - questionType: "list"
 - Use "ilike" with wildcards so ALL variants surface
 - Use "any" searchType
 - limit: null

3. **COMPARISON** ("compare", "difference", "vs", "versus", "between"):
 - questionType: "comparison"
 - Create filters for EACH product mentioned
 - Put the products, in the order mentioned, in "compareProducts"
 - Use "any" searchType
 - limit: null

4. **ATTRIBUTE QUESTION** ("what is the [attribute] of [product]"):
 - questionType: "specific"
 - Put the attribute question in "attributeQuestion"
 - The answer is extracted from the first matching product

5. **EXACT IDENTIFIER LOOKUP** ("show details of [SKU]", "find [SKU]"):
 - questionType: "list"
 - Use "eq" ONLY when the identifier is complete and unambiguous (e.g. "0870A00276012PT")
 - limit: null

FILTER RULES:
- Default to "ilike" with "%" wildcards: {"column": "sku", "operator": "ilike", "value": "%870%"}
- Product codes are written inconsistently ("P/S 510®", "PS510", "P/S-510") - match on the number to catch every spelling
- Numeric comparisons use gt, lt, gte, lte
- Only reference columns listed in the schema
- Use "searchType": "all" only when every condition must hold at once

RESPONSE FORMAT (JSON):
{
  "filters": [{"column": "column_name", "operator": "eq" | "ilike" | "gt" | "lt" | "gte" | "lte", "value": "value"}],
  "searchType": "all" | "any",
  "questionType": "list" | "comparison" | "analytical" | "specific",
  "limit": null | number,
  "orderBy": {"column": "column_name", "ascending": true} | null,
  "searchKeywords": ["keyword1", "keyword2"],
  "compareProducts": ["product1", "product2"],
  "attributeQuestion": "extracted question"
}

EXAMPLES:

Query: "Tell me about PS 870"
{"filters": [{"column": "sku", "operator": "ilike", "value": "%870%"}, {"column": "product_name", "operator": "ilike", "value": "%870%"}, {"column": "searchable_text", "operator": "ilike", "value": "%870%"}], "searchType": "any", "questionType": "analytical", "limit": 100, "searchKeywords": ["PS 870", "870", "P/S 870"]}

Query: "Which product is best for firewall sealing?"
{"filters": [{"column": "description", "operator": "ilike", "value": "%firewall%"}, {"column": "application", "operator": "ilike", "value": "%firewall%"}, {"column": "searchable_text", "operator": "ilike", "value": "%firewall%"}], "searchType": "any", "questionType": "analytical", "limit": 100, "searchKeywords": ["firewall"]}

Query: "Compare PS 870 vs PR-1422"
{"filters": [{"column": "sku", "operator": "ilike", "value": "%870%"}, {"column": "sku", "operator": "ilike", "value": "%1422%"}], "searchType": "any", "questionType": "comparison", "limit": null, "compareProducts": ["PS 870", "PR-1422"], "searchKeywords": ["PS 870", "PR-1422"]}

Query: "What is the color of PS 870 Class B"
{"filters": [{"column": "sku", "operator": "ilike", "value": "%870%B%"}], "searchType": "any", "questionType": "specific", "limit": null, "attributeQuestion": "What is the color of PS 870 Class B", "searchKeywords": ["PS 870"]}

Query: "Show the details of 0870A00276012PT"
{"filters": [{"column": "sku", "operator": "eq", "value": "0870A00276012PT"}], "searchType": "all", "questionType": "list", "limit": null}

Return valid JSON with the keys above."""


class QueryInterpreter:
    """Interpret user questions into filters, question type and caps"""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    def build_system_prompt(self, schema: CatalogSchema, facets: FacetFilters | None) -> str:
        active_facets = facets.active() if facets else {}
        return f"""You are a smart database search assistant for a product catalog. Analyze user queries and generate database filters.

DATABASE SCHEMA:
Columns: {', '.join(schema.columns)}

SAMPLE DATA STRUCTURE:
{json.dumps(schema.preview, indent=2, ensure_ascii=False, default=str)}

USER APPLIED FILTERS:
{json.dumps(active_facets, indent=2) if active_facets else 'None'}

{INTERPRETATION_RULES}"""

    def interpret(self, user_query: str, schema: CatalogSchema, facets: FacetFilters | None = None) -> SearchIntent:
        """
        Interpret a user query into a SearchIntent.

        Never raises: any failure (provider error, empty or malformed JSON,
        invalid structure) yields the unfiltered default intent so the search
        can still run.

        Args:
            user_query: Raw user question
            schema: Probed catalog columns and preview
            facets: Facets the user selected, shown to the model as context

        Returns:
            SearchIntent
        """
        try:
            content = self.llm_client.complete(
                system_prompt=self.build_system_prompt(schema, facets),
                user_prompt=user_query,
                model=settings.QUERY_ANALYZER_MODEL,
                temperature=0.1,
                max_tokens=2000,
                json_mode=True,
            )
            raw = json.loads(content)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            intent = SearchIntent.model_validate(raw)
        except Exception as e:
            logger.error(f"❌ Query interpretation failed, using unfiltered search: {e}")
            return SearchIntent.default()

        logger.info(f"📋 Search intent: {intent.model_dump_json(by_alias=True, exclude_none=True)}")
        return intent


@lru_cache
def get_query_interpreter() -> QueryInterpreter:
    """Get cached query interpreter instance"""
    return QueryInterpreter(llm_client=get_llm_client())
