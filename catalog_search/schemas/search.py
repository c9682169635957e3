from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

# Closed set of values a catalog row may hold
RecordValue = Union[str, int, float, bool, list[Any], dict[str, Any], None]
ProductRecord = dict[str, RecordValue]

FILTER_OPTIONS_SENTINEL = "__GET_FILTER_OPTIONS__"


class CamelModel(BaseModel):
    """Model whose JSON form uses camelCase keys (the browser client's convention)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Search Intent (LLM output)
# ============================================================================


class QuestionType(str, Enum):
    LIST = "list"
    COMPARISON = "comparison"
    ANALYTICAL = "analytical"
    SPECIFIC = "specific"  # attribute extraction: "what is the X of Y"


QUESTION_TYPE_ALIASES = {
    "specific_ai": QuestionType.SPECIFIC,
    "attribute": QuestionType.SPECIFIC,
    "attribute-extraction": QuestionType.SPECIFIC,
    "attribute_extraction": QuestionType.SPECIFIC,
    "compare": QuestionType.COMPARISON,
}

FilterOperator = Literal["eq", "neq", "ilike", "gt", "lt", "gte", "lte"]


class FilterClause(BaseModel):
    """One column/operator/value predicate"""

    column: str = Field(..., min_length=1)
    operator: FilterOperator
    value: str | int | float | bool

    @field_validator("operator", mode="before")
    @classmethod
    def _lower_operator(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class OrderBy(BaseModel):
    column: str = Field(..., min_length=1)
    ascending: bool = True


class SearchIntent(CamelModel):
    """Structured interpretation of a free-text query"""

    filters: list[FilterClause] = Field(default_factory=list)
    search_type: Literal["all", "any"] = "any"
    question_type: QuestionType = QuestionType.LIST
    limit: int | None = None
    order_by: OrderBy | None = None
    search_keywords: list[str] = Field(default_factory=list)
    compare_products: list[str] = Field(default_factory=list)
    attribute_question: str | None = None

    @field_validator("filters", mode="before")
    @classmethod
    def _drop_invalid_filters(cls, value: Any) -> list[FilterClause]:
        # A malformed clause is discarded on its own; the rest of the intent stays usable
        if not isinstance(value, list):
            return []
        clauses = []
        for item in value:
            try:
                clauses.append(FilterClause.model_validate(item))
            except ValidationError:
                continue
        return clauses

    @field_validator("search_type", mode="before")
    @classmethod
    def _coerce_search_type(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in ("all", "any"):
            return value.strip().lower()
        return "any"

    @field_validator("question_type", mode="before")
    @classmethod
    def _coerce_question_type(cls, value: Any) -> QuestionType:
        if isinstance(value, QuestionType):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in QUESTION_TYPE_ALIASES:
                return QUESTION_TYPE_ALIASES[key]
            try:
                return QuestionType(key)
            except ValueError:
                pass
        return QuestionType.LIST

    @field_validator("limit", mode="before")
    @classmethod
    def _coerce_limit(cls, value: Any) -> int | None:
        if value in (None, "", 0) or isinstance(value, bool):
            return None
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return None
        return limit if limit > 0 else None

    @field_validator("order_by", mode="before")
    @classmethod
    def _coerce_order_by(cls, value: Any) -> Any:
        if not isinstance(value, dict) or not value.get("column"):
            return None
        return value

    @field_validator("search_keywords", "compare_products", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None and str(item).strip()]

    @classmethod
    def default(cls) -> "SearchIntent":
        """Unfiltered intent used whenever interpretation fails."""
        return cls(filters=[], search_type="any", question_type=QuestionType.LIST, limit=None)


# ============================================================================
# Request
# ============================================================================


class FacetFilters(CamelModel):
    """User-selected facets, applied as hard constraints"""

    family: str | None = None
    product_type: str | None = None
    specification: str | None = None

    @field_validator("family", "product_type", "specification", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def active(self) -> dict[str, str]:
        """Logical attribute -> selected value, for facets that are set."""
        return {
            attribute: value
            for attribute, value in (
                ("family", self.family),
                ("product_type", self.product_type),
                ("specification", self.specification),
            )
            if value
        }


class SearchRequest(CamelModel):
    """Smart search request body"""

    query: str | None = Field(default=None, description="Natural language question")
    filters: FacetFilters | None = None
    get_filter_options: bool = False

    @property
    def wants_filter_options(self) -> bool:
        return self.get_filter_options or self.query == FILTER_OPTIONS_SENTINEL


# ============================================================================
# Responses
# ============================================================================


class FilterOptions(CamelModel):
    families: list[str] = Field(default_factory=list)
    product_types: list[str] = Field(default_factory=list)
    specifications: list[str] = Field(default_factory=list)


class FilterOptionsResponse(CamelModel):
    success: bool = True
    filter_options: FilterOptions


class ListResponse(CamelModel):
    success: bool = True
    question_type: Literal["list"] = "list"
    results: list[ProductRecord]
    count: int
    message: str | None = None


class ComparisonResponse(CamelModel):
    success: bool = True
    question_type: Literal["comparison"] = "comparison"
    products: list[ProductRecord]
    compare_products: list[str]
    total_found: int
    comparison_type: str = "general"
    comparison_summary: str | None = None


class AnalyticalResponse(CamelModel):
    success: bool = True
    question_type: Literal["analytical"] = "analytical"
    summary: str
    results: list[ProductRecord]
    count: int
    message: str


class ExtractedData(BaseModel):
    sku: str
    question: str


class SpecificResponse(CamelModel):
    success: bool = True
    question_type: Literal["specific"] = "specific"
    answer: str
    extracted_data: ExtractedData
    full_product: ProductRecord


class MetaResponse(CamelModel):
    success: bool = True
    question_type: Literal["meta"] = "meta"
    meta_type: Literal["count", "list", "overview"]
    summary: str
    count: int | None = None
    families: list[str] | None = None
    types: list[str] | None = None
    total_count: int | None = None
    family_count: int | None = None
    results: list[ProductRecord] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


SearchResponse = Union[
    ListResponse,
    ComparisonResponse,
    AnalyticalResponse,
    SpecificResponse,
    MetaResponse,
    FilterOptionsResponse,
]
