import logging

from fastapi import APIRouter, Depends

from catalog_search.core.exceptions import SearchRequestError, SearchServiceError
from catalog_search.schemas.search import FilterOptionsResponse, SearchRequest, SearchResponse
from catalog_search.services.search_service import SearchService, get_search_service

router = APIRouter(tags=["search"])
logger = logging.getLogger(__name__)


@router.post("/search", response_model=None)
async def smart_search(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """
    Natural-language product search.

    🔍 **Pipeline:**

    1. **Schema probe** - sample rows to learn the catalog's columns
    2. **Query interpretation** (GPT-4o-mini) - filters, AND/OR logic, question type, caps
    3. **Query execution** - facet filters + interpreted filters, broad keyword fallback on no results
    4. **Answering** - AI summary (analytical), attribute extraction (specific), side-by-side (comparison)

    📝 **Examples:**
        ```json
        {"query": "Tell me about PS 870"}

        {"query": "Compare PS 870 vs PR-1422"}

        {"query": "What is the color of PS 870 Class B", "filters": {"family": "PS 870"}}

        {"query": "__GET_FILTER_OPTIONS__"}
        ```

    The response shape depends on `questionType`: `list`, `comparison`,
    `analytical`, `specific` or `meta`. Errors are returned as
    `{"success": false, "error": "..."}`.
    """
    if request.wants_filter_options:
        return await service.get_filter_options()

    query = (request.query or "").strip()
    if not query:
        raise SearchRequestError("Query is required")

    try:
        return await service.search(query, request.filters)
    except SearchServiceError:
        raise
    except Exception as e:
        logger.exception(f"❌ Smart search error: {e}")
        raise SearchServiceError(f"Search failed: {str(e)}") from e


@router.get("/filter-options", response_model=FilterOptionsResponse)
async def filter_options(service: SearchService = Depends(get_search_service)):
    """Distinct family, product type and specification values for the filter dropdowns."""
    return await service.get_filter_options()


@router.get("/search/health")
async def search_health(service: SearchService = Depends(get_search_service)):
    """Check if the product catalog is reachable"""
    return await service.catalog.get_health_status()
