"""Read access to the product catalog collection."""

import logging
from dataclasses import dataclass, field
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from catalog_search.core.config import settings
from catalog_search.core.exceptions import CatalogError
from catalog_search.core.mongo import get_products_collection
from catalog_search.schemas.search import ProductRecord

logger = logging.getLogger(__name__)

# Mongo's internal id is never part of the catalog schema
DEFAULT_PROJECTION = {"_id": 0}


@dataclass
class CatalogSchema:
    """Columns seen on the sampled rows plus a shortened preview for prompts"""

    columns: list[str] = field(default_factory=list)
    preview: list[ProductRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.columns


def truncate_preview_row(row: ProductRecord, max_length: int) -> ProductRecord:
    preview: ProductRecord = {}
    for key, value in row.items():
        if isinstance(value, str) and len(value) > max_length:
            preview[key] = value[:max_length] + "..."
        else:
            preview[key] = value
    return preview


class ProductCatalog:
    """
    Thin async wrapper over the products collection.

    Every driver failure is re-raised as CatalogError so the request fails
    with the store's message.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def probe_schema(
        self,
        sample_size: int = settings.SCHEMA_SAMPLE_SIZE,
        preview_rows: int = settings.SCHEMA_PREVIEW_ROWS,
        max_value_length: int = settings.PREVIEW_VALUE_MAX_LENGTH,
    ) -> CatalogSchema:
        """Discover the column set from a small sample of rows."""
        rows = await self.find({}, limit=sample_size, action="Schema probe")
        if not rows:
            logger.warning("⚠️ Catalog is empty - no columns discovered")
            return CatalogSchema()

        columns = list(rows[0].keys())
        preview = [truncate_preview_row(row, max_value_length) for row in rows[:preview_rows]]
        logger.info(f"📊 Available columns: {len(columns)}")
        return CatalogSchema(columns=columns, preview=preview)

    async def find(
        self,
        query: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
        projection: dict[str, int] | None = None,
        action: str = "Database query",
    ) -> list[ProductRecord]:
        """Run a filter query and return all matching rows."""
        try:
            cursor = self.collection.find(query, projection or DEFAULT_PROJECTION)
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"❌ {action} failed: {e}")
            raise CatalogError(f"{action} failed: {e}") from e

    async def count(self, query: dict[str, Any]) -> int:
        try:
            return await self.collection.count_documents(query)
        except PyMongoError as e:
            logger.error(f"❌ Count failed: {e}")
            raise CatalogError(f"Count failed: {e}") from e

    async def distinct(self, column: str, limit: int) -> list[str]:
        """Distinct non-empty string values of ``column`` among the first ``limit`` rows."""
        rows = await self.find(
            {column: {"$nin": [None, ""]}},
            limit=limit,
            projection={"_id": 0, column: 1},
            action=f"Distinct {column}",
        )
        values = {str(row[column]).strip() for row in rows if row.get(column) not in (None, "")}
        return sorted(value for value in values if value)

    async def get_health_status(self) -> dict[str, Any]:
        try:
            count = await self.collection.estimated_document_count()
            return {
                "status": "healthy",
                "products_count": count,
                "collection": settings.PRODUCTS_COLLECTION,
            }
        except PyMongoError as e:
            return {"status": "unhealthy", "error": str(e)}


def get_product_catalog() -> ProductCatalog:
    return ProductCatalog(get_products_collection())
