import json
import os
from unittest.mock import AsyncMock, Mock

import pytest

# Settings are validated at import time
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from catalog_search.services.catalog import CatalogSchema, ProductCatalog  # noqa: E402
from catalog_search.services.llm_client import LLMClient  # noqa: E402


PS_870 = {
    "sku": "PS 870 Class B",
    "product_name": "PS 870 Corrosion Inhibitive Sealant",
    "description": "<p>Two-part sealant for faying surfaces &amp; fasteners</p>",
    "family": "PS 870",
    "product_type": "Sealant",
    "all_attributes": json.dumps({"color": "Amber", "Family": "duplicate", "cure_time": "72 h"}),
}

PR_1422 = {
    "sku": "PR-1422 Class B",
    "product_name": "PR-1422 Fuel Tank Sealant",
    "description": "Fuel tank sealant with high temperature resistance",
    "family": "PR-1422",
    "product_type": "Sealant",
    "all_attributes": {"color": "Dark Grey", "application": "Fuel tanks"},
}

PRIMER = {
    "sku": "P-100",
    "product_name": "Epoxy Primer",
    "description": "General purpose primer",
    "family": "Primers",
    "product_type": "Primer",
    "all_attributes": "",
}


@pytest.fixture
def catalog_rows():
    return [dict(PS_870), dict(PR_1422), dict(PRIMER)]


@pytest.fixture
def schema():
    return CatalogSchema(
        columns=["sku", "product_name", "description", "family", "product_type", "searchable_text", "all_attributes"],
        preview=[{"sku": "PS 870 Class B", "family": "PS 870"}],
    )


@pytest.fixture
def catalog(schema):
    """Catalog double: probe returns ``schema``; set ``find.side_effect`` per test."""
    fake = Mock(spec=ProductCatalog)
    fake.probe_schema = AsyncMock(return_value=schema)
    fake.find = AsyncMock(return_value=[])
    fake.count = AsyncMock(return_value=0)
    fake.distinct = AsyncMock(return_value=[])
    return fake


@pytest.fixture
def llm():
    client = Mock(spec=LLMClient)
    client.complete = Mock(return_value="")
    return client
