from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "Catalog Smart Search API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # MongoDB settings
    MONGO_URL: str
    MONGO_DB_NAME: str = "catalog"

    # Collection names
    PRODUCTS_COLLECTION: str = "products"

    # OpenAI settings
    OPENAI_API_KEY: str
    QUERY_ANALYZER_MODEL: str = "gpt-4o-mini"  # Model for query interpretation
    SUMMARY_MODEL: str = "gpt-4o"  # Model for analytical answers and comparisons
    ATTRIBUTE_MODEL: str = "gpt-4o-mini"  # Model for "what is the X of Y" answers

    # Schema probe
    SCHEMA_SAMPLE_SIZE: int = 3
    SCHEMA_PREVIEW_ROWS: int = 2
    PREVIEW_VALUE_MAX_LENGTH: int = 100

    # Search settings
    ANALYTICAL_DEFAULT_LIMIT: int = 100  # Cap for analytical queries without an explicit limit
    FALLBACK_SEARCH_LIMIT: int = 100
    RANKING_TOP_K: int = 50
    FILTER_OPTIONS_SCAN_LIMIT: int = 10000

    # Summary budgets
    SUMMARY_MAX_PRODUCTS: int = 25
    SUMMARY_PRODUCT_MAX_CHARS: int = 3000
    SUMMARY_REDUCED_PRODUCTS: int = 15
    SUMMARY_REDUCED_PRODUCT_MAX_CHARS: int = 1500
    SUMMARY_TOKEN_BUDGET: int = 20000
    SUMMARY_TOKEN_RETRY_PRODUCTS: int = 10
    ATTRIBUTE_PRODUCT_MAX_CHARS: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
