from functools import lru_cache
from typing import List
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedCounts(BaseModel):
    trending: int = 5
    new: int = 5
    editorial: int = 5
    random: int = 15


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    service_port: int = 8500

    # Redis (try-on result cache)
    redis_url: str | None = None
    tryon_cache_ttl_seconds: int = 7 * 24 * 3600

    # Postgres
    postgres_dsn: str | None = None
    pg_host: str | None = None
    pg_port: int | None = None
    pg_user: str | None = None
    pg_password: str | None = None
    pg_database: str | None = None
    auto_create_schema: bool = False

    # SerpAPI shopping search; no key means internal catalog only
    serpapi_api_key: str | None = None
    serpapi_base_url: str = "https://serpapi.com/search.json"
    serpapi_engine: str = "google_shopping_light"
    serpapi_product_engine: str = "google_shopping_product"
    http_timeout: float = 10.0
    scrape_user_agent: str = "Mozilla/5.0 VesakiBot"

    # Virtual try-on provider
    tryon_api_url: str | None = None
    tryon_api_key: str | None = None
    tryon_timeout: float = 60.0

    # Auth provider JWT verification
    auth_jwt_secret: str = ""
    auth_jwt_audience: str | None = None
    auth_jwt_algorithms: List[str] = ["HS256"]

    # Feed / swipe tuning
    search_default_count: int = 15
    default_search_query: str = "trending fashion apparel"
    feed_all_counts: FeedCounts = FeedCounts()
    feed_filter_count: int = 20
    max_photos: int = 5
    left_swipe_refine_threshold: int = 15
    swipe_low_water_mark: int = 5

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
