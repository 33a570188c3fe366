from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    DATABASE_URL: str = "sqlite+aiosqlite:///./geo_historian.db"

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Upstream encyclopedia ({language} is the edition subdomain)
    WIKIPEDIA_BASE_URL_TEMPLATE: str = "https://{language}.wikipedia.org"
    WIKIPEDIA_USER_AGENT: str = "GeoHistorian/1.0 (location-based-history-app)"
    WIKIPEDIA_API_TIMEOUT: float = 10.0
    MAX_CONCURRENT_WIKIPEDIA_REQUESTS: int = 10

    SEARCH_RADIUS_M: int = 1000
    EXPANDED_SEARCH_RADIUS_M: int = 5000
    MAX_SEARCH_RADIUS_M: int = 10000
    SEARCH_LIMIT: int = 3

    # Stored discoveries closer than this are served instead of a new lookup
    CACHE_RADIUS_M: float = 100.0

    RATE_LIMIT_MAX: int = 30
    RATE_LIMIT_WINDOW_SECONDS: int = 3600
    RATE_LIMIT_SWEEP_SECONDS: int = 3600

    HISTORY_RETENTION_DAYS: int = 90
    HISTORY_SWEEP_SECONDS: int = 86400
    HISTORY_LIST_LIMIT: int = 50

    PRELOAD_MAX_WAYPOINTS: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
