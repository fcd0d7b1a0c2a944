"""Application configuration settings."""

from typing import List, Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Redirect Fixer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Crawl sessions
    CRAWL_BACKEND: str = "github"  # github, local, celery, mock
    CRAWL_SESSION_TTL_SECONDS: int = 2 * 60 * 60
    CRAWL_STATUS_CACHE_SECONDS: float = 5.0
    CRAWL_MAX_CONCURRENT: int = 1  # 0 = unlimited

    # GitHub Actions dispatch
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_OWNER: Optional[str] = None
    GITHUB_REPO: Optional[str] = None
    GITHUB_WORKFLOW_CRAWL: Optional[str] = None
    GITHUB_REF: str = "main"
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_ARTIFACT_PREFIX: str = "sf-crawl-"

    # Screaming Frog SEO Spider
    SF_CLI_PATH: str = "screamingfrogseospider"
    SF_DOCKER_IMAGE: Optional[str] = None
    SF_OUTPUT_DIR: str = "./crawls"
    SF_CRAWL_TIMEOUT: int = 60 * 60  # seconds
    SF_MOCK_FALLBACK: bool = True

    # Mock crawler
    MOCK_CRAWL_DURATION_SECONDS: float = 6.0

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Outbound HTTP
    HTTP_TIMEOUT: float = 30.0
    CMS_DETECT_USER_AGENT: str = "Mozilla/5.0 (compatible; RedirectFixer/1.0)"
    WP_PAGE_SIZE: int = 100
    WP_CACHE_CLEAR_PATH: str = "/wp-json/wp-super-cache/v1/cache"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
