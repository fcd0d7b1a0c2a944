"""Crawl backends and the factory that picks one from settings."""

from redirect_fixer.core.config import Settings, settings as default_settings
from redirect_fixer.core.exceptions import ConfigurationError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.backends.base import CrawlBackend, RunState, RunStatus
from redirect_fixer.services.backends.github import GitHubActionsBackend
from redirect_fixer.services.backends.local import LocalCliBackend
from redirect_fixer.services.backends.mock import MockCrawlBackend

logger = get_logger(__name__)

__all__ = [
    "CrawlBackend",
    "RunState",
    "RunStatus",
    "GitHubActionsBackend",
    "LocalCliBackend",
    "MockCrawlBackend",
    "get_crawl_backend",
]


def get_crawl_backend(settings: Settings = None) -> CrawlBackend:
    """Build the backend named by ``CRAWL_BACKEND``."""
    settings = settings or default_settings
    kind = settings.CRAWL_BACKEND.lower()

    if kind == "github":
        return GitHubActionsBackend(settings=settings)

    if kind == "local":
        from redirect_fixer.services.seo_spider import SEOSpiderCLI

        cli = SEOSpiderCLI(
            cli_path=settings.SF_CLI_PATH,
            docker_image=settings.SF_DOCKER_IMAGE,
            output_root=settings.SF_OUTPUT_DIR,
        )
        if not cli.is_available():
            if settings.SF_MOCK_FALLBACK:
                logger.warning("SEO Spider not found, using mock crawler", cli=cli.cli_path)
                return MockCrawlBackend(duration=settings.MOCK_CRAWL_DURATION_SECONDS)
            raise ConfigurationError(f"SEO Spider executable not found: {cli.cli_path}")
        return LocalCliBackend(cli=cli, timeout=settings.SF_CRAWL_TIMEOUT)

    if kind == "celery":
        from redirect_fixer.services.backends.celery_queue import CeleryCrawlBackend

        return CeleryCrawlBackend()

    if kind == "mock":
        return MockCrawlBackend(duration=settings.MOCK_CRAWL_DURATION_SECONDS)

    raise ConfigurationError(f"Unknown crawl backend: {settings.CRAWL_BACKEND}")
