"""In-memory domain models."""

from redirect_fixer.models.crawl_session import CrawlSession, CrawlStatus

__all__ = [
    "CrawlSession",
    "CrawlStatus",
]
