"""Crawl API endpoints."""

from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query

from redirect_fixer.core.exceptions import NotFoundError, ValidationError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.crawl import (
    CrawlResultsResponse,
    CrawlStartRequest,
    CrawlStartResponse,
    CrawlStatusResponse,
)
from redirect_fixer.services.crawl_manager import CrawlSessionManager, get_crawl_manager

router = APIRouter()
logger = get_logger(__name__)


def normalize_site_url(site_url: Optional[str]) -> str:
    """Trim, default to https and reject anything that is not an http(s) URL."""
    if not site_url or not site_url.strip():
        raise ValidationError("siteUrl is required")

    url = site_url.strip()
    if "://" not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(f"Invalid URL: {site_url}")
    return url


def require_crawl_id(crawl_id: Optional[str]) -> str:
    if not crawl_id:
        raise ValidationError("crawlId is required")
    return crawl_id


@router.post("/crawl", response_model=CrawlStartResponse)
async def start_crawl(
    request: CrawlStartRequest,
    manager: CrawlSessionManager = Depends(get_crawl_manager),
):
    """Start a crawl of the given site."""
    site_url = normalize_site_url(request.site_url)
    session = await manager.start_crawl(site_url)

    logger.info("Crawl initiated", crawl_id=session.crawl_id, url=site_url)
    return CrawlStartResponse(crawl_id=session.crawl_id)


@router.get("/crawl-status", response_model=CrawlStatusResponse)
async def get_crawl_status(
    crawl_id: Optional[str] = Query(None, alias="crawlId"),
    manager: CrawlSessionManager = Depends(get_crawl_manager),
):
    """Current status of a crawl, refreshed from the backend at most every few seconds."""
    crawl_id = require_crawl_id(crawl_id)

    session = await manager.refresh_status(crawl_id)
    if session is None:
        raise NotFoundError("Crawl not found")

    return CrawlStatusResponse(
        crawl_id=session.crawl_id,
        status=session.status.value,
        progress=session.progress,
        phase=session.phase,
        error=session.error,
    )


@router.get("/crawl-results", response_model=CrawlResultsResponse)
async def get_crawl_results(
    crawl_id: Optional[str] = Query(None, alias="crawlId"),
    manager: CrawlSessionManager = Depends(get_crawl_manager),
):
    """Redirects found by a completed crawl."""
    crawl_id = require_crawl_id(crawl_id)

    redirects = await manager.load_results(crawl_id)
    session = manager.get_session(crawl_id)
    if session is None:
        raise NotFoundError("Crawl not found")

    return CrawlResultsResponse(
        site_url=session.site_url,
        total_pages=session.total_pages or 0,
        redirects=redirects,
        crawl_time=int((manager.clock() - session.start_time) * 1000),
    )
