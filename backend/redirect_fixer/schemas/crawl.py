"""Crawl Pydantic schemas."""

from typing import List, Literal, Optional
from pydantic import Field

from redirect_fixer.schemas.common import CamelModel


class RedirectLink(CamelModel):
    """One 301 row from a crawl export."""

    id: str
    source_url: str = ""
    dest_url: str = ""
    status_code: int = 301
    found_on_pages: List[str] = Field(default_factory=list)
    # UI-only; mutated by the fix workflow, never by the crawl
    status: Literal["pending", "fixing", "fixed", "error"] = "pending"


class CrawlStartRequest(CamelModel):
    """Schema for starting a crawl."""

    site_url: Optional[str] = Field(None, description="Site to crawl")


class CrawlStartResponse(CamelModel):
    """Schema returned once a crawl has been dispatched."""

    crawl_id: str
    status: str = "initiated"


class CrawlStatusResponse(CamelModel):
    """Point-in-time crawl status."""

    crawl_id: str
    status: str
    progress: int
    phase: str
    error: Optional[str] = None


class CrawlResultsResponse(CamelModel):
    """Parsed results of a completed crawl."""

    site_url: str
    total_pages: int
    redirects: List[RedirectLink]
    crawl_time: int = Field(..., description="Milliseconds since the crawl started")
