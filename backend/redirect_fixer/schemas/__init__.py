"""Pydantic schemas module."""

from redirect_fixer.schemas.common import CamelModel, ErrorResponse, HealthResponse
from redirect_fixer.schemas.crawl import (
    RedirectLink,
    CrawlStartRequest,
    CrawlStartResponse,
    CrawlStatusResponse,
    CrawlResultsResponse,
)
from redirect_fixer.schemas.cms import CMSType, CMSInfo, DetectCMSRequest
from redirect_fixer.schemas.wordpress import (
    WPCredentials,
    WPConfig,
    VerifyWPRequest,
    VerifyWPResponse,
    FixLinkRequest,
    FixLinkResponse,
)

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
    "RedirectLink",
    "CrawlStartRequest",
    "CrawlStartResponse",
    "CrawlStatusResponse",
    "CrawlResultsResponse",
    "CMSType",
    "CMSInfo",
    "DetectCMSRequest",
    "WPCredentials",
    "WPConfig",
    "VerifyWPRequest",
    "VerifyWPResponse",
    "FixLinkRequest",
    "FixLinkResponse",
]
