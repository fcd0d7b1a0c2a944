"""
Async client for the Redirect Fixer HTTP API.

Status is point-in-time on the server; ``wait_for_crawl`` implements
the polling loop a UI would run.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import httpx

from redirect_fixer.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RedirectFixerError,
    ValidationError,
)
from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.cms import CMSInfo
from redirect_fixer.schemas.crawl import CrawlResultsResponse, CrawlStatusResponse
from redirect_fixer.schemas.wordpress import FixLinkResponse, VerifyWPResponse, WPCredentials

logger = get_logger(__name__)

POLL_INTERVAL = 2.0
POLL_BACKOFF = 1.5
POLL_MAX_INTERVAL = 15.0

_ERRORS_BY_STATUS = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
}


class RedirectFixerClient:
    """
    Thin wrapper over the JSON API.

    Usage:
        async with RedirectFixerClient("http://localhost:8000") as client:
            crawl_id = await client.start_crawl("https://example.com")
            await client.wait_for_crawl(crawl_id)
            results = await client.get_results(crawl_id)
    """

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.timeout = timeout
        self.transport = transport
        self.sleep = sleep
        self.clock = clock
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}{self.api_prefix}",
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Redirect Fixer API unreachable: {e}") from e

        data = response.json() if response.content else {}
        if response.is_success:
            return data

        message = data.get("error") or data.get("message") or f"API error: {response.status_code}"
        error_class = _ERRORS_BY_STATUS.get(response.status_code, RedirectFixerError)
        raise error_class(message, status_code=response.status_code)

    # =========================================================================
    # Crawls
    # =========================================================================

    async def start_crawl(self, site_url: str) -> str:
        data = await self._call("POST", "/crawl", json={"siteUrl": site_url})
        return data["crawlId"]

    async def get_status(self, crawl_id: str) -> CrawlStatusResponse:
        data = await self._call("GET", "/crawl-status", params={"crawlId": crawl_id})
        return CrawlStatusResponse.model_validate(data)

    async def get_results(self, crawl_id: str) -> CrawlResultsResponse:
        data = await self._call("GET", "/crawl-results", params={"crawlId": crawl_id})
        return CrawlResultsResponse.model_validate(data)

    async def wait_for_crawl(
        self,
        crawl_id: str,
        interval: float = POLL_INTERVAL,
        backoff: float = POLL_BACKOFF,
        max_interval: float = POLL_MAX_INTERVAL,
        timeout: Optional[float] = None,
        on_status: Optional[Callable[[CrawlStatusResponse], Any]] = None,
    ) -> CrawlStatusResponse:
        """
        Poll until the crawl is complete or errored.

        The delay starts at ``interval`` and grows by ``backoff`` up to
        ``max_interval``. Raises ``TimeoutError`` past ``timeout`` seconds.
        """
        deadline = self.clock() + timeout if timeout is not None else None
        delay = interval

        while True:
            status = await self.get_status(crawl_id)
            if on_status is not None:
                on_status(status)
            if status.status != "running":
                logger.info("Crawl finished", crawl_id=crawl_id, status=status.status)
                return status

            if deadline is not None and self.clock() + delay > deadline:
                raise TimeoutError(f"Crawl {crawl_id} still running after {timeout}s")

            await self.sleep(delay)
            delay = min(delay * backoff, max_interval)

    # =========================================================================
    # CMS and WordPress
    # =========================================================================

    async def detect_cms(self, site_url: str) -> CMSInfo:
        data = await self._call("POST", "/detect-cms", json={"siteUrl": site_url})
        return CMSInfo.model_validate(data)

    async def verify_wordpress(self, credentials: WPCredentials) -> VerifyWPResponse:
        # A 400 here still carries a verify body
        response = await self.client.post(
            "/verify-wp", json=credentials.model_dump(by_alias=True)
        )
        return VerifyWPResponse.model_validate(response.json())

    async def fix_link(
        self,
        source_url: str,
        dest_url: str,
        credentials: WPCredentials,
    ) -> FixLinkResponse:
        response = await self.client.post(
            "/fix-link",
            json={
                "sourceUrl": source_url,
                "destUrl": dest_url,
                "wpConfig": credentials.model_dump(by_alias=True),
            },
        )
        return FixLinkResponse.model_validate(response.json())
