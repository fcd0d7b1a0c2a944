"""
WordPress REST API client.

Authenticates with Application Passwords over HTTP Basic and rewrites
redirecting URLs in pages, posts and Elementor templates.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlparse

import httpx

from redirect_fixer.core.config import settings
from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.wordpress import VerifyWPResponse, WPCredentials

logger = get_logger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
CONTENT_TYPES = ("pages", "posts")
TEMPLATE_TYPE = "elementor_library"
DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass
class ReplaceResult:
    """Outcome of a site-wide find and replace."""
    success: bool
    affected_pages: int = 0
    failed_pages: int = 0
    message: Optional[str] = None


@dataclass
class _TypeTally:
    affected: int = 0
    failed: int = 0


def escape_slashes(url: str) -> str:
    """Elementor stores URLs in JSON with forward slashes escaped."""
    return url.replace("/", "\\/")


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def is_same_authority(original_url: str, target_url: str) -> bool:
    """
    Whether credentials may follow a redirect from ``original_url`` to ``target_url``.

    Allows www/non-www canonicalization and http -> https upgrades, nothing else.
    """
    original = urlparse(original_url)
    target = urlparse(target_url)

    if original.scheme not in DEFAULT_PORTS or target.scheme not in DEFAULT_PORTS:
        return False
    if original.scheme == "https" and target.scheme == "http":
        return False

    original_host = (original.hostname or "").lower()
    target_host = (target.hostname or "").lower()
    if _strip_www(original_host) != _strip_www(target_host):
        return False

    original_port = original.port or DEFAULT_PORTS[original.scheme]
    target_port = target.port or DEFAULT_PORTS[target.scheme]
    if original.scheme == target.scheme:
        return original_port == target_port
    # An upgrade only keeps the authority when both sides use their default port
    return original_port == DEFAULT_PORTS[original.scheme] and target_port == DEFAULT_PORTS[target.scheme]


class WordPressClient:
    """
    WordPress REST API client for fixing redirecting links.

    Usage:
        async with WordPressClient(credentials) as client:
            check = await client.verify_credentials()
            if check.valid:
                result = await client.find_and_replace(old_url, new_url)
    """

    def __init__(
        self,
        credentials: WPCredentials,
        timeout: float = None,
        page_size: int = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.page_size = page_size or settings.WP_PAGE_SIZE
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def site_url(self) -> str:
        return self.credentials.base_url

    @property
    def api_base(self) -> str:
        """Get the REST API base URL"""
        return f"{self.site_url}/wp-json/wp/v2"

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            # Redirects are followed by hand so auth is never forwarded off-site
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send an authenticated request, following at most one redirect hop.

        The hop is only taken when the target stays on the original authority;
        otherwise the redirect response itself is returned.
        """
        auth = httpx.BasicAuth(*self.credentials.auth)
        response = await self.client.request(method, url, auth=auth, **kwargs)

        if response.status_code not in REDIRECT_STATUSES:
            return response

        location = response.headers.get("location")
        if not location:
            return response

        target = urljoin(url, location)
        if not is_same_authority(url, target):
            logger.warning(
                "Refusing to forward credentials to another host",
                url=url,
                location=target,
            )
            return response

        logger.info("Following WordPress redirect", url=url, location=target)
        return await self.client.request(method, target, auth=auth, **kwargs)

    # =========================================================================
    # Connection Testing
    # =========================================================================

    async def verify_credentials(self) -> VerifyWPResponse:
        """Check the credentials against the current-user endpoint."""
        url = f"{self.api_base}/users/me"
        try:
            response = await self._send("GET", url)
        except httpx.HTTPError as e:
            logger.warning("WordPress verification failed", site=self.site_url, error=str(e))
            return VerifyWPResponse(valid=False, message=str(e) or "Connection failed")

        if response.is_success:
            logger.info("WordPress credentials verified", site=self.site_url)
            return VerifyWPResponse(valid=True, status=response.status_code)

        if response.status_code in REDIRECT_STATUSES:
            location = urljoin(url, response.headers.get("location", ""))
            host = urlparse(location).hostname or location
            return VerifyWPResponse(
                valid=False,
                status=response.status_code,
                message=f"Site redirects to {host}; credentials were not forwarded",
            )

        message = response.text or response.reason_phrase or f"API error: {response.status_code}"
        return VerifyWPResponse(valid=False, status=response.status_code, message=message)

    # =========================================================================
    # Link Fixing
    # =========================================================================

    async def find_and_replace(self, old_url: str, new_url: str) -> ReplaceResult:
        """
        Replace ``old_url`` with ``new_url`` across pages, posts and templates.

        Only updates confirmed by a 2xx response count as affected.
        """
        affected = 0
        failed = 0

        try:
            for post_type in CONTENT_TYPES:
                tally = await self._replace_in_post_type(post_type, old_url, new_url)
                affected += tally.affected
                failed += tally.failed

            tally = await self._replace_in_templates(old_url, new_url)
            affected += tally.affected
            failed += tally.failed

            await self._clear_cache()

        except Exception as e:
            logger.error("Find and replace failed", site=self.site_url, error=str(e))
            return ReplaceResult(
                success=False,
                affected_pages=affected,
                failed_pages=failed,
                message=str(e) or "Unknown error",
            )

        logger.info(
            "Find and replace finished",
            site=self.site_url,
            old_url=old_url,
            new_url=new_url,
            affected=affected,
            failed=failed,
        )
        return ReplaceResult(success=True, affected_pages=affected, failed_pages=failed)

    async def _iter_items(self, post_type: str):
        """Yield items of a post type page by page until a short page."""
        page = 1
        while True:
            response = await self._send(
                "GET",
                f"{self.api_base}/{post_type}",
                params={"per_page": self.page_size, "page": page, "context": "edit"},
            )
            if not response.is_success:
                break

            items = response.json()
            if not items:
                break

            for item in items:
                yield item

            if len(items) < self.page_size:
                break
            page += 1

    async def _replace_in_post_type(self, post_type: str, old_url: str, new_url: str) -> _TypeTally:
        tally = _TypeTally()
        escaped_old = escape_slashes(old_url)
        escaped_new = escape_slashes(new_url)

        async for item in self._iter_items(post_type):
            updates: Dict[str, Any] = {}

            content = item.get("content")
            raw = content.get("raw") if isinstance(content, dict) else None
            if raw and old_url in raw:
                updates["content"] = raw.replace(old_url, new_url)

            elementor_data = self._elementor_data(item)
            if elementor_data and escaped_old in elementor_data:
                updates["meta"] = {
                    "_elementor_data": elementor_data.replace(escaped_old, escaped_new),
                }

            if updates:
                await self._update_item(post_type, item["id"], updates, tally)

        return tally

    async def _replace_in_templates(self, old_url: str, new_url: str) -> _TypeTally:
        tally = _TypeTally()
        escaped_old = escape_slashes(old_url)
        escaped_new = escape_slashes(new_url)

        try:
            async for template in self._iter_items(TEMPLATE_TYPE):
                elementor_data = self._elementor_data(template)
                if elementor_data and escaped_old in elementor_data:
                    updates = {
                        "meta": {"_elementor_data": elementor_data.replace(escaped_old, escaped_new)},
                    }
                    await self._update_item(TEMPLATE_TYPE, template["id"], updates, tally)
        except (httpx.HTTPError, ValueError) as e:
            # The template library only exists when Elementor is installed
            logger.info("Template library unavailable", site=self.site_url, error=str(e))

        return tally

    async def _update_item(
        self,
        post_type: str,
        item_id: int,
        updates: Dict[str, Any],
        tally: _TypeTally,
    ) -> None:
        response = await self._send(
            "POST",
            f"{self.api_base}/{post_type}/{item_id}",
            json=updates,
        )
        if response.is_success:
            tally.affected += 1
        else:
            tally.failed += 1
            logger.warning(
                "WordPress update rejected",
                post_type=post_type,
                item_id=item_id,
                status=response.status_code,
            )

    def _elementor_data(self, item: Dict[str, Any]) -> Optional[str]:
        # WordPress returns [] rather than {} when no meta is registered
        meta = item.get("meta")
        if not isinstance(meta, dict):
            return None
        data = meta.get("_elementor_data")
        return data if isinstance(data, str) else None

    async def _clear_cache(self) -> None:
        """Ask WP Super Cache to purge; optional, failures are ignored."""
        try:
            response = await self._send(
                "POST",
                f"{self.site_url}{settings.WP_CACHE_CLEAR_PATH}",
                json={"action": "delete_cache"},
            )
            logger.debug("Cache clear requested", site=self.site_url, status=response.status_code)
        except httpx.HTTPError as e:
            logger.info("Cache clear skipped", site=self.site_url, error=str(e))


# =============================================================================
# Convenience Functions
# =============================================================================

async def verify_credentials(credentials: WPCredentials, **kwargs) -> VerifyWPResponse:
    """Verify credentials without keeping a client around"""
    async with WordPressClient(credentials, **kwargs) as client:
        return await client.verify_credentials()


async def find_and_replace(
    credentials: WPCredentials,
    old_url: str,
    new_url: str,
    **kwargs,
) -> ReplaceResult:
    """Run a site-wide find and replace without keeping a client around"""
    async with WordPressClient(credentials, **kwargs) as client:
        return await client.find_and_replace(old_url, new_url)
