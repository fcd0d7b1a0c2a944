"""CMS fingerprinting by homepage body and header signatures."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup

from redirect_fixer.core.config import settings
from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.cms import CMSInfo, CMSType

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignatureCheck:
    """One cheap signal: body substrings, or a response header (optionally containing a value)."""
    indicator: str
    body_any: Tuple[str, ...] = ()
    header: Optional[str] = None
    header_contains: Optional[str] = None

    def matches(self, html: str, headers: httpx.Headers) -> bool:
        if self.body_any:
            return any(marker in html for marker in self.body_any)
        if self.header:
            value = headers.get(self.header)
            if value is None:
                return False
            if self.header_contains:
                return self.header_contains in value.lower()
            return True
        return False


# Checked in order; first platform with a matching check wins
PLATFORM_SIGNATURES: List[Tuple[CMSType, List[SignatureCheck]]] = [
    (CMSType.SHOPIFY, [
        SignatureCheck("Found Shopify CDN references", body_any=("cdn.shopify.com", "Shopify.theme")),
        SignatureCheck("X-ShopId header present", header="x-shopid"),
        SignatureCheck("Found myshopify.com reference", body_any=(".myshopify.com",)),
    ]),
    (CMSType.WIX, [
        SignatureCheck("Found Wix references", body_any=("wix.com", "_wix_browser_sess")),
        SignatureCheck("X-Wix-Request-Id header present", header="x-wix-request-id"),
        SignatureCheck("Found Wix CDN (parastorage)", body_any=("static.parastorage.com",)),
    ]),
    (CMSType.SQUARESPACE, [
        SignatureCheck("Found Squarespace references", body_any=("squarespace.com", "<!-- This is Squarespace")),
        SignatureCheck("Server header indicates Squarespace", header="server", header_contains="squarespace"),
        SignatureCheck("Found Squarespace static CDN", body_any=("static1.squarespace.com",)),
    ]),
    (CMSType.WEBFLOW, [
        SignatureCheck("Found Webflow references or classes", body_any=("webflow.com", "w-nav", "wf-page")),
        SignatureCheck("X-Webflow-Info header present", header="x-webflow-info"),
        SignatureCheck("Found Webflow assets CDN", body_any=("assets.website-files.com", "assets-global.website-files.com")),
    ]),
]

WORDPRESS_PATH_CHECK = SignatureCheck(
    "Found /wp-content/ or /wp-includes/ paths",
    body_any=("/wp-content/", "/wp-includes/"),
)
WORDPRESS_HEADER_CHECK = SignatureCheck(
    "X-Powered-By header indicates WordPress",
    header="x-powered-by",
    header_contains="wordpress",
)


class CMSDetector:
    """Best-effort platform detection; never raises."""

    def __init__(
        self,
        timeout: float = None,
        user_agent: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.user_agent = user_agent or settings.CMS_DETECT_USER_AGENT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        )

    async def detect(self, site_url: str) -> CMSInfo:
        """
        Fetch the homepage and classify the platform.

        WordPress is checked first; its endpoint probes only run when the
        body and header signatures are inconclusive.
        """
        if not site_url.startswith(("http://", "https://")):
            site_url = f"https://{site_url}"
        site_url = site_url.rstrip("/")

        indicators: List[str] = []
        try:
            async with self._client() as client:
                response = await client.get(site_url)
                html = response.text
                headers = response.headers

                if await self._is_wordpress(client, site_url, html, headers, indicators):
                    return self._result(CMSType.WORDPRESS, indicators)

            for cms_type, checks in PLATFORM_SIGNATURES:
                matched = [check.indicator for check in checks if check.matches(html, headers)]
                if matched:
                    indicators.extend(matched)
                    return self._result(cms_type, indicators)

        except Exception as e:
            logger.warning("CMS detection failed", url=site_url, error=str(e))
            return CMSInfo(type=CMSType.UNKNOWN, detected=False, indicators=[])

        return self._result(CMSType.UNKNOWN, indicators)

    async def _is_wordpress(
        self,
        client: httpx.AsyncClient,
        site_url: str,
        html: str,
        headers: httpx.Headers,
        indicators: List[str],
    ) -> bool:
        if WORDPRESS_PATH_CHECK.matches(html, headers):
            indicators.append(WORDPRESS_PATH_CHECK.indicator)
            return True

        if self._has_wordpress_generator(html):
            indicators.append("Found WordPress generator meta tag")
            return True

        if WORDPRESS_HEADER_CHECK.matches(html, headers):
            indicators.append(WORDPRESS_HEADER_CHECK.indicator)
            return True

        # Heavier checks: probe well-known WordPress endpoints
        try:
            api_response = await client.head(f"{site_url}/wp-json/")
            if api_response.is_success:
                indicators.append("WordPress REST API endpoint exists")
                return True
        except httpx.HTTPError as e:
            logger.debug("REST API probe failed", url=site_url, error=str(e))

        try:
            login_response = await client.head(f"{site_url}/wp-login.php", follow_redirects=False)
            if login_response.is_success or login_response.status_code == 302:
                indicators.append("wp-login.php exists")
                return True
        except httpx.HTTPError as e:
            logger.debug("Login page probe failed", url=site_url, error=str(e))

        return False

    def _has_wordpress_generator(self, html: str) -> bool:
        if 'name="generator" content="WordPress' in html:
            return True
        if "generator" not in html:
            return False
        soup = BeautifulSoup(html, "lxml")
        meta = soup.find("meta", attrs={"name": "generator"})
        return bool(meta and meta.get("content", "").strip().lower().startswith("wordpress"))

    def _result(self, cms_type: CMSType, indicators: List[str]) -> CMSInfo:
        detected = cms_type != CMSType.UNKNOWN
        if detected:
            logger.info("CMS detected", cms=cms_type.value, indicators=indicators)
        return CMSInfo(type=cms_type, detected=detected, indicators=indicators)


# Singleton instance
cms_detector = CMSDetector()
