"""In-process crawl backend that fakes a crawl, for demos and tests."""

import time
from typing import Callable, Dict, Optional, Tuple

from redirect_fixer.core.config import settings
from redirect_fixer.core.exceptions import ExternalServiceError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.backends.base import CrawlBackend, RunState, RunStatus

logger = get_logger(__name__)

QUEUED_FRACTION = 0.2

CSV_HEADER = '"Address","Content Type","Status Code","Status","Indexability","Redirect URL","Inlinks"'


def build_sample_export(site_url: str) -> str:
    """A small Response Codes export with a few redirects for ``site_url``."""
    base = site_url.rstrip("/")
    rows = [
        (f"{base}/", "text/html; charset=UTF-8", "200", "OK", "Indexable", "", "12"),
        (f"{base}/old-about", "text/html; charset=UTF-8", "301", "Moved Permanently",
         "Non-Indexable", f"{base}/about/", "4"),
        (f"{base}/blog/2019/launch", "text/html; charset=UTF-8", "301", "Moved Permanently",
         "Non-Indexable", f"{base}/blog/launch/", "2"),
        (f"{base}/contact-us", "text/html; charset=UTF-8", "301", "Moved Permanently",
         "Non-Indexable", f"{base}/contact/", "7"),
        (f"{base}/promo", "text/html; charset=UTF-8", "302", "Found",
         "Non-Indexable", f"{base}/", "1"),
        (f"{base}/missing", "text/html; charset=UTF-8", "404", "Not Found", "Non-Indexable", "", "3"),
    ]
    lines = [CSV_HEADER]
    for row in rows:
        lines.append(",".join(f'"{value}"' for value in row))
    return "\n".join(lines) + "\n"


class MockCrawlBackend(CrawlBackend):
    """Every crawl succeeds ``duration`` seconds after dispatch."""

    name = "mock"
    display_name = "mock crawler"

    def __init__(self, duration: float = None, clock: Callable[[], float] = time.time):
        self.duration = settings.MOCK_CRAWL_DURATION_SECONDS if duration is None else duration
        self.clock = clock
        self._runs: Dict[str, Tuple[str, float]] = {}

    async def dispatch(self, site_url: str, crawl_id: str) -> Optional[str]:
        self._runs[crawl_id] = (site_url, self.clock())
        logger.info("Mock crawl started", crawl_id=crawl_id, url=site_url, duration=self.duration)
        return crawl_id

    async def poll_status(self, run_ref: str) -> RunStatus:
        if run_ref not in self._runs:
            raise ExternalServiceError(f"Unknown mock run {run_ref}")

        _, started = self._runs[run_ref]
        elapsed = self.clock() - started
        if elapsed >= self.duration:
            return RunStatus(state=RunState.SUCCEEDED)
        if elapsed < self.duration * QUEUED_FRACTION:
            return RunStatus(state=RunState.QUEUED)
        return RunStatus(state=RunState.IN_PROGRESS)

    async def fetch_artifact(self, crawl_id: str, run_ref: str) -> str:
        if run_ref not in self._runs:
            raise ExternalServiceError(f"Unknown mock run {run_ref}")
        site_url, _ = self._runs[run_ref]
        return build_sample_export(site_url)

    def release(self, crawl_id: str, run_ref: Optional[str]) -> None:
        self._runs.pop(run_ref or crawl_id, None)
