"""CrawlSession record tracking one external crawl."""

import enum
from dataclasses import dataclass, replace
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from redirect_fixer.schemas.crawl import RedirectLink


class CrawlStatus(str, enum.Enum):
    """Status of a crawl session."""
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class CrawlSession:
    """
    Local record of one crawl's lifecycle.

    Records are immutable; every change goes through ``evolve`` so the
    store always receives a whole replacement record.
    """

    crawl_id: str
    site_url: str
    backend: str
    start_time: float
    expires_at: float
    status: CrawlStatus = CrawlStatus.RUNNING
    progress: int = 0
    phase: str = ""
    last_poll_time: Optional[float] = None
    run_ref: Optional[str] = None
    results: Optional[List["RedirectLink"]] = None
    total_pages: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != CrawlStatus.RUNNING

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def evolve(self, **changes) -> "CrawlSession":
        """Return a copy with ``changes`` applied, refusing to leave a terminal state."""
        new_status = changes.get("status", self.status)
        if self.is_terminal and new_status != self.status:
            raise ValueError(
                f"Crawl {self.crawl_id} is {self.status.value} and cannot become {new_status.value}"
            )
        if "results" in changes and self.results is not None:
            raise ValueError(f"Results for crawl {self.crawl_id} are already cached")
        return replace(self, **changes)

    def __repr__(self):
        return f"<CrawlSession {self.crawl_id} ({self.status.value})>"
