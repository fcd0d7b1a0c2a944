"""Capability interface for external crawl executors."""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class RunState(str, enum.Enum):
    """Backend-neutral state of an external crawl run."""
    QUEUED = "queued"
    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RunStatus:
    """Point-in-time status of an external run."""
    state: RunState
    detail: Optional[str] = None


class CrawlBackend(ABC):
    """
    Something that runs a crawl outside this process.

    Implementations wrap their transport failures in
    ``ExternalServiceError`` so the session manager can treat every
    backend the same way.
    """

    name: str = "crawler"
    display_name: str = "crawler"

    @abstractmethod
    async def dispatch(self, site_url: str, crawl_id: str) -> Optional[str]:
        """Trigger the crawl. Returns a run reference when one is known immediately."""

    async def resolve_run(self, crawl_id: str) -> Optional[str]:
        """Find the run reference for a dispatched crawl, or None if not visible yet."""
        return None

    @abstractmethod
    async def poll_status(self, run_ref: str) -> RunStatus:
        """Query the current state of a run."""

    @abstractmethod
    async def fetch_artifact(self, crawl_id: str, run_ref: str) -> str:
        """Return the raw CSV export of a finished run."""

    def release(self, crawl_id: str, run_ref: Optional[str]) -> None:
        """Drop any per-run state kept for a crawl the manager no longer tracks."""
