"""
Crawl session manager.

Tracks externally executed crawls: dispatch, status polling with a
cache window, expiry and one-time loading of parsed results.
"""

import asyncio
import secrets
import time
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from redirect_fixer.core.config import settings
from redirect_fixer.core.exceptions import (
    ConflictError,
    DispatchError,
    ExternalServiceError,
    NotFoundError,
    ParseError,
    RedirectFixerError,
    ValidationError,
)
from redirect_fixer.core.logging import get_logger
from redirect_fixer.models.crawl_session import CrawlSession, CrawlStatus
from redirect_fixer.schemas.crawl import RedirectLink
from redirect_fixer.services.backends import CrawlBackend, RunState, get_crawl_backend
from redirect_fixer.services.csv_parser import RedirectCSVParser, csv_parser
from redirect_fixer.services.session_store import InMemorySessionStore, SessionStore

logger = get_logger(__name__)

# Cosmetic progress per phase
PROGRESS_QUEUED_LOCAL = 5
PROGRESS_DISPATCHED = 10
PROGRESS_RUN_QUEUED = 15
PROGRESS_RUN_ACTIVE = 60
PROGRESS_DOWNLOADING = 90
PROGRESS_COMPLETE = 100

PHASE_COMPLETE = "Complete"
PHASE_ERROR = "Error"
PHASE_DOWNLOADING = "Downloading crawl results..."


def _error_message(error: Exception) -> str:
    if isinstance(error, RedirectFixerError):
        return error.message
    return str(error) or type(error).__name__


class AdmissionPolicy:
    """Caps the number of simultaneously running crawls; 0 means no cap."""

    def __init__(self, max_concurrent: int = 1):
        self.max_concurrent = max_concurrent

    def admits(self, running_count: int) -> bool:
        return self.max_concurrent <= 0 or running_count < self.max_concurrent


class CrawlSessionManager:
    """Owns crawl session state and drives it from a ``CrawlBackend``."""

    def __init__(
        self,
        backend: CrawlBackend,
        store: Optional[SessionStore] = None,
        clock: Callable[[], float] = time.time,
        ttl_seconds: float = None,
        cache_seconds: float = None,
        policy: Optional[AdmissionPolicy] = None,
        parser: Optional[RedirectCSVParser] = None,
    ):
        self.backend = backend
        self.store = store if store is not None else InMemorySessionStore()
        self.clock = clock
        self.ttl_seconds = settings.CRAWL_SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.cache_seconds = settings.CRAWL_STATUS_CACHE_SECONDS if cache_seconds is None else cache_seconds
        self.policy = policy or AdmissionPolicy(settings.CRAWL_MAX_CONCURRENT)
        self.parser = parser or csv_parser
        self._locks: Dict[str, asyncio.Lock] = {}

    # =========================================================================
    # Helpers
    # =========================================================================

    def generate_crawl_id(self) -> str:
        """``crawl-<epoch ms>-<8 hex chars>``"""
        return f"crawl-{int(self.clock() * 1000)}-{secrets.token_hex(4)}"

    def _purge(self) -> None:
        now = self.clock()
        run_refs = {s.crawl_id: s.run_ref for s in self.store.values() if s.is_expired(now)}
        for crawl_id in self.store.purge_expired(now):
            self._locks.pop(crawl_id, None)
            self.backend.release(crawl_id, run_refs.get(crawl_id))
            logger.info("Crawl session expired", crawl_id=crawl_id)

    def _lock(self, crawl_id: str) -> asyncio.Lock:
        lock = self._locks.get(crawl_id)
        if lock is None:
            lock = self._locks[crawl_id] = asyncio.Lock()
        return lock

    def _save(self, session: CrawlSession, **changes) -> CrawlSession:
        updated = session.evolve(**changes)
        self.store.set(updated)
        return updated

    def _fail(self, session: CrawlSession, message: str) -> CrawlSession:
        logger.warning("Crawl failed", crawl_id=session.crawl_id, error=message)
        self.backend.release(session.crawl_id, session.run_ref)
        return self._save(
            session,
            status=CrawlStatus.ERROR,
            phase=PHASE_ERROR,
            error=message,
        )

    def get_session(self, crawl_id: str) -> Optional[CrawlSession]:
        """Current record for ``crawl_id`` without contacting the backend."""
        self._purge()
        return self.store.get(crawl_id)

    def has_active_crawl(self) -> bool:
        self._purge()
        return any(s.status == CrawlStatus.RUNNING for s in self.store.values())

    def running_count(self) -> int:
        self._purge()
        return sum(1 for s in self.store.values() if s.status == CrawlStatus.RUNNING)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start_crawl(self, site_url: str, crawl_id: Optional[str] = None) -> CrawlSession:
        """
        Create a session and dispatch the crawl.

        Raises:
            ConflictError: admission refused, or ``crawl_id`` already in use
            DispatchError: the backend could not start the crawl
        """
        if not self.policy.admits(self.running_count()):
            raise ConflictError("A crawl is already in progress. Please wait for it to complete.")

        crawl_id = crawl_id or self.generate_crawl_id()
        if crawl_id in self.store:
            raise ConflictError(f"Crawl {crawl_id} already exists")

        now = self.clock()
        session = CrawlSession(
            crawl_id=crawl_id,
            site_url=site_url,
            backend=self.backend.name,
            start_time=now,
            expires_at=now + self.ttl_seconds,
            phase=f"Queued on {self.backend.display_name}...",
            progress=PROGRESS_QUEUED_LOCAL,
        )
        self.store.set(session)
        logger.info("Crawl session created", crawl_id=crawl_id, url=site_url, backend=self.backend.name)

        try:
            run_ref = await self.backend.dispatch(site_url, crawl_id)
        except Exception as e:
            message = f"Failed to start crawl: {_error_message(e)}"
            self._fail(session, message)
            raise DispatchError(message) from e

        return self._save(
            session,
            phase=f"Dispatched to {self.backend.display_name}...",
            progress=PROGRESS_DISPATCHED,
            run_ref=run_ref,
        )

    async def refresh_status(self, crawl_id: str) -> Optional[CrawlSession]:
        """
        Return the session, polling the backend when the cache window has passed.

        Backend failures are recorded on the session, never raised.
        """
        self._purge()
        session = self.store.get(crawl_id)
        if session is None or session.is_terminal:
            return session

        async with self._lock(crawl_id):
            # Another poll may have refreshed or finished it while we waited
            session = self.store.get(crawl_id)
            if session is None or session.is_terminal:
                return session

            now = self.clock()
            if session.last_poll_time is not None and now - session.last_poll_time < self.cache_seconds:
                return session

            try:
                return await self._poll(session, now)
            except Exception as e:
                return self._fail(session, f"Status check failed: {_error_message(e)}")

    async def _poll(self, session: CrawlSession, now: float) -> CrawlSession:
        name = self.backend.display_name
        run_ref = session.run_ref

        if run_ref is None:
            run_ref = await self.backend.resolve_run(session.crawl_id)
            if run_ref is None:
                return self._save(
                    session,
                    last_poll_time=now,
                    phase=f"Waiting for {name} to pick up the crawl...",
                    progress=PROGRESS_DISPATCHED,
                )

        run = await self.backend.poll_status(run_ref)

        if run.state == RunState.SUCCEEDED:
            logger.info("Crawl completed", crawl_id=session.crawl_id, run_ref=run_ref)
            return self._save(
                session,
                last_poll_time=now,
                run_ref=run_ref,
                status=CrawlStatus.COMPLETE,
                phase=PHASE_COMPLETE,
                progress=PROGRESS_COMPLETE,
            )

        if run.state == RunState.FAILED:
            session = self._save(session, last_poll_time=now, run_ref=run_ref)
            return self._fail(session, run.detail or "Crawl failed")

        progress = PROGRESS_RUN_ACTIVE if run.state == RunState.IN_PROGRESS else PROGRESS_RUN_QUEUED
        return self._save(
            session,
            last_poll_time=now,
            run_ref=run_ref,
            phase=f"{name}: {run.state.value}",
            progress=progress,
        )

    async def load_results(self, crawl_id: str) -> List[RedirectLink]:
        """
        Fetch, parse and cache the redirects of a completed crawl.

        Raises:
            NotFoundError: unknown or expired crawl
            ValidationError: crawl is not complete
            ExternalServiceError: the export could not be fetched
        """
        self._purge()
        session = self.store.get(crawl_id)
        if session is None:
            raise NotFoundError("Crawl not found")
        if session.status != CrawlStatus.COMPLETE:
            raise ValidationError("Crawl not complete")
        if session.results is not None:
            return session.results

        async with self._lock(crawl_id):
            session = self.store.get(crawl_id)
            if session is None:
                raise NotFoundError("Crawl not found")
            if session.results is not None:
                return session.results

            session = self._save(session, phase=PHASE_DOWNLOADING, progress=PROGRESS_DOWNLOADING)
            try:
                content = await self.backend.fetch_artifact(crawl_id, session.run_ref or crawl_id)
            except Exception as e:
                self._save(session, phase=PHASE_COMPLETE, progress=PROGRESS_COMPLETE)
                if isinstance(e, ExternalServiceError):
                    raise
                raise ExternalServiceError(f"Could not fetch crawl results: {_error_message(e)}") from e

            try:
                parsed = self.parser.parse(content)
                redirects, total_rows = parsed.redirects, parsed.total_rows
            except ParseError as e:
                logger.warning("Crawl export unreadable", crawl_id=crawl_id, error=e.message)
                redirects, total_rows = [], 0

            self._save(
                session,
                results=redirects,
                total_pages=total_rows,
                phase=PHASE_COMPLETE,
                progress=PROGRESS_COMPLETE,
            )
            logger.info("Crawl results loaded", crawl_id=crawl_id, redirects=len(redirects))
            self.backend.release(crawl_id, session.run_ref)
            return redirects


@lru_cache()
def get_crawl_manager() -> CrawlSessionManager:
    """Process-wide manager using the configured backend."""
    return CrawlSessionManager(backend=get_crawl_backend(settings))
