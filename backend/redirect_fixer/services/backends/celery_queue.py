"""Crawl backend that hands the crawl to a Celery worker."""

import asyncio
from pathlib import Path
from typing import Optional

from celery import Celery
from celery.result import AsyncResult

from redirect_fixer.core.exceptions import DispatchError, ExternalServiceError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.backends.base import CrawlBackend, RunState, RunStatus

logger = get_logger(__name__)

CRAWL_TASK_NAME = "run_seo_crawl"

_STATE_MAP = {
    "PENDING": RunState.QUEUED,
    "RECEIVED": RunState.QUEUED,
    "RETRY": RunState.QUEUED,
    "STARTED": RunState.IN_PROGRESS,
    "PROGRESS": RunState.IN_PROGRESS,
    "SUCCESS": RunState.SUCCEEDED,
    "FAILURE": RunState.FAILED,
    "REVOKED": RunState.FAILED,
}


class CeleryCrawlBackend(CrawlBackend):
    """Queues ``run_seo_crawl`` and tracks it through the result backend."""

    name = "celery"
    display_name = "crawl worker"

    def __init__(self, app: Celery = None):
        if app is None:
            from redirect_fixer.core.celery_app import celery_app
            app = celery_app
        self.app = app

    def _result(self, run_ref: str) -> AsyncResult:
        return AsyncResult(run_ref, app=self.app)

    async def dispatch(self, site_url: str, crawl_id: str) -> Optional[str]:
        try:
            result = await asyncio.to_thread(
                self.app.send_task,
                CRAWL_TASK_NAME,
                args=[crawl_id, site_url],
            )
        except Exception as e:
            # Broker errors come from kombu and vary by transport
            raise DispatchError(f"Could not queue crawl: {e}") from e

        logger.info("Crawl task queued", crawl_id=crawl_id, task_id=result.id)
        return result.id

    async def poll_status(self, run_ref: str) -> RunStatus:
        result = self._result(run_ref)
        try:
            state = await asyncio.to_thread(lambda: result.state)
        except Exception as e:
            raise ExternalServiceError(f"Result backend unreachable: {e}") from e

        run_state = _STATE_MAP.get(state, RunState.IN_PROGRESS)
        if run_state == RunState.FAILED:
            detail = str(result.result) if result.result else f"Task {state.lower()}"
            return RunStatus(state=run_state, detail=detail)
        return RunStatus(state=run_state)

    async def fetch_artifact(self, crawl_id: str, run_ref: str) -> str:
        result = self._result(run_ref)
        try:
            payload = await asyncio.to_thread(lambda: result.result)
        except Exception as e:
            raise ExternalServiceError(f"Result backend unreachable: {e}") from e

        if not isinstance(payload, dict) or not payload.get("csv_path"):
            raise ExternalServiceError(f"Crawl task for {crawl_id} returned no export")

        try:
            return Path(payload["csv_path"]).read_text(encoding="utf-8-sig")
        except OSError as e:
            raise ExternalServiceError(f"Could not read crawl export: {e}") from e
