"""Crawl backend that runs the SEO Spider CLI (or its Docker image) in-process."""

import asyncio
from pathlib import Path
from typing import Dict, Optional

from redirect_fixer.core.config import settings
from redirect_fixer.core.exceptions import ExternalServiceError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.backends.base import CrawlBackend, RunState, RunStatus
from redirect_fixer.services.seo_spider import SEOSpiderCLI, seo_spider

logger = get_logger(__name__)

LOG_FILENAME = "crawl.log"
LOG_TAIL_CHARS = 500


class LocalCliBackend(CrawlBackend):
    """
    Spawns the crawler as an asyncio subprocess.

    The run reference is the crawl id; the subprocess is reaped by a
    background task whose result is the exit code.
    """

    name = "local"
    display_name = "local crawler"

    def __init__(self, cli: SEOSpiderCLI = None, timeout: int = None):
        self.cli = cli or seo_spider
        self.timeout = timeout or settings.SF_CRAWL_TIMEOUT
        self._runs: Dict[str, asyncio.Task] = {}
        self._output_dirs: Dict[str, Path] = {}

    async def dispatch(self, site_url: str, crawl_id: str) -> Optional[str]:
        try:
            output_dir = self.cli.output_dir(crawl_id)
        except OSError as e:
            raise ExternalServiceError(f"Could not create crawl output folder: {e}") from e

        command = self.cli.build_command(site_url, output_dir)
        try:
            with open(output_dir / LOG_FILENAME, "wb") as log_file:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=log_file,
                    stderr=asyncio.subprocess.STDOUT,
                )
        except OSError as e:
            raise ExternalServiceError(f"Could not start crawler ({command[0]}): {e}") from e

        self._output_dirs[crawl_id] = output_dir
        self._runs[crawl_id] = asyncio.create_task(self._wait(crawl_id, process))
        logger.info("Local crawl started", crawl_id=crawl_id, pid=process.pid, url=site_url)
        return crawl_id

    async def _wait(self, crawl_id: str, process: asyncio.subprocess.Process) -> int:
        try:
            return await asyncio.wait_for(process.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Local crawl timed out", crawl_id=crawl_id, timeout=self.timeout)
            process.kill()
            await process.wait()
            raise
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            raise

    async def poll_status(self, run_ref: str) -> RunStatus:
        task = self._runs.get(run_ref)
        if task is None:
            raise ExternalServiceError(f"No local crawl process for {run_ref}")

        if not task.done():
            return RunStatus(state=RunState.IN_PROGRESS)

        if task.exception() is not None:
            if isinstance(task.exception(), asyncio.TimeoutError):
                return RunStatus(state=RunState.FAILED, detail=f"Crawl timed out after {self.timeout}s")
            return RunStatus(state=RunState.FAILED, detail=str(task.exception()))

        returncode = task.result()
        if returncode == 0:
            return RunStatus(state=RunState.SUCCEEDED)
        return RunStatus(
            state=RunState.FAILED,
            detail=f"Crawler exited with code {returncode}{self._log_tail(run_ref)}",
        )

    async def fetch_artifact(self, crawl_id: str, run_ref: str) -> str:
        output_dir = self._output_dirs.get(run_ref) or self.cli.output_dir(crawl_id)
        export = self.cli.find_export(output_dir)
        if export is None:
            raise ExternalServiceError(f"Crawl export not found in {output_dir}")
        try:
            return self.cli.read_export(export)
        except OSError as e:
            raise ExternalServiceError(f"Could not read crawl export: {e}") from e

    def release(self, crawl_id: str, run_ref: Optional[str]) -> None:
        for key in {crawl_id, run_ref or crawl_id}:
            task = self._runs.pop(key, None)
            if task is not None and not task.done():
                task.cancel()
            self._output_dirs.pop(key, None)

    def _log_tail(self, run_ref: str) -> str:
        output_dir = self._output_dirs.get(run_ref)
        if not output_dir:
            return ""
        try:
            text = (output_dir / LOG_FILENAME).read_text(errors="replace").strip()
        except OSError:
            return ""
        return f": {text[-LOG_TAIL_CHARS:]}" if text else ""
