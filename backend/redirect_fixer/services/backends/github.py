"""Crawl backend that dispatches a GitHub Actions workflow."""

import io
import zipfile
from typing import Any, Dict, Optional

import httpx

from redirect_fixer.core.config import Settings, settings as default_settings
from redirect_fixer.core.exceptions import ConfigurationError, ExternalServiceError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.backends.base import CrawlBackend, RunState, RunStatus
from redirect_fixer.services.seo_spider import EXPORT_FILENAME

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"
RUN_LOOKUP_PAGE_SIZE = 10


class GitHubActionsBackend(CrawlBackend):
    """
    Runs the crawl as a ``workflow_dispatch`` workflow.

    The workflow receives ``crawlId`` and ``siteUrl`` inputs, must include
    the crawl id in its run name, and uploads the export as an artifact
    named ``<prefix><crawlId>``.
    """

    name = "github"
    display_name = "GitHub Actions"

    def __init__(
        self,
        settings: Settings = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        self.transport = transport

    def _config(self) -> Dict[str, str]:
        s = self.settings
        if not (s.GITHUB_OWNER and s.GITHUB_REPO and s.GITHUB_WORKFLOW_CRAWL and s.GITHUB_TOKEN):
            raise ConfigurationError(
                "Missing GitHub configuration "
                "(GITHUB_OWNER, GITHUB_REPO, GITHUB_WORKFLOW_CRAWL, GITHUB_TOKEN)"
            )
        return {
            "owner": s.GITHUB_OWNER,
            "repo": s.GITHUB_REPO,
            "workflow": s.GITHUB_WORKFLOW_CRAWL,
            "ref": s.GITHUB_REF,
            "token": s.GITHUB_TOKEN,
        }

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.GITHUB_API_URL,
            timeout=self.settings.HTTP_TIMEOUT,
            # Artifact downloads redirect to blob storage; httpx drops auth cross-origin
            follow_redirects=True,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        config = self._config()
        try:
            async with self._client(config["token"]) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"GitHub API unreachable: {e}") from e

        if not response.is_success:
            message = response.text.strip() or f"GitHub API error: {response.status_code}"
            raise ExternalServiceError(message)
        return response

    async def _json(self, path: str, **kwargs) -> Any:
        response = await self._request("GET", path, **kwargs)
        return response.json()

    def _repo_path(self) -> str:
        config = self._config()
        return f"/repos/{config['owner']}/{config['repo']}"

    async def dispatch(self, site_url: str, crawl_id: str) -> Optional[str]:
        config = self._config()
        await self._request(
            "POST",
            f"{self._repo_path()}/actions/workflows/{config['workflow']}/dispatches",
            json={
                "ref": config["ref"],
                "inputs": {"crawlId": crawl_id, "siteUrl": site_url},
            },
        )
        logger.info("Workflow dispatched", crawl_id=crawl_id, workflow=config["workflow"])
        # The dispatch API does not return the run id
        return None

    async def resolve_run(self, crawl_id: str) -> Optional[str]:
        config = self._config()
        data = await self._json(
            f"{self._repo_path()}/actions/workflows/{config['workflow']}/runs",
            params={"per_page": RUN_LOOKUP_PAGE_SIZE},
        )

        for run in data.get("workflow_runs", []):
            if run.get("event") != "workflow_dispatch":
                continue
            title = run.get("display_title") or ""
            name = run.get("name") or ""
            if crawl_id in title or crawl_id in name:
                logger.info("Workflow run resolved", crawl_id=crawl_id, run_id=run["id"])
                return str(run["id"])
        return None

    async def poll_status(self, run_ref: str) -> RunStatus:
        run = await self._json(f"{self._repo_path()}/actions/runs/{run_ref}")
        status = run.get("status")

        if status != "completed":
            # queued, waiting, requested and pending all mean "not started"
            state = RunState.IN_PROGRESS if status == "in_progress" else RunState.QUEUED
            return RunStatus(state=state)

        conclusion = run.get("conclusion")
        if conclusion == "success":
            return RunStatus(state=RunState.SUCCEEDED)
        return RunStatus(
            state=RunState.FAILED,
            detail=f"Workflow {conclusion}" if conclusion else "Workflow failed",
        )

    async def fetch_artifact(self, crawl_id: str, run_ref: str) -> str:
        artifact_name = f"{self.settings.GITHUB_ARTIFACT_PREFIX}{crawl_id}"
        data = await self._json(f"{self._repo_path()}/actions/runs/{run_ref}/artifacts")

        artifact = next(
            (item for item in data.get("artifacts", []) if item.get("name") == artifact_name),
            None,
        )
        if not artifact:
            raise ExternalServiceError(f"Artifact {artifact_name} not found")

        response = await self._request(
            "GET", f"{self._repo_path()}/actions/artifacts/{artifact['id']}/zip"
        )
        return self._extract_export(response.content)

    def _extract_export(self, payload: bytes) -> str:
        try:
            with zipfile.ZipFile(io.BytesIO(payload)) as archive:
                for entry in archive.namelist():
                    if entry.endswith(EXPORT_FILENAME):
                        return archive.read(entry).decode("utf-8-sig")
        except zipfile.BadZipFile as e:
            raise ExternalServiceError(f"Artifact is not a valid zip: {e}") from e

        raise ExternalServiceError(f"{EXPORT_FILENAME} not found in artifact")
