"""Celery tasks for SEO Spider crawls."""

import subprocess

from redirect_fixer.core.celery_app import celery_app
from redirect_fixer.core.config import settings
from redirect_fixer.core.logging import get_logger
from redirect_fixer.services.seo_spider import seo_spider

logger = get_logger(__name__)


@celery_app.task(bind=True, name="run_seo_crawl")
def run_seo_crawl(self, crawl_id: str, site_url: str):
    """
    Run a headless SEO Spider crawl and report where the export landed.

    The worker and the API must share ``SF_OUTPUT_DIR`` for the API to
    read the export back.
    """
    logger.info("Starting SEO Spider crawl", crawl_id=crawl_id, url=site_url)

    output_dir = seo_spider.output_dir(crawl_id)
    command = seo_spider.build_command(site_url, output_dir)

    self.update_state(state="PROGRESS", meta={"crawl_id": crawl_id, "url": site_url})

    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=settings.SF_CRAWL_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        logger.error("SEO Spider crawl timed out", crawl_id=crawl_id, timeout=settings.SF_CRAWL_TIMEOUT)
        raise RuntimeError(f"Crawl timed out after {settings.SF_CRAWL_TIMEOUT}s")

    if completed.returncode != 0:
        tail = (completed.stderr or completed.stdout or "").strip()[-500:]
        logger.error("SEO Spider crawl failed", crawl_id=crawl_id, returncode=completed.returncode)
        raise RuntimeError(f"Crawler exited with code {completed.returncode}: {tail}")

    export = seo_spider.find_export(output_dir)
    if export is None:
        raise RuntimeError(f"Crawl export not found in {output_dir}")

    logger.info("SEO Spider crawl completed", crawl_id=crawl_id, export=str(export))

    return {
        "crawl_id": crawl_id,
        "output_dir": str(output_dir),
        "csv_path": str(export),
    }
