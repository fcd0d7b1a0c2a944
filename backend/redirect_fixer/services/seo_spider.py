"""Screaming Frog SEO Spider command-line helpers."""

import os
import re
import shutil
from pathlib import Path
from typing import List, Optional

from redirect_fixer.core.config import settings
from redirect_fixer.core.logging import get_logger

logger = get_logger(__name__)

EXPORT_TAB = "Response Codes:All"
EXPORT_FILENAME = "response_codes_all.csv"
CONTAINER_OUTPUT_DIR = "/output"


class SEOSpiderCLI:
    """Builds and locates the artifacts of headless SEO Spider crawls."""

    def __init__(
        self,
        cli_path: str = None,
        docker_image: Optional[str] = None,
        output_root: str = None,
    ):
        self.cli_path = cli_path or settings.SF_CLI_PATH
        self.docker_image = docker_image if docker_image is not None else settings.SF_DOCKER_IMAGE
        self.output_root = Path(output_root or settings.SF_OUTPUT_DIR)

    @property
    def uses_docker(self) -> bool:
        return bool(self.docker_image)

    def is_available(self) -> bool:
        """Whether the crawler executable (or docker) is on PATH."""
        executable = "docker" if self.uses_docker else self.cli_path
        return shutil.which(executable) is not None

    def output_dir(self, crawl_id: str) -> Path:
        """Per-crawl output folder, created on demand."""
        safe_id = re.sub(r"[^a-zA-Z0-9_-]", "_", crawl_id)
        path = self.output_root / safe_id
        os.makedirs(path, exist_ok=True)
        return path

    def build_command(self, site_url: str, output_dir: Path) -> List[str]:
        """Command line for a headless crawl exporting all response codes."""
        target_dir = CONTAINER_OUTPUT_DIR if self.uses_docker else str(output_dir)
        crawl_args = [
            "--crawl", site_url,
            "--headless",
            "--save-crawl",
            "--output-folder", target_dir,
            "--export-tabs", EXPORT_TAB,
            "--overwrite",
        ]

        if self.uses_docker:
            return [
                "docker", "run", "--rm",
                "-v", f"{output_dir.resolve()}:{CONTAINER_OUTPUT_DIR}",
                self.docker_image,
                *crawl_args,
            ]
        return [self.cli_path, *crawl_args]

    def find_export(self, output_dir: Path) -> Optional[Path]:
        """Locate the response codes export anywhere under ``output_dir``."""
        for path in sorted(Path(output_dir).rglob("*.csv")):
            if path.name.lower().endswith(EXPORT_FILENAME):
                return path
        return None

    def read_export(self, path: Path) -> str:
        # Exports are written with a UTF-8 BOM
        return Path(path).read_text(encoding="utf-8-sig")


# Singleton instance
seo_spider = SEOSpiderCLI()
