"""Crawl export (CSV) parsing service."""

import csv
import re
from dataclasses import dataclass, field
from typing import List, Optional

from redirect_fixer.core.exceptions import ParseError
from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.crawl import RedirectLink

logger = get_logger(__name__)

REDIRECT_STATUS = 301

_LEADING_DIGITS = re.compile(r"\s*(\d+)")


@dataclass
class ParsedExport:
    """Redirect rows plus the number of data rows in the export."""
    redirects: List[RedirectLink] = field(default_factory=list)
    total_rows: int = 0


class RedirectCSVParser:
    """Parses Screaming Frog "Response Codes" exports into 301 redirect records."""

    DELIMITERS = ",;\t"

    def __init__(self, delimiter: Optional[str] = None):
        self.delimiter = delimiter

    def detect_delimiter(self, header_line: str) -> str:
        """Detect CSV delimiter from the header row."""
        sniffer = csv.Sniffer()
        try:
            dialect = sniffer.sniff(header_line, delimiters=self.DELIMITERS)
            return dialect.delimiter
        except csv.Error:
            return ","

    def split_line(self, line: str, delimiter: str = ",") -> List[str]:
        """
        Split one line into trimmed fields.

        Quote characters toggle an "inside quotes" flag and are dropped;
        the delimiter only separates fields outside quotes.
        """
        fields = []
        current = []
        in_quotes = False

        for char in line:
            if char == '"':
                in_quotes = not in_quotes
            elif char == delimiter and not in_quotes:
                fields.append("".join(current).strip())
                current = []
            else:
                current.append(char)
        fields.append("".join(current).strip())

        return fields

    def parse(self, content: str) -> ParsedExport:
        """
        Parse an export into redirect records.

        Raises:
            ParseError: if the header has no status column
        """
        content = content.lstrip("\ufeff")
        lines = [line.strip("\r") for line in content.split("\n") if line.strip()]

        if len(lines) < 2:
            return ParsedExport()

        delimiter = self.delimiter or self.detect_delimiter(lines[0])
        headers = [h.lower() for h in self.split_line(lines[0], delimiter)]

        address_idx = self._find_column(headers, lambda h: h == "address")
        status_idx = self._find_column(headers, lambda h: "status" in h)
        redirect_idx = self._find_column(headers, lambda h: "redirect url" in h)

        if status_idx is None:
            raise ParseError(f"No status column in export header: {lines[0][:200]}")

        redirects = []
        for row_number, line in enumerate(lines[1:], start=1):
            values = self.split_line(line, delimiter)

            if self._parse_status(self._value(values, status_idx)) != REDIRECT_STATUS:
                continue

            redirects.append(RedirectLink(
                id=f"redirect-{row_number}",
                source_url=self._value(values, address_idx),
                dest_url=self._value(values, redirect_idx),
                status_code=REDIRECT_STATUS,
                found_on_pages=[],
            ))

        logger.info(
            "Parsed crawl export",
            total_rows=len(lines) - 1,
            redirects=len(redirects),
        )
        return ParsedExport(redirects=redirects, total_rows=len(lines) - 1)

    def _find_column(self, headers: List[str], predicate) -> Optional[int]:
        for idx, header in enumerate(headers):
            if predicate(header):
                return idx
        return None

    def _value(self, values: List[str], idx: Optional[int]) -> str:
        if idx is None or idx >= len(values):
            return ""
        return values[idx]

    def _parse_status(self, value: str) -> Optional[int]:
        """Read leading digits; anything non-numeric is not a status."""
        match = _LEADING_DIGITS.match(value)
        if not match:
            return None
        return int(match.group(1))


def parse_redirects(content: str) -> List[RedirectLink]:
    """Parse an export and return only the 301 rows."""
    return csv_parser.parse(content).redirects


# Singleton instance
csv_parser = RedirectCSVParser()
