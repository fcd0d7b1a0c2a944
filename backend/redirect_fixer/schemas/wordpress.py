"""WordPress Pydantic schemas."""

import re
from typing import Optional

from redirect_fixer.schemas.common import CamelModel


class WPCredentials(CamelModel):
    """WordPress connection credentials (never persisted)."""

    site_url: str
    username: str
    app_password: str

    @property
    def base_url(self) -> str:
        return self.site_url.strip().rstrip("/")

    @property
    def auth(self) -> tuple:
        """Basic auth tuple; application passwords are displayed with spaces."""
        return (self.username.strip(), re.sub(r"\s+", "", self.app_password))


class VerifyWPRequest(CamelModel):
    """Schema for verifying WordPress credentials."""

    site_url: Optional[str] = None
    username: Optional[str] = None
    app_password: Optional[str] = None


class VerifyWPResponse(CamelModel):
    """Result of a credential check."""

    valid: bool
    message: Optional[str] = None
    status: Optional[int] = None


class WPConfig(CamelModel):
    """Credentials as sent by the UI; fields may be missing."""

    site_url: Optional[str] = None
    username: Optional[str] = None
    app_password: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.site_url and self.username and self.app_password)

    def to_credentials(self) -> WPCredentials:
        return WPCredentials(
            site_url=self.site_url,
            username=self.username,
            app_password=self.app_password,
        )


class FixLinkRequest(CamelModel):
    """Schema for rewriting one redirecting URL across a WordPress site."""

    source_url: Optional[str] = None
    dest_url: Optional[str] = None
    wp_config: Optional[WPConfig] = None


class FixLinkResponse(CamelModel):
    """Outcome of a fix request."""

    status: str
    message: str
    affected_pages: int = 0
    failed_pages: Optional[int] = None
