"""CMS detection Pydantic schemas."""

import enum
from typing import List, Optional
from pydantic import Field

from redirect_fixer.schemas.common import CamelModel


class CMSType(str, enum.Enum):
    """Platforms recognised by the fingerprint detector."""
    WORDPRESS = "wordpress"
    SHOPIFY = "shopify"
    WIX = "wix"
    SQUARESPACE = "squarespace"
    WEBFLOW = "webflow"
    UNKNOWN = "unknown"


class CMSInfo(CamelModel):
    """Detected platform and the signals that matched."""

    type: CMSType = CMSType.UNKNOWN
    detected: bool = False
    indicators: List[str] = Field(default_factory=list)


class DetectCMSRequest(CamelModel):
    """Schema for a CMS detection request."""

    site_url: Optional[str] = None
