"""CMS detection API endpoint."""

from fastapi import APIRouter, Depends

from redirect_fixer.core.exceptions import ValidationError
from redirect_fixer.schemas.cms import CMSInfo, DetectCMSRequest
from redirect_fixer.services.cms_detector import CMSDetector, cms_detector

router = APIRouter()


def get_cms_detector() -> CMSDetector:
    return cms_detector


@router.post("/detect-cms", response_model=CMSInfo)
async def detect_cms(
    request: DetectCMSRequest,
    detector: CMSDetector = Depends(get_cms_detector),
):
    """
    Guess the platform a site runs on.

    Detection never fails; unreachable sites come back as ``unknown``.
    """
    if not request.site_url or not request.site_url.strip():
        raise ValidationError("siteUrl is required")

    return await detector.detect(request.site_url.strip())
