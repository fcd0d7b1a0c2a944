"""WordPress API endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from redirect_fixer.core.logging import get_logger
from redirect_fixer.schemas.wordpress import (
    FixLinkRequest,
    FixLinkResponse,
    VerifyWPRequest,
    VerifyWPResponse,
    WPCredentials,
)
from redirect_fixer.services import wordpress

router = APIRouter()
logger = get_logger(__name__)


def _fix_error(message: str, status_code: int) -> JSONResponse:
    body = FixLinkResponse(status="error", message=message, affected_pages=0)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.post("/verify-wp", response_model=VerifyWPResponse, response_model_exclude_none=True)
async def verify_wp(request: VerifyWPRequest):
    """Check WordPress application password credentials."""
    if not (request.site_url and request.username and request.app_password):
        return JSONResponse(
            status_code=400,
            content={"valid": False, "message": "All fields are required"},
        )

    credentials = WPCredentials(
        site_url=request.site_url,
        username=request.username,
        app_password=request.app_password,
    )
    return await wordpress.verify_credentials(credentials)


@router.post("/fix-link", response_model=FixLinkResponse, response_model_exclude_none=True)
async def fix_link(request: FixLinkRequest):
    """Replace one redirecting URL with its destination across a WordPress site."""
    if not (request.source_url and request.dest_url and request.wp_config):
        return _fix_error("sourceUrl, destUrl, and wpConfig are required", 400)

    if not request.wp_config.is_complete:
        return _fix_error("WordPress credentials are incomplete", 400)

    try:
        result = await wordpress.find_and_replace(
            request.wp_config.to_credentials(),
            request.source_url,
            request.dest_url,
        )
    except Exception as e:
        logger.error("Fix link failed", source_url=request.source_url, error=str(e))
        return _fix_error(str(e) or "Unexpected error", 500)

    if not result.success:
        return FixLinkResponse(
            status="error",
            message=result.message or "Find and replace failed",
            affected_pages=result.affected_pages,
            failed_pages=result.failed_pages or None,
        )

    message = f"Successfully updated {result.affected_pages} page(s)"
    if result.failed_pages:
        message += f"; {result.failed_pages} update(s) were rejected"

    return FixLinkResponse(
        status="success",
        message=message,
        affected_pages=result.affected_pages,
        failed_pages=result.failed_pages or None,
    )
