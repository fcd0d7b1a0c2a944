"""API routes module."""

from fastapi import APIRouter

from redirect_fixer.api.crawl import router as crawl_router
from redirect_fixer.api.cms import router as cms_router
from redirect_fixer.api.wordpress import router as wordpress_router

router = APIRouter()

# Include all route modules
router.include_router(crawl_router, tags=["Crawls"])
router.include_router(cms_router, tags=["CMS Detection"])
router.include_router(wordpress_router, tags=["WordPress"])
