"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from redirect_fixer.api.cms import get_cms_detector
from redirect_fixer.core.exceptions import ExternalServiceError
from redirect_fixer.schemas.cms import CMSInfo, CMSType
from redirect_fixer.schemas.wordpress import VerifyWPResponse
from redirect_fixer.services.crawl_manager import CrawlSessionManager, get_crawl_manager
from redirect_fixer.services.wordpress import ReplaceResult

WP_CONFIG = {"siteUrl": "https://example.com", "username": "admin", "appPassword": "abcd abcd"}


def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert "crawlBackend" in body


# =========================================================================
# Crawls
# =========================================================================

def test_start_crawl_returns_id(api_client):
    response = api_client.post("/api/crawl", json={"siteUrl": "https://example.com"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "initiated"
    assert body["crawlId"].startswith("crawl-")


def test_results_right_after_start_are_not_complete(api_client):
    crawl_id = api_client.post("/api/crawl", json={"siteUrl": "https://example.com"}).json()["crawlId"]

    response = api_client.get("/api/crawl-results", params={"crawlId": crawl_id})

    assert response.status_code == 400
    assert response.json() == {"error": "Crawl not complete"}


@pytest.mark.parametrize("body", [{}, {"siteUrl": ""}, {"siteUrl": "   "}])
def test_start_crawl_requires_site_url(api_client, body):
    response = api_client.post("/api/crawl", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "siteUrl is required"}


def test_start_crawl_rejects_non_http_url(api_client):
    response = api_client.post("/api/crawl", json={"siteUrl": "ftp://example.com"})

    assert response.status_code == 400
    assert "Invalid URL" in response.json()["error"]


def test_start_crawl_adds_scheme(api_client, manager):
    crawl_id = api_client.post("/api/crawl", json={"siteUrl": "example.com"}).json()["crawlId"]

    assert manager.get_session(crawl_id).site_url == "https://example.com"


def test_second_crawl_conflicts(api_client):
    api_client.post("/api/crawl", json={"siteUrl": "https://example.com"})

    response = api_client.post("/api/crawl", json={"siteUrl": "https://other.com"})

    assert response.status_code == 409
    assert "already in progress" in response.json()["error"]


def test_dispatch_failure_is_500(app, clock):
    backend = AsyncMock()
    backend.name = "github"
    backend.display_name = "GitHub Actions"
    backend.dispatch.side_effect = ExternalServiceError("Missing GitHub configuration")
    backend.release = MagicMock()
    app.dependency_overrides[get_crawl_manager] = lambda: CrawlSessionManager(backend=backend, clock=clock)

    from fastapi.testclient import TestClient
    response = TestClient(app).post("/api/crawl", json={"siteUrl": "https://example.com"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to start crawl: Missing GitHub configuration"}


def test_unexpected_dispatch_failure_is_500_and_frees_admission(app, clock):
    backend = AsyncMock()
    backend.name = "local"
    backend.display_name = "local crawler"
    backend.dispatch.side_effect = PermissionError("Permission denied: '/srv/exports'")
    backend.release = MagicMock()
    manager = CrawlSessionManager(backend=backend, clock=clock)
    app.dependency_overrides[get_crawl_manager] = lambda: manager

    from fastapi.testclient import TestClient
    response = TestClient(app).post("/api/crawl", json={"siteUrl": "https://example.com"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to start crawl: Permission denied: '/srv/exports'"}
    assert manager.has_active_crawl() is False


def test_invalid_json_body_is_400(api_client):
    response = api_client.post(
        "/api/crawl",
        content="not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()


def test_status_requires_crawl_id(api_client):
    response = api_client.get("/api/crawl-status")

    assert response.status_code == 400
    assert response.json() == {"error": "crawlId is required"}


def test_status_of_unknown_crawl(api_client):
    response = api_client.get("/api/crawl-status", params={"crawlId": "crawl-0-deadbeef"})

    assert response.status_code == 404
    assert response.json() == {"error": "Crawl not found"}


def test_results_of_unknown_crawl(api_client):
    response = api_client.get("/api/crawl-results", params={"crawlId": "crawl-0-deadbeef"})

    assert response.status_code == 404


def test_status_and_results_after_completion(api_client, clock):
    crawl_id = api_client.post("/api/crawl", json={"siteUrl": "https://example.com"}).json()["crawlId"]

    running = api_client.get("/api/crawl-status", params={"crawlId": crawl_id}).json()
    assert running["status"] == "running"
    assert running["phase"] == "mock crawler: queued"
    assert running["progress"] == 15

    clock.advance(12.5)
    done = api_client.get("/api/crawl-status", params={"crawlId": crawl_id}).json()
    assert done == {
        "crawlId": crawl_id,
        "status": "complete",
        "progress": 100,
        "phase": "Complete",
        "error": None,
    }

    results = api_client.get("/api/crawl-results", params={"crawlId": crawl_id}).json()
    assert results["siteUrl"] == "https://example.com"
    assert results["totalPages"] == 6
    assert results["crawlTime"] == 12500
    assert len(results["redirects"]) == 3
    first = results["redirects"][0]
    assert first == {
        "id": "redirect-2",
        "sourceUrl": "https://example.com/old-about",
        "destUrl": "https://example.com/about/",
        "statusCode": 301,
        "foundOnPages": [],
        "status": "pending",
    }


# =========================================================================
# CMS detection
# =========================================================================

def test_detect_cms_requires_site_url(api_client):
    response = api_client.post("/api/detect-cms", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "siteUrl is required"}


def test_detect_cms(app, api_client):
    detector = AsyncMock()
    detector.detect.return_value = CMSInfo(
        type=CMSType.SHOPIFY,
        detected=True,
        indicators=["Found Shopify CDN references"],
    )
    app.dependency_overrides[get_cms_detector] = lambda: detector

    response = api_client.post("/api/detect-cms", json={"siteUrl": "shop.example.com"})

    assert response.status_code == 200
    assert response.json() == {
        "type": "shopify",
        "detected": True,
        "indicators": ["Found Shopify CDN references"],
    }
    detector.detect.assert_awaited_once_with("shop.example.com")


# =========================================================================
# WordPress
# =========================================================================

def test_verify_wp_requires_all_fields(api_client):
    response = api_client.post("/api/verify-wp", json={"siteUrl": "https://example.com"})

    assert response.status_code == 400
    assert response.json() == {"valid": False, "message": "All fields are required"}


def test_verify_wp(api_client):
    with patch(
        "redirect_fixer.api.wordpress.wordpress.verify_credentials",
        new=AsyncMock(return_value=VerifyWPResponse(valid=True, status=200)),
    ) as verify:
        response = api_client.post("/api/verify-wp", json=WP_CONFIG)

    assert response.status_code == 200
    assert response.json() == {"valid": True, "status": 200}
    credentials = verify.await_args.args[0]
    assert credentials.auth == ("admin", "abcdabcd")


def test_fix_link_requires_fields(api_client):
    response = api_client.post("/api/fix-link", json={"sourceUrl": "https://example.com/a"})

    assert response.status_code == 400
    assert response.json()["message"] == "sourceUrl, destUrl, and wpConfig are required"
    assert response.json()["status"] == "error"


def test_fix_link_requires_complete_credentials(api_client):
    response = api_client.post("/api/fix-link", json={
        "sourceUrl": "https://example.com/a",
        "destUrl": "https://example.com/b",
        "wpConfig": {"siteUrl": "https://example.com", "username": "admin"},
    })

    assert response.status_code == 400
    assert response.json()["message"] == "WordPress credentials are incomplete"


def test_fix_link_success(api_client):
    result = ReplaceResult(success=True, affected_pages=2, failed_pages=0)
    with patch("redirect_fixer.api.wordpress.wordpress.find_and_replace", new=AsyncMock(return_value=result)) as fix:
        response = api_client.post("/api/fix-link", json={
            "sourceUrl": "https://example.com/a",
            "destUrl": "https://example.com/b",
            "wpConfig": WP_CONFIG,
        })

    assert response.status_code == 200
    assert response.json() == {
        "status": "success",
        "message": "Successfully updated 2 page(s)",
        "affectedPages": 2,
    }
    assert fix.await_args.args[1:] == ("https://example.com/a", "https://example.com/b")


def test_fix_link_reports_rejected_updates(api_client):
    result = ReplaceResult(success=True, affected_pages=1, failed_pages=1)
    with patch("redirect_fixer.api.wordpress.wordpress.find_and_replace", new=AsyncMock(return_value=result)):
        body = api_client.post("/api/fix-link", json={
            "sourceUrl": "https://example.com/a",
            "destUrl": "https://example.com/b",
            "wpConfig": WP_CONFIG,
        }).json()

    assert body["affectedPages"] == 1
    assert body["failedPages"] == 1


def test_fix_link_failure_result(api_client):
    result = ReplaceResult(success=False, message="timed out")
    with patch("redirect_fixer.api.wordpress.wordpress.find_and_replace", new=AsyncMock(return_value=result)):
        response = api_client.post("/api/fix-link", json={
            "sourceUrl": "https://example.com/a",
            "destUrl": "https://example.com/b",
            "wpConfig": WP_CONFIG,
        })

    assert response.status_code == 200
    assert response.json() == {"status": "error", "message": "timed out", "affectedPages": 0}


def test_fix_link_unexpected_error_is_500(api_client):
    with patch(
        "redirect_fixer.api.wordpress.wordpress.find_and_replace",
        new=AsyncMock(side_effect=RuntimeError("kaboom")),
    ):
        response = api_client.post("/api/fix-link", json={
            "sourceUrl": "https://example.com/a",
            "destUrl": "https://example.com/b",
            "wpConfig": WP_CONFIG,
        })

    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "kaboom", "affectedPages": 0}
