"""
Test configuration and fixtures for the WebScan API.

The database and log locations are pointed at temporary paths before anything
from ``webscan`` is imported, so settings pick them up.
"""

import os
import tempfile
from typing import Generator

from dotenv import load_dotenv

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = tempfile.mktemp(suffix=".db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="webscan-logs-"))


def lighthouse_audit(audit_id, score, mode="binary", **fields):
    audit = {
        "id": audit_id,
        "title": audit_id.replace("-", " ").title(),
        "description": f"Lighthouse description of {audit_id}.",
        "score": score,
        "scoreDisplayMode": mode,
    }
    audit.update(fields)
    return audit


def node_items(*snippets):
    return {"type": "table", "items": [{"node": {"snippet": snippet, "selector": "body > *"}} for snippet in snippets]}


SAMPLE_LHR = {
    "lighthouseVersion": "12.2.1",
    "requestedUrl": "https://example.com",
    "finalDisplayedUrl": "https://example.com/",
    "categories": {
        "performance": {"id": "performance", "title": "Performance", "score": 0.87},
        "accessibility": {"id": "accessibility", "title": "Accessibility", "score": 0.72},
    },
    "audits": {
        "first-contentful-paint": lighthouse_audit(
            "first-contentful-paint", 0.95, "numeric", numericValue=1234.5, displayValue="1.2 s"
        ),
        "largest-contentful-paint": lighthouse_audit(
            "largest-contentful-paint", 0.3, "numeric", numericValue=4100, displayValue="4.1 s"
        ),
        "speed-index": lighthouse_audit("speed-index", 0.6, "numeric", numericValue=3000, displayValue="3.0 s"),
        "interactive": lighthouse_audit("interactive", 0.8, "numeric", numericValue=5000),
        "total-blocking-time": lighthouse_audit(
            "total-blocking-time", 0.2, "numeric", numericValue=640.4, displayValue="640 ms"
        ),
        "cumulative-layout-shift": lighthouse_audit("cumulative-layout-shift", 1, "numeric", numericValue=0.0123),
        "render-blocking-resources": lighthouse_audit(
            "render-blocking-resources",
            0.4,
            "metricSavings",
            details={"type": "opportunity", "items": [{"url": "https://example.com/app.css", "wastedMs": 320}]},
        ),
        "image-alt": lighthouse_audit(
            "image-alt", 0, details=node_items('<img src="logo.png">', '<img src="hero.jpg">')
        ),
        "color-contrast": lighthouse_audit(
            "color-contrast", 0, details=node_items("<p class=\"muted\">", "<span>", "<a href=\"/about\">")
        ),
        "aria-hidden-body": lighthouse_audit("aria-hidden-body", None, "manual"),
        "tabindex": lighthouse_audit("tabindex", None, "notApplicable"),
        "document-title": lighthouse_audit("document-title", 1),
        "html-has-lang": lighthouse_audit("html-has-lang", 1),
        "screenshot-thumbnails": lighthouse_audit("screenshot-thumbnails", None, "informative"),
    },
}


@pytest.fixture
def lhr():
    """A fresh copy of the sample Lighthouse result."""
    import copy

    return copy.deepcopy(SAMPLE_LHR)


@pytest.fixture
def raw_report(lhr):
    from webscan.features.scan.schemas.audit_report import RawAuditReport

    return RawAuditReport.model_validate(lhr)


@pytest.fixture
def normalizer_config():
    from webscan.features.scan.services.normalizer.config import NormalizerConfig

    return NormalizerConfig()


@pytest.fixture
def scan_result(raw_report, normalizer_config):
    from webscan.features.scan.services.normalizer.result_builder import build_scan_result

    return build_scan_result("https://example.com", raw_report, normalizer_config, timestamp=1_700_000_000_000)


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from webscan.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Entering the client runs the app lifespan against the temporary database.
    """
    with TestClient(test_app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def scan_service():
    """A stand-in ScanService whose scan_url is an AsyncMock."""
    service = MagicMock()
    service.scan_url = AsyncMock()
    return service


@pytest.fixture
def scan_client(client, test_app, scan_service):
    """Client with the scan service dependency replaced by ``scan_service``."""
    from webscan.features.scan.routes.scan import get_scan_service

    test_app.dependency_overrides[get_scan_service] = lambda: scan_service

    yield client

    test_app.dependency_overrides.pop(get_scan_service, None)
