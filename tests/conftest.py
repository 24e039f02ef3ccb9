"""Shared fixtures for the pobo_sync test suite."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

import httpx
import pytest

from pobo_sync.config import Settings
from pobo_sync.context import AppContext

WEBHOOK_SECRET = "test-webhook-secret"
API_TOKEN = "test-api-token"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep POBO_* variables and a stray .env out of every test."""
    for name in ("API_TOKEN", "WEBHOOK_SECRET", "BASE_URL", "TIMEOUT", "PER_PAGE", "LOG_LEVEL", "LOG_FILE"):
        monkeypatch.delenv(f"POBO_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    package_logger = logging.getLogger("pobo_sync")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        api_token=API_TOKEN,
        webhook_secret=WEBHOOK_SECRET,
        base_url="https://api.test",
        _env_file=None,
    )


@pytest.fixture()
def context(settings: Settings) -> AppContext:
    return AppContext(settings=settings, logger=logging.getLogger("pobo_sync"))


def _sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _webhook_body(event: str = "Products.update", eshop_id=42, timestamp="2024-01-15 10:30:00") -> bytes:
    return json.dumps({"event": event, "eshop_id": eshop_id, "timestamp": timestamp}).encode()


@pytest.fixture()
def sign():
    """Hex HMAC-SHA256 signer (defaults to the test webhook secret)."""
    return _sign


@pytest.fixture()
def webhook_body():
    """Factory for JSON webhook bodies."""
    return _webhook_body


class FakeApi:
    """httpx MockTransport handler serving list pages and recording requests."""

    def __init__(self, page_sizes: list[int] | None = None, import_response: dict | None = None):
        self.page_sizes = page_sizes or []
        self.import_response = import_response or {"imported": 0, "updated": 0, "skipped": 0, "errors": []}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, json=self.import_response)
        page = int(request.url.params.get("page", "1"))
        size = self.page_sizes[page - 1] if page <= len(self.page_sizes) else 0
        offset = sum(self.page_sizes[: page - 1])
        data = [{"id": f"ID-{offset + i}"} for i in range(size)]
        return httpx.Response(
            200,
            json={"data": data, "meta": {"total": sum(self.page_sizes), "current_page": page}},
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture()
def fake_api():
    """Factory: fake_api(page_sizes=[...], import_response={...})."""
    return FakeApi
