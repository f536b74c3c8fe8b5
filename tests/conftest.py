"""Shared test fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from invotrack.api import create_app, limiter
from invotrack.config import InvoTrackConfig
from invotrack.pos.token_cache import TokenCache
from invotrack.repositories.memory import InMemoryInvoTrackRepository
from invotrack.storage import InMemoryBlobStorage
from vendor_fakes import FakeVendorHttp

TEST_SUPABASE_TOKEN = "test-supabase-jwt"
TEST_API_KEY = "test-api-key"


class _FakeSupabaseProvider:
    configured = True

    def get_client(self) -> object:
        return object()


@pytest.fixture(autouse=True)
def mock_supabase_auth(
    monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest
) -> Generator[None, None, None]:
    """Mock Supabase JWT verification for offline tests."""
    if request.module.__name__.endswith("test_config"):
        yield
        return

    def _fake_fetch_supabase_user(token: str, client: object) -> dict[str, str]:
        _ = client
        if token == TEST_SUPABASE_TOKEN:
            return {"id": "test-user-id", "email": "test@example.com"}
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    monkeypatch.setattr("invotrack.auth.fetch_supabase_user", _fake_fetch_supabase_user)
    yield


@pytest.fixture
def settings() -> InvoTrackConfig:
    """Config that ignores .env and never calls OpenAI."""
    return InvoTrackConfig(
        _env_file=None,
        mock=True,
        caspit_base_url="https://caspit.test/api/v1",
        hashavshevet_base_url="https://hash.test/v1",
        caspit_page_size=2,
        hashavshevet_page_size=2,
        max_pages=5,
        api_keys=TEST_API_KEY,
        supabase_url=None,
        supabase_service_role_key=None,
    )


@pytest.fixture
def vendor_http() -> FakeVendorHttp:
    return FakeVendorHttp()


@pytest.fixture
def token_cache() -> TokenCache:
    return TokenCache(lifetime_sec=600, safety_margin_sec=60)


@pytest.fixture
def repository() -> InMemoryInvoTrackRepository:
    return InMemoryInvoTrackRepository()


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def api_test_app(
    settings: InvoTrackConfig,
    repository: InMemoryInvoTrackRepository,
    blob_storage: InMemoryBlobStorage,
    vendor_http: FakeVendorHttp,
) -> Generator[Any, None, None]:
    """Create a fresh FastAPI app over in-memory collaborators and a scripted vendor."""
    from invotrack.dependencies import get_supabase_client_provider

    limiter.reset()
    app = create_app(
        settings,
        repository=repository,
        blob_storage=blob_storage,
        vendor_http=vendor_http,
    )
    app.dependency_overrides[get_supabase_client_provider] = _FakeSupabaseProvider
    try:
        yield app
    finally:
        app.dependency_overrides.clear()
        limiter.reset()


@pytest.fixture
def api_test_client(api_test_app: Any) -> Generator[TestClient, None, None]:
    """Create a TestClient for the test app."""
    with TestClient(api_test_app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_SUPABASE_TOKEN}"}
