"""Tests for InvoTrackConfig."""

import pydantic
import pytest

from invotrack.config import InvoTrackConfig, get_config, reload_config


def test_get_api_keys_trims_and_skips_empty():
    """API keys are parsed from a comma-separated string."""
    config = InvoTrackConfig(_env_file=None, api_keys=" a , ,b,")
    assert config.get_api_keys() == {"a", "b"}


def test_base_urls_are_normalized():
    config = InvoTrackConfig(_env_file=None, caspit_base_url="https://caspit.test/api/")
    assert config.caspit_base_url == "https://caspit.test/api"


def test_base_url_requires_http_scheme():
    with pytest.raises(pydantic.ValidationError):
        InvoTrackConfig(_env_file=None, hashavshevet_base_url="ftp://nope")


def test_field_bounds_are_enforced():
    with pytest.raises(pydantic.ValidationError):
        InvoTrackConfig(_env_file=None, max_pages=0)


def test_pagination_and_token_settings_from_env(monkeypatch):
    """Vendor settings can be loaded from environment."""
    monkeypatch.setenv("MAX_PAGES", "7")
    monkeypatch.setenv("TOKEN_LIFETIME_SEC", "900")
    config = InvoTrackConfig(_env_file=None)
    assert config.max_pages == 7
    assert config.token_lifetime_sec == 900


def test_supabase_settings_default(monkeypatch):
    """Supabase settings default to None."""
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    config = InvoTrackConfig(_env_file=None)
    assert config.supabase_url is None
    assert config.supabase_service_role_key is None


def test_validate_config_requires_openai_key_outside_mock():
    config = InvoTrackConfig(_env_file=None, mock=False, openai_api_key=None)
    with pytest.raises(ValueError, match="OPENAI_API_KEY required"):
        config.validate_config()


def test_validate_config_rejects_margin_not_below_lifetime():
    config = InvoTrackConfig(
        _env_file=None, mock=True, token_lifetime_sec=120, token_safety_margin_sec=120
    )
    with pytest.raises(ValueError, match="TOKEN_SAFETY_MARGIN_SEC"):
        config.validate_config()


def test_validate_config_requires_supabase_pair():
    config = InvoTrackConfig(
        _env_file=None, mock=True, supabase_url="https://x.supabase.co", supabase_service_role_key=None
    )
    with pytest.raises(ValueError, match="must be set together"):
        config.validate_config()


def test_config_singleton(monkeypatch):
    """get_config returns a singleton instance."""
    monkeypatch.setenv("MOCK", "true")
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    reload_config()
    try:
        assert get_config() is get_config()
    finally:
        monkeypatch.delenv("MOCK", raising=False)
        reload_config()


def test_reload_config(monkeypatch):
    """reload_config creates a new config instance."""
    monkeypatch.setenv("MOCK", "true")
    config1 = reload_config()
    monkeypatch.setenv("CASPIT_PAGE_SIZE", "25")
    config2 = reload_config()
    assert config1 is not config2
    assert config2.caspit_page_size == 25
    monkeypatch.delenv("CASPIT_PAGE_SIZE", raising=False)
    reload_config()
