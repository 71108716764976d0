"""
Tests for settings parsing.
"""

import pytest
from pydantic import ValidationError

from bokun_sync.config import Settings
from bokun_sync.database import normalize_database_url


class TestSettings:

    def test_sync_defaults(self):
        settings = Settings()
        assert settings.bokun_page_size == 100
        assert settings.bokun_max_pages == 20
        assert settings.bokun_sync_concurrency == 2
        assert settings.bokun_sync_months_back == 6
        assert settings.bokun_sync_months_ahead == 3
        assert settings.availability_cache_ttl_minutes == 15

    def test_cors_origins_parsed(self):
        settings = Settings(ALLOWED_ORIGINS="https://a.example.com/, https://b.example.com,https://a.example.com")
        assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]

    def test_credentials_flag(self):
        assert not Settings(BOKUN_ACCESS_KEY="key", BOKUN_SECRET_KEY="").has_bokun_credentials
        assert Settings(BOKUN_ACCESS_KEY="key", BOKUN_SECRET_KEY="secret").has_bokun_credentials

    def test_page_ceiling_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(BOKUN_MAX_PAGES=0)


class TestDatabaseUrl:

    def test_postgres_scheme_rewritten(self):
        assert normalize_database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"

    def test_other_urls_untouched(self):
        assert normalize_database_url("sqlite:///./x.db") == "sqlite:///./x.db"
