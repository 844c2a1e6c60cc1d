"""Tests for configuration settings."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from svg_cache.config import Settings, get_settings


class TestSettings:
    """Test Settings configuration."""

    def test_default_settings(self):
        """Test default settings values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.host == "0.0.0.0"
            assert settings.port == 3000
            assert settings.static_path == Path("./static")
            assert settings.secret_key is None
            assert settings.openai_api_key is None
            assert settings.llm_model == "gpt-4o"
            assert settings.llm_fast_model == "gpt-3.5-turbo"
            assert settings.generation_max_attempts == 1
            assert settings.generation_protected is False

    def test_reads_unprefixed_environment(self):
        """Test the service reads PORT, STATIC_PATH, SECRET_KEY and OPENAI_API_KEY."""
        env = {
            "PORT": "8080",
            "STATIC_PATH": "/var/cache/svg",
            "SECRET_KEY": "s3cret",
            "OPENAI_API_KEY": "sk-test",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

            assert settings.port == 8080
            assert settings.static_path == Path("/var/cache/svg")
            assert settings.secret_key == "s3cret"
            assert settings.openai_api_key == "sk-test"
            assert settings.generation_protected is True

    def test_non_numeric_port_fails(self):
        """Test startup fails on an invalid port number."""
        with (
            patch.dict(os.environ, {"PORT": "not-a-port"}, clear=True),
            pytest.raises(ValidationError),
        ):
            Settings(_env_file=None)

    def test_empty_secret_key_is_unset(self):
        """Test an empty SECRET_KEY leaves generation open."""
        with patch.dict(os.environ, {"SECRET_KEY": ""}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.secret_key is None
            assert settings.generation_protected is False

    def test_max_attempts_must_be_positive(self):
        """Test zero attempts is rejected."""
        with (
            patch.dict(os.environ, {"GENERATION_MAX_ATTEMPTS": "0"}, clear=True),
            pytest.raises(ValidationError),
        ):
            Settings(_env_file=None)

    def test_settings_are_immutable(self):
        """Test settings cannot be changed after construction."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.secret_key = "changed"


class TestGetSettings:
    """Test settings dependency."""

    def test_returns_cached_instance(self):
        """Test get_settings returns the same object every time."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
