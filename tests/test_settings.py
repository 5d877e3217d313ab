"""Tests for PimSettings."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from azpim.infra.settings import PimSettings, get_pim_settings


class TestPimSettings:
    @pytest.mark.unit
    def test_default_values(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            settings = PimSettings(_env_file=None)
            assert settings.management_url == "https://management.azure.com"
            assert settings.graph_url == "https://graph.microsoft.com"
            assert settings.cache_ttl == 3600
            assert settings.retry_count == 10
            assert settings.retry_delay == 1.0
            assert settings.retry_jitter == 1.0
            assert settings.poll_interval == 5.0
            assert settings.concurrency == 5

    @pytest.mark.unit
    def test_env_prefix(self) -> None:
        env = {"AZPIM_RETRY_COUNT": "3", "AZPIM_GRAPH_URL": "https://graph.example.com"}
        with patch.dict("os.environ", env, clear=True):
            settings = PimSettings(_env_file=None)
            assert settings.retry_count == 3
            assert settings.graph_url == "https://graph.example.com"

    @pytest.mark.unit
    def test_retry_count_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PimSettings(_env_file=None, retry_count=0)

    @pytest.mark.unit
    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PimSettings(_env_file=None, concurrency=0)

    @pytest.mark.unit
    def test_get_pim_settings_is_cached(self) -> None:
        get_pim_settings.cache_clear()
        assert get_pim_settings() is get_pim_settings()
        get_pim_settings.cache_clear()
