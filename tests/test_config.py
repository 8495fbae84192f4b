"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import pytest
import toml
from pydantic import ValidationError

from niftychart.config import (
    DEFAULT_INDICATORS,
    LiveSettings,
    cache_db_path,
    live_settings,
    load_config,
    write_template,
)
from niftychart.indicators import parse_indicators
from niftychart.models import ChartTimeframe


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestLoadConfig:
    def test_missing_file(self, temp_dir):
        assert load_config(temp_dir / "config.toml") is None

    def test_invalid_toml(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("[live\nrefresh_seconds = ")

        assert load_config(path) is None

    def test_template_round_trip(self, temp_dir):
        path = write_template(temp_dir / "nested" / "config.toml")
        config = load_config(path)

        assert config["angelone"]["client_id"] == "your-client-id"
        assert live_settings(config) == LiveSettings()


class TestLiveSettings:
    def test_defaults(self):
        settings = live_settings(None)

        assert settings.refresh_seconds == 1.0
        assert settings.idle_refresh_seconds == 30.0
        assert settings.stale_after == 2
        assert settings.timeframe == "1D"
        assert settings.indicators == DEFAULT_INDICATORS

    def test_default_indicators_parse(self):
        assert len(parse_indicators(DEFAULT_INDICATORS)) == 8

    def test_from_config_section(self):
        settings = live_settings({"live": {"refresh_seconds": 5, "timeframe": "5d", "stale_after": 3}})

        assert settings.refresh_seconds == 5.0
        assert settings.timeframe == "5D"
        assert settings.stale_after == 3

    @pytest.mark.parametrize("section", [
        {"refresh_seconds": 0},
        {"stale_after": 0},
        {"timeframe": "2W"},
    ])
    def test_invalid_values(self, section: dict):
        with pytest.raises(ValidationError):
            live_settings({"live": section})

    def test_interval_for(self):
        settings = LiveSettings(refresh_seconds=1, slow_refresh_seconds=15, idle_refresh_seconds=60)

        assert settings.interval_for(ChartTimeframe.FIVE_MIN, market_open=True) == 1
        assert settings.interval_for(ChartTimeframe.ONE_MONTH, market_open=True) == 15
        assert settings.interval_for(ChartTimeframe.FIVE_MIN, market_open=False) == 60


class TestCachePath:
    def test_default(self):
        assert cache_db_path(None).name == "candles.db"

    def test_from_config(self, temp_dir):
        path = temp_dir / "my.db"
        assert cache_db_path({"cache": {"db_path": str(path)}}) == path

    def test_expands_user(self):
        assert "~" not in str(cache_db_path({"cache": {"db_path": "~/charts.db"}}))


def test_template_is_valid_toml(temp_dir):
    path = write_template(temp_dir / "config.toml")
    assert "live" in toml.loads(path.read_text())
