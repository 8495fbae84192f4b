"""Configuration loading for NiftyChart.

Configuration lives in ~/.config/niftychart/config.toml:

    [angelone]
    api_key = "..."
    client_id = "..."
    pin = "..."
    totp_secret = "..."

    [live]
    refresh_seconds = 1.0
    slow_refresh_seconds = 30.0
    idle_refresh_seconds = 30.0
    stale_after = 2
    timeframe = "1D"
    indicators = "sma:20,ema:20,rsi,macd,bb,vwap"

    [cache]
    db_path = "~/.config/niftychart/candles.db"
"""

from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, field_validator

from niftychart.models import ChartTimeframe

CONFIG_DIR = Path.home() / ".config" / "niftychart"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_INDICATORS = "sma:5,sma:10,sma:20,rsi,macd,bb,vwap,sr"


class LiveSettings(BaseModel):
    """Settings for the live auto-refresh loop."""

    refresh_seconds: float = Field(
        default=1.0, gt=0, description="Refresh interval for intraday charts while the market is open"
    )
    slow_refresh_seconds: float = Field(
        default=30.0, gt=0, description="Refresh interval for multi-day charts"
    )
    idle_refresh_seconds: float = Field(
        default=30.0, gt=0, description="Refresh interval while the market is closed"
    )
    stale_after: int = Field(
        default=2, ge=1, description="Consecutive failed refreshes before data is marked stale"
    )
    timeframe: str = Field(default="1D", description="Default chart timeframe label")
    indicators: str = Field(default=DEFAULT_INDICATORS, description="Default indicator specs")

    model_config = {"frozen": True}

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        return ChartTimeframe.from_label(value).label

    def interval_for(self, timeframe: ChartTimeframe, market_open: bool) -> float:
        """Pick the refresh interval for a timeframe and market state."""
        if not market_open:
            return self.idle_refresh_seconds
        if timeframe.is_intraday:
            return self.refresh_seconds
        return self.slow_refresh_seconds


def load_config(path: Optional[Path] = None) -> Optional[dict]:
    """Load the TOML configuration.

    Returns:
        The configuration dictionary, or None if the file is missing or
        cannot be parsed.
    """
    config_path = Path(path) if path else CONFIG_PATH

    if not config_path.exists():
        return None

    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError):
        return None


def live_settings(config: Optional[dict]) -> LiveSettings:
    """Build LiveSettings from the [live] section (defaults when absent)."""
    return LiveSettings(**((config or {}).get("live", {})))


def cache_db_path(config: Optional[dict]) -> Path:
    """Resolve the candle cache path from the [cache] section."""
    db_path = (config or {}).get("cache", {}).get("db_path")
    if db_path:
        return Path(db_path).expanduser()
    return CONFIG_DIR / "candles.db"


def write_template(path: Optional[Path] = None) -> Path:
    """Create a template configuration file.

    Returns:
        Path of the written file.
    """
    config_path = Path(path) if path else CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    defaults = LiveSettings()
    template = {
        "angelone": {
            "api_key": "your-angelone-api-key",
            "client_id": "your-client-id",
            "pin": "your-pin",
            "totp_secret": "your-totp-secret",
        },
        "live": defaults.model_dump(),
        "cache": {
            "db_path": str(CONFIG_DIR / "candles.db"),
        },
    }

    with open(config_path, "w") as f:
        toml.dump(template, f)

    return config_path
