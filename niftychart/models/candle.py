"""Candle (OHLCV) and CandleSeries data models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Candle(BaseModel):
    """Represents a single OHLCV candle."""

    timestamp: int = Field(..., ge=0, description="Candle start time (ms since epoch)")
    open: float = Field(..., ge=0, allow_inf_nan=False, description="Opening price")
    high: float = Field(..., ge=0, allow_inf_nan=False, description="High price")
    low: float = Field(..., ge=0, allow_inf_nan=False, description="Low price")
    close: float = Field(..., ge=0, allow_inf_nan=False, description="Closing price")
    volume: int = Field(..., ge=0, description="Trading volume")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_price_range(self) -> "Candle":
        if self.low > min(self.open, self.close) or self.high < max(self.open, self.close):
            raise ValueError(
                f"Candle at {self.timestamp} violates low <= open, close <= high "
                f"(o={self.open}, h={self.high}, l={self.low}, c={self.close})"
            )
        return self

    @property
    def is_bullish(self) -> bool:
        return self.close >= self.open

    @property
    def typical_price(self) -> float:
        """(high + low + close) / 3, the price VWAP weights by volume."""
        return (self.high + self.low + self.close) / 3

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


class CandleSeries(BaseModel):
    """An immutable, chronologically ordered snapshot of candles.

    Candles are indexed by position. Timestamps must strictly increase
    with index; a refresh produces a new series rather than mutating
    an existing one.
    """

    candles: tuple[Candle, ...] = Field(default=(), description="Candles, oldest first")
    symbol: str = Field(default="", description="Trading symbol the candles belong to")
    interval: str = Field(default="", description="Candle interval label (e.g. '5m')")

    model_config = {"frozen": True}

    @field_validator("candles")
    @classmethod
    def _check_order(cls, candles: tuple[Candle, ...]) -> tuple[Candle, ...]:
        for i in range(1, len(candles)):
            if candles[i].timestamp <= candles[i - 1].timestamp:
                raise ValueError(
                    f"Candle timestamps must strictly increase: index {i} "
                    f"({candles[i].timestamp}) <= index {i - 1} ({candles[i - 1].timestamp})"
                )
        return candles

    def __len__(self) -> int:
        return len(self.candles)

    def __getitem__(self, index):
        return self.candles[index]

    @property
    def latest(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    def closes(self) -> list[float]:
        return [c.close for c in self.candles]

    def highs(self) -> list[float]:
        return [c.high for c in self.candles]

    def lows(self) -> list[float]:
        return [c.low for c in self.candles]

    def volumes(self) -> list[int]:
        return [c.volume for c in self.candles]
