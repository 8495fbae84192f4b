"""Indicator spec and result data models."""

from typing import Annotated, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

# One value per candle; None where there is not enough history yet.
IndicatorSeries = tuple[Optional[float], ...]


class MACDResult(NamedTuple):
    """MACD line, signal line and histogram, aligned with the candles."""

    macd: IndicatorSeries
    signal: IndicatorSeries
    histogram: IndicatorSeries


class BollingerResult(NamedTuple):
    """Upper, middle and lower Bollinger bands, aligned with the candles."""

    upper: IndicatorSeries
    middle: IndicatorSeries
    lower: IndicatorSeries


class SupportResistance(NamedTuple):
    """Support (lowest low) and resistance (highest high) over a lookback."""

    support: float
    resistance: float


IndicatorOutput = Union[IndicatorSeries, MACDResult, BollingerResult, SupportResistance, None]


class SMASpec(BaseModel):
    """Simple moving average of close."""

    kind: Literal["sma"] = "sma"
    period: int = Field(default=20, gt=0, description="Window length")

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"SMA {self.period}"


class EMASpec(BaseModel):
    """Exponential moving average of close."""

    kind: Literal["ema"] = "ema"
    period: int = Field(default=20, gt=0, description="Smoothing period")

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"EMA {self.period}"


class RSISpec(BaseModel):
    """Relative Strength Index."""

    kind: Literal["rsi"] = "rsi"
    period: int = Field(default=14, gt=0, description="RSI period")

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"RSI {self.period}"


class MACDSpec(BaseModel):
    """Moving Average Convergence Divergence."""

    kind: Literal["macd"] = "macd"
    fast: int = Field(default=12, gt=0, description="Fast EMA period")
    slow: int = Field(default=26, gt=0, description="Slow EMA period")
    signal: int = Field(default=9, gt=0, description="Signal EMA period")

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"MACD {self.fast}/{self.slow}/{self.signal}"


class BollingerSpec(BaseModel):
    """Bollinger Bands around a simple moving average."""

    kind: Literal["bollinger"] = "bollinger"
    period: int = Field(default=20, gt=0, description="SMA period")
    multiplier: float = Field(
        default=2.0, ge=0, allow_inf_nan=False, description="Standard deviation multiplier"
    )

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"BB {self.period}/{self.multiplier:g}"


class VWAPSpec(BaseModel):
    """Cumulative volume weighted average price."""

    kind: Literal["vwap"] = "vwap"

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return "VWAP"


class SupportResistanceSpec(BaseModel):
    """Support/resistance levels over the most recent candles."""

    kind: Literal["sr"] = "sr"
    lookback: int = Field(default=20, gt=0, description="Number of recent candles")

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"S/R {self.lookback}"


IndicatorSpec = Annotated[
    Union[
        SMASpec,
        EMASpec,
        RSISpec,
        MACDSpec,
        BollingerSpec,
        VWAPSpec,
        SupportResistanceSpec,
    ],
    Field(discriminator="kind"),
]

indicator_spec_adapter: TypeAdapter = TypeAdapter(IndicatorSpec)
