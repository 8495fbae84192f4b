"""Data models for NiftyChart."""

from niftychart.models.bundle import ResultBundle
from niftychart.models.candle import Candle, CandleSeries
from niftychart.models.indicator import (
    BollingerResult,
    BollingerSpec,
    EMASpec,
    IndicatorOutput,
    IndicatorSeries,
    IndicatorSpec,
    MACDResult,
    MACDSpec,
    RSISpec,
    SMASpec,
    SupportResistance,
    SupportResistanceSpec,
    VWAPSpec,
    indicator_spec_adapter,
)
from niftychart.models.timeframe import TIMEFRAME_LABELS, ChartTimeframe

__all__ = [
    "BollingerResult",
    "BollingerSpec",
    "Candle",
    "CandleSeries",
    "ChartTimeframe",
    "EMASpec",
    "IndicatorOutput",
    "IndicatorSeries",
    "IndicatorSpec",
    "MACDResult",
    "MACDSpec",
    "RSISpec",
    "ResultBundle",
    "SMASpec",
    "SupportResistance",
    "SupportResistanceSpec",
    "TIMEFRAME_LABELS",
    "VWAPSpec",
    "indicator_spec_adapter",
]
