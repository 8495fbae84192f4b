"""Technical indicators module."""

from niftychart.indicators.registry import (
    DEFAULT_SPECS,
    SUPPORTED_KINDS,
    build_bundle,
    compute_indicator,
    format_spec,
    parse_indicator,
    parse_indicators,
)
from niftychart.indicators.technical import (
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    calculate_vwap,
    ema_values,
    find_support_resistance,
    sma_values,
)

__all__ = [
    "DEFAULT_SPECS",
    "SUPPORTED_KINDS",
    "build_bundle",
    "calculate_bollinger_bands",
    "calculate_ema",
    "calculate_macd",
    "calculate_rsi",
    "calculate_sma",
    "calculate_vwap",
    "compute_indicator",
    "ema_values",
    "find_support_resistance",
    "format_spec",
    "parse_indicator",
    "parse_indicators",
    "sma_values",
]
