"""Chart timeframe definitions."""

from enum import Enum


class ChartTimeframe(Enum):
    """Timeframe options for charts.

    Each member carries its display label, the history range to request
    and the candle interval, using Yahoo Finance's range/interval codes.
    """

    FIVE_MIN = ("5m", "1d", "1m")
    TEN_MIN = ("10m", "1d", "2m")
    THIRTY_MIN = ("30m", "1d", "5m")
    ONE_HOUR = ("1H", "1d", "15m")
    ONE_DAY = ("1D", "1d", "5m")
    FIVE_DAYS = ("5D", "5d", "15m")
    ONE_MONTH = ("1M", "1mo", "1d")
    THREE_MONTHS = ("3M", "3mo", "1d")
    SIX_MONTHS = ("6M", "6mo", "1d")
    ONE_YEAR = ("1Y", "1y", "1wk")
    FIVE_YEARS = ("5Y", "5y", "1mo")
    MAX = ("MAX", "max", "1mo")

    def __init__(self, label: str, range_: str, interval: str):
        self.label = label
        self.range = range_
        self.interval = interval

    @property
    def is_intraday(self) -> bool:
        """True for views covering a single session (fast auto-refresh)."""
        return self.range == "1d"

    @classmethod
    def from_label(cls, label: str) -> "ChartTimeframe":
        """Look up a timeframe by its label.

        An exact match wins; otherwise the label is compared case-insensitively.

        Raises:
            ValueError: If no timeframe has that label.
        """
        label = label.strip()
        for tf in cls:
            if tf.label == label:
                return tf
        for tf in cls:
            if tf.label.upper() == label.upper():
                return tf
        raise ValueError(
            f"Unknown timeframe: {label}. Must be one of {[tf.label for tf in cls]}"
        )


TIMEFRAME_LABELS = [tf.label for tf in ChartTimeframe]
