"""Technical indicator calculations for chart overlays.

Every function here is pure: it reads a candle sequence (a CandleSeries or
any sequence of Candle) and returns new tuples aligned index-for-index with
the input. Positions without enough history hold None rather than a guess.
Values are plain IEEE-754 doubles; rounding is left to whoever displays them.
"""

import math
from typing import Optional, Sequence, Union

from niftychart.errors import EmptyInputError, InvalidParameterError
from niftychart.models.candle import Candle, CandleSeries
from niftychart.models.indicator import (
    BollingerResult,
    IndicatorSeries,
    MACDResult,
    SupportResistance,
)

CandleInput = Union[CandleSeries, Sequence[Candle]]


def _candles(data: CandleInput) -> Sequence[Candle]:
    if isinstance(data, CandleSeries):
        return data.candles
    return data


def _check_period(name: str, value: int) -> None:
    if value <= 0:
        raise InvalidParameterError(f"{name} must be positive, got {value}")


def sma_values(values: Sequence[float], period: int) -> IndicatorSeries:
    """Simple moving average over a plain float sequence.

    Args:
        values: Input values, oldest first.
        period: Window length.

    Returns:
        Tuple of SMA values. First (period-1) entries are None.

    Raises:
        InvalidParameterError: If period <= 0.
    """
    _check_period("period", period)

    n = len(values)
    if n < period:
        return (None,) * n

    result: list[Optional[float]] = [None] * (period - 1)
    for i in range(period - 1, n):
        window = values[i - period + 1:i + 1]
        result.append(math.fsum(window) / period)

    return tuple(result)


def ema_values(values: Sequence[float], period: int) -> IndicatorSeries:
    """Exponential moving average over a plain float sequence.

    The value at index period-1 is seeded with the SMA of the first
    `period` values; later values use k = 2 / (period + 1).

    Raises:
        InvalidParameterError: If period <= 0.
    """
    _check_period("period", period)

    n = len(values)
    if n < period:
        return (None,) * n

    result: list[Optional[float]] = [None] * (period - 1)
    multiplier = 2 / (period + 1)

    # First EMA is SMA
    ema = math.fsum(values[:period]) / period
    result.append(ema)

    for i in range(period, n):
        ema = (values[i] - ema) * multiplier + ema
        result.append(ema)

    return tuple(result)


def calculate_sma(candles: CandleInput, period: int) -> IndicatorSeries:
    """Calculate Simple Moving Average of close.

    Args:
        candles: Candle sequence, oldest first.
        period: Number of candles in the window.

    Returns:
        Tuple of SMA values. First (period-1) values are None.
    """
    return sma_values([c.close for c in _candles(candles)], period)


def calculate_ema(candles: CandleInput, period: int) -> IndicatorSeries:
    """Calculate Exponential Moving Average of close.

    Args:
        candles: Candle sequence, oldest first.
        period: EMA period.

    Returns:
        Tuple of EMA values. First (period-1) values are None, and the
        whole output is None when there are fewer than `period` candles.
    """
    return ema_values([c.close for c in _candles(candles)], period)


def calculate_rsi(candles: CandleInput, period: int = 14) -> IndicatorSeries:
    """Calculate Relative Strength Index.

    The opening average gain is the mean of the positive deltas among the
    first `period` close-to-close deltas, and the opening average loss the
    mean magnitude of the negative ones (0 when there are none). After
    that both averages follow Wilder's smoothing.

    Args:
        candles: Candle sequence, oldest first.
        period: RSI period (default 14).

    Returns:
        Tuple of RSI values (0-100). First `period` values are None; the
        whole output is None with fewer than period + 1 candles.
    """
    _check_period("period", period)

    closes = [c.close for c in _candles(candles)]
    n = len(closes)
    if n < period + 1:
        return (None,) * n

    changes = [closes[i] - closes[i - 1] for i in range(1, n)]

    first = changes[:period]
    ups = [c for c in first if c > 0]
    downs = [-c for c in first if c < 0]
    avg_gain = math.fsum(ups) / len(ups) if ups else 0.0
    avg_loss = math.fsum(downs) / len(downs) if downs else 0.0

    # No change before index 1, then period-1 more warm-up slots
    result: list[Optional[float]] = [None] * period
    result.append(_rsi(avg_gain, avg_loss))

    for i in range(period, len(changes)):
        change = changes[i]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        result.append(_rsi(avg_gain, avg_loss))

    return tuple(result)


def _rsi(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    return 100 - (100 / (1 + avg_gain / avg_loss))


def calculate_macd(
    candles: CandleInput,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult:
    """Calculate MACD (Moving Average Convergence Divergence).

    The signal line is the EMA of the defined MACD values only, written
    back to the positions those values came from. MACD values form one
    contiguous run starting at max(fast, slow) - 1, so the first signal
    value lands `signal - 1` positions after that.

    Args:
        candles: Candle sequence, oldest first.
        fast: Fast EMA period (default 12).
        slow: Slow EMA period (default 26).
        signal: Signal line period (default 9).

    Returns:
        MACDResult of (macd, signal, histogram).
    """
    _check_period("fast", fast)
    _check_period("slow", slow)
    _check_period("signal", signal)

    closes = [c.close for c in _candles(candles)]
    n = len(closes)

    fast_ema = ema_values(closes, fast)
    slow_ema = ema_values(closes, slow)

    # MACD line = Fast EMA - Slow EMA
    macd_line: list[Optional[float]] = []
    for f, s in zip(fast_ema, slow_ema):
        if f is None or s is None:
            macd_line.append(None)
        else:
            macd_line.append(f - s)

    defined = [i for i, v in enumerate(macd_line) if v is not None]
    signal_ema = ema_values([macd_line[i] for i in defined], signal)

    signal_line: list[Optional[float]] = [None] * n
    for i, value in zip(defined, signal_ema):
        signal_line[i] = value

    # Histogram = MACD - Signal
    histogram: list[Optional[float]] = []
    for m, s in zip(macd_line, signal_line):
        if m is None or s is None:
            histogram.append(None)
        else:
            histogram.append(m - s)

    return MACDResult(tuple(macd_line), tuple(signal_line), tuple(histogram))


def calculate_bollinger_bands(
    candles: CandleInput,
    period: int = 20,
    multiplier: float = 2.0,
) -> BollingerResult:
    """Calculate Bollinger Bands.

    Args:
        candles: Candle sequence, oldest first.
        period: SMA period (default 20).
        multiplier: Standard deviation multiplier (default 2.0).

    Returns:
        BollingerResult of (upper, middle, lower). Bands use the population
        standard deviation of close over the SMA window.
    """
    _check_period("period", period)
    if not math.isfinite(multiplier) or multiplier < 0:
        raise InvalidParameterError(
            f"multiplier must be a finite non-negative number, got {multiplier}"
        )

    closes = [c.close for c in _candles(candles)]
    n = len(closes)

    middle_band = sma_values(closes, period)
    upper_band: list[Optional[float]] = [None] * n
    lower_band: list[Optional[float]] = [None] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1:i + 1]
        mean = middle_band[i]

        variance = math.fsum((x - mean) * (x - mean) for x in window) / period
        std = math.sqrt(variance)

        upper_band[i] = mean + (multiplier * std)
        lower_band[i] = mean - (multiplier * std)

    return BollingerResult(tuple(upper_band), middle_band, tuple(lower_band))


def calculate_vwap(candles: CandleInput) -> tuple[float, ...]:
    """Calculate Volume Weighted Average Price.

    VWAP is cumulative from the first candle of the input with no trailing
    window. Where cumulative volume is still zero the value is 0.0 rather
    than None, so a zero here can mean "no volume traded yet".

    Args:
        candles: Candle sequence, oldest first.

    Returns:
        Tuple of VWAP values, one per candle.
    """
    result = []
    cumulative_tp_vol = 0.0
    cumulative_vol = 0

    for candle in _candles(candles):
        # Typical price = (High + Low + Close) / 3
        cumulative_tp_vol += candle.typical_price * candle.volume
        cumulative_vol += candle.volume

        if cumulative_vol > 0:
            result.append(cumulative_tp_vol / cumulative_vol)
        else:
            result.append(0.0)

    return tuple(result)


def find_support_resistance(candles: CandleInput, lookback: int = 20) -> SupportResistance:
    """Find support and resistance over the most recent candles.

    Support is the lowest low and resistance the highest high over the
    last min(lookback, n) candles.

    Args:
        candles: Candle sequence, oldest first.
        lookback: Number of recent candles to consider (default 20).

    Returns:
        SupportResistance levels.

    Raises:
        InvalidParameterError: If lookback <= 0.
        EmptyInputError: If there are no candles.
    """
    _check_period("lookback", lookback)

    data = _candles(candles)
    if len(data) == 0:
        raise EmptyInputError("Support/resistance needs at least one candle")

    recent = data[-lookback:]
    return SupportResistance(
        support=min(c.low for c in recent),
        resistance=max(c.high for c in recent),
    )
