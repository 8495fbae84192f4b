"""Property-based tests for technical indicators.

SMA and Bollinger Bands are checked against pandas rolling windows; the
other indicators against their defining properties.
"""

import math

import pandas as pd
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from niftychart.errors import EmptyInputError, InvalidParameterError
from niftychart.indicators import (
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    calculate_vwap,
    find_support_resistance,
)
from niftychart.models import Candle, CandleSeries


def make_candles(
    closes: list[float],
    volumes: list[int] | None = None,
    start: int = 1_700_000_000_000,
    step: int = 60_000,
) -> CandleSeries:
    """Build a series with the given closes, one candle per minute."""
    volumes = volumes or [1000] * len(closes)
    candles = tuple(
        Candle(
            timestamp=start + i * step,
            open=close,
            high=close * 1.01,
            low=close * 0.99,
            close=close,
            volume=volume,
        )
        for i, (close, volume) in enumerate(zip(closes, volumes))
    )
    return CandleSeries(candles=candles, symbol="TEST", interval="1m")


# Strategy for generating realistic price series
@st.composite
def price_series(draw, min_length: int = 1, max_length: int = 120):
    """Generate a positive price series with realistic percentage moves."""
    length = draw(st.integers(min_value=min_length, max_value=max_length))
    base_price = draw(st.floats(min_value=50.0, max_value=5000.0))

    changes = draw(st.lists(
        st.sampled_from([-0.05, -0.03, -0.02, -0.01, -0.005, 0.0,
                         0.005, 0.01, 0.02, 0.03, 0.05]),
        min_size=length - 1,
        max_size=length - 1,
    ))

    prices = [base_price]
    for change in changes:
        prices.append(max(0.05, prices[-1] * (1 + change)))
    return prices


# Quarter-rupee prices are exact in binary, so window sums have no rounding
exact_prices = st.integers(min_value=4, max_value=400_000).map(lambda x: x / 4)


class TestSMAScenario:
    """
    **Feature: chart-indicators, Property 1: SMA end-to-end scenario**
    """

    def test_five_candle_sma3(self):
        result = calculate_sma(make_candles([10, 11, 12, 11, 13]), 3)

        assert result[:2] == (None, None)
        assert result[2] == 11.0
        assert result[3] == pytest.approx(34 / 3)
        assert result[4] == 12.0

    def test_accepts_plain_candle_list(self):
        series = make_candles([10, 11, 12, 11, 13])
        assert calculate_sma(list(series.candles), 3) == calculate_sma(series, 3)

    def test_empty_series_gives_empty_output(self):
        empty = CandleSeries()
        assert calculate_sma(empty, 5) == ()
        assert calculate_ema(empty, 5) == ()
        assert calculate_rsi(empty) == ()
        assert calculate_vwap(empty) == ()
        assert calculate_macd(empty) == ((), (), ())
        assert calculate_bollinger_bands(empty) == ((), (), ())


class TestInsufficientData:
    """
    **Feature: chart-indicators, Property 2: Short series are all None**

    *For any* period p and series shorter than p, SMA, EMA and Bollinger
    output is all None and has the input's length.
    """

    @given(data=st.data(), period=st.integers(min_value=2, max_value=60))
    @settings(max_examples=100, deadline=None)
    def test_short_series_all_none(self, data, period: int):
        prices = data.draw(price_series(min_length=1, max_length=period - 1))
        candles = make_candles(prices)

        for output in (calculate_sma(candles, period), calculate_ema(candles, period)):
            assert len(output) == len(prices)
            assert all(v is None for v in output)

        for band in calculate_bollinger_bands(candles, period):
            assert len(band) == len(prices)
            assert all(v is None for v in band)

    @given(prices=price_series(min_length=1, max_length=15))
    @settings(max_examples=50, deadline=None)
    def test_rsi_needs_period_plus_one(self, prices: list[float]):
        output = calculate_rsi(make_candles(prices), len(prices))
        assert output == (None,) * len(prices)


class TestConstantPrice:
    """
    **Feature: chart-indicators, Property 3: Constant price series**

    *For any* constant price c and period p, SMA and EMA equal c exactly
    from index p-1 on, and Bollinger Bands collapse onto the middle band.
    """

    @given(
        price=exact_prices,
        period=st.integers(min_value=1, max_value=50),
        extra=st.integers(min_value=0, max_value=30),
    )
    @settings(max_examples=100, deadline=None)
    def test_sma_and_ema_equal_constant(self, price: float, period: int, extra: int):
        candles = make_candles([price] * (period + extra))

        sma = calculate_sma(candles, period)
        ema = calculate_ema(candles, period)

        assert sma[-1] == price
        for i in range(period - 1, len(candles)):
            assert sma[i] == price
            assert ema[i] == price

    @given(price=exact_prices, period=st.integers(min_value=1, max_value=30))
    @settings(max_examples=50, deadline=None)
    def test_bollinger_collapses(self, price: float, period: int):
        upper, middle, lower = calculate_bollinger_bands(make_candles([price] * (period + 5)), period)

        assert upper[-1] == middle[-1] == lower[-1] == price


class TestRSIBounds:
    """
    **Feature: chart-indicators, Property 4: RSI range**

    *For any* price series, RSI is within [0, 100] wherever defined and
    first defined at index `period`.
    """

    @given(prices=price_series(min_length=2, max_length=150), period=st.integers(min_value=1, max_value=30))
    @settings(max_examples=100, deadline=None)
    def test_rsi_in_range(self, prices: list[float], period: int):
        rsi = calculate_rsi(make_candles(prices), period)

        assert len(rsi) == len(prices)
        for i, value in enumerate(rsi):
            if i < period:
                assert value is None
            else:
                assert value is not None
                assert 0.0 <= value <= 100.0

    @given(start=st.floats(min_value=10, max_value=1000), period=st.integers(min_value=1, max_value=30))
    @settings(max_examples=50, deadline=None)
    def test_rsi_is_100_without_losses(self, start: float, period: int):
        prices = [start + i for i in range(period + 1)]
        rsi = calculate_rsi(make_candles(prices), period)

        assert rsi[period] == 100.0

    def test_rsi_is_0_without_gains(self):
        prices = [100 - i for i in range(20)]
        rsi = calculate_rsi(make_candles(prices), 14)

        assert rsi[14:] == (0.0,) * 6

    def test_initial_averages_use_nonzero_deltas(self):
        # Deltas +2, 0, -1: avg gain 2/1, avg loss 1/1
        rsi = calculate_rsi(make_candles([10, 12, 12, 11]), 3)

        assert rsi[:3] == (None, None, None)
        assert rsi[3] == pytest.approx(100 - 100 / (1 + 2.0))

    def test_wilder_smoothing_after_seed(self):
        rsi = calculate_rsi(make_candles([10, 11, 10, 12]), 2)

        # Seed from deltas +1, -1; then +2 is smoothed in
        avg_gain = (1.0 * 1 + 2.0) / 2
        avg_loss = (1.0 * 1 + 0.0) / 2
        assert rsi[2] == pytest.approx(50.0)
        assert rsi[3] == pytest.approx(100 - 100 / (1 + avg_gain / avg_loss))


class TestMACDAlignment:
    """
    **Feature: chart-indicators, Property 5: MACD alignment**

    *For any* series and parameters, the histogram is defined exactly where
    both lines are, and never before (slow-1)+(signal-1).
    """

    @given(
        prices=price_series(min_length=1, max_length=120),
        fast=st.integers(min_value=1, max_value=30),
        slow=st.integers(min_value=1, max_value=40),
        signal=st.integers(min_value=1, max_value=15),
    )
    @settings(max_examples=150, deadline=None)
    def test_histogram_defined_where_both_lines_are(self, prices, fast, slow, signal):
        macd, signal_line, histogram = calculate_macd(make_candles(prices), fast, slow, signal)

        assert len(macd) == len(signal_line) == len(histogram) == len(prices)
        for m, s, h in zip(macd, signal_line, histogram):
            assert (h is not None) == (m is not None and s is not None)

        first_defined = next((i for i, h in enumerate(histogram) if h is not None), None)
        if first_defined is not None:
            assert first_defined >= (slow - 1) + (signal - 1)
            assert first_defined == (max(fast, slow) - 1) + (signal - 1)

    @pytest.mark.parametrize("length", [25, 26, 33, 34, 35])
    def test_default_boundary(self, length: int):
        macd, signal_line, histogram = calculate_macd(make_candles([100 + (i % 7) for i in range(length)]))

        # MACD from index 25, signal from 25 + 8 = 33
        assert all(m is None for m in macd[:25])
        if length > 25:
            assert macd[25] is not None
        first_signal = next((i for i, s in enumerate(signal_line) if s is not None), None)
        assert first_signal == (33 if length > 33 else None)

    def test_fast_slower_than_slow(self):
        prices = [100 + (i % 5) for i in range(40)]
        macd, signal_line, histogram = calculate_macd(make_candles(prices), fast=26, slow=12, signal=9)

        assert macd[24] is None
        assert macd[25] is not None
        assert signal_line[32] is None
        assert signal_line[33] is not None
        assert histogram[33] == pytest.approx(macd[33] - signal_line[33])

    def test_signal_seeds_from_mean_of_macd(self):
        prices = [100 + (i % 7) * 1.5 for i in range(40)]
        macd, signal_line, _ = calculate_macd(make_candles(prices), 3, 5, 4)

        seed = math.fsum(macd[4:8]) / 4
        assert signal_line[7] == pytest.approx(seed)


class TestBollingerBands:
    """
    **Feature: chart-indicators, Property 6: Bollinger band ordering**
    """

    @given(
        prices=price_series(min_length=1, max_length=120),
        period=st.integers(min_value=1, max_value=40),
        multiplier=st.floats(min_value=0.0, max_value=5.0),
    )
    @settings(max_examples=100, deadline=None)
    def test_upper_middle_lower_ordering(self, prices, period, multiplier):
        upper, middle, lower = calculate_bollinger_bands(make_candles(prices), period, multiplier)

        for u, m, l in zip(upper, middle, lower):
            if m is None:
                assert u is None and l is None
            else:
                assert u >= m >= l

    @given(prices=price_series(min_length=20, max_length=120), period=st.integers(min_value=2, max_value=20))
    @settings(max_examples=100, deadline=None)
    def test_matches_pandas_rolling(self, prices: list[float], period: int):
        upper, middle, lower = calculate_bollinger_bands(make_candles(prices), period, 2.0)

        closes = pd.Series(prices)
        ref_middle = closes.rolling(period).mean()
        ref_std = closes.rolling(period).std(ddof=0)

        for i in range(period - 1, len(prices)):
            assert middle[i] == pytest.approx(ref_middle[i], rel=1e-9)
            assert upper[i] == pytest.approx(ref_middle[i] + 2.0 * ref_std[i], rel=1e-6, abs=1e-6)
            assert lower[i] == pytest.approx(ref_middle[i] - 2.0 * ref_std[i], rel=1e-6, abs=1e-6)

    def test_extreme_spread_saturates_instead_of_raising(self):
        upper, middle, lower = calculate_bollinger_bands(make_candles([0.0, 1e200]), 2, 2.0)

        assert middle[1] == 5e199
        assert upper[1] == math.inf
        assert lower[1] == -math.inf

    def test_rejects_bad_multiplier(self):
        with pytest.raises(InvalidParameterError):
            calculate_bollinger_bands(make_candles([1, 2, 3]), 2, -1.0)
        with pytest.raises(InvalidParameterError):
            calculate_bollinger_bands(make_candles([1, 2, 3]), 2, float("nan"))


class TestSMAReference:
    """
    **Feature: chart-indicators, Property 7: SMA matches pandas**
    """

    @given(prices=price_series(min_length=1, max_length=150), period=st.integers(min_value=1, max_value=50))
    @settings(max_examples=100, deadline=None)
    def test_matches_pandas_rolling_mean(self, prices: list[float], period: int):
        sma = calculate_sma(make_candles(prices), period)
        reference = pd.Series(prices).rolling(period).mean()

        for ours, ref in zip(sma, reference):
            if math.isnan(ref):
                assert ours is None
            else:
                assert ours == pytest.approx(ref, rel=1e-9)

    def test_ema_recurrence(self):
        closes = [10, 11, 12, 11, 13, 14]
        ema = calculate_ema(make_candles(closes), 3)

        k = 2 / 4
        expected = 11.0
        assert ema[2] == expected
        for i in range(3, len(closes)):
            expected = (closes[i] - expected) * k + expected
            assert ema[i] == pytest.approx(expected)


class TestVWAP:
    """
    **Feature: chart-indicators, Property 8: VWAP volume scaling**

    *For any* series and positive factor k, scaling every volume by k
    leaves VWAP unchanged.
    """

    @given(
        prices=price_series(min_length=1, max_length=80),
        data=st.data(),
        factor=st.integers(min_value=2, max_value=1000),
    )
    @settings(max_examples=100, deadline=None)
    def test_invariant_to_volume_scaling(self, prices, data, factor: int):
        volumes = data.draw(st.lists(
            st.integers(min_value=0, max_value=1_000_000),
            min_size=len(prices),
            max_size=len(prices),
        ))

        base = calculate_vwap(make_candles(prices, volumes))
        scaled = calculate_vwap(make_candles(prices, [v * factor for v in volumes]))

        assert len(base) == len(prices)
        for a, b in zip(base, scaled):
            assert b == pytest.approx(a, rel=1e-9)

    def test_zero_volume_sentinel(self):
        vwap = calculate_vwap(make_candles([100, 101, 102], [0, 0, 10]))

        assert vwap[0] == 0.0
        assert vwap[1] == 0.0
        assert vwap[2] == pytest.approx((102 * 1.01 + 102 * 0.99 + 102) / 3)

    def test_cumulative_weighting(self):
        series = make_candles([100, 200], [1, 3])
        tp = [c.typical_price for c in series.candles]

        vwap = calculate_vwap(series)

        assert vwap[0] == pytest.approx(tp[0])
        assert vwap[1] == pytest.approx((tp[0] * 1 + tp[1] * 3) / 4)


class TestSupportResistance:
    """
    **Feature: chart-indicators, Property 9: Support/resistance window**
    """

    @given(prices=price_series(min_length=1, max_length=60), lookback=st.integers(min_value=1, max_value=80))
    @settings(max_examples=100, deadline=None)
    def test_min_low_max_high_of_recent(self, prices, lookback: int):
        series = make_candles(prices)
        levels = find_support_resistance(series, lookback)

        recent = series.candles[-lookback:]
        assert levels.support == min(c.low for c in recent)
        assert levels.resistance == max(c.high for c in recent)
        assert levels.support <= levels.resistance

    def test_empty_input_raises(self):
        with pytest.raises(EmptyInputError):
            find_support_resistance(CandleSeries())

    def test_default_lookback_is_20(self):
        prices = [500.0] + [100.0] * 25
        levels = find_support_resistance(make_candles(prices))

        assert levels.resistance == pytest.approx(101.0)


class TestParameterValidation:
    """
    **Feature: chart-indicators, Property 10: Non-positive parameters**
    """

    @pytest.mark.parametrize("period", [0, -1, -20])
    def test_non_positive_period_raises(self, period: int):
        candles = make_candles([1, 2, 3])

        for func in (calculate_sma, calculate_ema, calculate_rsi, calculate_bollinger_bands):
            with pytest.raises(InvalidParameterError):
                func(candles, period)
        with pytest.raises(InvalidParameterError):
            calculate_macd(candles, fast=period)
        with pytest.raises(InvalidParameterError):
            find_support_resistance(candles, period)

    def test_invalid_parameter_is_value_error(self):
        with pytest.raises(ValueError):
            calculate_sma(make_candles([1, 2]), 0)


class TestDeterminism:
    """
    **Feature: chart-indicators, Property 11: Bit-identical recomputation**
    """

    @given(prices=price_series(min_length=1, max_length=100))
    @settings(max_examples=50, deadline=None)
    def test_repeated_calls_identical(self, prices: list[float]):
        series = make_candles(prices)

        assert calculate_sma(series, 5) == calculate_sma(series, 5)
        assert calculate_ema(series, 5) == calculate_ema(series, 5)
        assert calculate_rsi(series) == calculate_rsi(series)
        assert calculate_macd(series) == calculate_macd(series)
        assert calculate_bollinger_bands(series) == calculate_bollinger_bands(series)
        assert calculate_vwap(series) == calculate_vwap(series)
