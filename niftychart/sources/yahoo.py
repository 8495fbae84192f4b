"""Yahoo Finance candle source.

Indian equities are listed on Yahoo with a .NS (NSE) or .BO (BSE) suffix;
indices use caret symbols.
"""

import logging
import math

import yfinance as yf

from niftychart.errors import FetchFailureError
from niftychart.models import Candle, CandleSeries, ChartTimeframe
from niftychart.sources.base import CandleSource

logger = logging.getLogger(__name__)

INDEX_SYMBOLS = {
    "NIFTY": "^NSEI",
    "NIFTY50": "^NSEI",
    "BANKNIFTY": "^NSEBANK",
    "SENSEX": "^BSESN",
}


def get_yahoo_symbol(symbol: str, exchange: str = "NSE") -> str:
    """Convert an Indian symbol to Yahoo Finance format.

    Symbols that already carry an exchange suffix or a caret are left as is.
    """
    symbol = symbol.upper().strip()

    if symbol in INDEX_SYMBOLS:
        return INDEX_SYMBOLS[symbol]
    if "." in symbol or symbol.startswith("^"):
        return symbol

    return f"{symbol}.NS" if exchange == "NSE" else f"{symbol}.BO"


def _is_number(value) -> bool:
    return value is not None and not (isinstance(value, float) and math.isnan(value))


class YahooCandleSource(CandleSource):
    """Candle source backed by yfinance's chart history."""

    name = "yahoo"

    def __init__(self, exchange: str = "NSE"):
        self.exchange = exchange

    def get_candles(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        """Get the history Yahoo returns for the timeframe's range/interval.

        Rows with a missing open, high, low or close, or with inconsistent
        prices (low above open, say), are dropped; a missing volume counts
        as zero.

        Raises:
            FetchFailureError: If Yahoo errors or returns malformed rows.
        """
        yahoo_symbol = get_yahoo_symbol(symbol, self.exchange)

        try:
            df = yf.Ticker(yahoo_symbol).history(
                period=timeframe.range,
                interval=timeframe.interval,
                auto_adjust=False,
            )
        except Exception as e:
            raise FetchFailureError(
                f"Yahoo Finance request failed for {yahoo_symbol}: {e}", source=self.name
            ) from e

        if df is None or df.empty:
            raise FetchFailureError(f"No data from Yahoo Finance for {yahoo_symbol}", source=self.name)

        candles = []
        for ts, row in df.iterrows():
            ohlc = [row.get("Open"), row.get("High"), row.get("Low"), row.get("Close")]
            if not all(_is_number(v) for v in ohlc):
                continue
            volume = row.get("Volume")
            try:
                candle = Candle(
                    timestamp=int(ts.timestamp() * 1000),
                    open=float(ohlc[0]),
                    high=float(ohlc[1]),
                    low=float(ohlc[2]),
                    close=float(ohlc[3]),
                    volume=int(volume) if _is_number(volume) else 0,
                )
            except ValueError as e:
                logger.debug("Skipping malformed Yahoo row for %s at %s: %s", yahoo_symbol, ts, e)
                continue
            # Yahoo can repeat the still-forming bar; the later row wins
            if candles and candles[-1].timestamp == candle.timestamp:
                candles[-1] = candle
            else:
                candles.append(candle)

        try:
            series = CandleSeries(candles=tuple(candles), symbol=symbol.upper(), interval=timeframe.interval)
        except ValueError as e:
            raise FetchFailureError(
                f"Malformed candle data from Yahoo for {yahoo_symbol}: {e}", source=self.name
            ) from e

        logger.debug("Yahoo returned %d candles for %s", len(series), yahoo_symbol)
        return series
