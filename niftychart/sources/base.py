"""Base candle source interface for NiftyChart."""

from abc import ABC, abstractmethod

from niftychart.models import CandleSeries, ChartTimeframe


class CandleSource(ABC):
    """Abstract base class for anything that can supply a candle snapshot.

    Implementations (Angel One, Yahoo Finance, the local cache) block on
    I/O; callers that need to stay responsive run them in a worker thread.
    """

    #: Short name used in logs and error messages.
    name: str = "source"

    @abstractmethod
    def get_candles(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        """Get the current candle snapshot for a symbol.

        Args:
            symbol: Trading symbol (e.g. RELIANCE, NIFTY).
            timeframe: Chart timeframe to fetch.

        Returns:
            CandleSeries, oldest candle first. May be empty.

        Raises:
            FetchFailureError: If the snapshot could not be fetched.
        """
        pass
