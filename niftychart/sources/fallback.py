"""Fallback chain over several candle sources."""

import logging
from typing import Optional, Sequence

from niftychart.errors import FetchFailureError
from niftychart.models import CandleSeries, ChartTimeframe
from niftychart.sources.base import CandleSource
from niftychart.sources.store import CachedCandleSource, CandleStore

logger = logging.getLogger(__name__)


class FallbackCandleSource(CandleSource):
    """Tries each source in order and returns the first snapshot.

    When a store is given, every successful fetch is written through to
    it, and the store itself is consulted last so a chart can still show
    the previous data while every remote API is down.
    """

    name = "fallback"

    def __init__(self, sources: Sequence[CandleSource], store: Optional[CandleStore] = None):
        """Initialize the fallback chain.

        Args:
            sources: Sources to try, most preferred first.
            store: Optional cache written on success and read on failure.
        """
        if not sources and store is None:
            raise ValueError("FallbackCandleSource needs at least one source or a store")
        self._sources = list(sources)
        self._store = store
        self._cache = CachedCandleSource(store) if store is not None else None
        self.last_source: Optional[str] = None

    @property
    def sources(self) -> list[CandleSource]:
        return list(self._sources)

    def get_candles(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        """Get candles from the first source that answers.

        Raises:
            FetchFailureError: If every source (and the cache) failed. The
                message lists each source's failure.
        """
        failures = []

        for source in self._sources:
            try:
                series = source.get_candles(symbol, timeframe)
            except FetchFailureError as e:
                logger.warning("%s failed for %s (%s): %s", source.name, symbol, timeframe.label, e)
                failures.append(f"{source.name}: {e}")
                continue

            self.last_source = source.name
            if self._store is not None and series:
                self._store.save_series(series, timeframe)
            return series

        if self._cache is not None:
            try:
                series = self._cache.get_candles(symbol, timeframe)
            except FetchFailureError as e:
                failures.append(f"{self._cache.name}: {e}")
            else:
                logger.info("Serving cached candles for %s (%s)", symbol, timeframe.label)
                self.last_source = self._cache.name
                return series

        self.last_source = None
        raise FetchFailureError(
            f"All sources failed for {symbol} ({timeframe.label}): " + "; ".join(failures),
            source=self.name,
        )
