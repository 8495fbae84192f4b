"""Candle sources for NiftyChart.

Provider-specific sources live in their own modules so their SDKs are only
imported when used:

    from niftychart.sources.angelone import AngelOneCandleSource
    from niftychart.sources.yahoo import YahooCandleSource
"""

from niftychart.sources.base import CandleSource
from niftychart.sources.fallback import FallbackCandleSource
from niftychart.sources.store import CachedCandleSource, CandleStore

__all__ = [
    "CachedCandleSource",
    "CandleSource",
    "CandleStore",
    "FallbackCandleSource",
]
