"""ResultBundle: indicator outputs computed from one candle snapshot."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from niftychart.models.candle import CandleSeries
from niftychart.models.indicator import IndicatorOutput, IndicatorSpec


def _frozen(mapping: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ResultBundle:
    """Indicator outputs for exactly one CandleSeries snapshot.

    Bundles are built whole and never modified; a refresh replaces the
    published bundle with a new one.

    Attributes:
        ticket: Monotonic number of the trigger that produced the snapshot.
        candles: The snapshot the indicators were computed from.
        results: Output per active spec (series or multi-line record).
        errors: Message per spec whose computation failed.
        computed_at: Wall-clock time the bundle was built (ms since epoch).
    """

    ticket: int = 0
    candles: CandleSeries = field(default_factory=CandleSeries)
    results: Mapping[IndicatorSpec, IndicatorOutput] = field(default_factory=_frozen)
    errors: Mapping[IndicatorSpec, str] = field(default_factory=_frozen)
    computed_at: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "results", _frozen(self.results))
        object.__setattr__(self, "errors", _frozen(self.errors))

    @classmethod
    def empty(cls) -> "ResultBundle":
        return cls()

    @property
    def symbol(self) -> str:
        return self.candles.symbol

    @property
    def interval(self) -> str:
        return self.candles.interval

    @property
    def specs(self) -> frozenset:
        """Every spec this bundle was computed for, failed ones included."""
        return frozenset(self.results) | frozenset(self.errors)

    def get(self, spec: IndicatorSpec) -> IndicatorOutput:
        return self.results.get(spec)
