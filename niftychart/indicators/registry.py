"""Indicator registry: defaults, text parsing and bundle computation.

This is the configuration surface the CLI and config file see: which
indicator kinds exist, their default parameters, and how a spec like
"macd:12:26:9" maps onto a library call.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from niftychart.errors import EmptyInputError, InvalidParameterError
from niftychart.indicators.technical import (
    CandleInput,
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    calculate_vwap,
    find_support_resistance,
)
from niftychart.models import (
    BollingerSpec,
    CandleSeries,
    EMASpec,
    IndicatorOutput,
    IndicatorSpec,
    MACDSpec,
    ResultBundle,
    RSISpec,
    SMASpec,
    SupportResistanceSpec,
    VWAPSpec,
    indicator_spec_adapter,
)

logger = logging.getLogger(__name__)

# Available indicator kinds, in display order
SUPPORTED_KINDS = ["sma", "ema", "rsi", "macd", "bollinger", "vwap", "sr"]

KIND_ALIASES = {
    "ma": "sma",
    "bb": "bollinger",
    "boll": "bollinger",
    "support": "sr",
    "resistance": "sr",
}

# Parameter names accepted positionally after the kind, e.g. "bb:20:2.5"
_POSITIONAL_PARAMS = {
    "sma": ("period",),
    "ema": ("period",),
    "rsi": ("period",),
    "macd": ("fast", "slow", "signal"),
    "bollinger": ("period", "multiplier"),
    "vwap": (),
    "sr": ("lookback",),
}

DEFAULT_SPECS: tuple = (
    SMASpec(period=5),
    SMASpec(period=10),
    SMASpec(period=20),
    EMASpec(period=5),
    EMASpec(period=10),
    EMASpec(period=20),
    RSISpec(period=14),
    MACDSpec(fast=12, slow=26, signal=9),
    BollingerSpec(period=20, multiplier=2.0),
    VWAPSpec(),
    SupportResistanceSpec(lookback=20),
)

_CALCULATORS: dict[type, Callable[..., IndicatorOutput]] = {
    SMASpec: lambda spec, candles: calculate_sma(candles, spec.period),
    EMASpec: lambda spec, candles: calculate_ema(candles, spec.period),
    RSISpec: lambda spec, candles: calculate_rsi(candles, spec.period),
    MACDSpec: lambda spec, candles: calculate_macd(
        candles, spec.fast, spec.slow, spec.signal
    ),
    BollingerSpec: lambda spec, candles: calculate_bollinger_bands(
        candles, spec.period, spec.multiplier
    ),
    VWAPSpec: lambda spec, candles: calculate_vwap(candles),
    SupportResistanceSpec: lambda spec, candles: find_support_resistance(
        candles, spec.lookback
    ),
}


def compute_indicator(spec: IndicatorSpec, candles: CandleInput) -> IndicatorOutput:
    """Compute a single indicator spec against a candle sequence.

    Raises:
        InvalidParameterError: If the spec's parameters are out of range.
        EmptyInputError: If the indicator needs candles and there are none.
    """
    calculator = _CALCULATORS.get(type(spec))
    if calculator is None:
        raise InvalidParameterError(f"Unsupported indicator spec: {spec!r}")
    return calculator(spec, candles)


def build_bundle(
    candles: CandleSeries,
    specs: Iterable[IndicatorSpec],
    ticket: int = 0,
) -> ResultBundle:
    """Compute every spec against one snapshot.

    A spec that fails with a parameter or arithmetic error (overflow on
    extreme prices) is recorded in the bundle's errors and the remaining
    specs are still computed. Support/resistance on an empty snapshot
    yields None without an error.

    Args:
        candles: The snapshot to compute from.
        specs: Specs to compute.
        ticket: Snapshot number stamped on the bundle.

    Returns:
        A new ResultBundle.
    """
    results: dict = {}
    errors: dict = {}

    for spec in specs:
        try:
            results[spec] = compute_indicator(spec, candles)
        except EmptyInputError:
            results[spec] = None
        except InvalidParameterError as e:
            logger.warning("Skipping %s: %s", spec.label, e)
            errors[spec] = str(e)
        except (ArithmeticError, ValueError) as e:
            logger.warning("Could not compute %s: %s", spec.label, e)
            errors[spec] = f"{type(e).__name__}: {e}"

    return ResultBundle(
        ticket=ticket,
        candles=candles,
        results=results,
        errors=errors,
        computed_at=int(time.time() * 1000),
    )


def parse_indicator(text: str) -> IndicatorSpec:
    """Parse a text indicator spec.

    The kind comes first, optionally followed by colon-separated parameters
    in positional order. A bare kind uses its default parameters.

    Examples:
        "sma:20"         -> SMASpec(period=20)
        "macd:12:26:9"   -> MACDSpec(fast=12, slow=26, signal=9)
        "bb:20:2.5"      -> BollingerSpec(period=20, multiplier=2.5)
        "vwap"           -> VWAPSpec()

    Raises:
        InvalidParameterError: For unknown kinds, too many parameters or
            values that fail validation.
    """
    parts = [p.strip() for p in text.strip().split(":")]
    kind = parts[0].lower()
    kind = KIND_ALIASES.get(kind, kind)

    if kind not in _POSITIONAL_PARAMS:
        raise InvalidParameterError(
            f"Unknown indicator: {parts[0]!r}. Must be one of {SUPPORTED_KINDS}"
        )

    names = _POSITIONAL_PARAMS[kind]
    values = parts[1:]
    if len(values) > len(names):
        raise InvalidParameterError(
            f"Too many parameters for {kind}: expected at most {len(names)}, got {len(values)}"
        )

    data = {"kind": kind}
    data.update(dict(zip(names, values)))

    try:
        return indicator_spec_adapter.validate_python(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'][1:]) or kind}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidParameterError(f"Invalid parameters for {text!r}: {details}") from e


def parse_indicators(text: Optional[str]) -> list[IndicatorSpec]:
    """Parse a comma-separated list of indicator specs.

    Duplicates are dropped, keeping first-seen order. An empty string
    yields an empty list.
    """
    if not text:
        return []

    specs: list[IndicatorSpec] = []
    for part in text.split(","):
        if not part.strip():
            continue
        spec = parse_indicator(part)
        if spec not in specs:
            specs.append(spec)
    return specs


def format_spec(spec: IndicatorSpec) -> str:
    """Inverse of parse_indicator, e.g. BollingerSpec() -> "bollinger:20:2"."""
    params = [spec.kind]
    for name in _POSITIONAL_PARAMS[spec.kind]:
        value = getattr(spec, name)
        params.append(f"{value:g}" if isinstance(value, float) else str(value))
    return ":".join(params)
