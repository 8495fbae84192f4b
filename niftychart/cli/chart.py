"""Chart indicator commands for NiftyChart CLI.

Fetches candles for a symbol and shows the latest value of each active
indicator, either once (`indicators`) or continuously (`live`).
"""

import asyncio
from datetime import datetime
from typing import Iterable, Optional

import click
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from niftychart.cli.main import console
from niftychart.config import (
    CONFIG_PATH,
    cache_db_path,
    live_settings,
    load_config,
    write_template,
)
from niftychart.errors import FetchFailureError, InvalidParameterError
from niftychart.indicators.registry import (
    DEFAULT_SPECS,
    SUPPORTED_KINDS,
    build_bundle,
    format_spec,
    parse_indicators,
)
from niftychart.market_hours import IST, is_market_open, market_status
from niftychart.models import (
    TIMEFRAME_LABELS,
    BollingerResult,
    ChartTimeframe,
    IndicatorOutput,
    IndicatorSpec,
    MACDResult,
    ResultBundle,
    RSISpec,
    SupportResistance,
)


def _get_source(config: Optional[dict]):
    """Build the candle source chain from config.

    Angel One is tried first when credentials are configured, then Yahoo
    Finance, then the local candle cache.
    """
    from niftychart.sources import CandleStore, FallbackCandleSource
    from niftychart.sources.yahoo import YahooCandleSource

    sources = []
    angelone_config = (config or {}).get("angelone", {})
    if angelone_config.get("api_key"):
        from niftychart.sources.angelone import AngelOneCandleSource

        sources.append(AngelOneCandleSource(
            api_key=angelone_config.get("api_key", ""),
            client_id=angelone_config.get("client_id", ""),
            pin=angelone_config.get("pin", ""),
            totp_secret=angelone_config.get("totp_secret", ""),
        ))
    sources.append(YahooCandleSource())

    return FallbackCandleSource(sources, store=CandleStore(cache_db_path(config)))


def _resolve_specs(indicators: Optional[str], default: str) -> list[IndicatorSpec]:
    try:
        return parse_indicators(indicators if indicators is not None else default)
    except InvalidParameterError as e:
        raise click.BadParameter(str(e), param_hint="'-i' / '--indicators'") from e


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:,.2f}"


def _last(series) -> Optional[float]:
    return series[-1] if series else None


def format_output(output: IndicatorOutput) -> str:
    """Format the latest value of an indicator result for display."""
    if output is None:
        return "-"
    if isinstance(output, MACDResult):
        return (
            f"{_fmt(_last(output.macd))} / {_fmt(_last(output.signal))} "
            f"/ {_fmt(_last(output.histogram))}"
        )
    if isinstance(output, BollingerResult):
        return f"{_fmt(_last(output.upper))} / {_fmt(_last(output.middle))} / {_fmt(_last(output.lower))}"
    if isinstance(output, SupportResistance):
        return f"S {_fmt(output.support)} / R {_fmt(output.resistance)}"
    return _fmt(_last(output))


def _signal(spec: IndicatorSpec, output: IndicatorOutput, close: Optional[float]) -> str:
    """Short interpretation of an indicator's latest value."""
    if output is None or close is None:
        return ""
    if isinstance(spec, RSISpec):
        rsi = _last(output)
        if rsi is None:
            return ""
        if rsi >= 70:
            return "[red]Overbought[/red]"
        if rsi <= 30:
            return "[green]Oversold[/green]"
        return "[dim]Neutral[/dim]"
    if isinstance(output, MACDResult):
        histogram = _last(output.histogram)
        if histogram is None:
            return ""
        return "[green]Bullish[/green]" if histogram > 0 else "[red]Bearish[/red]"
    if isinstance(output, BollingerResult):
        upper, lower = _last(output.upper), _last(output.lower)
        if upper is not None and close > upper:
            return "[red]Above upper band[/red]"
        if lower is not None and close < lower:
            return "[green]Below lower band[/green]"
        return ""
    if isinstance(output, SupportResistance):
        return ""

    level = _last(output)
    if level is None:
        return ""
    return "[green]Price above[/green]" if close > level else "[red]Price below[/red]"


def render_bundle(bundle: ResultBundle, specs: Iterable[IndicatorSpec], status=None) -> Table:
    """Render a bundle as a table with one row per spec.

    Args:
        bundle: The bundle to show.
        specs: Specs in display order.
        status: Optional RefreshStatus shown in the caption.
    """
    latest = bundle.candles.latest
    title = f"{bundle.symbol or 'Chart'} Indicators"
    if latest is not None:
        title += f" • ₹{latest.close:,.2f}"

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Indicator", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Signal")

    close = latest.close if latest else None
    for spec in specs:
        if spec in bundle.errors:
            table.add_row(spec.label, "[red]Error[/red]", f"[dim]{bundle.errors[spec]}[/dim]")
        elif spec in bundle.results:
            output = bundle.results[spec]
            table.add_row(spec.label, format_output(output), _signal(spec, output, close))
        else:
            table.add_row(spec.label, "[dim]…[/dim]", "")

    caption = []
    if latest is not None:
        caption.append(f"{len(bundle.candles)} candles, last {latest.time.astimezone(IST):%d %b %H:%M}")
    if status is not None:
        if status.stale:
            caption.append(f"[yellow]Stale: {status.last_error}[/yellow]")
        elif status.last_error:
            caption.append(f"[yellow]Refresh failed: {status.last_error}[/yellow]")
        elif bundle.computed_at:
            updated = datetime.fromtimestamp(bundle.computed_at / 1000, IST)
            caption.append(f"Updated {updated:%H:%M:%S}")
    if caption:
        table.caption = " • ".join(caption)

    return table


def _error_panel(message: str) -> Panel:
    return Panel(message, title="[bold red]Error[/bold red]", border_style="red")


@click.command()
@click.argument("symbol")
@click.option(
    "-t", "--timeframe",
    default=None,
    type=click.Choice(TIMEFRAME_LABELS, case_sensitive=False),
    help="Chart timeframe (default from config, else 1D)",
)
@click.option(
    "-i", "--indicators",
    default=None,
    help="Comma-separated indicator specs, e.g. 'sma:20,rsi:14,macd,bb:20:2'",
)
def indicators(symbol: str, timeframe: Optional[str], indicators: Optional[str]) -> None:
    """Show the latest indicator values for a symbol.

    SYMBOL is the trading symbol (e.g., RELIANCE, INFY, NIFTY).

    \b
    Examples:
      niftychart indicators RELIANCE
      niftychart indicators INFY -t 5D
      niftychart indicators TCS -i "sma:50,ema:20,rsi"
    """
    config = load_config()
    settings = live_settings(config)
    tf = ChartTimeframe.from_label(timeframe or settings.timeframe)
    specs = _resolve_specs(indicators, settings.indicators)

    symbol = symbol.upper()
    source = _get_source(config)

    console.print(f"[dim]Fetching {tf.label} candles for {symbol}...[/dim]")
    try:
        series = source.get_candles(symbol, tf)
    except FetchFailureError as e:
        console.print(_error_panel(f"[red]Failed to fetch candles:[/red]\n\n{e}"))
        raise SystemExit(1)

    bundle = build_bundle(series, specs)
    console.print(render_bundle(bundle, specs))
    if source.last_source:
        console.print(f"[dim]Source: {source.last_source}[/dim]")


async def _run_live(source, symbol: str, tf: ChartTimeframe, specs, settings, refresh: Optional[float]) -> None:
    from niftychart.live import RecomputeCoordinator

    if refresh:
        interval = refresh
    else:
        def interval() -> float:
            return settings.interval_for(tf, is_market_open())

    coordinator = RecomputeCoordinator(
        source,
        symbol,
        tf,
        specs,
        interval=interval,
        stale_after=settings.stale_after,
    )

    with Live(render_bundle(coordinator.current_bundle(), specs), console=console, refresh_per_second=4) as display:
        coordinator.subscribe(
            lambda update: display.update(render_bundle(update.bundle, specs, update.status))
        )
        async with coordinator:
            # Runs until Ctrl+C cancels the main task
            await asyncio.Event().wait()


@click.command()
@click.argument("symbol")
@click.option(
    "-t", "--timeframe",
    default=None,
    type=click.Choice(TIMEFRAME_LABELS, case_sensitive=False),
    help="Chart timeframe (default from config, else 1D)",
)
@click.option(
    "-i", "--indicators",
    default=None,
    help="Comma-separated indicator specs, e.g. 'sma:20,rsi:14,macd,bb:20:2'",
)
@click.option(
    "-r", "--refresh",
    default=None,
    type=click.FloatRange(min=0.5),
    help="Refresh interval in seconds (default depends on timeframe and market hours)",
)
def live(symbol: str, timeframe: Optional[str], indicators: Optional[str], refresh: Optional[float]) -> None:
    """Watch indicators for a symbol update live.

    Candles are re-fetched on a timer and every indicator is recomputed;
    if a refresh fails the last values stay on screen and are marked stale.

    Press Ctrl+C to stop watching.

    \b
    Examples:
      niftychart live RELIANCE
      niftychart live NIFTY -t 5m -i "ema:9,ema:21,vwap"
      niftychart live INFY --refresh 5
    """
    config = load_config()
    settings = live_settings(config)
    tf = ChartTimeframe.from_label(timeframe or settings.timeframe)
    specs = _resolve_specs(indicators, settings.indicators)
    symbol = symbol.upper()

    status_text, color, _ = market_status()
    console.print(f"[dim]Watching {symbol} ({tf.label}), market[/dim] [{color}]{status_text}[/{color}]\n")

    try:
        asyncio.run(_run_live(_get_source(config), symbol, tf, specs, settings, refresh))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching.[/dim]")


@click.command()
def defaults() -> None:
    """List supported indicators and their default parameters."""
    table = Table(title="Supported Indicators", show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="bold")
    table.add_column("Default", style="green")
    table.add_column("Spec")

    for spec in DEFAULT_SPECS:
        table.add_row(spec.kind, spec.label, format_spec(spec))

    console.print(table)
    console.print(f"[dim]Kinds: {', '.join(SUPPORTED_KINDS)}[/dim]")


@click.command()
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init(force: bool) -> None:
    """Create the configuration file template."""
    if CONFIG_PATH.exists() and not force:
        console.print(f"[yellow]Config already exists at {CONFIG_PATH}[/yellow] (use --force to overwrite)")
        return

    config_path = write_template()
    console.print(Panel(
        f"[green]✓[/green] Configuration written to [cyan]{config_path}[/cyan]\n\n"
        "[dim]Add Angel One credentials to use SmartAPI data;\n"
        "without them Yahoo Finance is used.[/dim]",
        title="[bold green]Config Created[/bold green]",
        border_style="green",
    ))
