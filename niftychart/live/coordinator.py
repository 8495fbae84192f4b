"""Live recompute coordinator.

Keeps the indicators of one chart current: on every trigger (timer tick,
manual refresh, symbol switch) it fetches a fresh candle snapshot, computes
the active indicators against it in a worker thread, and publishes the
resulting ResultBundle to subscribers.

Cycles never overlap. A trigger that arrives while a cycle is in flight is
folded into a single follow-up cycle, and a snapshot superseded before its
computation finishes is dropped instead of published. Each trigger takes a
ticket from a monotonic counter; a bundle is only published if its ticket is
newer than the one on display, so a slow fetch can never overwrite fresher
data. Recomputing with a new indicator set reuses the ticket of the newest
snapshot, so it never outranks a fetch already in flight.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Callable, Iterable, NamedTuple, Optional, Union

from pydantic import BaseModel, Field

from niftychart.errors import FetchFailureError
from niftychart.indicators.registry import build_bundle
from niftychart.models import CandleSeries, ChartTimeframe, IndicatorSpec, ResultBundle
from niftychart.sources.base import CandleSource

logger = logging.getLogger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    COMPUTING = "computing"


class RefreshStatus(BaseModel):
    """Side-channel status published with every bundle update."""

    state: CoordinatorState = Field(default=CoordinatorState.IDLE, description="Coordinator state")
    last_error: Optional[str] = Field(default=None, description="Error from the latest failed fetch")
    consecutive_failures: int = Field(default=0, ge=0, description="Failed fetches in a row")
    stale: bool = Field(default=False, description="Data may be outdated")
    last_success: Optional[int] = Field(
        default=None, description="When the displayed bundle was computed (ms since epoch)"
    )

    model_config = {"frozen": True}


class BundleUpdate(NamedTuple):
    """What subscribers receive: the bundle on display and the status."""

    bundle: ResultBundle
    status: RefreshStatus


Subscriber = Callable[[BundleUpdate], None]


class BundleCell:
    """Holds the published bundle; one writer, any number of readers.

    Readers may live on other threads (a renderer), so the swap is
    guarded by a lock rather than relying on the event loop.
    """

    def __init__(self, bundle: Optional[ResultBundle] = None):
        self._lock = threading.Lock()
        self._bundle = bundle or ResultBundle.empty()

    def get(self) -> ResultBundle:
        with self._lock:
            return self._bundle

    def publish_if_newer(self, bundle: ResultBundle, replace_equal: bool = False) -> bool:
        """Swap in the bundle unless one from a newer ticket is already shown.

        Args:
            bundle: The candidate bundle.
            replace_equal: Also replace a bundle with the same ticket (a
                recompute of the shown snapshot with other indicators).
        """
        with self._lock:
            current = self._bundle.ticket
            if bundle.ticket < current or (bundle.ticket == current and not replace_equal):
                return False
            self._bundle = bundle
            return True

    def reset(self, floor_ticket: int) -> None:
        """Clear the cell; only tickets above floor_ticket may publish next."""
        with self._lock:
            self._bundle = ResultBundle(ticket=floor_ticket)


class RecomputeCoordinator:
    """Fetch-then-compute loop for one chart view.

    Example:
        coordinator = RecomputeCoordinator(source, "RELIANCE", ChartTimeframe.ONE_DAY)
        coordinator.set_active_indicators([SMASpec(period=20), RSISpec()])
        coordinator.subscribe(render)
        async with coordinator:
            ...  # refreshes every `interval` seconds until the block exits
    """

    def __init__(
        self,
        source: CandleSource,
        symbol: str,
        timeframe: ChartTimeframe,
        specs: Iterable[IndicatorSpec] = (),
        interval: Union[float, Callable[[], float]] = 1.0,
        stale_after: int = 2,
        compute: Callable[..., ResultBundle] = build_bundle,
    ):
        """Initialize the coordinator.

        Args:
            source: Where snapshots come from.
            symbol: Trading symbol on display.
            timeframe: Chart timeframe on display.
            specs: Initially active indicator specs.
            interval: Seconds between timer ticks, or a callable returning it
                (re-evaluated every tick).
            stale_after: Consecutive fetch failures before status.stale is set.
            compute: Builds a bundle from (candles, specs, ticket).
        """
        if stale_after < 1:
            raise ValueError(f"stale_after must be at least 1, got {stale_after}")

        self._source = source
        self._symbol = symbol.upper()
        self._timeframe = timeframe
        self._active: frozenset = frozenset(specs)
        self._interval = interval
        self._stale_after = stale_after
        self._compute = compute

        self._cell = BundleCell()
        self._status = RefreshStatus()
        self._subscribers: list[Subscriber] = []

        self._ticket = 0
        self._pending: Optional[tuple[int, CandleSeries]] = None
        self._latest: Optional[tuple[int, CandleSeries]] = None
        self._rerun = False
        self._fetching = False
        self._computing = False

        self._worker: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def timeframe(self) -> ChartTimeframe:
        return self._timeframe

    @property
    def active_indicators(self) -> frozenset:
        return self._active

    @property
    def state(self) -> CoordinatorState:
        if self._computing:
            return CoordinatorState.COMPUTING
        if self._fetching:
            return CoordinatorState.FETCHING
        return CoordinatorState.IDLE

    @property
    def status(self) -> RefreshStatus:
        return self._status.model_copy(update={"state": self.state})

    @property
    def running(self) -> bool:
        """True while the periodic timer is active."""
        return self._timer is not None and not self._timer.done()

    def current_bundle(self) -> ResultBundle:
        """Return the most recently published bundle without blocking."""
        return self._cell.get()

    def set_active_indicators(self, specs: Iterable[IndicatorSpec]) -> None:
        """Replace the active indicator set.

        Takes effect from the next computation; a computation already in
        progress finishes with the set it started with.
        """
        self._active = frozenset(specs)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for bundle updates.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def _next_ticket(self) -> int:
        self._ticket += 1
        return self._ticket

    def on_snapshot(self, series: CandleSeries) -> asyncio.Task:
        """Submit a snapshot for a full recompute of the active indicators.

        Must be called from the event loop. Snapshots submitted while an
        earlier one is waiting or being computed replace it; only the latest
        is published.

        Returns:
            The compute worker task; await it to wait until the snapshot
            (or a newer one) has been handled.
        """
        return self._submit(self._next_ticket(), series)

    def _submit(self, ticket: int, series: CandleSeries) -> asyncio.Task:
        if self._pending is None or ticket > self._pending[0]:
            self._pending = (ticket, series)
        if self._latest is None or ticket >= self._latest[0]:
            self._latest = (ticket, series)

        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._compute_loop())
        return self._worker

    async def _compute_loop(self) -> None:
        while self._pending is not None:
            ticket, series = self._pending
            self._pending = None
            specs = self._active

            self._computing = True
            try:
                bundle = await asyncio.to_thread(self._compute, series, specs, ticket)
            except Exception as e:
                logger.exception("Unexpected error computing bundle %d for %s", ticket, series.symbol)
                self._record_failure(f"{type(e).__name__}: {e}")
                continue
            finally:
                self._computing = False

            if self._pending is not None:
                logger.debug("Dropping bundle %d, superseded by snapshot %d", ticket, self._pending[0])
                continue

            self._publish(bundle)

    def _publish(self, bundle: ResultBundle) -> None:
        if not self._cell.publish_if_newer(bundle, replace_equal=True):
            logger.debug(
                "Dropping bundle %d, bundle %d is already published",
                bundle.ticket,
                self._cell.get().ticket,
            )
            return

        self._status = RefreshStatus(last_success=bundle.computed_at)
        logger.debug(
            "Published bundle %d for %s: %d candles, %d indicators",
            bundle.ticket,
            bundle.symbol,
            len(bundle.candles),
            len(bundle.results),
        )
        self._notify()

    def _notify(self) -> None:
        update = BundleUpdate(self.current_bundle(), self.status)
        for callback in list(self._subscribers):
            try:
                callback(update)
            except Exception:
                logger.exception("Bundle subscriber %r failed", callback)

    async def recompute(self) -> None:
        """Recompute the active indicators on the newest snapshot (no fetch).

        The snapshot keeps its ticket, so a fetch already in flight still
        publishes over it and is computed with the active set.
        """
        latest = self._latest
        if latest is None:
            bundle = self.current_bundle()
            latest = (bundle.ticket, bundle.candles)
        await self._submit(*latest)

    async def update_indicators(self, specs: Iterable[IndicatorSpec]) -> None:
        """Replace the active set and recompute against the current snapshot."""
        self.set_active_indicators(specs)
        await self.recompute()

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def trigger(self) -> asyncio.Task:
        """Start a fetch-then-compute cycle, or fold into the one in flight.

        At most one cycle runs at a time. Any number of triggers arriving
        during a cycle result in exactly one follow-up cycle.

        Returns:
            The cycle task.
        """
        if self._fetch_task is not None and not self._fetch_task.done():
            self._rerun = True
            return self._fetch_task

        self._fetch_task = asyncio.get_running_loop().create_task(self._fetch_cycle())
        return self._fetch_task

    async def refresh(self) -> None:
        """Run (or join) a fetch-then-compute cycle and wait for it."""
        await asyncio.shield(self.trigger())

    async def _fetch_cycle(self) -> None:
        while True:
            self._rerun = False
            ticket = self._next_ticket()
            symbol, timeframe = self._symbol, self._timeframe

            self._fetching = True
            try:
                series = await asyncio.to_thread(self._source.get_candles, symbol, timeframe)
            except FetchFailureError as e:
                self._record_failure(str(e))
            except Exception as e:
                logger.exception("Unexpected error fetching %s from %s", symbol, self._source.name)
                self._record_failure(f"{type(e).__name__}: {e}")
            else:
                self._fetching = False
                await self._submit(ticket, series)
            finally:
                self._fetching = False

            if not self._rerun:
                return

    def _record_failure(self, message: str) -> None:
        self._fetching = False
        failures = self._status.consecutive_failures + 1
        stale = failures >= self._stale_after

        logger.warning("Refresh %d failed for %s: %s", failures, self._symbol, message)
        if stale and not self._status.stale:
            logger.warning("Data for %s may be outdated", self._symbol)

        self._status = RefreshStatus(
            last_error=message,
            consecutive_failures=failures,
            stale=stale,
            last_success=self._status.last_success,
        )
        # Keep showing the last good bundle, now with the error attached
        self._notify()

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def _next_interval(self) -> float:
        if callable(self._interval):
            return self._interval()
        return self._interval

    async def _run_timer(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._next_interval())

    def start(self) -> None:
        """Start the periodic refresh timer (first refresh runs immediately)."""
        if self.running:
            return
        logger.info("Auto-refresh started for %s (%s)", self._symbol, self._timeframe.label)
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    async def stop(self) -> None:
        """Stop the timer and cancel any in-flight fetch or computation.

        Nothing from a cancelled cycle is published.
        """
        tasks = [t for t in (self._timer, self._fetch_task, self._worker) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._timer is not None:
            logger.info("Auto-refresh stopped for %s", self._symbol)
        self._timer = self._fetch_task = self._worker = None
        self._pending = self._latest = None
        self._rerun = False
        self._fetching = False
        self._computing = False

    async def switch_symbol(self, symbol: str, timeframe: Optional[ChartTimeframe] = None) -> asyncio.Task:
        """Switch the chart to another symbol and/or timeframe.

        In-flight work for the previous view is cancelled, the published
        bundle is cleared, and a refresh for the new view is triggered (the
        timer keeps running if it was).

        Returns:
            The refresh cycle task for the new view.
        """
        was_running = self.running
        await self.stop()

        self._symbol = symbol.upper()
        if timeframe is not None:
            self._timeframe = timeframe
        self._cell.reset(self._ticket)
        self._status = RefreshStatus()

        if was_running:
            self.start()
            return self._timer
        return self.trigger()

    async def __aenter__(self) -> "RecomputeCoordinator":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
