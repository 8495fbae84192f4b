"""SQLite candle cache for NiftyChart."""

import sqlite3
from pathlib import Path
from typing import Optional

from niftychart.errors import FetchFailureError
from niftychart.models import Candle, CandleSeries, ChartTimeframe
from niftychart.sources.base import CandleSource

DEFAULT_DB_PATH = Path.home() / ".config" / "niftychart" / "candles.db"


class CandleStore:
    """SQLite-based store of the most recent candles per symbol/timeframe."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the candle store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS candles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    timeframe TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    open REAL NOT NULL,
                    high REAL NOT NULL,
                    low REAL NOT NULL,
                    close REAL NOT NULL,
                    volume INTEGER NOT NULL,
                    UNIQUE(symbol, timeframe, timestamp)
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def save_series(self, series: CandleSeries, timeframe: ChartTimeframe) -> None:
        """Replace the cached snapshot for the series' symbol and timeframe.

        The previous snapshot is dropped first, so a revised last candle
        never lingers next to its replacement.

        Args:
            series: Snapshot to store.
            timeframe: Timeframe the snapshot was fetched for.
        """
        symbol = series.symbol.upper()
        conn = self._get_connection()
        try:
            conn.execute(
                "DELETE FROM candles WHERE symbol = ? AND timeframe = ?",
                (symbol, timeframe.label),
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO candles
                (symbol, timeframe, timestamp, open, high, low, close, volume)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        symbol,
                        timeframe.label,
                        candle.timestamp,
                        candle.open,
                        candle.high,
                        candle.low,
                        candle.close,
                        candle.volume,
                    )
                    for candle in series.candles
                ],
            )
            conn.commit()
        finally:
            conn.close()

    def load_series(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        """Load the cached snapshot for a symbol and timeframe.

        Returns:
            The cached CandleSeries; empty if nothing is cached.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """
                SELECT timestamp, open, high, low, close, volume
                FROM candles
                WHERE symbol = ? AND timeframe = ?
                ORDER BY timestamp ASC
                """,
                (symbol.upper(), timeframe.label),
            )
            candles = tuple(
                Candle(
                    timestamp=row["timestamp"],
                    open=row["open"],
                    high=row["high"],
                    low=row["low"],
                    close=row["close"],
                    volume=row["volume"],
                )
                for row in cursor.fetchall()
            )
        finally:
            conn.close()

        return CandleSeries(candles=candles, symbol=symbol.upper(), interval=timeframe.interval)


class CachedCandleSource(CandleSource):
    """Serves the last snapshot saved in a CandleStore."""

    name = "cache"

    def __init__(self, store: CandleStore):
        self._store = store

    def get_candles(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        series = self._store.load_series(symbol, timeframe)
        if not series:
            raise FetchFailureError(
                f"No cached candles for {symbol.upper()} ({timeframe.label})", source=self.name
            )
        return series
