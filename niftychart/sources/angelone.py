"""Angel One candle source using SmartAPI."""

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import pyotp
from SmartApi import SmartConnect

from niftychart.errors import FetchFailureError
from niftychart.models import Candle, CandleSeries, ChartTimeframe
from niftychart.sources.base import CandleSource

logger = logging.getLogger(__name__)

# Yahoo-style interval codes to SmartAPI intervals; weekly and monthly
# candles are not offered by getCandleData.
INTERVAL_MAP = {
    "1m": "ONE_MINUTE",
    "5m": "FIVE_MINUTE",
    "15m": "FIFTEEN_MINUTE",
    "1d": "ONE_DAY",
}

# History range codes to calendar days
RANGE_DAYS = {
    "1d": 1,
    "5d": 7,
    "1mo": 31,
    "3mo": 92,
    "6mo": 183,
    "1y": 365,
    "5y": 5 * 365,
    "max": 10 * 365,
}

# Tokens for frequently charted instruments, to skip a searchScrip round trip
COMMON_TOKENS = {
    "RELIANCE": ("2885", "RELIANCE-EQ"),
    "TCS": ("11536", "TCS-EQ"),
    "INFY": ("1594", "INFY-EQ"),
    "HDFCBANK": ("1333", "HDFCBANK-EQ"),
    "ICICIBANK": ("4963", "ICICIBANK-EQ"),
    "SBIN": ("3045", "SBIN-EQ"),
    "ITC": ("1660", "ITC-EQ"),
    "TATAMOTORS": ("3456", "TATAMOTORS-EQ"),
    "NIFTY": ("99926000", "NIFTY"),
    "BANKNIFTY": ("99926009", "BANKNIFTY"),
}

MARKET_OPEN = "09:15"


class AngelOneCandleSource(CandleSource):
    """Candle source backed by Angel One's SmartAPI historical endpoint.

    Handles TOTP login, session token persistence and symbol token lookup.
    Every failure surfaces as FetchFailureError so a fallback chain can
    move on to the next provider.
    """

    name = "angelone"

    def __init__(
        self,
        api_key: str,
        client_id: str,
        pin: str,
        totp_secret: str,
        token_path: Optional[Path] = None,
        exchange: str = "NSE",
    ):
        """Initialize the Angel One source.

        Args:
            api_key: Angel One API key.
            client_id: Angel One client ID.
            pin: Angel One PIN.
            totp_secret: TOTP secret for 2FA.
            token_path: Path to store session tokens.
            exchange: Exchange to query (NSE or BSE).
        """
        self.api_key = api_key
        self.client_id = client_id
        self.pin = pin
        self.totp_secret = totp_secret
        self.exchange = exchange
        self.token_path = token_path or Path.home() / ".config" / "niftychart" / "session.json"

        self._smart_api: Optional[SmartConnect] = None
        self._auth_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._tokens: dict[str, tuple[str, str]] = dict(COMMON_TOKENS)

    def _generate_totp(self) -> str:
        """Generate TOTP code for authentication."""
        clean_secret = self.totp_secret.replace("-", "").replace(" ", "").replace("_", "").upper()

        # Base32 only allows A-Z and 2-7
        invalid_chars = set(clean_secret) - set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
        if invalid_chars:
            raise FetchFailureError(
                f"TOTP secret contains invalid characters: {sorted(invalid_chars)}",
                source=self.name,
            )

        return pyotp.TOTP(clean_secret).now()

    def _save_session(self) -> None:
        """Save session tokens to file."""
        if not self._auth_token:
            return

        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        session_data = {
            "auth_token": self._auth_token,
            "refresh_token": self._refresh_token,
            "timestamp": datetime.now().isoformat(),
        }
        self.token_path.write_text(json.dumps(session_data))

    def _load_session(self) -> bool:
        """Load session tokens from file.

        Returns:
            True if a session token was loaded.
        """
        if not self.token_path.exists():
            return False

        try:
            session_data = json.loads(self.token_path.read_text())
        except json.JSONDecodeError:
            return False

        self._auth_token = session_data.get("auth_token")
        self._refresh_token = session_data.get("refresh_token")
        return bool(self._auth_token)

    def login(self) -> None:
        """Authenticate with Angel One using TOTP.

        Raises:
            FetchFailureError: If authentication fails.
        """
        self._smart_api = SmartConnect(api_key=self.api_key)
        totp_code = self._generate_totp()

        try:
            data = self._smart_api.generateSession(
                clientCode=self.client_id,
                password=self.pin,
                totp=totp_code,
            )
        except Exception as e:
            raise FetchFailureError(f"Angel One login failed: {e}", source=self.name) from e

        if not data or not data.get("status"):
            message = data.get("message", "Unknown error") if data else "No response from API"
            raise FetchFailureError(f"Angel One login failed: {message}", source=self.name)

        try:
            self._auth_token = data["data"]["jwtToken"]
            self._refresh_token = data["data"]["refreshToken"]
        except (KeyError, TypeError) as e:
            raise FetchFailureError(
                f"Angel One login failed: unexpected response ({type(e).__name__}: {e})", source=self.name
            ) from e
        self._save_session()
        logger.info("Logged in to Angel One as %s", self.client_id)

    def is_authenticated(self) -> bool:
        return self._auth_token is not None and self._smart_api is not None

    def _ensure_authenticated(self) -> None:
        """Ensure we have a session, restoring a saved one or logging in."""
        if self.is_authenticated():
            return

        if self._load_session():
            self._smart_api = SmartConnect(api_key=self.api_key)
            token = self._auth_token
            if token.startswith("Bearer "):
                token = token[len("Bearer "):]
            self._smart_api.setAccessToken(token)
            if self._refresh_token:
                self._smart_api.setRefreshToken(self._refresh_token)
            return

        self.login()

    def _get_symbol_info(self, symbol: str) -> tuple[str, str]:
        """Get the symbol token and trading symbol for a user symbol.

        Returns:
            Tuple of (symbol_token, trading_symbol).

        Raises:
            FetchFailureError: If the symbol cannot be resolved.
        """
        symbol_upper = symbol.upper()
        if symbol_upper in self._tokens:
            return self._tokens[symbol_upper]

        try:
            search_result = self._smart_api.searchScrip(self.exchange, symbol_upper)
        except Exception as e:
            raise FetchFailureError(f"Symbol lookup failed for {symbol_upper}: {e}", source=self.name) from e

        items = (search_result or {}).get("data") or []
        preferred = (symbol_upper, f"{symbol_upper}-EQ")
        for wanted in preferred:
            for item in items:
                if item.get("tradingsymbol", "").upper() == wanted:
                    info = (item["symboltoken"], item["tradingsymbol"])
                    self._tokens[symbol_upper] = info
                    return info

        raise FetchFailureError(f"Unknown symbol on {self.exchange}: {symbol_upper}", source=self.name)

    def get_candles(self, symbol: str, timeframe: ChartTimeframe) -> CandleSeries:
        """Get historical candles for the timeframe's range and interval.

        Raises:
            FetchFailureError: On unsupported intervals, auth or API errors.
        """
        interval = INTERVAL_MAP.get(timeframe.interval)
        if interval is None:
            raise FetchFailureError(
                f"Angel One has no {timeframe.interval} candles", source=self.name
            )

        self._ensure_authenticated()
        symbol_token, _ = self._get_symbol_info(symbol)

        to_date = datetime.now()
        from_date = date.today() - timedelta(days=RANGE_DAYS[timeframe.range] - 1)
        historic_params = {
            "exchange": self.exchange,
            "symboltoken": symbol_token,
            "interval": interval,
            "fromdate": f"{from_date.isoformat()} {MARKET_OPEN}",
            "todate": to_date.strftime("%Y-%m-%d %H:%M"),
        }

        try:
            data = self._smart_api.getCandleData(historic_params)
        except Exception as e:
            raise FetchFailureError(
                f"Failed to get historical data for {symbol}: {e}", source=self.name
            ) from e

        if not data or not data.get("status", True):
            message = data.get("message", "No response from API") if data else "No response from API"
            raise FetchFailureError(
                f"Failed to get historical data for {symbol}: {message}", source=self.name
            )

        try:
            candles = tuple(
                Candle(
                    timestamp=int(datetime.fromisoformat(row[0]).timestamp() * 1000),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=int(row[5]),
                )
                for row in data.get("data") or []
            )
            return CandleSeries(candles=candles, symbol=symbol.upper(), interval=timeframe.interval)
        except (ValueError, IndexError, TypeError) as e:
            raise FetchFailureError(
                f"Malformed candle data for {symbol}: {e}", source=self.name
            ) from e