"""NSE market hours helpers."""

from datetime import datetime
from typing import Optional

import pytz

IST = pytz.timezone("Asia/Kolkata")


def market_status(now: Optional[datetime] = None) -> tuple[str, str, bool]:
    """Get current NSE market status.

    Market hours are 9:15 AM to 3:30 PM IST, Monday to Friday, with a
    pre-open session from 9:00 AM.

    Args:
        now: Time to classify (naive values are taken as IST). Defaults to now.

    Returns:
        Tuple of (status_text, color, is_open)
    """
    if now is None:
        now = datetime.now(IST)
    elif now.tzinfo is None:
        now = IST.localize(now)
    else:
        now = now.astimezone(IST)

    pre_open = now.replace(hour=9, minute=0, second=0, microsecond=0)
    market_open = now.replace(hour=9, minute=15, second=0, microsecond=0)
    market_close = now.replace(hour=15, minute=30, second=0, microsecond=0)

    if now.weekday() >= 5:
        return "CLOSED (Weekend)", "red", False
    elif now < pre_open:
        return "CLOSED (Pre-market)", "yellow", False
    elif now < market_open:
        return "PRE-OPEN (9:00-9:15)", "yellow", False
    elif now > market_close:
        return "CLOSED (After hours)", "red", False
    else:
        return "OPEN", "green", True


def is_market_open(now: Optional[datetime] = None) -> bool:
    return market_status(now)[2]
