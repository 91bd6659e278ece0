# storefront/utils/formatters.py
from datetime import datetime
import pytz
from decimal import Decimal
from ..config import Config

def now() -> datetime:
    """Current time, timezone aware in UTC"""
    return datetime.now(pytz.utc)

def format_price(amount: Decimal) -> str:
    """Format a price for log lines"""
    return f"${amount:,.2f}"

def format_datetime(dt: datetime) -> str:
    """Format a timestamp in the configured timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local_time = dt.astimezone(local_tz)
    return local_time.strftime("%Y-%m-%d %H:%M:%S %Z")
