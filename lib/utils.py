# Standard library imports
import logging
import re
from datetime import datetime, time, timedelta, date, timezone
from typing import Any, Optional, Union
import pytz

# -----------------------------------------------------------
# Logging Setup
# -----------------------------------------------------------
# We'll expose the logger so other modules can use it
dashboard_logger = logging.getLogger('dashboard')

DEFAULT_TIMEZONE = 'Europe/Amsterdam'
DATE_KEY_FORMAT = '%Y-%m-%d'

# -----------------------------------------------------------
# Type Coercion Helpers
# -----------------------------------------------------------
def coerce_float(value: Any, default: float = 1.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default

def coerce_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default

def coerce_metric(value: Any) -> Optional[Union[int, float]]:
    """
    Convert a spreadsheet/form cell to a number.

    Blank or non-numeric cells return None so callers can keep the
    existing value. Accepts decimal commas ("4,5").
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return int(value) if float(value).is_integer() else float(value)

    cleaned = str(value).strip().replace(',', '.')
    if not cleaned:
        return None
    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    if parsed != parsed:
        return None
    return int(parsed) if parsed.is_integer() else parsed

def normalize_name(name: Any) -> str:
    """Trim, lowercase and collapse inner whitespace for name matching."""
    if name is None:
        return ''
    return re.sub(r'\s+', ' ', str(name)).strip().lower()

# -----------------------------------------------------------
# TIME / DATE HELPERS
# -----------------------------------------------------------
def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def get_local_now(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    tz = pytz.timezone(tz_name)
    aware_now = datetime.now(tz)
    naive_now = aware_now.replace(tzinfo=None)
    return naive_now

def to_local(value: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Convert a stored (UTC or naive-UTC) timestamp to naive local time."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(pytz.timezone(tz_name)).replace(tzinfo=None)

def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse ISO timestamps as written by the backend ("Z" suffix allowed)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None

def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()

def format_date_key(value: Union[date, datetime]) -> str:
    return value.strftime(DATE_KEY_FORMAT)

def parse_date_key(value: str) -> date:
    """Parse a 'YYYY-MM-DD' key. Raises ValueError on malformed input."""
    return datetime.strptime(value.strip()[:10], DATE_KEY_FORMAT).date()

def start_of_week(value: date) -> date:
    """Monday of the week containing ``value``."""
    return value - timedelta(days=value.weekday())

def end_of_week(value: date) -> date:
    """Sunday of the week containing ``value``."""
    return start_of_week(value) + timedelta(days=6)

def is_same_week(first: date, second: date) -> bool:
    return start_of_week(first) == start_of_week(second)

def sunday_based_weekday(value: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7

def add_business_days(start: date, days_to_add: int) -> date:
    """Add N working days (Mon-Fri) to a date, skipping weekends."""
    current = start
    count = 0
    while count < days_to_add:
        current += timedelta(days=1)
        if current.weekday() < 5:
            count += 1
    return current

def get_next_monday(from_date: date) -> date:
    """Monday of the week after ``from_date``."""
    return start_of_week(from_date) + timedelta(days=7)

def parse_clock(value: str, default: time) -> time:
    """Parse 'HH:MM' config values, falling back to ``default``."""
    try:
        hour, minute = map(int, str(value).split(':'))
        return time(hour, minute)
    except (TypeError, ValueError):
        return default
