"""
formatting.py — number/currency formatting and calendar helpers.

Covers:
  - Half-up rounding matching the dashboard's display rules
  - Locale-aware number and currency rendering (Arabic-Indic digits for ar-*)
  - "YYYY-MM-DD" / "YYYY-MM" string keys: today, month key, month range,
    days in month, day arithmetic
"""

import calendar
import math
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple, Union

from plantpulse.config import DEFAULT_CURRENCY, DEFAULT_LOCALE

DateLike = Union[date, datetime]

_ARABIC_DIGITS = str.maketrans({
    "0": "٠", "1": "١", "2": "٢", "3": "٣", "4": "٤",
    "5": "٥", "6": "٦", "7": "٧", "8": "٨", "9": "٩",
    ",": "٬", ".": "٫",
})


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------

def round_to(value: float, places: int) -> float:
    """Round half away from zero to ``places`` decimals (toFixed semantics)."""
    if not math.isfinite(value):
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +infinity."""
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Numbers & currency
# ---------------------------------------------------------------------------

def _localize(text: str, locale: str) -> str:
    if locale.lower().startswith("ar"):
        return text.translate(_ARABIC_DIGITS)
    return text


def format_number(num: float, locale: str = DEFAULT_LOCALE) -> str:
    """Grouped rendering with up to three decimals, trailing zeros dropped."""
    text = f"{round_to(num, 3):,.3f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return _localize(text, locale)


def format_currency(
    amount: float,
    currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> str:
    return f"{_localize(f'{round_to(amount, 2):,.2f}', locale)} {currency}"


def format_cost(amount: float) -> str:
    """Always two decimals, en-US grouping."""
    return f"{round_to(amount, 2):,.2f}"


# ---------------------------------------------------------------------------
# Calendar keys
# ---------------------------------------------------------------------------

def _day(now: Optional[DateLike]) -> date:
    if now is None:
        return date.today()
    return now.date() if isinstance(now, datetime) else now


def today_string(now: Optional[DateLike] = None) -> str:
    return _day(now).isoformat()


def current_month(now: Optional[DateLike] = None) -> str:
    return today_string(now)[:7]


def month_date_range(now: Optional[DateLike] = None) -> Tuple[str, str]:
    """(first day of the current month, today)."""
    today = today_string(now)
    return f"{today[:7]}-01", today


def month_key(date_str: Optional[str], now: Optional[DateLike] = None) -> str:
    """"YYYY-MM" prefix of a report date; the current month when the date is empty."""
    return date_str[:7] if date_str else current_month(now)


def days_in_month(month: str) -> int:
    """Calendar days of a "YYYY-MM" key, 0 when the key is malformed."""
    try:
        year, mon = (int(part) for part in month.split("-")[:2])
        return calendar.monthrange(year, mon)[1]
    except (AttributeError, TypeError, ValueError, calendar.IllegalMonthError):
        return 0


def parse_day(date_str: Optional[str]) -> Optional[date]:
    if not date_str:
        return None
    try:
        return date.fromisoformat(date_str[:10])
    except ValueError:
        return None


def add_days(date_str: str, days: int) -> str:
    """Shift a "YYYY-MM-DD" key; malformed input is returned unchanged."""
    parsed = parse_day(date_str)
    if parsed is None:
        return date_str
    return (parsed + timedelta(days=days)).isoformat()
