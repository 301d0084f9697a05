import math
from datetime import date, datetime, timedelta


def parse_date(value):
    """Parse a date in ISO or common formats. Returns a date or None if invalid."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    # Try parsing as ISO format (covers timestamps with fractions/offsets)
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def today() -> date:
    """Current local calendar day; read once per top-level action"""
    return date.today()


def yesterday_of(day: date) -> date:
    return day - timedelta(days=1)


def one_year_before(day: date) -> date:
    """Same month and day a year earlier (Feb 29 maps to Feb 28)"""
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return day.replace(year=day.year - 1, day=28)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, as percentages are shown"""
    return int(math.floor(value + 0.5))
