"""Free-text date and time extraction for schedule pages."""
import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import List, Optional, Union

from processor.models import DateFragment, TimeFragment

# Sources publish near-future schedules; a month/day further back than this
# belongs to next year.
STALE_AFTER_DAYS = 90

# Used when a listing gives a date but no time of day.
DEFAULT_HOUR = 19
DEFAULT_MINUTE = 0
TIME_UNKNOWN_TAG = 'time-unknown'


@dataclass(frozen=True)
class HeuristicPolicy:
    """Overridable constants for date reconstruction."""
    stale_after_days: int = STALE_AFTER_DAYS
    default_hour: int = DEFAULT_HOUR
    default_minute: int = DEFAULT_MINUTE
    tz: Optional[tzinfo] = None  # None means the host's local timezone


DEFAULT_POLICY = HeuristicPolicy()

MONTHS = {
    'jan': 1,
    'feb': 2,
    'mar': 3,
    'apr': 4,
    'may': 5,
    'jun': 6,
    'jul': 7,
    'aug': 8,
    'sep': 9,
    'oct': 10,
    'nov': 11,
    'dec': 12,
}

_MONTH_DAY_RE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
    r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b",
    re.IGNORECASE,
)
_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_TIME_SEPARATORS_RE = re.compile(
    r"[\s,;/|&\-–·•]*(?:(?:and|or)[\s,;/|&\-–·•]*)*",
    re.IGNORECASE,
)


def extract_date(text: str) -> Optional[DateFragment]:
    """
    Find the first month/day mention in text.

    Args:
        text: Free text such as "Fri, Jan 15th" or "September 3"

    Returns:
        DateFragment for the first match, or None if no valid date is present
    """
    match = _MONTH_DAY_RE.search(text)
    if not match:
        return None

    month = MONTHS[match.group(1)[:3].lower()]
    day = int(match.group(2))

    # 2000 is a leap year, so Feb 29 is accepted here
    if not 1 <= day <= calendar.monthrange(2000, month)[1]:
        return None

    return DateFragment(month=month, day=day)


def extract_times(text: str) -> List[TimeFragment]:
    """
    Find every 12-hour clock time in text, in order of appearance.

    Args:
        text: Free text such as "7pm and 9:30pm"

    Returns:
        List of TimeFragment in 24-hour form (possibly empty)
    """
    times = []
    for match in _TIME_RE.finditer(text):
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        meridiem = match.group(3).lower()

        if not 1 <= hour <= 12 or minute > 59:
            continue

        if meridiem == 'pm' and hour < 12:
            hour += 12
        elif meridiem == 'am' and hour == 12:
            hour = 0

        times.append(TimeFragment(hour=hour, minute=minute))

    return times


def is_time_only(text: str) -> bool:
    """Return True if text holds nothing but clock times and separators."""
    if not _TIME_RE.search(text):
        return False
    remainder = _TIME_RE.sub(' ', text)
    return _TIME_SEPARATORS_RE.fullmatch(remainder) is not None


def resolve_year(
    month: int,
    day: int,
    reference: Union[date, datetime],
    stale_after_days: int = STALE_AFTER_DAYS
) -> int:
    """
    Pick the year for a month/day that was published without one.

    Args:
        month: Month number (1-12)
        day: Day of month
        reference: The instant the page was scraped
        stale_after_days: How far in the past a date may be before it is
            taken to mean next year

    Returns:
        The reference year, or the following year for stale dates
    """
    if isinstance(reference, datetime):
        reference = reference.date()

    year = reference.year
    leap_day = month == 2 and day == 29

    if not (leap_day and not calendar.isleap(year)):
        candidate = date(year, month, day)
        if (reference - candidate).days <= stale_after_days:
            return year

    year += 1
    while leap_day and not calendar.isleap(year):
        year += 1
    return year


def build_timestamp(
    year: int,
    month: int,
    day: int,
    hour: int = DEFAULT_HOUR,
    minute: int = DEFAULT_MINUTE,
    tz: Optional[tzinfo] = None
) -> str:
    """
    Render a wall-clock time as an ISO 8601 string with a numeric offset.

    The offset is the one in force at that instant, so daylight saving
    transitions are reflected.

    Args:
        year: Calendar year
        month: Month number
        day: Day of month
        hour: Hour in 24-hour form (default: 19)
        minute: Minute (default: 0)
        tz: Timezone of the venue (default: the host's local timezone)

    Returns:
        Timestamp such as "2024-01-15T19:00:00-08:00"
    """
    wall_clock = datetime(year, month, day, hour, minute)
    if tz is None:
        aware = wall_clock.astimezone()
    else:
        aware = wall_clock.replace(tzinfo=tz)
    return aware.isoformat(timespec='seconds')
