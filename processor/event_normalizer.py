"""Event normalizer producing canonical, identifier-bearing events."""
import logging
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Tuple

from processor.models import CanonicalEvent, EventOrigin, RawEvent

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NUMERIC_OFFSET_RE = re.compile(r"[+-]\d{2}:?\d{2}$")
_DATE_ONLY_RE = re.compile(r"\d{4}-\d{2}-\d{2}$")


def slugify(value: str, max_length: int = 80) -> str:
    """
    Reduce a title to lowercase alphanumerics joined by single hyphens.

    Args:
        value: Text to slugify
        max_length: Maximum slug length (default: 80)

    Returns:
        Slug with no leading or trailing hyphen
    """
    slug = re.sub(r"[^a-z0-9]+", '-', value.lower()).strip('-')
    return slug[:max_length].rstrip('-')


def epoch_millis(timestamp: str) -> int:
    """Milliseconds since the Unix epoch for an offset-qualified timestamp."""
    instant = datetime.fromisoformat(timestamp)
    return (instant - EPOCH) // timedelta(milliseconds=1)


def resolve_start(value: str, tz: Optional[tzinfo] = None) -> str:
    """
    Resolve a raw start value to an ISO 8601 timestamp with a numeric offset.

    Args:
        value: Timestamp or date as published by the source. The date and
            time may be separated by "T" or a space.
        tz: Timezone applied to timestamps without an offset
            (default: the host's local timezone)

    Returns:
        The value unchanged when it is a "T"-separated timestamp that already
        carries a numeric offset, otherwise an equivalent offset-qualified
        timestamp

    Raises:
        ValueError: If the value is neither a timestamp nor a date
    """
    value = value.strip()

    if _DATE_ONLY_RE.match(value):
        # Date-only values are taken as midnight UTC
        day = date.fromisoformat(value)
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc).isoformat()

    if 'T' in value and _NUMERIC_OFFSET_RE.search(value):
        datetime.fromisoformat(value)
        return value

    if value.endswith('Z'):
        value = value[:-1] + '+00:00'

    instant = datetime.fromisoformat(value)
    if instant.tzinfo is None:
        instant = instant.astimezone() if tz is None else instant.replace(tzinfo=tz)
    return instant.isoformat()


class EventNormalizer:
    """Converts raw venue events into canonical events."""

    DEFAULT_TITLE = 'Screening'
    MAX_SLUG_LENGTH = 80

    def __init__(self, tz: Optional[tzinfo] = None):
        """
        Initialize the normalizer.

        Args:
            tz: Venue timezone for start values published without an offset
                (default: the host's local timezone)
        """
        self.tz = tz

    def normalize(
        self,
        venue_id: str,
        raw_event: RawEvent,
        origin: EventOrigin = EventOrigin.SCRAPE
    ) -> CanonicalEvent:
        """
        Normalize a single raw event.

        Args:
            venue_id: Id of the venue the event belongs to
            raw_event: Event as produced by the venue parser
            origin: Whether the event was scraped or is sample data

        Returns:
            CanonicalEvent with a deterministic id

        Raises:
            ValueError: If the start value cannot be resolved
        """
        title = raw_event.title.strip() or self.DEFAULT_TITLE
        start = resolve_start(raw_event.start_text, self.tz)

        return CanonicalEvent(
            id=self.generate_event_id(venue_id, title, start),
            title=title,
            start=start,
            end=None,
            venue_id=venue_id,
            tags=tuple(dict.fromkeys(raw_event.tags or ())),
            ticket_url=raw_event.ticket_url or '',
            origin=origin,
            is_sample=origin is EventOrigin.SAMPLE,
        )

    def normalize_events(
        self,
        venue_id: str,
        raw_events: Iterable[RawEvent]
    ) -> Tuple[List[CanonicalEvent], List[str]]:
        """
        Normalize a venue's raw events, skipping any that cannot be resolved.

        Args:
            venue_id: Id of the venue the events belong to
            raw_events: Events as produced by the venue parser

        Returns:
            Tuple of (canonical events, warning messages for skipped events)
        """
        events = []
        skipped = []

        for raw_event in raw_events:
            try:
                events.append(self.normalize(venue_id, raw_event))
            except ValueError as e:
                message = f"{venue_id}: skipped '{raw_event.title}': {e}"
                logger.warning(message)
                skipped.append(message)

        return events, skipped

    def generate_event_id(self, venue_id: str, title: str, start: str) -> str:
        """
        Generate the identifier for an event.

        Re-scraping unchanged source data yields the same id.

        Args:
            venue_id: Id of the venue
            title: Event title
            start: Offset-qualified ISO 8601 start timestamp

        Returns:
            Id of the form "<venue>-<title-slug>-<epoch-millis>"
        """
        slug = slugify(title, self.MAX_SLUG_LENGTH)
        return f"{venue_id}-{slug}-{epoch_millis(start)}"
