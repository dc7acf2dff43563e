"""Data models for showtime scraping and normalization."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


class ParseStrategy(Enum):
    """How a venue's schedule page is read."""
    FREE_TEXT_LISTING = 'free_text_listing'
    HEADING_BLOCKS = 'heading_blocks'
    ELEMENT_LIST = 'element_list'
    STRUCTURED_FIRST = 'structured_first'
    SAME_DAY = 'same_day'


class EventOrigin(Enum):
    """Where a canonical event came from."""
    SCRAPE = 'scrape'
    SAMPLE = 'sample'


@dataclass(frozen=True)
class ParseOptions:
    """Venue-specific knobs for a parse strategy."""
    region: str = 'main'
    start_marker: Optional[str] = None
    end_marker: Optional[str] = None
    item_selector: str = ''
    title_selector: str = 'h1, h2, h3'
    container_selector: str = ''
    fallback_title: str = 'Screening'
    tags: Tuple[str, ...] = ()
    structured_fallback: bool = False


@dataclass(frozen=True)
class SourceDescriptor:
    """One venue and where its schedule is published."""
    id: str
    display_name: str
    homepage_url: str
    source_url: str
    strategy: ParseStrategy
    options: ParseOptions = field(default_factory=ParseOptions)
    location: str = 'Portland, OR'


class DateFragment(NamedTuple):
    month: int
    day: int


class TimeFragment(NamedTuple):
    hour: int
    minute: int


@dataclass(frozen=True)
class RawEvent:
    """Event as extracted by a venue parser, before normalization."""
    title: str
    start_text: str
    tags: Tuple[str, ...] = ()
    ticket_url: str = ''


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized, identifier-bearing event."""
    id: str
    title: str
    start: str
    end: Optional[str]
    venue_id: str
    tags: Tuple[str, ...]
    ticket_url: str
    origin: EventOrigin = EventOrigin.SCRAPE
    is_sample: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'start': self.start,
            'end': self.end,
            'venueId': self.venue_id,
            'tags': list(self.tags),
            'ticketUrl': self.ticket_url,
            'origin': self.origin.value,
            'isSample': self.is_sample,
        }


@dataclass
class VenueResult:
    """Outcome of processing a single venue."""
    venue_id: str
    events: List[CanonicalEvent] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Run metadata accumulated by the aggregator."""
    generated_at: date
    timezone: str
    warnings: List[str] = field(default_factory=list)
    per_venue_counts: Dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        """Render per-venue counts as ``id:count`` pairs."""
        return ', '.join(
            f"{venue_id}:{count}"
            for venue_id, count in self.per_venue_counts.items()
        )


@dataclass
class OutputDocument:
    """The feed written at the end of a run."""
    report: RunReport
    notes: str
    venues: List[SourceDescriptor]
    events: List[CanonicalEvent]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'meta': {
                'generatedAt': self.report.generated_at.isoformat(),
                'timezone': self.report.timezone,
                'notes': self.notes,
                'warnings': list(self.report.warnings),
                'summary': self.report.summary(),
            },
            'venues': [
                {
                    'id': venue.id,
                    'name': venue.display_name,
                    'url': venue.homepage_url,
                    'location': venue.location,
                }
                for venue in self.venues
            ],
            'events': [event.to_dict() for event in self.events],
        }
