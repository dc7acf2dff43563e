"""Per-venue parsing strategies for theater schedule pages.

Every venue is described by a SourceDescriptor whose ``strategy`` selects
one of the functions below and whose ``options`` carry the venue's selectors
and markers. ``parse`` is the single entry point; strategies are pure
functions of the fetched document and never touch the network.
"""
import logging
import re
from datetime import date, datetime
from functools import reduce
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment, Tag

from processor.errors import ParseError
from processor.models import (
    DateFragment,
    ParseStrategy,
    RawEvent,
    SourceDescriptor,
    TimeFragment,
)
from scraper.date_heuristics import (
    DEFAULT_POLICY,
    TIME_UNKNOWN_TAG,
    HeuristicPolicy,
    build_timestamp,
    extract_date,
    extract_times,
    is_time_only,
    resolve_year,
)
from scraper.structured_data import extract_structured_events

logger = logging.getLogger(__name__)

SAME_DAY_TAG = 'today'
MAX_HEADING_TITLE_LENGTH = 80

BLOCK_TAGS = [
    'address', 'article', 'aside', 'blockquote', 'dd', 'div', 'dl', 'dt',
    'figcaption', 'figure', 'footer', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'header', 'li', 'main', 'nav', 'ol', 'p', 'section', 'table', 'td',
    'th', 'tr', 'ul',
]

_WEEKDAY_RE = re.compile(
    r"^(sunday|monday|tuesday|wednesday|thursday|friday|saturday)",
    re.IGNORECASE,
)
_CALL_TO_ACTION_RE = re.compile(
    r"^(buy tickets|more info|tickets|now playing)$",
    re.IGNORECASE,
)

Reference = Union[date, datetime]


class ListingEntry(NamedTuple):
    """A title paired with one date and the times listed for it."""
    title: str
    date: DateFragment
    times: Tuple[TimeFragment, ...]


class _ListingState(NamedTuple):
    title: Optional[str]
    entries: Tuple[ListingEntry, ...]
    accepting_times: bool


def normalize_text(value: str) -> str:
    """Collapse runs of whitespace and trim."""
    return re.sub(r"\s+", " ", value).strip()


def is_title_candidate(line: str) -> bool:
    """Return True if a listing line could be a film title."""
    if len(line) <= 2:
        return False
    if _WEEKDAY_RE.match(line) or _CALL_TO_ACTION_RE.match(line):
        return False
    return not is_time_only(line)


def _fold_line(state: _ListingState, line: str) -> _ListingState:
    date_fragment = extract_date(line)
    if date_fragment:
        if state.title is None:
            return state._replace(accepting_times=False)
        entry = ListingEntry(state.title, date_fragment, tuple(extract_times(line)))
        return state._replace(
            entries=state.entries + (entry,),
            accepting_times=True,
        )

    if is_time_only(line):
        if not state.accepting_times:
            return state
        last = state.entries[-1]
        extended = last._replace(times=last.times + tuple(extract_times(line)))
        return state._replace(entries=state.entries[:-1] + (extended,))

    if is_title_candidate(line):
        return _ListingState(title=line, entries=state.entries, accepting_times=False)

    return state


def fold_listing_lines(lines: List[str]) -> List[ListingEntry]:
    """
    Pair each date line with the most recent title line above it.

    A line holding only clock times extends the entry created by the
    date line just before it, so "Jan 15" followed by "7:00pm" yields one
    timed entry. Date lines seen before any title are dropped.

    Args:
        lines: Normalized, non-empty text lines in document order

    Returns:
        List of ListingEntry in document order
    """
    initial = _ListingState(title=None, entries=(), accepting_times=False)
    return list(reduce(_fold_line, lines, initial).entries)


def region_lines(region: Tag) -> List[str]:
    """
    Split a page region into the text lines a reader would see.

    Text inside one block element stays on one line, so inline markup such
    as ``<em>`` never breaks a title apart. ``<br>`` and newlines in the
    source text still end a line.

    Args:
        region: Element holding the listing

    Returns:
        Normalized, non-empty lines in document order
    """
    for br in region.find_all('br'):
        br.replace_with('\n')

    blocks = []
    current_block = None
    for text in region.find_all(string=True):
        if isinstance(text, Comment) or text.parent.name in ('script', 'style'):
            continue
        block = text.find_parent(BLOCK_TAGS)
        if block is not current_block or not blocks:
            blocks.append([])
            current_block = block
        blocks[-1].append(str(text))

    lines = []
    for pieces in blocks:
        for line in ''.join(pieces).split('\n'):
            line = normalize_text(line)
            if line:
                lines.append(line)
    return lines


def _bounded_lines(
    lines: List[str],
    start_marker: Optional[str],
    end_marker: Optional[str]
) -> List[str]:
    lowered = [line.lower() for line in lines]

    start = 0
    if start_marker and start_marker.lower() in lowered:
        start = lowered.index(start_marker.lower()) + 1

    end = len(lines)
    if end_marker and end_marker.lower() in lowered[start:]:
        end = lowered.index(end_marker.lower(), start)

    return lines[start:end]


def _reference_date(reference: Reference) -> date:
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def _entry_events(
    entry: ListingEntry,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    month, day = entry.date
    year = resolve_year(month, day, reference, policy.stale_after_days)
    tags = source.options.tags

    if not entry.times:
        start = build_timestamp(
            year, month, day,
            policy.default_hour, policy.default_minute,
            tz=policy.tz,
        )
        return [RawEvent(entry.title, start, tags + (TIME_UNKNOWN_TAG,), source.source_url)]

    return [
        RawEvent(
            entry.title,
            build_timestamp(year, month, day, time.hour, time.minute, tz=policy.tz),
            tags,
            source.source_url,
        )
        for time in entry.times
    ]


def parse_free_text_listing(
    soup: BeautifulSoup,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    """Read a listing where titles, dates and times are loose text lines."""
    options = source.options
    region = soup.select_one(options.region)
    if region is None:
        logger.warning(f"{source.id}: region '{options.region}' not found")
        return []

    lines = _bounded_lines(
        region_lines(region),
        options.start_marker,
        options.end_marker,
    )

    events = []
    for entry in fold_listing_lines(lines):
        events.extend(_entry_events(entry, source, reference, policy))
    return events


def parse_heading_blocks(
    soup: BeautifulSoup,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    """Read a page where headings name films and paragraphs carry showtimes."""
    options = source.options
    region = soup.select_one(options.region)
    if region is None:
        logger.warning(f"{source.id}: region '{options.region}' not found")
        return []

    events = []
    current_title = ''
    for element in region.find_all(['h1', 'h2', 'h3', 'h4', 'p', 'li']):
        text = normalize_text(element.get_text(' '))
        if not text:
            continue

        if element.name in ('h1', 'h2', 'h3') and len(text) < MAX_HEADING_TITLE_LENGTH:
            current_title = text
            continue

        date_fragment = extract_date(text)
        times = extract_times(text)
        if not date_fragment or not times:
            continue

        entry = ListingEntry(
            current_title or options.fallback_title,
            date_fragment,
            tuple(times),
        )
        events.extend(_entry_events(entry, source, reference, policy))

    return events


def _scan_items(soup: BeautifulSoup, source: SourceDescriptor) -> List[RawEvent]:
    """Read title/timestamp pairs from repeated card elements."""
    options = source.options
    events = []
    for item in soup.select(options.item_selector):
        title_element = item.select_one(options.title_selector)
        time_element = item.select_one('time[datetime]')
        if title_element is None or time_element is None:
            continue

        title = normalize_text(title_element.get_text(' '))
        start = time_element.get('datetime', '').strip()
        if not title or not start:
            continue

        link = item.select_one('a[href]')
        ticket_url = urljoin(source.source_url, link['href']) if link else source.source_url

        events.append(RawEvent(title, start, options.tags, ticket_url))
    return events


def _structured_events(soup: BeautifulSoup, source: SourceDescriptor) -> List[RawEvent]:
    return [
        RawEvent(
            event.title,
            event.start,
            source.options.tags,
            urljoin(source.source_url, event.url) if event.url else source.source_url,
        )
        for event in extract_structured_events(soup)
    ]


def parse_element_list(
    soup: BeautifulSoup,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    """Read event cards that already carry machine-readable timestamps."""
    events = _scan_items(soup, source)
    if not events and source.options.structured_fallback:
        logger.info(f"{source.id}: no event cards found, trying JSON-LD")
        events = _structured_events(soup, source)
    return events


def parse_structured_first(
    soup: BeautifulSoup,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    """Prefer JSON-LD; scan article elements only when it yields nothing."""
    events = _structured_events(soup, source)
    if not events and source.options.item_selector:
        logger.info(f"{source.id}: no JSON-LD events, scanning markup")
        events = _scan_items(soup, source)
    return events


def parse_same_day(
    soup: BeautifulSoup,
    source: SourceDescriptor,
    reference: Reference,
    policy: HeuristicPolicy
) -> List[RawEvent]:
    """Read bare showtimes that implicitly belong to the current day."""
    options = source.options
    today = _reference_date(reference)
    tags = options.tags + (SAME_DAY_TAG,)

    events = []
    for element in soup.select(options.item_selector):
        container = element.css.closest(options.container_selector)
        if container is None:
            continue

        title_element = container.select_one(options.title_selector)
        title = normalize_text(title_element.get_text(' ')) if title_element else ''
        times = extract_times(normalize_text(element.get_text(' ')))
        if not title or not times:
            continue

        for time in times:
            start = build_timestamp(
                today.year, today.month, today.day,
                time.hour, time.minute,
                tz=policy.tz,
            )
            events.append(RawEvent(title, start, tags, source.source_url))

    return events


StrategyFunction = Callable[
    [BeautifulSoup, SourceDescriptor, Reference, HeuristicPolicy],
    List[RawEvent],
]

STRATEGIES: Dict[ParseStrategy, StrategyFunction] = {
    ParseStrategy.FREE_TEXT_LISTING: parse_free_text_listing,
    ParseStrategy.HEADING_BLOCKS: parse_heading_blocks,
    ParseStrategy.ELEMENT_LIST: parse_element_list,
    ParseStrategy.STRUCTURED_FIRST: parse_structured_first,
    ParseStrategy.SAME_DAY: parse_same_day,
}


def parse(
    document: str,
    source: SourceDescriptor,
    reference: Optional[Reference] = None,
    policy: HeuristicPolicy = DEFAULT_POLICY
) -> List[RawEvent]:
    """
    Extract raw events from a venue's schedule page.

    Args:
        document: HTML of the venue's schedule page
        source: The venue being parsed
        reference: The scrape instant used to resolve dates (default: now)
        policy: Date reconstruction constants

    Returns:
        List of RawEvent (empty when nothing matched)

    Raises:
        ParseError: If the venue's strategy fails on unexpected markup
    """
    strategy = STRATEGIES.get(source.strategy)
    if strategy is None:
        raise ParseError(source.id, f"no parser for strategy {source.strategy!r}")

    if reference is None:
        reference = datetime.now()

    try:
        soup = BeautifulSoup(document, 'html.parser')
        events = strategy(soup, source, reference, policy)
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(source.id, e) from e

    logger.info(f"{source.id}: parsed {len(events)} raw events")
    return events
