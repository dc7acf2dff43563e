"""Extract schema.org Event records from embedded JSON-LD blocks."""
import html
import json
import logging
import re
from typing import Any, Iterator, List, NamedTuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_DATE_ONLY_RE = re.compile(r"\d{4}-\d{2}-\d{2}$")


class StructuredEvent(NamedTuple):
    title: str
    start: str
    url: str


def extract_structured_events(soup: BeautifulSoup) -> List[StructuredEvent]:
    """
    Collect Event records from every JSON-LD block on a page.

    Malformed blocks contribute nothing.

    Args:
        soup: Parsed page

    Returns:
        List of StructuredEvent in document order
    """
    events = []
    for script in soup.find_all('script', type='application/ld+json'):
        events.extend(try_parse_block(script.string))
    return events


def try_parse_block(raw: Any) -> List[StructuredEvent]:
    """Parse one JSON-LD block, returning [] if it is unusable."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Skipping malformed JSON-LD block")
        return []

    events = []
    for item in _candidate_records(data):
        event = _to_structured_event(item)
        if event:
            events.append(event)
    return events


def _candidate_records(data: Any) -> Iterator[dict]:
    """Yield the records of a block, unwrapping lists and @graph containers."""
    blocks = data if isinstance(data, list) else [data]
    for block in blocks:
        if not isinstance(block, dict):
            continue
        if _is_event(block):
            yield block
            continue
        graph = block.get('@graph')
        if isinstance(graph, list):
            for item in graph:
                if isinstance(item, dict):
                    yield item


def _is_event(item: dict) -> bool:
    declared = item.get('@type')
    if isinstance(declared, list):
        return 'Event' in declared
    return declared == 'Event'


def _to_structured_event(item: dict):
    if not _is_event(item):
        return None

    name = item.get('name')
    start = item.get('startDate')
    if not isinstance(name, str) or not isinstance(start, str):
        return None
    if not name.strip() or not start.strip():
        return None

    start = start.strip()
    start_time = item.get('startTime') or item.get('doorTime')
    if _DATE_ONLY_RE.match(start) and isinstance(start_time, str) and start_time.strip():
        start = f"{start}T{start_time.strip()}"

    return StructuredEvent(
        title=html.unescape(name.strip()),
        start=start,
        url=_event_url(item),
    )


def _event_url(item: dict) -> str:
    url = item.get('url')
    if isinstance(url, str) and url:
        return url

    offers = item.get('offers')
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if isinstance(offers, dict) and isinstance(offers.get('url'), str):
        return offers['url']
    return ''
