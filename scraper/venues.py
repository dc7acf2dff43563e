"""Registry of the theaters whose schedules are scraped."""
from typing import Tuple

from processor.models import ParseOptions, ParseStrategy, SourceDescriptor

VENUES: Tuple[SourceDescriptor, ...] = (
    SourceDescriptor(
        id='hollywood',
        display_name='Hollywood Theatre',
        homepage_url='https://hollywoodtheatre.org',
        source_url='https://hollywoodtheatre.org/showtimes/',
        strategy=ParseStrategy.FREE_TEXT_LISTING,
        options=ParseOptions(
            region='main, #main, .site-content',
            start_marker='showtimes',
            end_marker='mission',
        ),
    ),
    SourceDescriptor(
        id='cinemagic',
        display_name='The Cinemagic Theater',
        homepage_url='https://www.thecinemagictheater.com/',
        source_url='https://www.thecinemagictheater.com/',
        strategy=ParseStrategy.HEADING_BLOCKS,
        options=ParseOptions(fallback_title='Cinemagic Screening'),
    ),
    SourceDescriptor(
        id='clinton',
        display_name='Clinton Street Theater',
        homepage_url='https://cstpdx.com/',
        source_url='https://cstpdx.com/',
        strategy=ParseStrategy.ELEMENT_LIST,
        options=ParseOptions(
            item_selector='.tribe-events-calendar-list__event, .tribe-events-pro-photo__event',
            title_selector='.tribe-events-calendar-list__event-title',
            structured_fallback=True,
        ),
    ),
    SourceDescriptor(
        id='pamcut',
        display_name='PAM CUT @ Portland Art Museum (Whitsell Auditorium)',
        homepage_url='https://portlandartmuseum.org/whitsell/',
        source_url='https://portlandartmuseum.org/pam-cut/',
        strategy=ParseStrategy.STRUCTURED_FIRST,
        options=ParseOptions(
            item_selector='article',
            title_selector='h2, h3',
            tags=('curated',),
        ),
    ),
    SourceDescriptor(
        id='tomorrow',
        display_name='Tomorrow Theater',
        homepage_url='https://tomorrowtheater.org/',
        source_url='https://tomorrowtheater.org/',
        strategy=ParseStrategy.STRUCTURED_FIRST,
    ),
    SourceDescriptor(
        id='cinema21',
        display_name='Cinema 21',
        homepage_url='https://www.pickcinema.com/theater/portland/cinema-21-theatre/',
        source_url='https://www.pickcinema.com/theater/portland/cinema-21-theatre/',
        strategy=ParseStrategy.SAME_DAY,
        options=ParseOptions(
            item_selector='.showtime, .showtimes, .showtime-list',
            container_selector='.movie, .movie-card, .film, .showtimes-wrap',
        ),
    ),
)


def get_venue(venue_id: str) -> SourceDescriptor:
    """Look up a registered venue by id."""
    for venue in VENUES:
        if venue.id == venue_id:
            return venue
    raise KeyError(venue_id)
