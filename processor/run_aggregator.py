"""Run orchestration across all registered venues."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from processor.errors import FetchError, ParseError
from processor.event_normalizer import EventNormalizer
from processor.models import OutputDocument, RunReport, SourceDescriptor, VenueResult
from scraper.date_heuristics import DEFAULT_POLICY, HeuristicPolicy
from scraper.fetcher import ShowtimeFetcher
from scraper.venue_parsers import parse

logger = logging.getLogger(__name__)


class RunAggregator:
    """Fetches, parses and normalizes every venue into one output document.

    A failure at one venue is recorded as a warning and never aborts the
    run. With ``max_workers`` above 1 venues are processed in a thread pool;
    each venue still runs fetch, parse and normalize in sequence and hands
    back a VenueResult, and results are merged in registry order.
    """

    DEFAULT_NOTES = 'Scraped data. Some venues may require manual cleanup.'

    def __init__(
        self,
        fetcher: ShowtimeFetcher,
        normalizer: Optional[EventNormalizer] = None,
        policy: HeuristicPolicy = DEFAULT_POLICY,
        timezone_name: str = 'America/Los_Angeles',
        notes: str = DEFAULT_NOTES,
        max_workers: int = 1,
        retries: int = 0,
        retry_delay: float = 1.0
    ):
        """
        Initialize the aggregator.

        Args:
            fetcher: Fetcher used for every venue
            normalizer: Event normalizer (default: one using the policy's timezone)
            policy: Date reconstruction constants handed to the parsers
            timezone_name: Timezone label written to the output metadata
            notes: Free-text note written to the output metadata
            max_workers: Number of venues processed concurrently (default: 1)
            retries: Extra fetch attempts per venue (default: 0)
            retry_delay: Base delay in seconds for exponential backoff
        """
        self.fetcher = fetcher
        self.normalizer = normalizer or EventNormalizer(tz=policy.tz)
        self.policy = policy
        self.timezone_name = timezone_name
        self.notes = notes
        self.max_workers = max(1, max_workers)
        self.retries = max(0, retries)
        self.retry_delay = retry_delay

    def run(
        self,
        registry: Iterable[SourceDescriptor],
        reference: Optional[Union[date, datetime]] = None
    ) -> OutputDocument:
        """
        Process every venue in the registry.

        Args:
            registry: Venues to scrape, in output order
            reference: The scrape instant (default: now)

        Returns:
            OutputDocument holding venues, events and run metadata
        """
        if reference is None:
            reference = datetime.now()
        venues = list(registry)

        logger.info(f"Starting run over {len(venues)} venues")
        results = self._process_all(venues, reference)

        generated_at = reference.date() if isinstance(reference, datetime) else reference
        report = RunReport(generated_at=generated_at, timezone=self.timezone_name)
        events = []
        for result in results:
            report.warnings.extend(result.warnings)
            events.extend(result.events)

        for event in events:
            report.per_venue_counts[event.venue_id] = (
                report.per_venue_counts.get(event.venue_id, 0) + 1
            )

        logger.info(
            f"Run collected {len(events)} events with {len(report.warnings)} warnings"
        )
        return OutputDocument(
            report=report,
            notes=self.notes,
            venues=venues,
            events=events,
        )

    def _process_all(
        self,
        venues: List[SourceDescriptor],
        reference: Union[date, datetime]
    ) -> List[VenueResult]:
        if self.max_workers == 1 or len(venues) <= 1:
            return [self.process_venue(venue, reference) for venue in venues]

        workers = min(self.max_workers, len(venues))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in submission order, not completion order
            return list(executor.map(
                lambda venue: self.process_venue(venue, reference),
                venues,
            ))

    def process_venue(
        self,
        source: SourceDescriptor,
        reference: Union[date, datetime]
    ) -> VenueResult:
        """
        Fetch, parse and normalize a single venue.

        Args:
            source: Venue to process
            reference: The scrape instant

        Returns:
            VenueResult with the venue's events, or a single warning on failure
        """
        try:
            document = self._fetch_with_retries(source.source_url)
            raw_events = parse(document, source, reference, self.policy)
        except (FetchError, ParseError) as e:
            warning = f"{source.id}: {e}"
            logger.warning(f"Venue failed, continuing with the rest: {warning}")
            return VenueResult(venue_id=source.id, warnings=[warning])

        events, skipped = self.normalizer.normalize_events(source.id, raw_events)
        logger.info(f"{source.id}: {len(events)} events normalized")
        return VenueResult(venue_id=source.id, events=events, warnings=skipped)

    def _fetch_with_retries(self, url: str) -> str:
        """
        Fetch a page, retrying with exponential backoff when configured.

        Raises:
            FetchError: If every attempt fails
        """
        attempts = self.retries + 1
        for attempt in range(attempts):
            try:
                return self.fetcher.fetch(url)
            except FetchError as e:
                if attempt < attempts - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Fetch failed (attempt {attempt + 1}/{attempts}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    raise
