"""Entry point for the Portland showtimes scrape."""
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from processor.errors import SerializationError
from processor.models import SourceDescriptor
from processor.run_aggregator import RunAggregator
from scraper.date_heuristics import DEFAULT_HOUR, DEFAULT_MINUTE, STALE_AFTER_DAYS, HeuristicPolicy
from scraper.fetcher import ShowtimeFetcher
from scraper.venues import VENUES, get_venue
from storage.feed_writer import FeedWriter

logger = logging.getLogger(__name__)

# Attributes present on every LogRecord; anything else came from ``extra``
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        context = {
            key: value for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        }
        if context:
            log_data['context'] = context

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class ScrapeConfig:
    """Run settings, read from the environment."""
    output_path: str = 'data/events.json'
    log_level: str = 'INFO'
    timeout_seconds: int = 15
    fetch_retries: int = 0
    max_workers: int = 1
    feed_timezone: str = 'America/Los_Angeles'
    stale_after_days: int = STALE_AFTER_DAYS
    default_hour: int = DEFAULT_HOUR
    default_minute: int = DEFAULT_MINUTE
    venue_ids: Tuple[str, ...] = field(default_factory=tuple)


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_showtime(environ: Mapping[str, str], name: str) -> Tuple[int, int]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return DEFAULT_HOUR, DEFAULT_MINUTE
    try:
        hour_text, minute_text = raw.strip().split(':')
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        hour, minute = -1, -1
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.warning(f"Ignoring invalid {name}={raw!r}, using 19:00")
        return DEFAULT_HOUR, DEFAULT_MINUTE
    return hour, minute


def load_config(environ: Optional[Mapping[str, str]] = None) -> ScrapeConfig:
    """
    Build the run configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        ScrapeConfig with defaults for anything unset or invalid
    """
    if environ is None:
        environ = os.environ

    default_hour, default_minute = _env_showtime(environ, 'DEFAULT_SHOWTIME')
    venue_ids = tuple(
        venue_id.strip()
        for venue_id in environ.get('VENUE_IDS', '').split(',')
        if venue_id.strip()
    )

    return ScrapeConfig(
        output_path=environ.get('OUTPUT_PATH', 'data/events.json'),
        log_level=environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=_env_int(environ, 'TIMEOUT_SECONDS', 15),
        fetch_retries=_env_int(environ, 'FETCH_RETRIES', 0),
        max_workers=_env_int(environ, 'MAX_WORKERS', 1),
        feed_timezone=environ.get('FEED_TIMEZONE', 'America/Los_Angeles'),
        stale_after_days=_env_int(environ, 'STALE_AFTER_DAYS', STALE_AFTER_DAYS),
        default_hour=default_hour,
        default_minute=default_minute,
        venue_ids=venue_ids,
    )


def select_venues(venue_ids: Tuple[str, ...]) -> List[SourceDescriptor]:
    """Return the registered venues, limited to venue_ids when given."""
    if not venue_ids:
        return list(VENUES)

    selected = []
    for venue_id in venue_ids:
        try:
            selected.append(get_venue(venue_id))
        except KeyError:
            logger.warning(f"Unknown venue id {venue_id!r} in VENUE_IDS, skipping")
    return selected


def run_sync(config: ScrapeConfig) -> Dict[str, Any]:
    """
    Scrape every configured venue and write the feed.

    Args:
        config: Run configuration

    Returns:
        Summary dict with output path, counts, warnings and duration

    Raises:
        SerializationError: If the feed cannot be written
    """
    start_time = time.time()
    logger.info(
        "Scrape run started",
        extra={
            'output_path': config.output_path,
            'max_workers': config.max_workers,
            'timeout_seconds': config.timeout_seconds
        }
    )

    fetcher = ShowtimeFetcher(timeout=config.timeout_seconds)
    aggregator = RunAggregator(
        fetcher,
        policy=HeuristicPolicy(
            stale_after_days=config.stale_after_days,
            default_hour=config.default_hour,
            default_minute=config.default_minute,
        ),
        timezone_name=config.feed_timezone,
        max_workers=config.max_workers,
        retries=config.fetch_retries,
    )
    writer = FeedWriter(config.output_path)

    document = aggregator.run(select_venues(config.venue_ids))
    output_path = writer.write(document)

    return {
        'output_path': str(output_path),
        'events': len(document.events),
        'warnings': list(document.report.warnings),
        'summary': document.report.summary(),
        'duration_seconds': round(time.time() - start_time, 2)
    }


def main() -> int:
    """
    Run the scrape as a command-line job.

    Returns:
        Process exit code: 0 once the feed is written, 1 if it is not
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    config = load_config()

    try:
        result = run_sync(config)
    except SerializationError as e:
        logger.error(
            f"Could not write the feed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1
    except Exception as e:
        logger.error(
            f"Scrape run failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1

    logger.info(
        "Scrape run completed",
        extra={
            'events': result['events'],
            'summary': result['summary'],
            'duration_seconds': result['duration_seconds']
        }
    )
    for warning in result['warnings']:
        logger.warning(f"Venue warning: {warning}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
