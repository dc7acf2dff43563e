"""Error types raised by the scraping pipeline."""
from typing import Union


class ShowtimeScraperError(Exception):
    """Base class for pipeline errors."""


class FetchError(ShowtimeScraperError):
    """A source page could not be retrieved."""

    def __init__(self, url: str, status_or_cause: Union[int, str, Exception]):
        self.url = url
        self.status_or_cause = status_or_cause
        super().__init__(f"Fetch failed ({status_or_cause}) for {url}")


class ParseError(ShowtimeScraperError):
    """A venue parser hit markup it could not handle."""

    def __init__(self, venue_id: str, cause: Union[str, Exception]):
        self.venue_id = venue_id
        self.cause = cause
        super().__init__(f"Parse failed: {cause}")


class SerializationError(ShowtimeScraperError):
    """The output document could not be written."""

    def __init__(self, path: str, cause: Union[str, Exception]):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")
