"""HTTP fetcher for theater schedule pages."""
import logging

import requests

from processor.errors import FetchError

logger = logging.getLogger(__name__)


class ShowtimeFetcher:
    """Retrieves schedule HTML with a stable client identity."""

    USER_AGENT = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
    )
    HEADERS = {
        'User-Agent': USER_AGENT,
        'Accept': 'text/html,application/xhtml+xml',
        'Accept-Language': 'en-US,en;q=0.9',
    }

    def __init__(self, timeout: int = 15):
        """
        Initialize the fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 15)
        """
        self.timeout = timeout

    def fetch(self, url: str) -> str:
        """
        Fetch a page with a single request.

        Args:
            url: Schedule page URL

        Returns:
            HTML content as string

        Raises:
            FetchError: On a non-success status or any transport failure
        """
        logger.info(f"Fetching {url}")
        try:
            response = requests.get(url, headers=self.HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise FetchError(url, e) from e

        if not response.ok:
            logger.warning(f"Request to {url} returned HTTP {response.status_code}")
            raise FetchError(url, response.status_code)

        logger.info(f"Fetched {url} ({len(response.text)} chars)")
        return response.text
