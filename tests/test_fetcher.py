"""Unit tests for ShowtimeFetcher."""
from unittest.mock import Mock, patch

import pytest
import responses
from requests.exceptions import ConnectionError, Timeout

from processor.errors import FetchError
from scraper.fetcher import ShowtimeFetcher

URL = "https://hollywoodtheatre.org/showtimes/"


class TestShowtimeFetcher:
    """Test cases for ShowtimeFetcher class."""

    @responses.activate
    def test_fetch_success(self):
        """Test successful page retrieval."""
        responses.add(responses.GET, URL, body="<html><main>Showtimes</main></html>", status=200)

        fetcher = ShowtimeFetcher(timeout=10)
        html = fetcher.fetch(URL)

        assert html == "<html><main>Showtimes</main></html>"
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_sends_stable_identity(self):
        """Test that every request carries the same client headers."""
        responses.add(responses.GET, URL, body="ok", status=200)

        ShowtimeFetcher().fetch(URL)

        headers = responses.calls[0].request.headers
        assert headers['User-Agent'] == ShowtimeFetcher.USER_AGENT
        assert headers['Accept'] == 'text/html,application/xhtml+xml'
        assert headers['Accept-Language'] == 'en-US,en;q=0.9'

    @responses.activate
    def test_fetch_error_status(self):
        """Test that a non-success status raises FetchError without retrying."""
        responses.add(responses.GET, URL, body="Server Error", status=503)

        with pytest.raises(FetchError) as exc_info:
            ShowtimeFetcher().fetch(URL)

        assert exc_info.value.url == URL
        assert exc_info.value.status_or_cause == 503
        assert str(exc_info.value) == f"Fetch failed (503) for {URL}"
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_timeout(self):
        """Test that a timeout surfaces as FetchError."""
        responses.add(responses.GET, URL, body=Timeout("Request timed out"))

        with pytest.raises(FetchError) as exc_info:
            ShowtimeFetcher().fetch(URL)

        assert isinstance(exc_info.value.status_or_cause, Timeout)
        assert isinstance(exc_info.value.__cause__, Timeout)
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_connection_error(self):
        """Test that a transport failure surfaces as FetchError."""
        responses.add(responses.GET, URL, body=ConnectionError("Connection refused"))

        with pytest.raises(FetchError, match="Connection refused"):
            ShowtimeFetcher().fetch(URL)

    def test_fetch_uses_timeout(self):
        """Test that the configured timeout is passed to requests."""
        response = Mock(ok=True, status_code=200, text="ok")

        with patch('scraper.fetcher.requests.get', return_value=response) as mock_get:
            ShowtimeFetcher(timeout=7).fetch(URL)

        mock_get.assert_called_once_with(URL, headers=ShowtimeFetcher.HEADERS, timeout=7)
