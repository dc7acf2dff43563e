"""Integration tests for the scrape entry point."""
import json
import logging
import os
import sys
from datetime import date
from unittest.mock import patch

import pytest
import responses

from processor.errors import SerializationError
from processor.models import OutputDocument, RunReport
from run_scrape import (
    JsonFormatter,
    ScrapeConfig,
    load_config,
    main,
    run_sync,
    select_venues,
    setup_logging,
)

TOMORROW_URL = "https://tomorrowtheater.org/"


@pytest.fixture
def restore_root_logger():
    """Put back the root logger handlers replaced by setup_logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def mock_env(tmp_path):
    """Set up environment variables for testing."""
    env_vars = {
        'OUTPUT_PATH': str(tmp_path / 'events.json'),
        'LOG_LEVEL': 'INFO',
        'TIMEOUT_SECONDS': '5',
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def sample_document():
    """Create a small output document."""
    report = RunReport(generated_at=date(2024, 1, 20), timezone='America/Los_Angeles')
    report.warnings.append("clinton: Fetch failed (503) for https://cstpdx.com/")
    report.per_venue_counts['tomorrow'] = 0
    return OutputDocument(report=report, notes="", venues=[], events=[])


class TestLoadConfig:
    """Test cases for environment configuration."""

    def test_defaults(self):
        config = load_config({})

        assert config == ScrapeConfig()
        assert config.output_path == 'data/events.json'
        assert config.timeout_seconds == 15
        assert config.fetch_retries == 0
        assert config.max_workers == 1
        assert config.feed_timezone == 'America/Los_Angeles'
        assert config.stale_after_days == 90
        assert (config.default_hour, config.default_minute) == (19, 0)
        assert config.venue_ids == ()

    def test_overrides(self):
        config = load_config({
            'OUTPUT_PATH': '/tmp/feed.json',
            'TIMEOUT_SECONDS': '30',
            'FETCH_RETRIES': '2',
            'MAX_WORKERS': '4',
            'FEED_TIMEZONE': 'UTC',
            'STALE_AFTER_DAYS': '60',
            'DEFAULT_SHOWTIME': '20:15',
            'VENUE_IDS': 'hollywood, cinema21,,',
        })

        assert config.output_path == '/tmp/feed.json'
        assert config.timeout_seconds == 30
        assert config.fetch_retries == 2
        assert config.max_workers == 4
        assert config.feed_timezone == 'UTC'
        assert config.stale_after_days == 60
        assert (config.default_hour, config.default_minute) == (20, 15)
        assert config.venue_ids == ('hollywood', 'cinema21')

    @pytest.mark.parametrize("showtime", ["7pm", "25:00", "19:75", "19"])
    def test_invalid_showtime_falls_back(self, showtime):
        config = load_config({'DEFAULT_SHOWTIME': showtime})

        assert (config.default_hour, config.default_minute) == (19, 0)

    def test_invalid_integer_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger='run_scrape'):
            config = load_config({'TIMEOUT_SECONDS': 'soon'})

        assert config.timeout_seconds == 15
        assert any('TIMEOUT_SECONDS' in record.message for record in caplog.records)


class TestSelectVenues:
    """Test cases for venue selection."""

    def test_all_venues_in_registry_order(self):
        assert [venue.id for venue in select_venues(())] == [
            'hollywood', 'cinemagic', 'clinton', 'pamcut', 'tomorrow', 'cinema21'
        ]

    def test_subset_keeps_requested_order(self):
        assert [venue.id for venue in select_venues(('cinema21', 'hollywood'))] == [
            'cinema21', 'hollywood'
        ]

    def test_unknown_ids_are_skipped(self):
        assert [venue.id for venue in select_venues(('nowhere', 'pamcut'))] == ['pamcut']


class TestRunSync:
    """Test cases for a full run against mocked HTTP."""

    @responses.activate
    def test_run_writes_feed(self, tmp_path):
        """Test end-to-end scrape of one venue into the output file."""
        page = (
            '<html><head><script type="application/ld+json">'
            + json.dumps({
                "@context": "https://schema.org",
                "@type": "Event",
                "name": "Paris, Texas",
                "startDate": "2030-03-01T19:30:00-08:00",
                "url": "/events/paris-texas/",
            })
            + '</script></head><body></body></html>'
        )
        responses.add(responses.GET, TOMORROW_URL, body=page, status=200)
        output_path = tmp_path / 'feed' / 'events.json'

        result = run_sync(ScrapeConfig(output_path=str(output_path), venue_ids=('tomorrow',)))

        assert result['output_path'] == str(output_path)
        assert result['events'] == 1
        assert result['warnings'] == []
        assert result['summary'] == 'tomorrow:1'
        assert 'duration_seconds' in result

        written = json.loads(output_path.read_text(encoding='utf-8'))
        assert [venue['id'] for venue in written['venues']] == ['tomorrow']
        assert written['events'][0]['title'] == 'Paris, Texas'
        assert written['events'][0]['start'] == '2030-03-01T19:30:00-08:00'
        assert written['events'][0]['ticketUrl'] == 'https://tomorrowtheater.org/events/paris-texas/'
        assert written['events'][0]['isSample'] is False

    @responses.activate
    def test_failed_venue_still_writes_feed(self, tmp_path):
        responses.add(responses.GET, TOMORROW_URL, body="Unavailable", status=503)
        output_path = tmp_path / 'events.json'

        result = run_sync(ScrapeConfig(output_path=str(output_path), venue_ids=('tomorrow',)))

        assert result['events'] == 0
        assert result['warnings'] == [f"tomorrow: Fetch failed (503) for {TOMORROW_URL}"]
        written = json.loads(output_path.read_text(encoding='utf-8'))
        assert written['events'] == []
        assert written['meta']['warnings'] == result['warnings']


class TestMain:
    """Test cases for the command-line entry point."""

    @patch('run_scrape.setup_logging')
    @patch('run_scrape.FeedWriter')
    @patch('run_scrape.RunAggregator')
    def test_successful_run(
        self,
        mock_aggregator_class,
        mock_writer_class,
        mock_setup_logging,
        mock_env,
        sample_document,
        caplog
    ):
        """Test that a written feed exits 0 and logs each warning."""
        mock_aggregator_class.return_value.run.return_value = sample_document
        mock_writer_class.return_value.write.return_value = mock_env['OUTPUT_PATH']

        with caplog.at_level(logging.INFO, logger='run_scrape'):
            exit_code = main()

        assert exit_code == 0
        mock_setup_logging.assert_called_once_with('INFO')
        mock_writer_class.assert_called_once_with(mock_env['OUTPUT_PATH'])
        mock_writer_class.return_value.write.assert_called_once_with(sample_document)

        log_messages = [record.message for record in caplog.records]
        assert any('Scrape run started' in msg for msg in log_messages)
        assert any('Scrape run completed' in msg for msg in log_messages)
        assert any('clinton: Fetch failed (503)' in msg for msg in log_messages)

    @patch('run_scrape.setup_logging')
    @patch('run_scrape.FeedWriter')
    @patch('run_scrape.RunAggregator')
    def test_write_failure_exits_nonzero(
        self,
        mock_aggregator_class,
        mock_writer_class,
        mock_setup_logging,
        mock_env,
        sample_document
    ):
        """Test that an unwritable feed exits 1."""
        mock_aggregator_class.return_value.run.return_value = sample_document
        mock_writer_class.return_value.write.side_effect = SerializationError(
            mock_env['OUTPUT_PATH'], PermissionError("read-only file system")
        )

        assert main() == 1

    @patch('run_scrape.setup_logging')
    @patch('run_scrape.RunAggregator')
    def test_unexpected_error_exits_nonzero(
        self,
        mock_aggregator_class,
        mock_setup_logging,
        mock_env
    ):
        mock_aggregator_class.return_value.run.side_effect = RuntimeError("boom")

        assert main() == 1


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self, restore_root_logger):
        """Test logging setup with default INFO level."""
        setup_logging()

        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)

    def test_setup_logging_debug_level(self, restore_root_logger):
        setup_logging('debug')

        assert restore_root_logger.level == logging.DEBUG

    def test_setup_logging_unknown_level(self, restore_root_logger):
        setup_logging('CHATTY')

        assert restore_root_logger.level == logging.INFO


class TestJsonFormatter:
    """Test cases for the JSON log formatter."""

    def test_format_includes_extra_fields(self):
        record = logging.makeLogRecord({
            'name': 'run_scrape',
            'levelname': 'INFO',
            'msg': 'Scrape run completed',
            'events': 12,
        })

        output = json.loads(JsonFormatter().format(record))

        assert output['level'] == 'INFO'
        assert output['message'] == 'Scrape run completed'
        assert output['logger'] == 'run_scrape'
        assert output['context'] == {'events': 12}
        assert 'timestamp' in output

    def test_format_without_extras_or_exception(self):
        record = logging.makeLogRecord({'msg': 'plain'})

        output = json.loads(JsonFormatter().format(record))

        assert 'context' not in output
        assert 'exception' not in output

    def test_format_exception(self):
        try:
            raise ValueError("bad markup")
        except ValueError:
            record = logging.getLogger('run_scrape').makeRecord(
                'run_scrape', logging.ERROR, __file__, 1, 'failed', None, exc_info=sys.exc_info()
            )

        output = json.loads(JsonFormatter().format(record))

        assert 'ValueError: bad markup' in output['exception']
