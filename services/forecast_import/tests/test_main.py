"""Tests for the command line entry point."""
import logging
from unittest.mock import patch

import pytest

from forecast_import.src.database import ForecastStore
from forecast_import.src.main import build_parser, main, run_timer


@pytest.fixture
def sqlite_url(tmp_path, monkeypatch):
    """Point the importer at a fresh SQLite file."""
    url = f"sqlite:///{tmp_path / 'forecasts.db'}"
    monkeypatch.setenv("IMPORTER_DATABASE_URL", url)
    return url


class TestRunTimer:
    """Test elapsed time logging."""

    def test_logs_on_success(self, caplog):
        with caplog.at_level(logging.INFO):
            with run_timer("unit"):
                pass

        assert caplog.text.count("Finished unit in") == 1

    def test_logs_on_error(self, caplog):
        with caplog.at_level(logging.INFO):
            with pytest.raises(RuntimeError):
                with run_timer("unit"):
                    raise RuntimeError("boom")

        assert caplog.text.count("Finished unit in") == 1


def test_parser_overrides():
    args = build_parser().parse_args(["--max-calls-per-day", "10", "--delay", "2.5", "--init-db"])

    assert args.max_calls_per_day == 10
    assert args.max_calls_per_hour is None
    assert args.request_delay == 2.5
    assert args.init_db is True


def test_main_with_empty_database(sqlite_url, caplog):
    """Test a run against a fresh database creates tables and imports nothing."""
    with caplog.at_level(logging.INFO):
        exit_code = main(["--init-db"])

    assert exit_code == 0
    assert "Configuration for tomorrow.io not found" in caplog.text
    assert "- 0 rows processed" in caplog.text
    assert "Finished forecast import in" in caplog.text

    store = ForecastStore(sqlite_url)
    try:
        assert store.get_configuration("tomorrow.io") is None
    finally:
        store.close()


def test_main_passes_overrides(sqlite_url):
    with patch('forecast_import.src.main.ForecastImporter') as mock_importer_cls:
        mock_importer_cls.return_value.__enter__.return_value.run_import.return_value = {}
        exit_code = main(["--max-calls-per-hour", "5", "--delay", "2"])

    assert exit_code == 0
    config = mock_importer_cls.call_args[0][0]
    assert config.max_calls_per_hour == 5
    assert config.request_delay == 2.0
    assert config.database_url == sqlite_url


def test_main_invalid_settings_exits_nonzero(monkeypatch, caplog):
    monkeypatch.setenv("IMPORTER_TIMEZONE", "Nowhere/Special")

    with caplog.at_level(logging.INFO):
        exit_code = main([])

    assert exit_code == 1
    assert "Caught ConfigurationError" in caplog.text
    assert "Finished forecast import in" in caplog.text


def test_main_missing_tables_exits_nonzero(sqlite_url, caplog):
    """Test database errors reach the top-level handler."""
    with caplog.at_level(logging.INFO):
        exit_code = main([])

    assert exit_code == 1
    assert "Caught OperationalError" in caplog.text


def test_main_closes_store_when_construction_fails(sqlite_url):
    with patch.object(ForecastStore, 'close', autospec=True) as mock_close:
        exit_code = main([])

    assert exit_code == 1
    mock_close.assert_called_once()
