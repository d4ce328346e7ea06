"""Test configuration for pytest."""
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from forecast_import.src.config import ImporterConfig
from forecast_import.src.database import ConfigEntry, ForecastRecord, ForecastStore, Region


NOW = datetime(2024, 5, 14, 10, 30, tzinfo=ZoneInfo("Europe/Amsterdam"))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires network and an API key)"
    )


@pytest.fixture
def importer_config():
    """Create importer configuration for testing."""
    return ImporterConfig(
        database_url="sqlite://",
        base_url="https://api.example.test/v4/weather",
        timeout=5,
        _env_file=None,
    )


@pytest.fixture
def store():
    """Create a store backed by an in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    forecast_store = ForecastStore(engine=engine)
    forecast_store.init_tables()
    yield forecast_store
    forecast_store.close()


@pytest.fixture
def add_region(store):
    """Insert a region row."""
    def _add(code, name=None, latlng="52.37,4.89", country="NL"):
        with store.SessionLocal() as session:
            session.add(Region(
                country_code=country,
                subdivision_code=code,
                subdivision_name=name or code,
                latlng=latlng,
            ))
            session.commit()
    return _add


@pytest.fixture
def add_forecast(store):
    """Insert a forecast row with a given timestamp."""
    def _add(code, timestamp, payload="{}", country="NL"):
        with store.SessionLocal() as session:
            record = ForecastRecord(
                country_code=country,
                subdivision_code=code,
                timelines=payload,
                timestamp=timestamp,
            )
            session.add(record)
            session.commit()
            return record.id
    return _add


@pytest.fixture
def add_config(store):
    """Insert a named configuration row."""
    def _add(value, name="tomorrow.io"):
        with store.SessionLocal() as session:
            session.add(ConfigEntry(name=name, configuration=value))
            session.commit()
    return _add
