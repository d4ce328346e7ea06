"""Tomorrow.io client for fetching raw weather forecasts."""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import ImporterConfig
from .database import ForecastStore
from .exceptions import ConfigurationError, FetchError

logger = logging.getLogger(__name__)


@dataclass
class TomorrowConfig:
    """API settings stored in the ``config`` table."""
    settings: Dict[str, Any]

    @property
    def apikey(self) -> str:
        return str(self.settings.get("apikey") or "")

    @classmethod
    def load(cls, store: ForecastStore, name: str = "tomorrow.io", strict: bool = False) -> "TomorrowConfig":
        """Read and decode the named JSON configuration row.

        A missing or malformed row is logged and yields an empty
        configuration, so later API calls fail per region. With ``strict``
        the problem is raised instead.

        Args:
            store: Storage holding the ``config`` table
            name: Configuration row name
            strict: Raise ConfigurationError instead of degrading

        Returns:
            Decoded configuration
        """
        raw = store.get_configuration(name)
        if not raw:
            return cls._degrade(f"Configuration for {name} not found", strict)

        try:
            settings = json.loads(raw)
        except json.JSONDecodeError as e:
            return cls._degrade(f"Failed to decode JSON configuration for {name} - {e}", strict)

        if not isinstance(settings, dict):
            return cls._degrade(f"Configuration for {name} is not a JSON object", strict)

        config = cls(settings)
        if not config.apikey:
            if strict:
                raise ConfigurationError(f"Configuration for {name} has no apikey")
            logger.error(f"Configuration for {name} has no apikey")
        return config

    @classmethod
    def _degrade(cls, message: str, strict: bool) -> "TomorrowConfig":
        if strict:
            raise ConfigurationError(message)
        logger.error(message)
        return cls({})


class TomorrowClient:
    """Client for the Tomorrow.io forecast endpoint."""

    USER_AGENT = "weatherinsight-forecast-import/1.0"

    def __init__(self, config: ImporterConfig, apikey: str, session: Optional[requests.Session] = None):
        """Initialize Tomorrow.io client.

        Args:
            config: Importer configuration
            apikey: Tomorrow.io API key
            session: Optional pre-built HTTP session
        """
        self.config = config
        self.apikey = apikey
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests session. Calls are never retried."""
        session = requests.Session()
        session.headers["User-Agent"] = self.USER_AGENT
        session.headers["Accept"] = "application/json"
        return session

    @property
    def forecast_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/forecast"

    def fetch_forecast(self, latlng: str) -> str:
        """Download the forecast for a coordinate pair.

        Args:
            latlng: Location as ``"<lat>,<lng>"``

        Returns:
            Raw response body

        Raises:
            FetchError: On transport errors, timeouts or non-2xx responses
        """
        params = {"location": latlng, "apikey": self.apikey}
        try:
            response = self.session.get(self.forecast_url, params=params, timeout=self.config.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            # the exception text may contain the full URL including the key
            message = str(e).replace(self.apikey, "***") if self.apikey else str(e)
            raise FetchError(latlng, message) from e

        return response.text

    def close(self):
        """Close the HTTP session."""
        self.session.close()
