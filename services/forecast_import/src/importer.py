"""Rate-limited import of Tomorrow.io forecasts into the database."""
import logging
import time
from datetime import date, datetime
from typing import Callable, Optional

from .config import ImporterConfig
from .database import Candidate, ForecastStore
from .exceptions import FetchError
from .tomorrow_client import TomorrowClient, TomorrowConfig

logger = logging.getLogger(__name__)


class ForecastImporter:
    """Refreshes stale regional forecasts within the provider's call quota."""

    def __init__(
        self,
        config: ImporterConfig,
        store: Optional[ForecastStore] = None,
        client: Optional[TomorrowClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize importer and resolve the API configuration.

        Args:
            config: Importer configuration
            store: Forecast storage (built from ``config.database_url`` if omitted)
            client: Tomorrow.io client (built with the stored API key if omitted)
            sleep: Function used to pause between API calls
            clock: Returns the current local time (defaults to now in ``config.timezone``)
        """
        self.config = config
        self.store = store or ForecastStore(config.database_url)
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(config.zone))

        if client is None:
            api_config = TomorrowConfig.load(
                self.store,
                name=config.config_name,
                strict=config.strict_config,
            )
            client = TomorrowClient(config, api_config.apikey)
        self.client = client

    def _now(self) -> datetime:
        """Current local wall-clock time as stored in the database."""
        return self.clock().replace(tzinfo=None, microsecond=0)

    def _today(self) -> date:
        return self._now().date()

    def run_import(self) -> dict:
        """Import forecasts for the next batch of stale regions.

        Returns:
            Dictionary with import statistics
        """
        stats = {
            'calls_today': 0,
            'quota_exceeded': False,
            'candidates': 0,
            'processed': 0,
            'inserted': 0,
            'updated': 0,
            'failed': 0,
        }

        today = self._today()
        stats['calls_today'] = self.store.count_calls_today(today)
        logger.info(f"Today's number of API calls: {stats['calls_today']}")

        if stats['calls_today'] >= self.config.max_calls_per_day:
            stats['quota_exceeded'] = True
            logger.warning(
                f"Daily limit of {self.config.max_calls_per_day} API calls reached, skipping import"
            )
        else:
            candidates = self.store.next_candidates(today, self.config.max_calls_per_hour)
            stats['candidates'] = len(candidates)
            logger.info(f"Found {len(candidates)} regions to refresh")

            for candidate in candidates:
                try:
                    inserted = self._import_region(candidate)
                except FetchError as e:
                    logger.error(
                        f"Failed to download weather data for {candidate.subdivision_name}: {e}"
                    )
                    stats['failed'] += 1
                else:
                    stats['processed'] += 1
                    stats['inserted' if inserted else 'updated'] += 1

                self.sleep(self.config.call_interval)

        logger.info(f"- {stats['processed']} rows processed")
        return stats

    def _import_region(self, candidate: Candidate) -> bool:
        """Fetch and store the forecast for one region.

        Args:
            candidate: Region to refresh

        Returns:
            True if a new row was inserted, False if an existing one was updated
        """
        logger.info(f"Downloading weather for {candidate.subdivision_name}")
        payload = self.client.fetch_forecast(candidate.latlng)

        if candidate.is_new:
            self.store.insert_forecast(
                country_code=candidate.country_code,
                subdivision_code=candidate.subdivision_code,
                payload=payload,
                timestamp=self._now(),
            )
            return True

        self.store.update_forecast(candidate.record_id, payload, timestamp=self._now())
        return False

    def close(self):
        """Close all connections."""
        self.client.close()
        self.store.close()

    def __enter__(self) -> "ForecastImporter":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
