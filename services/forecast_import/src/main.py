"""
Forecast import entry point

Runs one import batch. Meant to be invoked hourly by cron or an Airflow
BashOperator; the process never schedules itself.
"""
import argparse
import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .config import get_config, mask_url
from .database import ForecastStore
from .importer import ForecastImporter

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


@contextmanager
def run_timer(name: str = "forecast import") -> Iterator[None]:
    """Log the elapsed time of the enclosed block on every exit path."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        logger.info(f"Finished {name} in {elapsed:.2f}s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import Tomorrow.io forecasts for stale regions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Regular hourly run
  forecast-import

  # Create tables first, then import at most 5 regions
  forecast-import --init-db --max-calls-per-hour 5
        """
    )

    parser.add_argument(
        "--max-calls-per-day",
        type=int,
        help="Daily API call quota (default: from settings)"
    )

    parser.add_argument(
        "--max-calls-per-hour",
        type=int,
        help="Maximum regions refreshed in this run (default: from settings)"
    )

    parser.add_argument(
        "--delay",
        type=float,
        dest="request_delay",
        help="Seconds to wait between API calls (default: from settings)"
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before importing"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: from settings)"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one import batch.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    overrides = {
        key: value
        for key, value in (
            ("max_calls_per_day", args.max_calls_per_day),
            ("max_calls_per_hour", args.max_calls_per_hour),
            ("request_delay", args.request_delay),
            ("log_level", args.log_level),
        )
        if value is not None
    }

    logging.basicConfig(level=args.log_level or logging.INFO, format=LOG_FORMAT)

    with run_timer():
        try:
            config = get_config(**overrides)
            logging.getLogger().setLevel(config.log_level.upper())
            logger.info(f"Using database {mask_url(config.database_url)}")

            store = ForecastStore(config.database_url)
            try:
                if args.init_db:
                    store.init_tables()
                importer = ForecastImporter(config, store=store)
            except Exception:
                store.close()
                raise

            with importer:
                stats = importer.run_import()

            logger.info(f"Import completed: {stats}")
            return 0

        except Exception as e:
            logger.error(f"Caught {type(e).__name__}: {e}", exc_info=True)
            return 1


if __name__ == "__main__":
    sys.exit(main())
