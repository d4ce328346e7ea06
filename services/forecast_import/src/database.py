"""Relational storage for regions, forecast payloads and API configuration."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class Region(Base):
    """Subdivision reference data, maintained outside this service."""
    __tablename__ = "destination_regions_level2"

    id = Column(Integer, primary_key=True, autoincrement=True)
    country_code = Column("iso3166_1_alpha_2_code", String(2), nullable=False)
    subdivision_code = Column("iso3166_2_subdivision_code", String(10), nullable=False, unique=True)
    subdivision_name = Column("iso3166_2_subdivision_name", String(255), nullable=False)
    latlng = Column(String(50))  # "<lat>,<lng>"


class ForecastRecord(Base):
    """Latest raw Tomorrow.io forecast per subdivision."""
    __tablename__ = "vendor_tomorrow_io_weather"

    id = Column(Integer, primary_key=True, autoincrement=True)
    country_code = Column("iso3166_1_alpha_2_code", String(2), nullable=False)
    subdivision_code = Column("iso3166_2_subdivision_code", String(10), nullable=False, unique=True)
    timelines = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)  # local wall-clock time in IMPORTER_TIMEZONE


class ConfigEntry(Base):
    """Named JSON configuration blobs."""
    __tablename__ = "config"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    configuration = Column(Text)


@dataclass(frozen=True)
class Candidate:
    """A region due for a forecast refresh."""
    country_code: str
    subdivision_code: str
    subdivision_name: str
    latlng: str
    record_id: Optional[int] = None
    timestamp: Optional[datetime] = None

    @property
    def is_new(self) -> bool:
        """True if no forecast has ever been stored for this region."""
        return self.timestamp is None


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the half-open datetime range [midnight, next midnight) of a day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class ForecastStore:
    """Database access for the forecast importer."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """Initialize the store.

        Args:
            database_url: SQLAlchemy connection URL
            engine: Existing engine to use instead of creating one from the URL
        """
        if engine is None:
            if not database_url:
                raise ValueError("Either database_url or engine is required")
            engine = create_engine(database_url, pool_pre_ping=True)
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

    def init_tables(self):
        """Create tables if they don't exist."""
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Forecast tables initialized")
        except Exception as e:
            logger.error(f"Failed to initialize forecast tables: {e}")
            raise

    def get_configuration(self, name: str) -> Optional[str]:
        """Get the raw configuration value stored under a name.

        Args:
            name: Configuration name (e.g., 'tomorrow.io')

        Returns:
            Stored value or None if no row exists
        """
        session: Session = self.SessionLocal()
        try:
            return session.execute(
                select(ConfigEntry.configuration).where(ConfigEntry.name == name)
            ).scalar_one_or_none()
        finally:
            session.close()

    def count_calls_today(self, today: date) -> int:
        """Count forecast rows written on the given calendar day.

        Every stored or refreshed row corresponds to one API call, so this is
        the number of calls already spent against the daily quota.
        """
        start, end = day_bounds(today)
        session: Session = self.SessionLocal()
        try:
            count = session.execute(
                select(func.count())
                .select_from(ForecastRecord)
                .where(ForecastRecord.timestamp >= start, ForecastRecord.timestamp < end)
            ).scalar_one()
            return int(count)
        finally:
            session.close()

    def next_candidates(self, today: date, limit: int) -> List[Candidate]:
        """Select regions whose forecast is missing or was not refreshed today.

        Regions without coordinates are skipped. Never-fetched regions come
        first, then the oldest forecasts, ties broken by subdivision code.

        Args:
            today: Current calendar day
            limit: Maximum number of regions to return

        Returns:
            Ordered list of candidates
        """
        start, _ = day_bounds(today)
        stmt = (
            select(
                Region.country_code,
                Region.subdivision_code,
                Region.subdivision_name,
                Region.latlng,
                ForecastRecord.id,
                ForecastRecord.timestamp,
            )
            .outerjoin(ForecastRecord, ForecastRecord.subdivision_code == Region.subdivision_code)
            .where(or_(ForecastRecord.timestamp.is_(None), ForecastRecord.timestamp < start))
            .where(func.coalesce(Region.latlng, "") != "")
            .order_by(
                ForecastRecord.timestamp.is_not(None),
                ForecastRecord.timestamp,
                Region.subdivision_code,
            )
            .limit(limit)
        )

        session: Session = self.SessionLocal()
        try:
            rows = session.execute(stmt).all()
        finally:
            session.close()

        return [
            Candidate(
                country_code=row[0],
                subdivision_code=row[1],
                subdivision_name=row[2],
                latlng=row[3],
                record_id=row[4],
                timestamp=row[5],
            )
            for row in rows
        ]

    def insert_forecast(
        self,
        country_code: str,
        subdivision_code: str,
        payload: str,
        timestamp: datetime,
    ) -> int:
        """Insert the first forecast for a subdivision.

        Returns:
            ID of the new row
        """
        session: Session = self.SessionLocal()
        try:
            record = ForecastRecord(
                country_code=country_code,
                subdivision_code=subdivision_code,
                timelines=payload,
                timestamp=timestamp,
            )
            session.add(record)
            session.commit()
            session.refresh(record)
            logger.debug(f"Inserted forecast for {subdivision_code} (ID: {record.id})")
            return record.id
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to insert forecast for {subdivision_code}: {e}")
            raise
        finally:
            session.close()

    def update_forecast(self, record_id: int, payload: str, timestamp: datetime):
        """Replace the payload of an existing forecast row and refresh its timestamp."""
        session: Session = self.SessionLocal()
        try:
            record = session.get(ForecastRecord, record_id)
            if record is None:
                raise ValueError(f"Forecast record not found: {record_id}")

            record.timelines = payload
            record.timestamp = timestamp
            session.commit()
            logger.debug(f"Updated forecast {record_id} for {record.subdivision_code}")
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to update forecast {record_id}: {e}")
            raise
        finally:
            session.close()

    def close(self):
        """Close database connection."""
        self.engine.dispose()
