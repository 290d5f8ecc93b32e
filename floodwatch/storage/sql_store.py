"""
SQL-backed area store — SQLAlchemy 2.0 async ORM.

═══════════════════════════════════════════════════════════════════════════
TABLE: flood_risk_areas
═══════════════════════════════════════════════════════════════════════════
| Column            | Type        | Description                            |
|-------------------|-------------|----------------------------------------|
| id                | VARCHAR PK  | Area identifier                        |
| name              | VARCHAR     | Display name                           |
| document          | JSON        | Intake document (geometry, physical…)  |
| risk_level        | VARCHAR     | "Very Low" … "Severe"                  |
| weather           | JSON        | Last merged weather snapshot           |
| last_risk_update  | TIMESTAMP   | Time of the last level transition      |
═══════════════════════════════════════════════════════════════════════════

The intake document is owned by the (external) intake workflow; monitoring
writes only the last three columns.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, String, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from floodwatch.core.database import Base
from floodwatch.core.errors import ParseError, PersistenceError
from floodwatch.domain.models import Area, FloodLevel, WeatherSnapshot
from floodwatch.storage.area_store import check_update_fields
from floodwatch.storage.geometry_codec import area_to_record, record_to_area

logger = logging.getLogger(__name__)


class AreaRecord(Base):
    __tablename__ = "flood_risk_areas"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), default="")
    document: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    risk_level: Mapped[str] = mapped_column(String(16), default=FloodLevel.LOW.label)
    weather: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    last_risk_update: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def to_area(self) -> Area:
        doc = {
            **(self.document or {}),
            "weather": self.weather or {},
            "riskLevel": self.risk_level,
            "lastRiskUpdate": self.last_risk_update,
        }
        return record_to_area(self.id, doc)


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if "risk_level" in fields:
        level = fields["risk_level"]
        values["risk_level"] = level.label if isinstance(level, FloodLevel) else str(level)
    if "weather" in fields:
        weather = fields["weather"]
        values["weather"] = weather.to_dict() if isinstance(weather, WeatherSnapshot) else dict(weather)
    if "last_risk_update" in fields:
        values["last_risk_update"] = fields["last_risk_update"]
    return values


class SqlAreaStore:
    """
    AreaStore over an async SQLAlchemy session factory.

    Usage:
        engine = build_engine()
        await init_db(engine)
        store = SqlAreaStore(build_session_factory(engine))
        areas = await store.list()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list(self) -> List[Area]:
        async with self._session_factory() as session:
            result = await session.execute(select(AreaRecord).order_by(AreaRecord.id))
            records = result.scalars().all()

        areas: List[Area] = []
        for record in records:
            try:
                areas.append(record.to_area())
            except ParseError as e:
                logger.warning(
                    "Skipping area %s: %s", record.id, e.message,
                    extra={"area_id": record.id},
                )
        return areas

    async def get(self, area_id: str) -> Optional[Area]:
        async with self._session_factory() as session:
            record = await session.get(AreaRecord, area_id)
            return record.to_area() if record is not None else None

    async def update(self, area_id: str, fields: Dict[str, Any]) -> bool:
        check_update_fields(area_id, fields)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(AreaRecord, area_id)
                    if record is None:
                        return False
                    for column, value in _column_values(fields).items():
                        setattr(record, column, value)
        except SQLAlchemyError as e:
            raise PersistenceError(area_id, str(e)) from e
        return True

    async def add(self, area: Area) -> None:
        """Insert or replace an area (seeding / intake import)."""
        doc = area_to_record(area)
        weather = doc.pop("weather")
        risk_level = doc.pop("riskLevel")
        doc.pop("lastRiskUpdate")
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(AreaRecord(
                    id=area.id,
                    name=area.name,
                    document=doc,
                    risk_level=risk_level,
                    weather=weather,
                    last_risk_update=area.last_risk_update,
                ))
