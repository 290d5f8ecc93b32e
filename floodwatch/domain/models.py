"""
models.py — Shared data structures for flood-risk monitoring.

Defines:
    • FloodLevel      — ordered five-tier risk classification
    • class enums     — slope, soil, drainage, surface cover, water body,
                        flood cause / frequency / coverage, building type,
                        ground condition
    • Coordinate, Point, Polygon — typed geometry variant
    • FloodHistory    — past flooding record for an area
    • WeatherSnapshot — current + forecast weather embedded in an area
    • Area            — one georeferenced site under assessment
    • RiskAssessment  — output of the scoring engine

Geometry is always typed here. Raw storage payloads (GeoJSON-ish dicts,
string-encoded polygon rings) are decoded at the store adapter
(``floodwatch.storage.geometry_codec``) and never reach scoring code.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, FrozenSet, Optional, Sequence, Tuple, Union

from floodwatch.core.errors import ParseError


# ═══════════════════════════════════════════════════════════════════════════
# Risk Level
# ═══════════════════════════════════════════════════════════════════════════

class FloodLevel(IntEnum):
    """
    Flood risk classification — integer ordering enables comparison.

    Storage and the presentation layer use the display label
    ("Very Low" … "Severe"), see ``label`` / ``from_label``.
    """
    VERY_LOW = 0
    LOW      = 1
    MODERATE = 2
    HIGH     = 3
    SEVERE   = 4

    @property
    def label(self) -> str:
        return _LEVEL_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "FloodLevel":
        for level, text in _LEVEL_LABELS.items():
            if text.lower() == str(label).strip().lower():
                return level
        raise ValueError(f"Unknown flood level: {label!r}")


_LEVEL_LABELS: Dict[FloodLevel, str] = {
    FloodLevel.VERY_LOW: "Very Low",
    FloodLevel.LOW: "Low",
    FloodLevel.MODERATE: "Moderate",
    FloodLevel.HIGH: "High",
    FloodLevel.SEVERE: "Severe",
}


# ═══════════════════════════════════════════════════════════════════════════
# Site class enums (values mirror the intake form vocabulary)
# ═══════════════════════════════════════════════════════════════════════════

class SlopeClass(str, Enum):
    FLAT   = "flat"
    GENTLE = "gentle"
    STEEP  = "steep"


class SoilClass(str, Enum):
    SANDY = "sandy"
    CLAY  = "clay"
    LOAM  = "loam"
    ROCKY = "rocky"
    MIXED = "mixed"


class DrainageQuality(str, Enum):
    NONE       = "none"
    POOR       = "poor"
    MODERATE   = "moderate"
    GOOD       = "good"
    ENGINEERED = "engineered"


class SurfaceCover(str, Enum):
    PAVED      = "paved/concrete"
    BARE_SOIL  = "bare soil"
    VEGETATION = "vegetation"
    MIXED      = "mixed"


class WaterBodyType(str, Enum):
    RIVER = "river"
    CREEK = "creek"
    SEA   = "sea"
    LAKE  = "lake"
    CANAL = "canal"
    NONE  = "none"


class FloodCause(str, Enum):
    TYPHOON     = "typhoon"
    MONSOON     = "monsoon"
    STORM_SURGE = "storm surge"
    HEAVY_RAIN  = "heavy rain"
    DAM_RELEASE = "dam release"
    OTHER       = "other"


class FloodFrequency(str, Enum):
    RARE          = "rare"
    OCCASIONAL    = "occasional"
    FREQUENT      = "frequent"
    VERY_FREQUENT = "very frequent"


class FloodCoverage(str, Enum):
    PART_POLYGON   = "part polygon"
    FULL_POLYGON   = "full polygon"
    BEYOND_POLYGON = "beyond polygon"


class BuildingType(str, Enum):
    LIGHT    = "light"
    CONCRETE = "concrete"
    MIXED    = "mixed"


class GroundCondition(str, Enum):
    DRY             = "dry"
    MOIST           = "moist"
    SATURATED       = "saturated"
    ALREADY_FLOODED = "already flooded"


# ═══════════════════════════════════════════════════════════════════════════
# Geometry
# ═══════════════════════════════════════════════════════════════════════════

# (longitude, latitude), GeoJSON axis order
LngLat = Tuple[float, float]


@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(
                f"Latitude must be in [-90, 90], got {self.latitude}"
            )
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(
                f"Longitude must be in [-180, 180], got {self.longitude}"
            )


def _to_coordinate(lnglat: LngLat) -> Coordinate:
    try:
        lng, lat = lnglat
        return Coordinate(latitude=float(lat), longitude=float(lng))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid coordinate {lnglat!r}: {e}") from e


@dataclass(frozen=True)
class Point:
    """Single-position geometry."""
    TYPE: ClassVar[str] = "Point"

    position: LngLat

    @property
    def coordinates(self) -> Tuple[LngLat, ...]:
        return (self.position,)

    def anchor(self) -> Coordinate:
        """Position used for weather lookups."""
        return _to_coordinate(self.position)


@dataclass(frozen=True)
class Polygon:
    """Closed ring of positions; the first vertex anchors weather lookups."""
    TYPE: ClassVar[str] = "Polygon"

    ring: Tuple[LngLat, ...]

    def __post_init__(self) -> None:
        if not self.ring:
            raise ValueError("Polygon ring must contain at least one coordinate")

    @property
    def coordinates(self) -> Tuple[LngLat, ...]:
        return self.ring

    def anchor(self) -> Coordinate:
        return _to_coordinate(self.ring[0])


Geometry = Union[Point, Polygon]


# ═══════════════════════════════════════════════════════════════════════════
# Area records
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FloodHistory:
    """Past flooding record collected at intake."""
    has_flooded: bool = False
    dates: Tuple[str, ...] = ()
    cause: FloodCause = FloodCause.OTHER
    max_depth_m: float = 0.0
    duration: str = ""
    frequency: FloodFrequency = FloodFrequency.RARE
    coverage: FloodCoverage = FloodCoverage.PART_POLYGON
    impacts: FrozenSet[str] = frozenset()
    recovery_time: str = ""
    defenses: str = ""
    preparedness: str = ""


@dataclass(frozen=True)
class WeatherSnapshot:
    """
    Weather embedded in an area record.

    rainfall_mm_hr        current intensity (mm/hr)
    forecast_rainfall_mm  accumulated forecast over the next 48 hours (mm)
    wind_speed_kmh        current wind (km/h)
    temperature_c         current temperature (°C)
    storm_alert           alert text; empty string means no alert
    """
    rainfall_mm_hr: float = 0.0
    forecast_rainfall_mm: float = 0.0
    wind_speed_kmh: float = 0.0
    temperature_c: float = 0.0
    storm_alert: str = ""

    @property
    def has_storm_alert(self) -> bool:
        return bool(self.storm_alert and self.storm_alert.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rainfall": self.rainfall_mm_hr,
            "forecastRainfall": self.forecast_rainfall_mm,
            "windSpeed": self.wind_speed_kmh,
            "temperature": self.temperature_c,
            "stormAlerts": self.storm_alert,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherSnapshot":
        return cls(
            rainfall_mm_hr=float(data.get("rainfall") or 0.0),
            forecast_rainfall_mm=float(data.get("forecastRainfall") or 0.0),
            wind_speed_kmh=float(data.get("windSpeed") or 0.0),
            temperature_c=float(data.get("temperature") or 0.0),
            storm_alert=str(data.get("stormAlerts") or ""),
        )


@dataclass(frozen=True)
class Area:
    """
    One georeferenced site under flood-risk assessment.

    An Area with its ``weather`` filled in for the current cycle is the
    *snapshot* the scoring engine evaluates.
    """
    id: str
    geometry: Geometry
    name: str = ""

    # Physical
    elevation_m: float = 0.0
    slope: SlopeClass = SlopeClass.FLAT
    soil: SoilClass = SoilClass.MIXED
    drainage: DrainageQuality = DrainageQuality.MODERATE
    surface_cover: SurfaceCover = SurfaceCover.MIXED

    # Hydrological
    water_body: WaterBodyType = WaterBodyType.NONE
    water_distance_m: float = 0.0
    flood_history: FloodHistory = field(default_factory=FloodHistory)

    # Exposure
    population: int = 0
    vulnerable_groups: FrozenSet[str] = frozenset()
    critical_assets: FrozenSet[str] = frozenset()
    building_type: BuildingType = BuildingType.MIXED

    ground_condition: GroundCondition = GroundCondition.DRY
    weather: WeatherSnapshot = field(default_factory=WeatherSnapshot)

    risk_level: FloodLevel = FloodLevel.LOW
    last_risk_update: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.geometry.coordinates:
            raise ValueError("Area geometry must contain at least one coordinate")
        numbers = {
            "elevation_m": self.elevation_m,
            "water_distance_m": self.water_distance_m,
            "flood_history.max_depth_m": self.flood_history.max_depth_m,
            "weather.rainfall_mm_hr": self.weather.rainfall_mm_hr,
            "weather.forecast_rainfall_mm": self.weather.forecast_rainfall_mm,
            "weather.wind_speed_kmh": self.weather.wind_speed_kmh,
            "weather.temperature_c": self.weather.temperature_c,
        }
        for name, value in numbers.items():
            if not math.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value}")
        if self.water_distance_m < 0:
            raise ValueError(
                f"water_distance_m must be >= 0, got {self.water_distance_m}"
            )
        if self.population < 0:
            raise ValueError(f"population must be >= 0, got {self.population}")

    def with_weather(self, weather: WeatherSnapshot) -> "Area":
        """Snapshot of this area carrying fresh weather."""
        return replace(self, weather=weather)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "geometry_type": self.geometry.TYPE,
            "risk_level": self.risk_level.label,
            "population": self.population,
            "last_risk_update": (
                self.last_risk_update.isoformat() if self.last_risk_update else None
            ),
        }


@dataclass(frozen=True)
class RiskAssessment:
    """
    Output of ``RiskScoringEngine.evaluate``.

    score      composite score in [0, 1]
    breakdown  per-category contributions (diagnostics only)
    level      resulting classification, after hard overrides
    override   name of the override that raised the level, if any
    """
    score: float
    level: FloodLevel
    breakdown: Dict[str, float] = field(default_factory=dict)
    override: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 4),
            "level": self.level.label,
            "breakdown": {k: round(v, 4) for k, v in self.breakdown.items()},
            "override": self.override,
        }


def as_frozenset(values: Optional[Sequence[str]]) -> FrozenSet[str]:
    """Normalise tag lists from payloads (drops blanks)."""
    if not values:
        return frozenset()
    return frozenset(v.strip() for v in values if v and v.strip())
