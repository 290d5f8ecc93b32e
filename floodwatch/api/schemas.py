"""
Pydantic schemas for the monitoring and risk evaluation API.

Separated from the route handlers so tests and scripts can build requests
without importing FastAPI routing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from floodwatch.core.errors import ParseError, ValidationError
from floodwatch.domain.models import (
    Area,
    BuildingType,
    DrainageQuality,
    FloodCause,
    FloodCoverage,
    FloodFrequency,
    FloodHistory,
    GroundCondition,
    RiskAssessment,
    SlopeClass,
    SoilClass,
    SurfaceCover,
    WaterBodyType,
    WeatherSnapshot,
    as_frozenset,
)
from floodwatch.storage.geometry_codec import decode_geometry


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class GeometryIn(BaseModel):
    """GeoJSON-style geometry; polygon coordinates may be a JSON string."""
    type: Literal["Point", "Polygon"]
    coordinates: Any = Field(..., examples=[[80.2707, 13.0827]])


class WeatherIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    rainfall: float = Field(default=0.0, ge=0.0, description="Current rainfall (mm/hr)")
    forecastRainfall: float = Field(default=0.0, ge=0.0, description="48 h forecast (mm)")
    windSpeed: float = Field(default=0.0, ge=0.0, description="Wind speed (km/h)")
    temperature: float = Field(default=0.0, description="Temperature (°C)")
    stormAlerts: str = Field(default="", description="Alert text, empty for none")

    def to_snapshot(self) -> WeatherSnapshot:
        return WeatherSnapshot.from_dict(self.model_dump())


class FloodHistoryIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    has_flooded: bool = False
    dates: List[str] = Field(default_factory=list)
    cause: FloodCause = FloodCause.OTHER
    max_depth_m: float = Field(default=0.0, ge=0.0)
    frequency: FloodFrequency = FloodFrequency.RARE
    coverage: FloodCoverage = FloodCoverage.PART_POLYGON
    impacts: List[str] = Field(default_factory=list)

    def to_history(self) -> FloodHistory:
        return FloodHistory(
            has_flooded=self.has_flooded,
            dates=tuple(self.dates),
            cause=self.cause,
            max_depth_m=self.max_depth_m,
            frequency=self.frequency,
            coverage=self.coverage,
            impacts=as_frozenset(self.impacts),
        )


class AreaEvaluateRequest(BaseModel):
    """An area description to score without storing it."""
    model_config = ConfigDict(allow_inf_nan=False)

    id: str = Field(default="adhoc", max_length=64)
    name: str = ""
    geometry: GeometryIn

    elevation_m: float = Field(default=0.0, examples=[2.0])
    slope: SlopeClass = SlopeClass.FLAT
    soil: SoilClass = SoilClass.MIXED
    drainage: DrainageQuality = DrainageQuality.MODERATE
    surface_cover: SurfaceCover = SurfaceCover.MIXED

    water_body: WaterBodyType = WaterBodyType.NONE
    water_distance_m: float = Field(default=0.0, ge=0.0)
    flood_history: FloodHistoryIn = Field(default_factory=FloodHistoryIn)

    population: int = Field(default=0, ge=0)
    vulnerable_groups: List[str] = Field(default_factory=list)
    critical_assets: List[str] = Field(default_factory=list)
    building_type: BuildingType = BuildingType.MIXED

    ground_condition: GroundCondition = GroundCondition.DRY
    weather: WeatherIn = Field(default_factory=WeatherIn)

    def to_area(self) -> Area:
        try:
            geometry = decode_geometry(self.geometry.model_dump())
            geometry.anchor()
        except ParseError as e:
            raise ValidationError(e.message, field="geometry") from e
        return Area(
            id=self.id,
            name=self.name,
            geometry=geometry,
            elevation_m=self.elevation_m,
            slope=self.slope,
            soil=self.soil,
            drainage=self.drainage,
            surface_cover=self.surface_cover,
            water_body=self.water_body,
            water_distance_m=self.water_distance_m,
            flood_history=self.flood_history.to_history(),
            population=self.population,
            vulnerable_groups=as_frozenset(self.vulnerable_groups),
            critical_assets=as_frozenset(self.critical_assets),
            building_type=self.building_type,
            ground_condition=self.ground_condition,
            weather=self.weather.to_snapshot(),
        )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class RiskAssessmentOut(BaseModel):
    area_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    level: str
    breakdown: Dict[str, float]
    override: Optional[str] = None
    evaluated_at: datetime

    @classmethod
    def from_assessment(cls, area_id: str, assessment: RiskAssessment,
                        evaluated_at: datetime) -> "RiskAssessmentOut":
        data = assessment.to_dict()
        return cls(area_id=area_id, evaluated_at=evaluated_at, **data)


class ScenarioOut(BaseModel):
    name: str
    rainfall: float
    windSpeed: float
    temperature: float
    forecastRainfall: float
    stormAlerts: str
    selected: bool = False


class StartResponse(BaseModel):
    started: bool
    status: Dict[str, Any]
