"""
domain — typed records shared by scoring, storage and monitoring.
"""

from .models import (
    Area,
    BuildingType,
    Coordinate,
    DrainageQuality,
    FloodCause,
    FloodCoverage,
    FloodFrequency,
    FloodHistory,
    FloodLevel,
    Geometry,
    GroundCondition,
    Point,
    Polygon,
    RiskAssessment,
    SlopeClass,
    SoilClass,
    SurfaceCover,
    WaterBodyType,
    WeatherSnapshot,
)

__all__ = [
    "Area",
    "BuildingType",
    "Coordinate",
    "DrainageQuality",
    "FloodCause",
    "FloodCoverage",
    "FloodFrequency",
    "FloodHistory",
    "FloodLevel",
    "Geometry",
    "GroundCondition",
    "Point",
    "Polygon",
    "RiskAssessment",
    "SlopeClass",
    "SoilClass",
    "SurfaceCover",
    "WaterBodyType",
    "WeatherSnapshot",
]
