"""
geometry_codec.py — Boundary between stored area documents and typed Areas.

Stored geometry payload:

    {"type": "Point",   "coordinates": [lng, lat]}
    {"type": "Polygon", "coordinates": [[[lng, lat], ...]]}
    {"type": "Polygon", "coordinates": "[[[lng, lat], ...]]"}   ← legacy

Older records keep polygon coordinates as a JSON string because the
document store they came from rejects nested arrays.  New writes always
use nested lists.  Anything that cannot be decoded raises ParseError;
nothing past this module ever sees a raw payload.

Area documents keep the intake-form grouping (physical / hydrological /
exposure / ground / weather) with camelCase keys.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from floodwatch.core.errors import ParseError
from floodwatch.domain.models import (
    Area,
    BuildingType,
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
    SlopeClass,
    SoilClass,
    SurfaceCover,
    WaterBodyType,
    WeatherSnapshot,
    as_frozenset,
)


# ═══════════════════════════════════════════════════════════════════════════
# Geometry
# ═══════════════════════════════════════════════════════════════════════════

def _position(raw: Any) -> tuple:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise ParseError(f"Invalid position {raw!r}")
    try:
        return (float(raw[0]), float(raw[1]))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid position {raw!r}") from e


def decode_geometry(payload: Any) -> Geometry:
    """Decode a stored geometry payload into Point / Polygon."""
    if not isinstance(payload, dict):
        raise ParseError("Geometry payload must be an object")

    kind = payload.get("type")
    coords = payload.get("coordinates")

    if isinstance(coords, str):
        try:
            coords = json.loads(coords)
        except ValueError as e:
            raise ParseError("Geometry coordinates string is not valid JSON",
                             geometry_type=kind) from e

    if kind == Point.TYPE:
        return Point(position=_position(coords))

    if kind == Polygon.TYPE:
        if not isinstance(coords, list) or not coords:
            raise ParseError("Polygon has no coordinates", geometry_type=kind)
        # [[[lng, lat], ...]] → first ring; a bare ring is accepted too
        first = coords[0]
        nested = isinstance(first, list) and bool(first) and isinstance(first[0], list)
        ring = first if nested else coords
        if not ring:
            raise ParseError("Polygon ring is empty", geometry_type=kind)
        return Polygon(ring=tuple(_position(p) for p in ring))

    raise ParseError(f"Unsupported geometry type {kind!r}", geometry_type=kind)


def encode_geometry(geometry: Geometry) -> Dict[str, Any]:
    """Encode Point / Polygon into the current (nested list) payload form."""
    if isinstance(geometry, Point):
        return {"type": Point.TYPE, "coordinates": list(geometry.position)}
    return {
        "type": Polygon.TYPE,
        "coordinates": [[list(p) for p in geometry.ring]],
    }


# ═══════════════════════════════════════════════════════════════════════════
# Area documents
# ═══════════════════════════════════════════════════════════════════════════

def _enum(enum_cls, value: Any, default):
    if value is None or value == "":
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        raise ParseError(f"Invalid {enum_cls.__name__} value {value!r}") from e


def _float(value: Any, name: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid number for {name}: {value!r}") from e


def _level(value: Any) -> FloodLevel:
    if value is None or value == "":
        return FloodLevel.LOW
    try:
        return FloodLevel.from_label(value)
    except ValueError as e:
        raise ParseError(str(e)) from e


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise ParseError(f"Invalid timestamp {value!r}") from e


def decode_flood_history(raw: Optional[Dict[str, Any]]) -> FloodHistory:
    raw = raw or {}
    dates: List[str] = [str(d) for d in raw.get("dates") or []]
    return FloodHistory(
        has_flooded=bool(raw.get("hasFlooded", False)),
        dates=tuple(dates),
        cause=_enum(FloodCause, raw.get("cause"), FloodCause.OTHER),
        max_depth_m=_float(raw.get("maxDepth"), "maxDepth"),
        duration=str(raw.get("duration") or ""),
        frequency=_enum(FloodFrequency, raw.get("frequency"), FloodFrequency.RARE),
        coverage=_enum(FloodCoverage, raw.get("coverage"), FloodCoverage.PART_POLYGON),
        impacts=as_frozenset(raw.get("impacts")),
        recovery_time=str(raw.get("recoveryTime") or ""),
        defenses=str(raw.get("defenses") or ""),
        preparedness=str(raw.get("preparedness") or ""),
    )


def encode_flood_history(history: FloodHistory) -> Dict[str, Any]:
    return {
        "hasFlooded": history.has_flooded,
        "dates": list(history.dates),
        "cause": history.cause.value,
        "maxDepth": history.max_depth_m,
        "duration": history.duration,
        "frequency": history.frequency.value,
        "coverage": history.coverage.value,
        "impacts": sorted(history.impacts),
        "recoveryTime": history.recovery_time,
        "defenses": history.defenses,
        "preparedness": history.preparedness,
    }


def record_to_area(area_id: str, doc: Dict[str, Any]) -> Area:
    """
    Build a typed Area from a stored document.

    Raises ParseError for undecodable geometry, unknown enum values or
    values that violate the Area invariants.
    """
    physical = doc.get("physical") or {}
    hydro = doc.get("hydrological") or {}
    exposure = doc.get("exposure") or {}
    ground = doc.get("ground") or {}
    basic = doc.get("basicInfo") or {}

    geometry = decode_geometry(doc.get("geometry"))
    try:
        population = int(_float(exposure.get("population"), "population"))
        return Area(
            id=area_id,
            geometry=geometry,
            name=str(basic.get("name") or doc.get("name") or ""),
            elevation_m=_float(physical.get("elevation"), "elevation"),
            slope=_enum(SlopeClass, physical.get("slope"), SlopeClass.FLAT),
            soil=_enum(SoilClass, physical.get("soil"), SoilClass.MIXED),
            drainage=_enum(DrainageQuality, physical.get("drainage"), DrainageQuality.MODERATE),
            surface_cover=_enum(SurfaceCover, physical.get("surfaceCover"), SurfaceCover.MIXED),
            water_body=_enum(WaterBodyType, hydro.get("waterBody"), WaterBodyType.NONE),
            water_distance_m=_float(hydro.get("distance"), "distance"),
            flood_history=decode_flood_history(hydro.get("floodHistory")),
            population=population,
            vulnerable_groups=as_frozenset(exposure.get("vulnerableGroups")),
            critical_assets=as_frozenset(exposure.get("criticalAssets")),
            building_type=_enum(BuildingType, exposure.get("buildingTypes"), BuildingType.MIXED),
            ground_condition=_enum(GroundCondition, ground.get("condition"), GroundCondition.DRY),
            weather=WeatherSnapshot.from_dict(doc.get("weather") or {}),
            risk_level=_level(doc.get("riskLevel")),
            last_risk_update=_timestamp(doc.get("lastRiskUpdate")),
        )
    except ValueError as e:
        raise ParseError(f"Area {area_id} violates record invariants: {e}",
                         area_id=area_id) from e


def area_to_record(area: Area) -> Dict[str, Any]:
    """Inverse of ``record_to_area`` (nested-list geometry)."""
    return {
        "basicInfo": {"name": area.name, "type": area.geometry.TYPE},
        "physical": {
            "elevation": area.elevation_m,
            "slope": area.slope.value,
            "soil": area.soil.value,
            "drainage": area.drainage.value,
            "surfaceCover": area.surface_cover.value,
        },
        "hydrological": {
            "waterBody": area.water_body.value,
            "distance": area.water_distance_m,
            "floodHistory": encode_flood_history(area.flood_history),
        },
        "exposure": {
            "population": area.population,
            "vulnerableGroups": sorted(area.vulnerable_groups),
            "criticalAssets": sorted(area.critical_assets),
            "buildingTypes": area.building_type.value,
        },
        "ground": {"condition": area.ground_condition.value},
        "weather": area.weather.to_dict(),
        "riskLevel": area.risk_level.label,
        "lastRiskUpdate": (
            area.last_risk_update.isoformat() if area.last_risk_update else None
        ),
        "geometry": encode_geometry(area.geometry),
    }
