"""
Shared builders for flood monitoring tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from floodwatch.domain.models import (
    Area,
    DrainageQuality,
    FloodLevel,
    GroundCondition,
    Point,
    SlopeClass,
    SurfaceCover,
    WaterBodyType,
)

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def risky_area(area_id: str = "risky", lat: float = 13.08, **overrides: Any) -> Area:
    """Low, flat, undrained riverside site: base score 0.79."""
    fields = dict(
        id=area_id,
        geometry=Point((80.27, lat)),
        name=f"Area {area_id}",
        elevation_m=0.0,
        slope=SlopeClass.FLAT,
        drainage=DrainageQuality.NONE,
        surface_cover=SurfaceCover.PAVED,
        water_body=WaterBodyType.RIVER,
        water_distance_m=0.0,
        ground_condition=GroundCondition.SATURATED,
        risk_level=FloodLevel.LOW,
    )
    fields.update(overrides)
    return Area(**fields)


def safe_area(area_id: str = "safe", lat: float = 13.50, **overrides: Any) -> Area:
    """High, steep, engineered site far from water: base score 0.075."""
    fields = dict(
        id=area_id,
        geometry=Point((80.27, lat)),
        name=f"Area {area_id}",
        elevation_m=50.0,
        slope=SlopeClass.STEEP,
        drainage=DrainageQuality.ENGINEERED,
        water_body=WaterBodyType.NONE,
        ground_condition=GroundCondition.DRY,
        risk_level=FloodLevel.VERY_LOW,
    )
    fields.update(overrides)
    return Area(**fields)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
