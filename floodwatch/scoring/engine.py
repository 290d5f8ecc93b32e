"""
engine.py — Deterministic multi-factor flood risk scoring.

Turns one area snapshot (static site attributes + current weather) into a
composite score in [0, 1] and a five-tier FloodLevel.  Pure: no I/O, no
clock, no randomness; identical snapshots always give identical results.

═══════════════════════════════════════════════════════════════════════════
SCORING FORMULA
═══════════════════════════════════════════════════════════════════════════

    Step 1 — Static base score (weighted average, weights sum to 1.0):

        factor              weight   risk value ∈ [0, 1]
        ─────────────────   ──────   ─────────────────────────────────────
        elevation           0.20     1 − min(elevation / 30 m, 1)
        slope               0.10     flat 1.0 · gentle 0.5 · steep 0.1
        drainage            0.15     none 1.0 · poor .75 · moderate .5
                                     · good .25 · engineered .1
        surface cover       0.10     paved .8 · bare soil .6 · mixed .5
                                     · vegetation .3
        water proximity     0.20     max(0, 1 − d / 1000 m) × type weight
        ground condition    0.10     dry 0 · moist .3 · saturated .6
                                     · already flooded 1.0
        flood history       0.15     frequency weight × min(depth / 3 m, 1)

    Step 2 — Weather score:

        S_weather = clamp(0.5 · min(rain / 50, 1)
                        + 0.3 · min(forecast / 200, 1)
                        + 0.2 · min(wind / 120, 1)
                        + 0.15 if storm alert, 0, 1)

    Step 3 — Exposure multiplier ∈ [1.0, 1.2]:

        1 + min(0.20, population tier + 0.04 · vulnerable + 0.04 · assets)

    Step 4 — Composite:

        score = clamp((0.5 · S_base + 0.5 · S_weather) × multiplier, 0, 1)

═══════════════════════════════════════════════════════════════════════════
CLASSIFICATION
═══════════════════════════════════════════════════════════════════════════

    score             level       (lower bound inclusive)
    ──────────────    ─────────
    0.0 – 0.2         Very Low
    0.2 – 0.4         Low
    0.4 – 0.6         Moderate
    0.6 – 0.8         High
    0.8 – 1.0         Severe

Hard floors applied after classification:

    ground condition = already flooded                       → Severe
    coverage = beyond polygon AND frequency = very frequent  → High

The weight tables are a reference design, not a fit to historical
outcomes; re-derive them from graded examples if parity with another
deployment is required.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np

from floodwatch.domain.models import (
    Area,
    DrainageQuality,
    FloodCoverage,
    FloodFrequency,
    FloodLevel,
    GroundCondition,
    RiskAssessment,
    SlopeClass,
    SurfaceCover,
    WaterBodyType,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Constants — Tunable Parameters
# ═══════════════════════════════════════════════════════════════════════════

# Static base factor weights (must sum to 1.0)
BASE_WEIGHTS: Dict[str, float] = {
    "elevation": 0.20,
    "slope": 0.10,
    "drainage": 0.15,
    "surface_cover": 0.10,
    "water_proximity": 0.20,
    "ground_condition": 0.10,
    "flood_history": 0.15,
}

# Weather term weights (must sum to 1.0)
WEATHER_WEIGHTS: Dict[str, float] = {
    "rainfall": 0.5,
    "forecast_rainfall": 0.3,
    "wind_speed": 0.2,
}

# Layer blend
W_BASE = 0.5
W_WEATHER = 0.5

# Normalisation ceilings
ELEVATION_CEILING_M = 30.0
WATER_DISTANCE_CEILING_M = 1000.0
RAINFALL_CEILING_MM_HR = 50.0
FORECAST_CEILING_MM = 200.0
WIND_CEILING_KMH = 120.0
FLOOD_DEPTH_CEILING_M = 3.0

STORM_ALERT_OFFSET = 0.15

SLOPE_RISK: Dict[SlopeClass, float] = {
    SlopeClass.FLAT: 1.0,
    SlopeClass.GENTLE: 0.5,
    SlopeClass.STEEP: 0.1,
}

DRAINAGE_RISK: Dict[DrainageQuality, float] = {
    DrainageQuality.NONE: 1.0,
    DrainageQuality.POOR: 0.75,
    DrainageQuality.MODERATE: 0.5,
    DrainageQuality.GOOD: 0.25,
    DrainageQuality.ENGINEERED: 0.1,
}

SURFACE_RISK: Dict[SurfaceCover, float] = {
    SurfaceCover.PAVED: 0.8,
    SurfaceCover.BARE_SOIL: 0.6,
    SurfaceCover.MIXED: 0.5,
    SurfaceCover.VEGETATION: 0.3,
}

# Sea and river carry the most water; canals are regulated
WATER_BODY_WEIGHT: Dict[WaterBodyType, float] = {
    WaterBodyType.SEA: 1.0,
    WaterBodyType.RIVER: 1.0,
    WaterBodyType.CREEK: 0.8,
    WaterBodyType.LAKE: 0.7,
    WaterBodyType.CANAL: 0.5,
    WaterBodyType.NONE: 0.0,
}

GROUND_RISK: Dict[GroundCondition, float] = {
    GroundCondition.DRY: 0.0,
    GroundCondition.MOIST: 0.3,
    GroundCondition.SATURATED: 0.6,
    GroundCondition.ALREADY_FLOODED: 1.0,
}

FREQUENCY_WEIGHT: Dict[FloodFrequency, float] = {
    FloodFrequency.RARE: 0.2,
    FloodFrequency.OCCASIONAL: 0.4,
    FloodFrequency.FREQUENT: 0.7,
    FloodFrequency.VERY_FREQUENT: 1.0,
}

# Exposure: (minimum population, bonus), checked highest first
POPULATION_TIERS: Tuple[Tuple[int, float], ...] = (
    (10_000, 0.12),
    (1_000, 0.08),
    (100, 0.04),
)
VULNERABLE_GROUP_BONUS = 0.04
CRITICAL_ASSET_BONUS = 0.04
MAX_EXPOSURE_BONUS = 0.20

# Lower bounds (inclusive), highest first
LEVEL_THRESHOLDS: Tuple[Tuple[float, FloodLevel], ...] = (
    (0.8, FloodLevel.SEVERE),
    (0.6, FloodLevel.HIGH),
    (0.4, FloodLevel.MODERATE),
    (0.2, FloodLevel.LOW),
)

OVERRIDE_ALREADY_FLOODED = "already_flooded"
OVERRIDE_CHRONIC_OVERFLOW = "chronic_overflow"

_BASE_KEYS = tuple(BASE_WEIGHTS)
_BASE_VECTOR = np.array([BASE_WEIGHTS[k] for k in _BASE_KEYS])
_WEATHER_KEYS = tuple(WEATHER_WEIGHTS)
_WEATHER_VECTOR = np.array([WEATHER_WEIGHTS[k] for k in _WEATHER_KEYS])


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(np.clip(value, low, high))


def _ratio(value: float, ceiling: float) -> float:
    """value / ceiling clamped to [0, 1]."""
    return _clamp(value / ceiling)


# ═══════════════════════════════════════════════════════════════════════════
# Layer 1 — Static base factors
# ═══════════════════════════════════════════════════════════════════════════

def elevation_risk(elevation_m: float) -> float:
    """Low ground floods first; at or above 30 m the factor vanishes."""
    return 1.0 - _ratio(elevation_m, ELEVATION_CEILING_M)


def water_proximity_risk(water_body: WaterBodyType, distance_m: float) -> float:
    """Linear decay to zero at 1 km, scaled by water-body type."""
    proximity = max(0.0, 1.0 - distance_m / WATER_DISTANCE_CEILING_M)
    return proximity * WATER_BODY_WEIGHT[water_body]


def flood_history_risk(snapshot: Area) -> float:
    history = snapshot.flood_history
    if not history.has_flooded:
        return 0.0
    depth = _ratio(history.max_depth_m, FLOOD_DEPTH_CEILING_M)
    return FREQUENCY_WEIGHT[history.frequency] * depth


def base_factors(snapshot: Area) -> Dict[str, float]:
    """Normalised [0, 1] value of every static factor."""
    return {
        "elevation": elevation_risk(snapshot.elevation_m),
        "slope": SLOPE_RISK[snapshot.slope],
        "drainage": DRAINAGE_RISK[snapshot.drainage],
        "surface_cover": SURFACE_RISK[snapshot.surface_cover],
        "water_proximity": water_proximity_risk(
            snapshot.water_body, snapshot.water_distance_m,
        ),
        "ground_condition": GROUND_RISK[snapshot.ground_condition],
        "flood_history": flood_history_risk(snapshot),
    }


def base_score(factors: Dict[str, float]) -> float:
    values = np.array([factors[k] for k in _BASE_KEYS])
    return _clamp(float(np.dot(values, _BASE_VECTOR)))


# ═══════════════════════════════════════════════════════════════════════════
# Layer 2 — Weather
# ═══════════════════════════════════════════════════════════════════════════

def weather_factors(snapshot: Area) -> Dict[str, float]:
    weather = snapshot.weather
    return {
        "rainfall": _ratio(weather.rainfall_mm_hr, RAINFALL_CEILING_MM_HR),
        "forecast_rainfall": _ratio(weather.forecast_rainfall_mm, FORECAST_CEILING_MM),
        "wind_speed": _ratio(weather.wind_speed_kmh, WIND_CEILING_KMH),
    }


def weather_score(factors: Dict[str, float], storm_alert: bool) -> float:
    values = np.array([factors[k] for k in _WEATHER_KEYS])
    score = float(np.dot(values, _WEATHER_VECTOR))
    if storm_alert:
        score += STORM_ALERT_OFFSET
    return _clamp(score)


# ═══════════════════════════════════════════════════════════════════════════
# Layer 3 — Exposure
# ═══════════════════════════════════════════════════════════════════════════

def exposure_multiplier(snapshot: Area) -> float:
    """
    Scale factor in [1.0, 1.2].

    Population tier and the presence of vulnerable groups or critical
    assets each add a fixed bonus; the total bonus is capped at +20%.
    """
    bonus = 0.0
    for minimum, tier_bonus in POPULATION_TIERS:
        if snapshot.population >= minimum:
            bonus += tier_bonus
            break
    if snapshot.vulnerable_groups:
        bonus += VULNERABLE_GROUP_BONUS
    if snapshot.critical_assets:
        bonus += CRITICAL_ASSET_BONUS
    return 1.0 + min(MAX_EXPOSURE_BONUS, bonus)


# ═══════════════════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════════════════

def classify_score(score: float) -> FloodLevel:
    """
    Map a composite score to a FloodLevel.

    Boundaries are inclusive on the lower side: exactly 0.6 is High.

    >>> classify_score(0.19)
    <FloodLevel.VERY_LOW: 0>
    >>> classify_score(0.6)
    <FloodLevel.HIGH: 3>
    """
    for lower, level in LEVEL_THRESHOLDS:
        if score >= lower:
            return level
    return FloodLevel.VERY_LOW


def apply_overrides(
    level: FloodLevel, snapshot: Area,
) -> Tuple[FloodLevel, Optional[str]]:
    """Raise the level to a hard floor when the site is known to be flooding."""
    if snapshot.ground_condition == GroundCondition.ALREADY_FLOODED:
        if level < FloodLevel.SEVERE:
            return FloodLevel.SEVERE, OVERRIDE_ALREADY_FLOODED
        return level, None

    history = snapshot.flood_history
    if (
        history.coverage == FloodCoverage.BEYOND_POLYGON
        and history.frequency == FloodFrequency.VERY_FREQUENT
        and level < FloodLevel.HIGH
    ):
        return FloodLevel.HIGH, OVERRIDE_CHRONIC_OVERFLOW

    return level, None


# ═══════════════════════════════════════════════════════════════════════════
# Core evaluation
# ═══════════════════════════════════════════════════════════════════════════

def evaluate(snapshot: Area) -> RiskAssessment:
    """
    Score one area snapshot.

    The snapshot must carry the weather for this evaluation already
    merged in (see ``Area.with_weather``).

    Returns
    -------
    RiskAssessment
        Composite score, per-category breakdown and final level.

    The breakdown reports each category's contribution to the
    pre-multiplier composite (so they sum to it), plus the intermediate
    layer scores and the multiplier itself.
    """
    b_factors = base_factors(snapshot)
    w_factors = weather_factors(snapshot)

    s_base = base_score(b_factors)
    s_weather = weather_score(w_factors, snapshot.weather.has_storm_alert)
    multiplier = exposure_multiplier(snapshot)

    score = _clamp((W_BASE * s_base + W_WEATHER * s_weather) * multiplier)

    breakdown: Dict[str, float] = {}
    for key, value in b_factors.items():
        breakdown[key] = W_BASE * BASE_WEIGHTS[key] * value
    # Weather contributions are reported unclamped; the storm offset is separate
    for key, value in w_factors.items():
        breakdown[key] = W_WEATHER * WEATHER_WEIGHTS[key] * value
    breakdown["storm_alert"] = (
        W_WEATHER * STORM_ALERT_OFFSET if snapshot.weather.has_storm_alert else 0.0
    )
    breakdown["base_score"] = s_base
    breakdown["weather_score"] = s_weather
    breakdown["exposure_multiplier"] = multiplier

    level, override = apply_overrides(classify_score(score), snapshot)

    return RiskAssessment(
        score=score,
        level=level,
        breakdown=breakdown,
        override=override,
    )


class RiskScoringEngine:
    """
    Service-object wrapper around ``evaluate``.

    Holds no state; exists so the scheduler can be handed an engine
    (and tests a stub) through its constructor.
    """

    def evaluate(self, snapshot: Area) -> RiskAssessment:
        assessment = evaluate(snapshot)
        logger.debug(
            "Scored area %s: %.3f → %s%s",
            snapshot.id, assessment.score, assessment.level.label,
            f" (override: {assessment.override})" if assessment.override else "",
        )
        return assessment
