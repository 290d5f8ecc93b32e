"""
FastAPI route: score an area on demand.

Runs the same engine the monitoring loop uses, with the weather supplied in
the request.  Nothing is stored.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from floodwatch.api.schemas import AreaEvaluateRequest, RiskAssessmentOut
from floodwatch.scoring.engine import RiskScoringEngine

router = APIRouter(prefix="/api/v1/risk", tags=["risk"])

_engine = RiskScoringEngine()


@router.post("/evaluate", response_model=RiskAssessmentOut)
async def evaluate_area(request: AreaEvaluateRequest) -> RiskAssessmentOut:
    area = request.to_area()
    assessment = _engine.evaluate(area)
    return RiskAssessmentOut.from_assessment(
        area.id, assessment, datetime.now(timezone.utc)
    )
