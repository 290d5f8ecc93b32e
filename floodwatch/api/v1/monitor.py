"""
FastAPI routes: operator control of the monitoring loop.

    GET  /api/v1/monitor/status         scheduler state + last cycle report
    POST /api/v1/monitor/start?mode=    start Live or Demo monitoring
    POST /api/v1/monitor/stop           stop after the in-flight batch
    POST /api/v1/monitor/scenario/next  select the next demo scenario
    GET  /api/v1/monitor/scenarios      demo catalog, current one flagged
    POST /api/v1/monitor/cycle          run one cycle now
    GET  /api/v1/monitor/alerts         High / Severe area digest
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request

from floodwatch.api.schemas import ScenarioOut, StartResponse
from floodwatch.core.errors import FloodWatchError
from floodwatch.monitoring.alerts import build_alert_digest
from floodwatch.monitoring.scheduler import MonitoringMode, MonitoringScheduler
from floodwatch.storage.area_store import AreaStore

router = APIRouter(prefix="/api/v1/monitor", tags=["monitoring"])


def get_scheduler(request: Request) -> MonitoringScheduler:
    return request.app.state.scheduler


def get_store(request: Request) -> AreaStore:
    return request.app.state.store


@router.get("/status")
async def monitor_status(scheduler: MonitoringScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    return scheduler.status()


@router.post("/start", response_model=StartResponse)
async def start_monitoring(
    mode: MonitoringMode = Query(MonitoringMode.DEMO, description="live or demo"),
    scheduler: MonitoringScheduler = Depends(get_scheduler),
):
    """
    Start monitoring.  Starting while already running is a no-op
    (``started`` is false).  Live mode without a valid OpenWeatherMap key
    answers 503 CONFIGURATION_ERROR.
    """
    started = await scheduler.start(mode)
    return StartResponse(started=started, status=scheduler.status())


@router.post("/stop")
async def stop_monitoring(scheduler: MonitoringScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    await scheduler.stop()
    return scheduler.status()


@router.post("/scenario/next", response_model=ScenarioOut)
async def next_scenario(scheduler: MonitoringScheduler = Depends(get_scheduler)):
    scenario = scheduler.advance_scenario()
    return ScenarioOut(**scenario.to_dict(), selected=True)


@router.get("/scenarios", response_model=List[ScenarioOut])
async def list_scenarios(scheduler: MonitoringScheduler = Depends(get_scheduler)):
    return [ScenarioOut(**s) for s in scheduler.catalog.to_list()]


@router.post("/cycle")
async def run_cycle_now(scheduler: MonitoringScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    report = await scheduler.run_cycle()
    if report is None:
        raise FloodWatchError(
            "A monitoring cycle is already running",
            status_code=409,
            error_code="CYCLE_IN_PROGRESS",
        )
    return report.to_dict()


@router.get("/alerts")
async def high_risk_alerts(store: AreaStore = Depends(get_store)) -> Dict[str, Any]:
    return build_alert_digest(await store.list()).to_dict()
