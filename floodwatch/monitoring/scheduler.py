"""
Monitoring scheduler — periodic re-evaluation of every tracked area.

═══════════════════════════════════════════════════════════════════════════
CYCLE
═══════════════════════════════════════════════════════════════════════════

    1. load all areas from the store
    2. split into batches of MONITOR_BATCH_SIZE (3)
    3. batches run one after another; areas inside a batch run concurrently
    4. per area: weather → snapshot → evaluate → persist on level change
    5. Live mode pauses MONITOR_BATCH_DELAY_SECONDS between batches to stay
       under the weather provider's rate limit; Demo mode never pauses
    6. notify_changed() once if at least one area changed level

The stop signal is checked between batches.  A batch already in flight is
always allowed to finish, so every write that started is committed and no
area is left half-updated.

═══════════════════════════════════════════════════════════════════════════
MODES
═══════════════════════════════════════════════════════════════════════════

    LIVE  — weather from the provider, every 300 s; needs a valid API key
    DEMO  — weather from the selected scenario, every 10 s

The first cycle runs immediately on start(); later cycles follow the mode's
period.  Only one cycle ever runs at a time.

═══════════════════════════════════════════════════════════════════════════
FAILURES
═══════════════════════════════════════════════════════════════════════════

    FetchError / ParseError for an area    → area skipped this cycle
    forecast FetchError                    → forecast rainfall taken as 0
    PersistenceError / update() == False   → area counted as failed
    store.list() failure                   → cycle ends with no areas
    anything else inside an area           → logged, area counted as failed

Nothing stops the loop except stop().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from floodwatch.core.config import settings
from floodwatch.core.errors import FetchError, ParseError, PersistenceError
from floodwatch.core.logging_config import clear_cycle_context, set_cycle_context
from floodwatch.domain.models import Area, Coordinate, WeatherSnapshot
from floodwatch.ingestion.scenarios import DemoScenario, ScenarioCatalog
from floodwatch.ingestion.weather_provider import OpenWeatherProvider, WeatherProvider
from floodwatch.scoring.engine import RiskScoringEngine
from floodwatch.storage.area_store import AreaStore

logger = logging.getLogger(__name__)

NotifyCallback = Callable[[], Union[None, Awaitable[None]]]


# ═══════════════════════════════════════════════════════════════════════════
# State Models
# ═══════════════════════════════════════════════════════════════════════════

class SchedulerState(str, Enum):
    IDLE = "idle"
    MONITORING = "monitoring"


class MonitoringMode(str, Enum):
    LIVE = "live"
    DEMO = "demo"


class AreaOutcome(str, Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class Transition:
    area_id: str
    previous_level: str
    new_level: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area_id": self.area_id,
            "from": self.previous_level,
            "to": self.new_level,
            "score": round(self.score, 4),
        }


@dataclass
class CycleReport:
    """What one monitoring cycle did."""
    cycle: int
    mode: MonitoringMode
    started_at: datetime
    scenario: Optional[str] = None
    completed_at: Optional[datetime] = None
    areas_total: int = 0
    batches: int = 0
    unchanged: int = 0
    changed: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    notified: bool = False
    duration_ms: float = 0.0
    transitions: List[Transition] = field(default_factory=list)

    @property
    def dirty(self) -> bool:
        return self.changed > 0

    @property
    def evaluated(self) -> int:
        return self.unchanged + self.changed + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle": self.cycle,
            "mode": self.mode.value,
            "scenario": self.scenario,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": round(self.duration_ms, 1),
            "areas_total": self.areas_total,
            "batches": self.batches,
            "evaluated": self.evaluated,
            "unchanged": self.unchanged,
            "changed": self.changed,
            "skipped": self.skipped,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "notified": self.notified,
            "transitions": [t.to_dict() for t in self.transitions],
        }


@dataclass
class _AreaResult:
    outcome: AreaOutcome
    transition: Optional[Transition] = None


# ═══════════════════════════════════════════════════════════════════════════
# Scheduler
# ═══════════════════════════════════════════════════════════════════════════

class MonitoringScheduler:
    """
    Runs monitoring cycles over an AreaStore.

    Usage:
        scheduler = MonitoringScheduler(store, notify_changed=refresh_ui)

        await scheduler.start(MonitoringMode.DEMO)
        scheduler.advance_scenario()      # next tick uses the new weather
        await scheduler.stop()

    ``provider_factory`` is called the first time Live weather is needed.
    The default builds an OpenWeatherProvider from settings, which raises
    ConfigurationError when the API key is missing or malformed.
    """

    def __init__(
        self,
        store: AreaStore,
        *,
        provider_factory: Optional[Callable[[], WeatherProvider]] = None,
        engine: Optional[RiskScoringEngine] = None,
        catalog: Optional[ScenarioCatalog] = None,
        notify_changed: Optional[NotifyCallback] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        live_interval: Optional[float] = None,
        demo_interval: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._provider_factory = provider_factory or OpenWeatherProvider
        self._provider: Optional[WeatherProvider] = None
        self._engine = engine or RiskScoringEngine()
        self.catalog = catalog or ScenarioCatalog()
        self._notify_changed = notify_changed

        self.batch_size = batch_size or settings.MONITOR_BATCH_SIZE
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        self.batch_delay = (
            settings.MONITOR_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
        )
        self._intervals = {
            MonitoringMode.LIVE: (
                settings.MONITOR_LIVE_INTERVAL_SECONDS if live_interval is None else live_interval
            ),
            MonitoringMode.DEMO: (
                settings.MONITOR_DEMO_INTERVAL_SECONDS if demo_interval is None else demo_interval
            ),
        }
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._state = SchedulerState.IDLE
        self._mode = MonitoringMode(settings.MONITOR_DEFAULT_MODE)
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._cycle_running = False
        self._cycle_count = 0
        self._last_update: Optional[datetime] = None
        self._last_report: Optional[CycleReport] = None

    # ── Properties ──

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def mode(self) -> MonitoringMode:
        return self._mode

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_running

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    def interval_for(self, mode: MonitoringMode) -> float:
        return self._intervals[mode]

    # ── Lifecycle ──

    async def start(self, mode: Union[MonitoringMode, str] = MonitoringMode.DEMO) -> bool:
        """
        Begin monitoring in ``mode``.

        Returns False (and changes nothing) when already monitoring.
        Raises ConfigurationError for Live mode without a valid API key;
        the scheduler then stays idle.
        """
        mode = MonitoringMode(mode)
        if self._state is SchedulerState.MONITORING:
            logger.info("Monitoring already running (%s), start ignored", self._mode.value)
            return False

        if mode is MonitoringMode.LIVE:
            self._ensure_provider()

        self._mode = mode
        self._stop_event = asyncio.Event()
        self._state = SchedulerState.MONITORING
        self._task = asyncio.create_task(self._run_loop(self._stop_event))
        logger.info(
            "Monitoring started in %s mode (every %.0fs)",
            mode.value, self.interval_for(mode), extra={"mode": mode.value},
        )
        return True

    async def stop(self) -> None:
        """Signal stop and wait for the in-flight batch to finish. Idempotent."""
        task = self._task
        if self._stop_event is not None:
            self._stop_event.set()
        if task is not None:
            await task
        self._task = None
        self._stop_event = None
        if self._state is not SchedulerState.IDLE:
            logger.info("Monitoring stopped after %d cycles", self._cycle_count)
        self._state = SchedulerState.IDLE

    async def close(self) -> None:
        """Stop monitoring and release the weather provider."""
        await self.stop()
        close = getattr(self._provider, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

    def advance_scenario(self) -> DemoScenario:
        """Select the next demo scenario; takes effect on the next cycle."""
        scenario = self.catalog.advance()
        logger.info("Demo scenario switched to %s", scenario.name,
                    extra={"scenario": scenario.name})
        return scenario

    def status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "mode": self._mode.value,
            "scenario": self.catalog.current.name,
            "interval_seconds": self.interval_for(self._mode),
            "cycle_count": self._cycle_count,
            "cycle_running": self._cycle_running,
            "last_update": self._last_update.isoformat() if self._last_update else None,
            "last_cycle": self._last_report.to_dict() if self._last_report else None,
        }

    # ── Loop ──

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Monitoring cycle crashed")

            if stop_event.is_set():
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_for(self._mode))
            except asyncio.TimeoutError:
                pass

    async def _pause_between_batches(self) -> None:
        """Rate-limit pause; returns early when stop is signalled."""
        if self.batch_delay <= 0:
            return
        if self._stop_event is None:
            await asyncio.sleep(self.batch_delay)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.batch_delay)
        except asyncio.TimeoutError:
            pass

    # ── Cycle ──

    def _ensure_provider(self) -> WeatherProvider:
        if self._provider is None:
            self._provider = self._provider_factory()
        return self._provider

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one cycle in the current mode.

        Returns None without doing anything if a cycle is already running.
        """
        if self._cycle_running:
            logger.warning("Cycle already in progress, request skipped")
            return None

        self._cycle_running = True
        self._cycle_count += 1
        mode = self._mode
        # Scenario is fixed for the whole cycle even if advanced meanwhile
        scenario = self.catalog.current if mode is MonitoringMode.DEMO else None
        report = CycleReport(
            cycle=self._cycle_count,
            mode=mode,
            started_at=self._clock(),
            scenario=scenario.name if scenario else None,
        )
        set_cycle_context(cycle=report.cycle, mode=mode.value)
        t0 = time.perf_counter()

        try:
            demo_weather = scenario.to_weather() if scenario else None
            provider = self._ensure_provider() if mode is MonitoringMode.LIVE else None

            try:
                areas = await self._store.list()
            except Exception:
                logger.exception("Could not load areas, cycle ends empty")
                areas = []
            report.areas_total = len(areas)

            await self._run_batches(areas, report, provider, demo_weather)
            await self._notify(report)
        finally:
            report.completed_at = self._clock()
            report.duration_ms = (time.perf_counter() - t0) * 1000
            self._last_report = report
            self._last_update = report.completed_at
            self._cycle_running = False
            logger.info(
                "Cycle %d done: %d areas, %d changed, %d skipped, %d failed%s",
                report.cycle, report.areas_total, report.changed, report.skipped,
                report.failed, " (stopped early)" if report.cancelled else "",
                extra={"duration_ms": round(report.duration_ms, 1)},
            )
            clear_cycle_context()

        return report

    def _batches(self, areas: Sequence[Area]) -> List[Sequence[Area]]:
        return [areas[i:i + self.batch_size] for i in range(0, len(areas), self.batch_size)]

    async def _run_batches(
        self,
        areas: Sequence[Area],
        report: CycleReport,
        provider: Optional[WeatherProvider],
        demo_weather: Optional[WeatherSnapshot],
    ) -> None:
        for index, batch in enumerate(self._batches(areas)):
            if index > 0:
                if self._stop_requested():
                    report.cancelled = True
                    break
                if report.mode is MonitoringMode.LIVE:
                    await self._pause_between_batches()
                    if self._stop_requested():
                        report.cancelled = True
                        break

            logger.debug("Batch %d: %d areas", index + 1, len(batch),
                         extra={"batch": index + 1})
            results = await asyncio.gather(
                *(self._process_area(area, provider, demo_weather) for area in batch),
                return_exceptions=True,
            )
            report.batches += 1

            for area, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(
                        "Unexpected error on area %s: %r", area.id, result,
                        exc_info=result, extra={"area_id": area.id},
                    )
                    report.failed += 1
                    continue
                if result.outcome is AreaOutcome.CHANGED:
                    report.changed += 1
                    report.transitions.append(result.transition)
                elif result.outcome is AreaOutcome.UNCHANGED:
                    report.unchanged += 1
                elif result.outcome is AreaOutcome.SKIPPED:
                    report.skipped += 1
                else:
                    report.failed += 1

    async def _live_weather(
        self, area: Area, anchor: Coordinate, provider: WeatherProvider,
    ) -> WeatherSnapshot:
        current = await provider.fetch_current(anchor.latitude, anchor.longitude)
        try:
            forecast = await provider.fetch_forecast(anchor.latitude, anchor.longitude)
        except FetchError as e:
            logger.warning("Forecast unavailable for area %s, using 0: %s",
                           area.id, e.message, extra={"area_id": area.id})
            forecast = 0.0
        return WeatherSnapshot(
            rainfall_mm_hr=current.rainfall_mm_hr,
            forecast_rainfall_mm=forecast,
            wind_speed_kmh=current.wind_speed_kmh,
            temperature_c=current.temperature_c,
            storm_alert=current.storm_alert,
        )

    async def _process_area(
        self,
        area: Area,
        provider: Optional[WeatherProvider],
        demo_weather: Optional[WeatherSnapshot],
    ) -> _AreaResult:
        try:
            # Both modes require a valid anchor
            anchor = area.geometry.anchor()
            if demo_weather is not None:
                weather = demo_weather
            else:
                weather = await self._live_weather(area, anchor, provider)
        except (FetchError, ParseError) as e:
            logger.warning("Skipping area %s: %s", area.id, e.message,
                           extra={"area_id": area.id})
            return _AreaResult(AreaOutcome.SKIPPED)

        assessment = self._engine.evaluate(area.with_weather(weather))
        if assessment.level == area.risk_level:
            return _AreaResult(AreaOutcome.UNCHANGED)

        fields = {
            "risk_level": assessment.level,
            "weather": weather,
            "last_risk_update": self._clock(),
        }
        try:
            written = await self._store.update(area.id, fields)
        except PersistenceError as e:
            logger.error("Could not persist area %s: %s", area.id, e.message,
                         extra={"area_id": area.id})
            return _AreaResult(AreaOutcome.FAILED)
        if not written:
            logger.warning("Area %s vanished before update", area.id,
                           extra={"area_id": area.id})
            return _AreaResult(AreaOutcome.FAILED)

        logger.info(
            "Area %s: %s → %s", area.id, area.risk_level.label, assessment.level.label,
            extra={
                "area_id": area.id,
                "previous_level": area.risk_level.label,
                "risk_level": assessment.level.label,
                "score": round(assessment.score, 4),
            },
        )
        return _AreaResult(
            AreaOutcome.CHANGED,
            Transition(area.id, area.risk_level.label, assessment.level.label, assessment.score),
        )

    async def _notify(self, report: CycleReport) -> None:
        if not report.dirty or self._notify_changed is None:
            return
        try:
            result = self._notify_changed()
            if inspect.isawaitable(result):
                await result
            report.notified = True
        except Exception:
            logger.exception("Refresh notification failed")
