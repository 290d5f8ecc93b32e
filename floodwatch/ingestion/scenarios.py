"""
scenarios.py — Canned weather for demo-mode monitoring.

Demo mode runs the full monitoring loop without an external provider: every
area in a cycle receives the weather of the currently selected scenario.
The operator steps through the catalog manually; stepping only changes what
the *next* tick will use and never triggers a recompute on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from floodwatch.domain.models import WeatherSnapshot


@dataclass(frozen=True)
class DemoScenario:
    """One named weather situation."""
    name: str
    rainfall_mm_hr: float
    wind_speed_kmh: float
    temperature_c: float
    forecast_rainfall_mm: float
    storm_alert: str = ""

    def to_weather(self) -> WeatherSnapshot:
        return WeatherSnapshot(
            rainfall_mm_hr=self.rainfall_mm_hr,
            forecast_rainfall_mm=self.forecast_rainfall_mm,
            wind_speed_kmh=self.wind_speed_kmh,
            temperature_c=self.temperature_c,
            storm_alert=self.storm_alert,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rainfall": self.rainfall_mm_hr,
            "windSpeed": self.wind_speed_kmh,
            "temperature": self.temperature_c,
            "forecastRainfall": self.forecast_rainfall_mm,
            "stormAlerts": self.storm_alert,
        }


DEFAULT_SCENARIOS: Sequence[DemoScenario] = (
    DemoScenario("Heavy Rain Storm", 35.0, 55.0, 24.0, 160.0, "Thunderstorm Warning"),
    DemoScenario("Severe Typhoon", 60.0, 150.0, 25.0, 320.0, "Typhoon Signal No. 3"),
    DemoScenario("Super Typhoon", 100.0, 220.0, 26.0, 450.0, "Super Typhoon Warning"),
    DemoScenario("Moderate Rain", 10.0, 20.0, 27.0, 45.0),
    DemoScenario("Clear Weather", 0.0, 8.0, 31.0, 0.0),
)


class ScenarioCatalog:
    """
    Fixed, ordered scenario list with a cursor.

    Usage:
        catalog = ScenarioCatalog()
        catalog.current.name      # "Heavy Rain Storm"
        catalog.advance().name    # "Severe Typhoon"
    """

    def __init__(
        self,
        scenarios: Optional[Sequence[DemoScenario]] = None,
        start_index: int = 0,
    ):
        self._scenarios: List[DemoScenario] = list(
            DEFAULT_SCENARIOS if scenarios is None else scenarios
        )
        if not self._scenarios:
            raise ValueError("Scenario catalog must not be empty")
        self._index = start_index % len(self._scenarios)

    def __len__(self) -> int:
        return len(self._scenarios)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> DemoScenario:
        return self._scenarios[self._index]

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._scenarios]

    def advance(self) -> DemoScenario:
        """Select the next scenario, wrapping after the last one."""
        self._index = (self._index + 1) % len(self._scenarios)
        return self.current

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            {**s.to_dict(), "selected": i == self._index}
            for i, s in enumerate(self._scenarios)
        ]
