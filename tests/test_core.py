"""
Tests for ambient infrastructure: error hierarchy, structured logging and
the high-risk alert digest.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta

from conftest import FIXED_NOW, risky_area, safe_area
from floodwatch.core.errors import (
    ConfigurationError,
    FetchError,
    FloodWatchError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from floodwatch.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    clear_cycle_context,
    get_cycle_context,
    set_cycle_context,
)
from floodwatch.domain.models import FloodLevel
from floodwatch.monitoring.alerts import build_alert_digest


class TestErrorHierarchy:
    def test_all_subclass_base(self):
        for cls in (ConfigurationError, FetchError, ParseError, PersistenceError,
                    ValidationError):
            assert issubclass(cls, FloodWatchError)

    def test_status_codes(self):
        assert ConfigurationError("x").status_code == 503
        assert FetchError("svc", "x").status_code == 502
        assert ParseError("x").status_code == 422
        assert PersistenceError("a1").status_code == 500
        assert ValidationError("x", field="f").status_code == 422

    def test_fetch_error_details(self):
        err = FetchError("openweathermap", "HTTP 429", status_code=429, lat=1.0)
        assert err.error_code == "FETCH_ERROR"
        assert err.details == {"service": "openweathermap", "status_code": 429, "lat": 1.0}
        assert "openweathermap" in err.message

    def test_persistence_error_names_area(self):
        err = PersistenceError("a7", "locked")
        assert err.details["area_id"] == "a7"
        assert "a7" in str(err)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("floodwatch.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:
    def teardown_method(self):
        clear_cycle_context()

    def test_cycle_context_round_trip(self):
        set_cycle_context(cycle=4, mode="demo")
        assert get_cycle_context() == {"cycle": 4, "mode": "demo"}
        clear_cycle_context()
        assert get_cycle_context() == {}

    def test_json_formatter_includes_context_and_extras(self):
        set_cycle_context(cycle=2, mode="live")
        out = json.loads(JSONFormatter().format(_record(area_id="a1", risk_level="High")))
        assert out["message"] == "hello"
        assert out["context"] == {"cycle": 2, "mode": "live"}
        assert out["area_id"] == "a1"
        assert out["risk_level"] == "High"

    def test_json_formatter_without_context(self):
        out = json.loads(JSONFormatter().format(_record()))
        assert "context" not in out
        assert out["level"] == "INFO"

    def test_pretty_formatter_shows_cycle(self):
        set_cycle_context(cycle=9, mode="demo")
        assert "[cycle 9/demo]" in PrettyFormatter().format(_record())


class TestAlertDigest:
    def test_only_high_and_severe(self):
        digest = build_alert_digest([
            risky_area("sev", risk_level=FloodLevel.SEVERE),
            risky_area("high", risk_level=FloodLevel.HIGH),
            safe_area("mod", risk_level=FloodLevel.MODERATE),
            safe_area("low", risk_level=FloodLevel.LOW),
        ])
        assert [a.id for a in digest.areas] == ["sev", "high"]
        assert digest.severe_count == 1
        assert digest.high_count == 1
        assert digest.headline == "Severe Flood Risk Alert"

    def test_high_only_headline(self):
        digest = build_alert_digest([risky_area("h", risk_level=FloodLevel.HIGH)])
        assert digest.headline == "High Flood Risk Alert"

    def test_empty(self):
        digest = build_alert_digest([safe_area()])
        assert digest.headline is None
        assert digest.to_dict()["total"] == 0

    def test_most_recent_first_within_level(self):
        older = risky_area("older", risk_level=FloodLevel.HIGH,
                           last_risk_update=FIXED_NOW - timedelta(hours=1))
        newer = risky_area("newer", risk_level=FloodLevel.HIGH, last_risk_update=FIXED_NOW)
        digest = build_alert_digest([older, newer])
        assert [a.id for a in digest.areas] == ["newer", "older"]
