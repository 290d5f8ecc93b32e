"""
High-risk area digest for the presentation layer.

Collects every area currently at High or Severe, most severe first, plus the
headline the operator banner shows ("Severe Flood Risk Alert" as soon as a
single area is Severe).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from floodwatch.domain.models import Area, FloodLevel

ALERT_LEVELS = (FloodLevel.HIGH, FloodLevel.SEVERE)


@dataclass
class AlertDigest:
    areas: List[Area] = field(default_factory=list)

    @property
    def severe_count(self) -> int:
        return sum(1 for a in self.areas if a.risk_level is FloodLevel.SEVERE)

    @property
    def high_count(self) -> int:
        return sum(1 for a in self.areas if a.risk_level is FloodLevel.HIGH)

    @property
    def headline(self) -> Optional[str]:
        if not self.areas:
            return None
        if self.severe_count:
            return "Severe Flood Risk Alert"
        return "High Flood Risk Alert"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "total": len(self.areas),
            "severe": self.severe_count,
            "high": self.high_count,
            "areas": [a.summary() for a in self.areas],
        }


def build_alert_digest(areas: Iterable[Area]) -> AlertDigest:
    flagged = [a for a in areas if a.risk_level in ALERT_LEVELS]
    # Severe first, then most recently changed, then id for stable output
    flagged.sort(key=lambda a: (
        -int(a.risk_level),
        -(a.last_risk_update.timestamp() if a.last_risk_update else 0.0),
        a.id,
    ))
    return AlertDigest(areas=flagged)
