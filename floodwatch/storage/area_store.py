"""
area_store.py — Record store contract used by the monitoring loop.

The scheduler reads every area once per cycle and writes back only the
three monitoring-owned fields, and only on a level transition.  Stores
refuse any other key so that a monitoring write can never clobber data
owned by the intake workflow.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol

from floodwatch.core.errors import PersistenceError
from floodwatch.domain.models import Area

logger = logging.getLogger(__name__)

ALLOWED_UPDATE_FIELDS: FrozenSet[str] = frozenset(
    {"risk_level", "weather", "last_risk_update"}
)


def check_update_fields(area_id: str, fields: Mapping[str, Any]) -> None:
    """Raise PersistenceError if ``fields`` holds a key monitoring does not own."""
    extra = set(fields) - ALLOWED_UPDATE_FIELDS
    if extra:
        raise PersistenceError(area_id, f"fields not writable: {sorted(extra)}")


class AreaStore(Protocol):
    async def list(self) -> List[Area]:
        ...

    async def get(self, area_id: str) -> Optional[Area]:
        ...

    async def update(self, area_id: str, fields: Dict[str, Any]) -> bool:
        """Apply a partial update; False when the area no longer exists."""
        ...


class InMemoryAreaStore:
    """Dict-backed store for demos and tests."""

    def __init__(self, areas: Optional[Iterable[Area]] = None):
        self._areas: Dict[str, Area] = {a.id: a for a in (areas or [])}

    def __len__(self) -> int:
        return len(self._areas)

    def add(self, area: Area) -> None:
        self._areas[area.id] = area

    def remove(self, area_id: str) -> None:
        self._areas.pop(area_id, None)

    async def list(self) -> List[Area]:
        return list(self._areas.values())

    async def get(self, area_id: str) -> Optional[Area]:
        return self._areas.get(area_id)

    async def update(self, area_id: str, fields: Dict[str, Any]) -> bool:
        check_update_fields(area_id, fields)
        current = self._areas.get(area_id)
        if current is None:
            logger.warning("Update for unknown area %s dropped", area_id,
                           extra={"area_id": area_id})
            return False
        self._areas[area_id] = replace(current, **fields)
        return True
