# astrochart/core/transits.py
"""
Transit positions: the sky for an instant (default: now) at a location
(default: Greenwich, or a stored profile's birthplace), plus the moon phase.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from astrochart.core.chart import Chart, assemble
from astrochart.core.constants import DEFAULT_HOUSE_SYSTEM
from astrochart.core.ephemeris_adapter import EphemerisProvider
from astrochart.core.errors import ProfileNotFoundError
from astrochart.core.moon_phase import MoonPhase, moon_phase_for_chart
from astrochart.core.profiles import ProfileStore
from astrochart.core.resolver import GeoCoordinates

__all__ = ["GREENWICH", "TransitResult", "transits"]

GREENWICH = GeoCoordinates(0.0, 0.0, "Greenwich")


@dataclass(frozen=True)
class TransitResult:
    chart: Chart
    moon_phase: Optional[MoonPhase]
    profile_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.chart.to_dict(),
            "profile": self.profile_name,
            "moon_phase": self.moon_phase.to_dict() if self.moon_phase else None,
        }


def transits(
    instant: Optional[datetime] = None,
    coordinates: Optional[GeoCoordinates] = None,
    profile: Optional[str] = None,
    store: Optional[ProfileStore] = None,
    bodies: Optional[Iterable[str]] = None,
    house_system: str = DEFAULT_HOUSE_SYSTEM,
    provider: Optional[EphemerisProvider] = None,
) -> TransitResult:
    """Explicit coordinates win over a profile's location; Greenwich otherwise."""
    when = (instant or datetime.now(timezone.utc)).astimezone(timezone.utc)

    profile_name = None
    where = coordinates
    if where is None and profile:
        store = store or ProfileStore()
        p = store.lookup(profile)
        if p is None:
            raise ProfileNotFoundError(profile, [(x.name, x.location or None) for x in store.list_all()])
        where = GeoCoordinates(p.latitude, p.longitude, p.location or None)
        profile_name = p.name
    where = where or GREENWICH

    chart = assemble(when, where, bodies, house_system, provider)
    return TransitResult(chart=chart, moon_phase=moon_phase_for_chart(chart), profile_name=profile_name)
