# astrochart/core/moon_phase.py
"""
Moon Phase Calculator.

    angle        = normalize(moon - sun)            [0, 360)
    illumination = 50 * (1 - cos(angle))            [0, 100] %
    name         = cardinal name within ±tolerance of 0/90/180/270,
                   otherwise crescent/gibbous by quadrant
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import math
import os

from astrochart.core.angles import normalize_degrees, shortest_delta
from astrochart.core.constants import CARDINAL_PHASES, MOON_PHASE_NAMES, MOON_PHASE_SYMBOLS

__all__ = ["MoonPhase", "moon_phase", "phase_name", "phase_symbol", "moon_phase_for_chart", "CARDINAL_TOLERANCE_DEG"]

CARDINAL_TOLERANCE_DEG = float(os.getenv("ASTRO_CARDINAL_TOL_DEG", "2.0"))


@dataclass(frozen=True)
class MoonPhase:
    angle: float
    illumination: float
    name: str

    @property
    def symbol(self) -> str:
        return phase_symbol(self.name)

    @property
    def waxing(self) -> bool:
        return 0.0 < self.angle < 180.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "angle": self.angle,
            "illumination": round(self.illumination, 1),
            "name": self.name,
            "symbol": self.symbol,
            "waxing": self.waxing,
        }


def phase_name(angle: float, tolerance: float = CARDINAL_TOLERANCE_DEG) -> str:
    """
    Cardinal name on [c - tol, c + tol) around 0/90/180/270; otherwise the
    crescent or gibbous name of the quadrant the angle falls in.
    """
    a = normalize_degrees(angle)
    for center, name in CARDINAL_PHASES.items():
        if -tolerance <= shortest_delta(center, a) < tolerance:
            return name
    quadrant = min(3, int(a // 90.0))
    return MOON_PHASE_NAMES[2 * quadrant + 1]


def phase_symbol(name: str) -> str:
    return MOON_PHASE_SYMBOLS.get(name, "")


def moon_phase(sun_longitude: float, moon_longitude: float, tolerance: float = CARDINAL_TOLERANCE_DEG) -> MoonPhase:
    angle = normalize_degrees(float(moon_longitude) - float(sun_longitude))
    illum = 50.0 * (1.0 - math.cos(math.radians(angle)))
    illum = min(100.0, max(0.0, illum))
    return MoonPhase(angle=angle, illumination=illum, name=phase_name(angle, tolerance))


def moon_phase_for_chart(chart: Any) -> Optional[MoonPhase]:
    """Phase from a chart's Sun and Moon, or None when either is missing."""
    sun = chart.bodies.get("Sun")
    moon = chart.bodies.get("Moon")
    if sun is None or moon is None:
        return None
    return moon_phase(sun.longitude, moon.longitude)
