# astrochart/core/chart.py
# -----------------------------------------------------------------------------
# Chart Assembler
#
#   assemble(instant, coordinates, bodies=None, house_system="placidus",
#            provider=None) -> Chart
#
# • Queries the provider once per body and once for houses at JD(UT).
# • Every longitude is normalized before sign/degree derivation.
# • South Node is derived (North Node + 180°), never requested.
# • Descendant / IC are derived from Ascendant / MC; the opposition is then
#   re-checked and a violation is fatal (EphemerisProviderError).
# • Any provider error aborts the whole chart; nothing partial is returned.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import os

from astrochart.core.angles import (
    cusp_steps,
    degree_in_sign,
    format_degree,
    normalize_degrees,
    opposite,
    shortest_delta,
    sign_name,
)
from astrochart.core.constants import (
    ALL_BODIES,
    DEFAULT_HOUSE_SYSTEM,
    DERIVED_BODIES,
    HOUSE_SYSTEM_CODES,
    MAJOR_BODIES,
    POLAR_CIRCLE_DEG,
    QUADRANT_HOUSE_SYSTEMS,
)
from astrochart.core.ephemeris_adapter import EphemerisProvider, RawHouses, get_default_provider
from astrochart.core.errors import ConfigurationWarning, EphemerisProviderError, ValidationError, err
from astrochart.core.resolver import GeoCoordinates
from astrochart.core.timescales import TimeScales, build_timescales

log = logging.getLogger(__name__)

__all__ = [
    "CelestialBodyPosition",
    "ChartAngles",
    "HouseCusps",
    "Chart",
    "assemble",
    "derive_angles",
    "validate_cusps",
    "polar_warning",
]

# Exact in IEEE terms after normalize(); a hair of slack for the re-check.
_ANGLE_EPS_DEG = 1e-9
POLAR_LAT_DEG = float(os.getenv("ASTRO_POLAR_LAT", str(POLAR_CIRCLE_DEG)))

# ───────────────────────── result types ─────────────────────────

@dataclass(frozen=True)
class CelestialBodyPosition:
    name: str
    longitude: float
    latitude: float
    distance: float
    speed: float
    retrograde: bool
    sign: str
    degree_in_sign: float

    @classmethod
    def from_raw(cls, name: str, longitude: float, latitude: float, distance: float, speed: float) -> "CelestialBodyPosition":
        lon = normalize_degrees(longitude)
        return cls(
            name=name,
            longitude=lon,
            latitude=float(latitude),
            distance=float(distance),
            speed=float(speed),
            # the Sun never appears retrograde from Earth
            retrograde=(name != "Sun" and float(speed) < 0.0),
            sign=sign_name(lon),
            degree_in_sign=degree_in_sign(lon),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "distance": self.distance,
            "speed": self.speed,
            "retrograde": self.retrograde,
            "sign": self.sign,
            "degree_in_sign": self.degree_in_sign,
            "formatted": format_degree(self.longitude),
        }


@dataclass(frozen=True)
class ChartAngles:
    ascendant: float
    midheaven: float
    descendant: float
    imum_coeli: float

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key in ("ascendant", "midheaven", "descendant", "imum_coeli"):
            v = getattr(self, key)
            out[key] = {"longitude": v, "sign": sign_name(v), "degree_in_sign": degree_in_sign(v),
                        "formatted": format_degree(v)}
        return out


@dataclass(frozen=True)
class HouseCusps:
    system: str
    cusps: Tuple[float, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system": self.system,
            "cusps": [
                {"house": i + 1, "longitude": c, "sign": sign_name(c), "degree_in_sign": degree_in_sign(c),
                 "formatted": format_degree(c)}
                for i, c in enumerate(self.cusps)
            ],
        }


@dataclass(frozen=True)
class Chart:
    timestamp: datetime
    location: GeoCoordinates
    bodies: Dict[str, CelestialBodyPosition]
    angles: ChartAngles
    houses: HouseCusps
    timescales: TimeScales
    warnings: Tuple[ConfigurationWarning, ...] = field(default_factory=tuple)

    @property
    def julian_day(self) -> float:
        return self.timescales.jd_ut

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "julian_day": self.julian_day,
            "timescales": self.timescales.to_dict(),
            "location": self.location.to_dict(),
            "bodies": {k: v.to_dict() for k, v in self.bodies.items()},
            "angles": self.angles.to_dict(),
            "houses": self.houses.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }

# ───────────────────────── derivations ─────────────────────────

def derive_angles(ascendant: float, midheaven: float) -> ChartAngles:
    asc = normalize_degrees(ascendant)
    mc = normalize_degrees(midheaven)
    angles = ChartAngles(ascendant=asc, midheaven=mc, descendant=opposite(asc), imum_coeli=opposite(mc))
    for a, b, label in ((angles.ascendant, angles.descendant, "ascendant/descendant"),
                        (angles.midheaven, angles.imum_coeli, "midheaven/imum_coeli")):
        if abs(abs(shortest_delta(a, b)) - 180.0) > _ANGLE_EPS_DEG:
            raise EphemerisProviderError("angles", f"{label} not in exact opposition", a=a, b=b)
    return angles


def validate_cusps(cusps: Sequence[float]) -> bool:
    """True iff the 12 cusps advance around the circle exactly once from cusp 1."""
    if len(cusps) != 12:
        return False
    steps = cusp_steps(cusps)
    return all(s > 0.0 for s in steps) and abs(sum(steps) - 360.0) < 1e-6


def polar_warning(system: str, latitude: float) -> Optional[ConfigurationWarning]:
    """Caveat for quadrant systems beyond the polar circle; None elsewhere."""
    if system in QUADRANT_HOUSE_SYSTEMS and abs(latitude) > POLAR_LAT_DEG:
        return ConfigurationWarning(
            "houses_polar_degenerate_possible",
            f"{system} houses degenerate for circumpolar ecliptic points beyond "
            f"±{POLAR_LAT_DEG}° latitude; cusps are shown as computed, without correction",
        )
    return None


def build_house_cusps(
    raw: RawHouses,
    system: str,
    latitude: float,
) -> Tuple[HouseCusps, List[ConfigurationWarning]]:
    """Normalize provider cusps; at polar latitudes an out-of-order set passes through with a warning."""
    cusps = tuple(normalize_degrees(c) for c in raw.cusps)
    warnings: List[ConfigurationWarning] = []
    pw = polar_warning(system, latitude)
    if pw is not None:
        warnings.append(pw)
    if not validate_cusps(cusps):
        if pw is None:
            raise EphemerisProviderError("house_cusps", "cusps are not monotonic", system=system, cusps=list(cusps))
        log.info("%s cusps non-monotonic at lat %.4f; passed through", system, latitude)
    return HouseCusps(system=system, cusps=cusps), warnings


def resolve_bodies(bodies: Optional[Iterable[str]]) -> List[str]:
    if bodies is None:
        return list(MAJOR_BODIES)
    out: List[str] = []
    for b in bodies:
        if b not in ALL_BODIES:
            raise ValidationError(err("bodies", f"unknown body {b!r}"))
        if b not in out:
            out.append(b)
    return out

# ───────────────────────── assembler ─────────────────────────

def assemble(
    instant: datetime,
    coordinates: GeoCoordinates,
    bodies: Optional[Iterable[str]] = None,
    house_system: str = DEFAULT_HOUSE_SYSTEM,
    provider: Optional[EphemerisProvider] = None,
    warnings: Sequence[ConfigurationWarning] = (),
) -> Chart:
    if instant.tzinfo is None:
        raise ValidationError(err("instant", "instant must be timezone-aware (UTC)"))
    code = HOUSE_SYSTEM_CODES.get(house_system)
    if code is None:
        raise ValidationError(err("house_system", f"unknown house system {house_system!r}"))

    provider = provider or get_default_provider()
    names = resolve_bodies(bodies)
    utc = instant.astimezone(timezone.utc)
    ts = build_timescales(utc)
    jd_ut = ts.jd_ut

    # derived points need their source; fetch it even when not requested
    fetch = list(names)
    for derived, source in DERIVED_BODIES.items():
        if derived in fetch and source not in fetch:
            fetch.append(source)

    positions: Dict[str, CelestialBodyPosition] = {}
    for name in fetch:
        if name in DERIVED_BODIES:
            continue
        raw = provider.body_position(jd_ut, name)
        positions[name] = CelestialBodyPosition.from_raw(name, raw.longitude, raw.latitude, raw.distance, raw.speed)

    for derived, source in DERIVED_BODIES.items():
        if derived in names:
            src = positions[source]
            positions[derived] = CelestialBodyPosition.from_raw(
                derived, opposite(src.longitude), -src.latitude, src.distance, src.speed
            )

    raw_houses = provider.house_cusps(jd_ut, coordinates, code)
    angles = derive_angles(raw_houses.ascendant, raw_houses.midheaven)
    houses, house_warnings = build_house_cusps(raw_houses, house_system, coordinates.latitude)

    all_warnings = list(warnings) + [ConfigurationWarning(w, _TIMESCALE_NOTES.get(w, w)) for w in ts.warnings]
    all_warnings += house_warnings

    return Chart(
        timestamp=utc,
        location=coordinates,
        bodies={n: positions[n] for n in names},
        angles=angles,
        houses=houses,
        timescales=ts,
        warnings=tuple(all_warnings),
    )


_TIMESCALE_NOTES: Dict[str, str] = {
    "pre_1960_utc_approximate": "UTC is not defined before 1960; leap-second offset treated as 0",
    "leap_seconds_extrapolated": "date is beyond the leap-second table; TAI−UTC extrapolated",
}
