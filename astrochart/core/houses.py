# astrochart/core/houses.py
# -*- coding: utf-8 -*-
"""
House System Engine

- Canonical, slug-based normalization of user-facing house-system names
  with a difflib "did you mean" hint for unknown input.
- Single-system cusps + angles (`compute_houses`).
- Comparison mode (`compare_house_systems`): several systems for one
  instant/location, aligned by house index.
- Polar caveat: quadrant systems beyond the polar circle are passed
  through as computed and carry a `houses_polar_degenerate_possible`
  warning. No correction is attempted. Systems the provider refuses there
  (Swiss Ephemeris: Placidus, Koch) raise PolarHousesUnavailableError for a
  single system and are listed as `unavailable` in a comparison.

Cusp math belongs to the ephemeris provider; this module forwards the
system code and shapes the result.
"""
from __future__ import annotations

import difflib
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Final, List, Optional, Sequence, Tuple

from astrochart.core.angles import format_degree, sign_name
from astrochart.core.chart import (
    ChartAngles,
    HouseCusps,
    build_house_cusps,
    derive_angles,
)
from astrochart.core.constants import (
    DEFAULT_COMPARISON_SYSTEMS,
    DEFAULT_HOUSE_SYSTEM,
    HOUSE_SYSTEM_CODES,
    HOUSE_SYSTEM_DESCRIPTIONS,
    TIME_BASED_HOUSE_SYSTEMS,
)
from astrochart.core.ephemeris_adapter import EphemerisProvider, get_default_provider
from astrochart.core.errors import ConfigurationWarning, PolarHousesUnavailableError, ValidationError, err
from astrochart.core.resolver import GeoCoordinates
from astrochart.core.timescales import build_timescales

log = logging.getLogger(__name__)

__all__ = [
    "HouseResult",
    "HouseComparison",
    "normalize_system",
    "default_house_system",
    "list_house_systems",
    "compute_houses",
    "compare_house_systems",
]

# ──────────────────────────────────────────────────────────────────────────────
# Alias normalization (slug-based)
# ──────────────────────────────────────────────────────────────────────────────
def _slug(s: Optional[str]) -> str:
    if not s:
        return ""
    return "".join(ch for ch in s.lower() if ch.isalnum())


_CANON_FROM_SLUG: Final[Dict[str, str]] = {
    **{_slug(k): k for k in HOUSE_SYSTEM_CODES},
    # common aliases
    "whole": "whole-sign",
    "wholesigns": "whole-sign",
    "porphyry": "porphyrius",
    "alcabitius": "alcabitus",
    "axial": "meridian",
    "axialrotation": "meridian",
    "equalasc": "equal",
}

_CANON_FROM_CODE: Final[Dict[str, str]] = {v: k for k, v in HOUSE_SYSTEM_CODES.items()}


def _suggest_systems(name: str, n: int = 3) -> List[str]:
    pool = list(HOUSE_SYSTEM_CODES)
    best = difflib.get_close_matches(name.lower(), pool, n=n, cutoff=0.6)
    slug_hits = difflib.get_close_matches(_slug(name), list(_CANON_FROM_SLUG), n=n, cutoff=0.6)
    for sh in slug_hits:
        canon = _CANON_FROM_SLUG[sh]
        if canon not in best:
            best.append(canon)
    return best[:n]


def normalize_system(name: Optional[str], loc: str = "house_system") -> str:
    """User input (label, alias or one-letter code) → canonical label."""
    if name is None or (isinstance(name, str) and not name.strip()):
        return default_house_system()
    if not isinstance(name, str):
        raise ValidationError(err(loc, "house system must be a string", "type_error.str"))
    s = name.strip()
    if len(s) == 1 and s.upper() in _CANON_FROM_CODE:
        return _CANON_FROM_CODE[s.upper()]
    canon = _CANON_FROM_SLUG.get(_slug(s))
    if canon is None:
        suggestions = _suggest_systems(s)
        hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
        raise ValidationError(err(loc, f"unsupported house system: '{s}'.{hint}", "value_error.house_system"))
    return canon


def default_house_system() -> str:
    env = os.getenv("ASTRO_DEFAULT_HOUSE_SYSTEM")
    if env:
        canon = _CANON_FROM_SLUG.get(_slug(env))
        if canon:
            return canon
        log.warning("ASTRO_DEFAULT_HOUSE_SYSTEM=%r is not a known system; using %s", env, DEFAULT_HOUSE_SYSTEM)
    return DEFAULT_HOUSE_SYSTEM


def list_house_systems() -> List[Dict[str, Any]]:
    return [
        {
            "name": name,
            "code": code,
            "description": HOUSE_SYSTEM_DESCRIPTIONS.get(name, ""),
            "time_based": name in TIME_BASED_HOUSE_SYSTEMS,
        }
        for name, code in HOUSE_SYSTEM_CODES.items()
    ]

# ──────────────────────────────────────────────────────────────────────────────
# Results
# ──────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class HouseResult:
    houses: HouseCusps
    angles: ChartAngles
    warnings: Tuple[ConfigurationWarning, ...] = field(default_factory=tuple)

    @property
    def system(self) -> str:
        return self.houses.system

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system": self.system,
            "code": HOUSE_SYSTEM_CODES[self.system],
            **{k: v for k, v in self.houses.to_dict().items() if k != "system"},
            "angles": self.angles.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class HouseComparison:
    timestamp: datetime
    location: GeoCoordinates
    results: Tuple[HouseResult, ...]
    # (system, reason) for systems the provider refused at this latitude
    unavailable: Tuple[Tuple[str, str], ...] = ()

    @property
    def systems(self) -> List[str]:
        return [r.system for r in self.results]

    @property
    def warnings(self) -> List[ConfigurationWarning]:
        out: List[ConfigurationWarning] = []
        for r in self.results:
            out.extend(r.warnings)
        out.extend(
            ConfigurationWarning("houses_unavailable_polar", f"{system} omitted: {reason}")
            for system, reason in self.unavailable
        )
        return out

    def rows(self) -> List[Dict[str, Any]]:
        """One row per house: {"house": n, "<system>": longitude, ...}."""
        out: List[Dict[str, Any]] = []
        for i in range(12):
            row: Dict[str, Any] = {"house": i + 1}
            for r in self.results:
                c = r.houses.cusps[i]
                row[r.system] = {"longitude": c, "sign": sign_name(c), "formatted": format_degree(c)}
            out.append(row)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "location": self.location.to_dict(),
            "systems": self.systems,
            "unavailable": [{"system": s, "reason": reason} for s, reason in self.unavailable],
            "houses": self.rows(),
            "angles": self.results[0].angles.to_dict() if self.results else None,
            "warnings": [w.to_dict() for w in self.warnings],
        }

# ──────────────────────────────────────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────────────────────────────────────
def _house_result(jd_ut: float, coords: GeoCoordinates, system: str, provider: EphemerisProvider) -> HouseResult:
    raw = provider.house_cusps(jd_ut, coords, HOUSE_SYSTEM_CODES[system])
    angles = derive_angles(raw.ascendant, raw.midheaven)
    houses, warnings = build_house_cusps(raw, system, coords.latitude)
    return HouseResult(houses=houses, angles=angles, warnings=tuple(warnings))


def compute_houses(
    instant: datetime,
    coordinates: GeoCoordinates,
    system: Optional[str] = None,
    provider: Optional[EphemerisProvider] = None,
) -> HouseResult:
    if instant.tzinfo is None:
        raise ValidationError(err("instant", "instant must be timezone-aware (UTC)"))
    canon = normalize_system(system)
    jd_ut = build_timescales(instant.astimezone(timezone.utc)).jd_ut
    return _house_result(jd_ut, coordinates, canon, provider or get_default_provider())


def compare_house_systems(
    instant: datetime,
    coordinates: GeoCoordinates,
    systems: Optional[Sequence[str]] = None,
    provider: Optional[EphemerisProvider] = None,
) -> HouseComparison:
    if instant.tzinfo is None:
        raise ValidationError(err("instant", "instant must be timezone-aware (UTC)"))
    requested = list(systems) if systems else list(DEFAULT_COMPARISON_SYSTEMS)
    canon: List[str] = []
    for i, s in enumerate(requested):
        c = normalize_system(s, loc=f"systems[{i}]")
        if c not in canon:
            canon.append(c)

    provider = provider or get_default_provider()
    utc = instant.astimezone(timezone.utc)
    jd_ut = build_timescales(utc).jd_ut
    results: List[HouseResult] = []
    refused: List[Tuple[str, PolarHousesUnavailableError]] = []
    for s in canon:
        try:
            results.append(_house_result(jd_ut, coordinates, s, provider))
        except PolarHousesUnavailableError as e:
            refused.append((s, e))
    if not results:
        # nothing left to compare; report the first refusal as is
        raise refused[0][1]
    for s, e in refused:
        log.info("comparison at lat %.4f: %s omitted (%s)", coordinates.latitude, s, e.message)
    return HouseComparison(
        timestamp=utc,
        location=coordinates,
        results=tuple(results),
        unavailable=tuple((s, e.message) for s, e in refused),
    )
