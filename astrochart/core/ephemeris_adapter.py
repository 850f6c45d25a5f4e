# astrochart/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Ephemeris Provider Adapter (Swiss Ephemeris via pyswisseph)
#
# Highlights
# • Deterministic, testable Config + provider class; a module default instance
# • Two operations only: body_position(jd_ut, body) and house_cusps(jd_ut, ...)
# • Provider failures and non-finite output → EphemerisProviderError (stage +
#   context); never retried, never silently replaced
# • Thread-safe one-time ephemeris path bootstrap (swe global state)
# • Moshier fallback when no .se1 data files are installed (except Chiron,
#   which needs the asteroid files; see has_asteroid_files)
# • Placidus/Koch refused inside the polar circle → PolarHousesUnavailableError
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple
import glob
import logging
import math
import os
import threading

import swisseph as swe

from astrochart.core.constants import POLAR_CIRCLE_DEG
from astrochart.core.errors import EphemerisProviderError, PolarHousesUnavailableError

log = logging.getLogger(__name__)

__all__ = [
    "Config",
    "RawBodyPosition",
    "RawHouses",
    "EphemerisProvider",
    "SwissEphemerisProvider",
    "BODY_IDS",
    "get_default_provider",
]

# ─────────────────────────────────────────────────────────────────────────────
# Constants / environment (converted into Config defaults)
# ─────────────────────────────────────────────────────────────────────────────
_EPHE_PATH_ENV = os.getenv("ASTRO_EPHE_PATH") or None
_BACKEND_ENV = os.getenv("ASTRO_EPHE_BACKEND", "swieph").strip().lower()  # {"swieph","moseph"}

# Display name → Swiss Ephemeris body number. South Node is derived by the
# chart assembler and never requested here.
BODY_IDS: Dict[str, int] = {
    "Sun": swe.SUN,
    "Moon": swe.MOON,
    "Mercury": swe.MERCURY,
    "Venus": swe.VENUS,
    "Mars": swe.MARS,
    "Jupiter": swe.JUPITER,
    "Saturn": swe.SATURN,
    "Uranus": swe.URANUS,
    "Neptune": swe.NEPTUNE,
    "Pluto": swe.PLUTO,
    "Chiron": swe.CHIRON,
    "Lilith": swe.OSCU_APOG,
    "Mean Lilith": swe.MEAN_APOG,
    "North Node": swe.TRUE_NODE,
}

# ─────────────────────────────────────────────────────────────────────────────
# Provider configuration / results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Config:
    ephe_path: Optional[str] = _EPHE_PATH_ENV
    backend: str = _BACKEND_ENV


@dataclass(frozen=True)
class RawBodyPosition:
    longitude: float   # ecliptic of date, degrees (not yet normalized)
    latitude: float    # degrees
    distance: float    # AU
    speed: float       # degrees/day in longitude


@dataclass(frozen=True)
class RawHouses:
    cusps: Tuple[float, ...]   # 12 values, house 1 first
    ascendant: float
    midheaven: float


class EphemerisProvider(Protocol):
    def body_position(self, jd_ut: float, body: str) -> RawBodyPosition: ...
    def house_cusps(self, jd_ut: float, coordinates: Any, system_code: str) -> RawHouses: ...

# ─────────────────────────────────────────────────────────────────────────────
# Global ephemeris state (swe keeps the data path process-wide)
# ─────────────────────────────────────────────────────────────────────────────
_LOCK_INIT = threading.Lock()
_INIT_PATH: Optional[str] = None
_INIT_DONE = False


def _ensure_ephe_path(path: Optional[str]) -> None:
    global _INIT_DONE, _INIT_PATH
    with _LOCK_INIT:
        if _INIT_DONE and _INIT_PATH == path:
            return
        if path and not os.path.isdir(path):
            log.warning("ASTRO_EPHE_PATH %r is not a directory; Swiss Ephemeris will fall back to Moshier", path)
        swe.set_ephe_path(path)
        _INIT_PATH, _INIT_DONE = path, True
        log.info("Swiss Ephemeris initialised (path=%s, version=%s)", path or "<default>", getattr(swe, "version", "?"))


def _finite(*vals: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in vals)

# ─────────────────────────────────────────────────────────────────────────────
# Provider
# ─────────────────────────────────────────────────────────────────────────────
class SwissEphemerisProvider:
    """Thin pass-through to pyswisseph; the provider's algorithm is not reimplemented."""

    def __init__(self, cfg: Optional[Config] = None):
        self.cfg = cfg or Config()
        if self.cfg.backend not in ("swieph", "moseph"):
            raise ValueError(f"backend must be 'swieph' or 'moseph', got {self.cfg.backend!r}")
        _ensure_ephe_path(self.cfg.ephe_path)

    @property
    def flags(self) -> int:
        base = swe.FLG_MOSEPH if self.cfg.backend == "moseph" else swe.FLG_SWIEPH
        return base | swe.FLG_SPEED

    # ---- bodies --------------------------------------------------------------
    def body_position(self, jd_ut: float, body: str) -> RawBodyPosition:
        body_id = BODY_IDS.get(body)
        if body_id is None:
            raise EphemerisProviderError("body_position", f"unsupported body {body!r}", body=body)
        if not _finite(jd_ut):
            raise EphemerisProviderError("body_position", "jd_ut must be finite", body=body, jd_ut=jd_ut)

        try:
            xx, retflag = swe.calc_ut(float(jd_ut), body_id, self.flags)
        except swe.Error as e:
            log.warning("swe.calc_ut failed for %s at JD %.6f: %s", body, jd_ut, e)
            raise EphemerisProviderError("body_position", str(e), body=body, jd_ut=jd_ut) from e

        if retflag < 0:
            log.warning("swe.calc_ut returned error flag %s for %s at JD %.6f", retflag, body, jd_ut)
            raise EphemerisProviderError("body_position", f"error flag {retflag}", body=body, jd_ut=jd_ut)

        lon, lat, dist, speed = float(xx[0]), float(xx[1]), float(xx[2]), float(xx[3])
        if not _finite(lon, lat, dist, speed):
            log.warning("non-finite position for %s at JD %.6f: %r", body, jd_ut, xx)
            raise EphemerisProviderError("body_position", "non-finite output", body=body, jd_ut=jd_ut, raw=list(xx))

        if self.cfg.backend == "swieph" and not (retflag & swe.FLG_SWIEPH):
            log.debug("%s at JD %.6f computed with Moshier fallback", body, jd_ut)

        return RawBodyPosition(longitude=lon, latitude=lat, distance=dist, speed=speed)

    # ---- houses --------------------------------------------------------------
    def house_cusps(self, jd_ut: float, coordinates: Any, system_code: str) -> RawHouses:
        latitude, longitude = coordinates.latitude, coordinates.longitude
        ctx: Dict[str, Any] = {"jd_ut": jd_ut, "latitude": latitude, "longitude": longitude, "system": system_code}
        if not isinstance(system_code, str) or len(system_code) != 1:
            raise EphemerisProviderError("house_cusps", f"house system code must be one letter, got {system_code!r}", **ctx)
        if not _finite(jd_ut, latitude, longitude):
            raise EphemerisProviderError("house_cusps", "inputs must be finite", **ctx)

        try:
            cusps, ascmc = swe.houses(float(jd_ut), float(latitude), float(longitude), system_code.encode("ascii"))
        except swe.Error as e:
            if abs(latitude) >= POLAR_CIRCLE_DEG:
                # swe_houses refuses Placidus/Koch here and the binding drops its fallback cusps
                log.info("swe.houses refused %s at lat=%.4f (polar circle): %s", system_code, latitude, e)
                raise PolarHousesUnavailableError(system_code, latitude, reason=str(e), jd_ut=jd_ut) from e
            log.warning("swe.houses failed (%s) at JD %.6f lat=%.4f: %s", system_code, jd_ut, latitude, e)
            raise EphemerisProviderError("house_cusps", str(e), **ctx) from e

        cusps = tuple(float(c) for c in cusps)
        if len(cusps) == 13:
            # older bindings return a leading placeholder at index 0
            cusps = cusps[1:]
        if len(cusps) != 12:
            raise EphemerisProviderError("house_cusps", f"expected 12 cusps, got {len(cusps)}", **ctx)

        asc, mc = float(ascmc[0]), float(ascmc[1])
        if not _finite(asc, mc, *cusps):
            log.warning("non-finite house output (%s) at JD %.6f lat=%.4f", system_code, jd_ut, latitude)
            raise EphemerisProviderError("house_cusps", "non-finite output", cusps=list(cusps), **ctx)

        return RawHouses(cusps=cusps, ascendant=asc, midheaven=mc)

    @property
    def has_asteroid_files(self) -> bool:
        """Chiron needs the seas_*.se1 files; Moshier has no asteroid theory."""
        if self.cfg.backend != "swieph" or not self.cfg.ephe_path:
            return False
        return bool(glob.glob(os.path.join(self.cfg.ephe_path, "seas*.se1")))

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "backend": self.cfg.backend,
            "ephe_path": self.cfg.ephe_path,
            "swisseph_version": getattr(swe, "version", None),
            "asteroid_files": self.has_asteroid_files,
            "bodies": list(BODY_IDS),
        }

# ─────────────────────────────────────────────────────────────────────────────
# Module default
# ─────────────────────────────────────────────────────────────────────────────
_DEFAULT: Optional[SwissEphemerisProvider] = None
_LOCK_DEFAULT = threading.Lock()


def get_default_provider() -> SwissEphemerisProvider:
    global _DEFAULT
    with _LOCK_DEFAULT:
        if _DEFAULT is None:
            _DEFAULT = SwissEphemerisProvider()
        return _DEFAULT
