# astrochart/core/angles.py
# -*- coding: utf-8 -*-
"""
Angle helpers shared by every component.

All degree normalization, zodiac-sign mapping and degree formatting in the
package goes through this module; callers never reimplement them.

    normalize_degrees(L)      -> [0, 360)
    sign_index(L)             -> 0..11
    sign_name(L)              -> "Aries".."Pisces"
    degree_in_sign(L)         -> [0, 30)
    opposite(L)               -> normalize(L + 180)
    shortest_delta(a, b)      -> signed (b - a) in (-180, 180]
    to_dms(x)                 -> (deg, min, sec)
    format_degree(L)          -> "20°02' Virgo"
    cusp_steps(cusps)         -> forward arcs between consecutive cusps
"""

from __future__ import annotations
from typing import List, Sequence, Tuple
import math

from astrochart.core.constants import (
    ZODIAC_SIGNS,
    ZODIAC_SIGNS_ABBREVIATED,
    ZODIAC_SIGN_SYMBOLS,
)

__all__ = [
    "normalize_degrees",
    "sign_index",
    "sign_name",
    "degree_in_sign",
    "opposite",
    "shortest_delta",
    "to_dms",
    "format_degree",
    "format_coordinates",
    "cusp_steps",
]


def normalize_degrees(x: float) -> float:
    """Wrap any finite longitude into [0, 360)."""
    v = float(x)
    if not math.isfinite(v):
        raise ValueError(f"longitude must be finite, got {x!r}")
    # Python's % already lands in [0, 360] for a positive modulus
    v = v % 360.0
    # tiny negatives round up to exactly 360.0 in float arithmetic
    if v >= 360.0:
        v = 0.0
    return v + 0.0  # drop -0.0


def sign_index(lon: float) -> int:
    return min(11, int(normalize_degrees(lon) // 30.0))


def sign_name(lon: float) -> str:
    return ZODIAC_SIGNS[sign_index(lon)]


def degree_in_sign(lon: float) -> float:
    d = normalize_degrees(lon) % 30.0
    return 0.0 if d >= 30.0 else d


def opposite(lon: float) -> float:
    return normalize_degrees(float(lon) + 180.0)


def shortest_delta(a: float, b: float) -> float:
    """Signed shortest arc from a to b, in (-180, 180]."""
    d = (normalize_degrees(b) - normalize_degrees(a) + 540.0) % 360.0 - 180.0
    return 180.0 if d == -180.0 else d


def to_dms(x: float, *, seconds_precision: int = 0) -> Tuple[int, int, float]:
    """Split non-negative degrees into (deg, min, sec) with carry on rounding."""
    ax = abs(float(x))
    d = int(ax)
    m_float = (ax - d) * 60.0
    m = int(m_float)
    s = round((m_float - m) * 60.0, seconds_precision)
    if s >= 60.0:
        s -= 60.0
        m += 1
    if m >= 60:
        m -= 60
        d += 1
    return d, m, s


def format_degree(lon: float, *, sign_format: str = "full", include_seconds: bool = False) -> str:
    """
    Render a longitude as degrees within its sign, e.g. ``20°02' Virgo``.

    sign_format: "full" | "abbreviated" | "symbol"
    """
    n = normalize_degrees(lon)
    idx = sign_index(n)
    d, m, s = to_dms(degree_in_sign(n))
    if d >= 30:
        # rounding carried into the next sign
        idx = (idx + 1) % 12
        d -= 30
    if sign_format == "abbreviated":
        label = ZODIAC_SIGNS_ABBREVIATED[idx]
    elif sign_format == "symbol":
        label = ZODIAC_SIGN_SYMBOLS[idx]
    elif sign_format == "full":
        label = ZODIAC_SIGNS[idx]
    else:
        raise ValueError("sign_format must be 'full', 'abbreviated' or 'symbol'")
    if include_seconds:
        return f"{d:02d}°{m:02d}'{int(s):02d}\" {label}"
    return f"{d:02d}°{m:02d}' {label}"


def format_coordinates(latitude: float, longitude: float, precision: int = 2) -> str:
    ns = "N" if latitude >= 0 else "S"
    ew = "E" if longitude >= 0 else "W"
    return f"{abs(latitude):.{precision}f}°{ns}, {abs(longitude):.{precision}f}°{ew}"


def cusp_steps(cusps: Sequence[float]) -> List[float]:
    """
    Forward arcs cusp[i] → cusp[i+1] (wrapping 12 → 1), each in [0, 360).

    Cusps progress monotonically around the circle iff no arc is zero and the
    arcs sum to one full turn.
    """
    n = len(cusps)
    return [
        normalize_degrees(float(cusps[(i + 1) % n]) - float(cusps[i]))
        for i in range(n)
    ]
