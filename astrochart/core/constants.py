# astrochart/core/constants.py
# -*- coding: utf-8 -*-
"""
Core constants

Single source of truth for:
- zodiac signs (names, abbreviations, glyphs)
- body sets (default / extended) in display order
- house systems (canonical label → Swiss Ephemeris code, description)
- moon phase names and glyphs
- time constants used by progressions

Pure-Python, no external dependencies; safe to import from any core module.
"""

from __future__ import annotations
from typing import Dict, Tuple

__all__ = [
    # zodiac
    "ZODIAC_SIGNS", "ZODIAC_SIGNS_ABBREVIATED", "ZODIAC_SIGN_SYMBOLS",
    # bodies
    "MAJOR_BODIES", "EXTENDED_BODIES", "ALL_BODIES", "ASTEROID_BODIES", "DERIVED_BODIES",
    # houses
    "HOUSE_SYSTEM_CODES", "HOUSE_SYSTEM_DESCRIPTIONS", "TIME_BASED_HOUSE_SYSTEMS", "QUADRANT_HOUSE_SYSTEMS",
    "DEFAULT_HOUSE_SYSTEM", "DEFAULT_COMPARISON_SYSTEMS", "POLAR_CIRCLE_DEG",
    # moon
    "MOON_PHASE_NAMES", "MOON_PHASE_SYMBOLS", "CARDINAL_PHASES",
    # time
    "SECONDS_PER_DAY", "DAYS_PER_YEAR_OF_LIFE",
]

# ── zodiac ───────────────────────────────────────────────────────────────────
ZODIAC_SIGNS: Tuple[str, ...] = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)

ZODIAC_SIGNS_ABBREVIATED: Tuple[str, ...] = (
    "Ari", "Tau", "Gem", "Can", "Leo", "Vir",
    "Lib", "Sco", "Sag", "Cap", "Aqu", "Pis",
)

ZODIAC_SIGN_SYMBOLS: Tuple[str, ...] = (
    "♈", "♉", "♊", "♋", "♌", "♍",
    "♎", "♏", "♐", "♑", "♒", "♓",
)

# ── bodies ───────────────────────────────────────────────────────────────────
MAJOR_BODIES: Tuple[str, ...] = (
    "Sun", "Moon", "Mercury", "Venus", "Mars",
    "Jupiter", "Saturn", "Uranus", "Neptune", "Pluto",
)

# Chiron needs the asteroid ephemeris files; the rest work on the Moshier fallback.
EXTENDED_BODIES: Tuple[str, ...] = (
    "Chiron", "Lilith", "Mean Lilith", "North Node", "South Node",
)

ALL_BODIES: Tuple[str, ...] = MAJOR_BODIES + EXTENDED_BODIES

# Bodies only the Swiss Ephemeris asteroid files (seas_*.se1) can compute.
ASTEROID_BODIES: Tuple[str, ...] = ("Chiron",)

# Points the assembler derives from another body instead of asking the provider.
DERIVED_BODIES: Dict[str, str] = {
    "South Node": "North Node",
}

# ── houses ───────────────────────────────────────────────────────────────────
# Canonical label → single-letter code understood by swe.houses().
HOUSE_SYSTEM_CODES: Dict[str, str] = {
    "placidus": "P",
    "koch": "K",
    "equal": "A",
    "whole-sign": "W",
    "porphyrius": "O",
    "regiomontanus": "R",
    "campanus": "C",
    "meridian": "X",
    "morinus": "M",
    "alcabitus": "B",
}

HOUSE_SYSTEM_DESCRIPTIONS: Dict[str, str] = {
    "placidus": "Time-based trisection of diurnal/nocturnal semi-arcs (most common)",
    "koch": "Birthplace system; time-based on the MC degree's semi-arc",
    "equal": "Twelve 30° houses measured from the Ascendant",
    "whole-sign": "Each house is one whole sign, starting with the Ascendant's sign",
    "porphyrius": "Quadrants trisected in ecliptic longitude",
    "regiomontanus": "Equal divisions of the celestial equator projected from the meridian",
    "campanus": "Equal divisions of the prime vertical",
    "meridian": "Axial rotation; equal divisions of the equator from the meridian",
    "morinus": "Equal divisions of the equator projected from the ecliptic poles",
    "alcabitus": "Semi-arc of the Ascendant trisected along the equator",
}

# Systems built on semi-arc timing; undefined for circumpolar ecliptic points.
TIME_BASED_HOUSE_SYSTEMS: frozenset = frozenset({"placidus", "koch", "alcabitus"})

# Systems that divide the quadrants between the angles. Beyond the polar
# circle their cusps may come back out of order (or be refused outright by
# Swiss Ephemeris for Placidus and Koch).
QUADRANT_HOUSE_SYSTEMS: frozenset = frozenset(
    {"placidus", "koch", "alcabitus", "porphyrius", "regiomontanus", "campanus"}
)

DEFAULT_HOUSE_SYSTEM: str = "placidus"
DEFAULT_COMPARISON_SYSTEMS: Tuple[str, ...] = ("placidus", "koch", "equal", "whole-sign")

POLAR_CIRCLE_DEG: float = 66.5

# ── moon ─────────────────────────────────────────────────────────────────────
# Ordered by phase angle: even index = cardinal at k * 45°, odd = the arc between.
MOON_PHASE_NAMES: Tuple[str, ...] = (
    "New Moon",
    "Waxing Crescent",
    "First Quarter",
    "Waxing Gibbous",
    "Full Moon",
    "Waning Gibbous",
    "Third Quarter",
    "Waning Crescent",
)

MOON_PHASE_SYMBOLS: Dict[str, str] = {
    "New Moon": "🌑",
    "Waxing Crescent": "🌒",
    "First Quarter": "🌓",
    "Waxing Gibbous": "🌔",
    "Full Moon": "🌕",
    "Waning Gibbous": "🌖",
    "Third Quarter": "🌗",
    "Waning Crescent": "🌘",
}

# Cardinal phase angle → name
CARDINAL_PHASES: Dict[float, str] = {
    0.0: "New Moon",
    90.0: "First Quarter",
    180.0: "Full Moon",
    270.0: "Third Quarter",
}

# ── time ─────────────────────────────────────────────────────────────────────
SECONDS_PER_DAY: float = 86400.0

# Secondary progressions: one ephemeris day per year of life.
DAYS_PER_YEAR_OF_LIFE: float = 1.0
