# astrochart/core/progressions.py
# -----------------------------------------------------------------------------
# Progression Calculator (secondary progressions, "a day for a year")
#
#   progress(birth, target_instant=None, target_age=None) -> ProgressionResult
#   progressed_chart(resolved_birth, ...)                 -> ProgressedChart
#
# Age from an instant is calendar-correct: whole birthdays passed plus the
# elapsed fraction of the current birthday-to-birthday year (so leap years
# are 366 days long). Either entry point then applies one rule:
#
#   progressed = birth + age_in_years * 1 day
#
# An age computed from an instant and fed back through the age path lands on
# the same progressed instant.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional
import logging
import math

from astrochart.core.chart import Chart, assemble
from astrochart.core.constants import DAYS_PER_YEAR_OF_LIFE, DEFAULT_HOUSE_SYSTEM
from astrochart.core.ephemeris_adapter import EphemerisProvider
from astrochart.core.errors import ValidationError, err
from astrochart.core.moon_phase import MoonPhase, moon_phase_for_chart
from astrochart.core.resolver import ResolvedInstant

log = logging.getLogger(__name__)

__all__ = [
    "ProgressionResult",
    "ProgressedChart",
    "add_years",
    "fractional_years",
    "instant_at_age",
    "progress",
    "progressed_chart",
]

# ───────────────────────── calendar arithmetic ─────────────────────────

def add_years(dt: datetime, years: int) -> datetime:
    """Same month/day/time `years` later; Feb 29 falls back to Feb 28."""
    try:
        return dt.replace(year=dt.year + years)
    except ValueError:
        if dt.month == 2 and dt.day == 29:
            return dt.replace(year=dt.year + years, day=28)
        raise


def _birthday_bounds(birth: datetime, n: int, loc: str):
    # ValueError past year 9999, OverflowError once n no longer fits a C int
    try:
        return add_years(birth, n), add_years(birth, n + 1)
    except (ValueError, OverflowError) as e:
        raise ValidationError(err(loc, f"date out of supported range: {e}")) from e


def fractional_years(birth: datetime, target: datetime) -> float:
    """Calendar-correct age in years of `target` relative to `birth`."""
    if target < birth:
        raise ValidationError(err("target_date", "target date is before the birth date"))
    n = target.year - birth.year
    lo, hi = _birthday_bounds(birth, n, "target_date")
    if lo > target:
        n -= 1
        lo, hi = _birthday_bounds(birth, n, "target_date")
    return n + (target - lo) / (hi - lo)


def instant_at_age(birth: datetime, age: float) -> datetime:
    """Inverse of fractional_years()."""
    n = int(math.floor(age))
    lo, hi = _birthday_bounds(birth, n, "target_age")
    return lo + (hi - lo) * (age - n)

# ───────────────────────── results ─────────────────────────

def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ProgressionResult:
    birth_instant: datetime
    target_instant: datetime
    progressed_instant: datetime
    age_in_years: float
    age_in_days: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "birth_instant": _iso(self.birth_instant),
            "target_instant": _iso(self.target_instant),
            "progressed_instant": _iso(self.progressed_instant),
            "age_in_years": self.age_in_years,
            "age_in_days": self.age_in_days,
        }


@dataclass(frozen=True)
class ProgressedChart:
    progression: ProgressionResult
    natal: Chart
    progressed: Chart
    natal_moon_phase: Optional[MoonPhase] = None
    progressed_moon_phase: Optional[MoonPhase] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "progression": self.progression.to_dict(),
            "natal": {**self.natal.to_dict(),
                      "moon_phase": self.natal_moon_phase.to_dict() if self.natal_moon_phase else None},
            "progressed": {**self.progressed.to_dict(),
                           "moon_phase": self.progressed_moon_phase.to_dict() if self.progressed_moon_phase else None},
        }

# ───────────────────────── calculator ─────────────────────────

def progress(
    birth: datetime,
    target_instant: Optional[datetime] = None,
    target_age: Optional[float] = None,
) -> ProgressionResult:
    if birth.tzinfo is None:
        raise ValidationError(err("birth", "birth instant must be timezone-aware"))
    if (target_instant is None) == (target_age is None):
        raise ValidationError(err(["target_date", "target_age"], "provide exactly one of target date or target age"))

    birth = birth.astimezone(timezone.utc)
    if target_age is not None:
        age = float(target_age)
        if not math.isfinite(age):
            raise ValidationError(err("target_age", "age must be a finite number of years"))
        if age < 0:
            raise ValidationError(err("target_age", "age must not be negative"))
        target = birth if age == 0 else instant_at_age(birth, age)
    else:
        if target_instant.tzinfo is None:
            raise ValidationError(err("target_date", "target instant must be timezone-aware"))
        target = target_instant.astimezone(timezone.utc)
        age = fractional_years(birth, target)

    days = age * DAYS_PER_YEAR_OF_LIFE
    try:
        progressed = birth + timedelta(days=days)
    except OverflowError as e:
        loc = "target_age" if target_age is not None else "target_date"
        raise ValidationError(err(loc, "progressed date out of supported range")) from e

    log.debug("progression birth=%s age=%.6f → %s", birth.isoformat(), age, progressed.isoformat())
    return ProgressionResult(
        birth_instant=birth,
        target_instant=target,
        progressed_instant=progressed,
        age_in_years=age,
        age_in_days=days,
    )


def progressed_chart(
    birth: ResolvedInstant,
    target_instant: Optional[datetime] = None,
    target_age: Optional[float] = None,
    bodies: Optional[Iterable[str]] = None,
    house_system: str = DEFAULT_HOUSE_SYSTEM,
    provider: Optional[EphemerisProvider] = None,
) -> ProgressedChart:
    """
    Natal chart, then the chart at the progressed instant, both at the birth
    place. Caveats about the birth instant apply to both.
    """
    result = progress(birth.utc_instant, target_instant=target_instant, target_age=target_age)
    body_list = list(bodies) if bodies is not None else None
    natal = assemble(birth.utc_instant, birth.coordinates, body_list, house_system, provider,
                     warnings=birth.warnings)
    progressed = assemble(result.progressed_instant, birth.coordinates, body_list, house_system, provider,
                          warnings=birth.warnings)
    return ProgressedChart(
        progression=result,
        natal=natal,
        progressed=progressed,
        natal_moon_phase=moon_phase_for_chart(natal),
        progressed_moon_phase=moon_phase_for_chart(progressed),
    )
