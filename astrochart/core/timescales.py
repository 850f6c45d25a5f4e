# astrochart/core/timescales.py
# -----------------------------------------------------------------------------
# Civil time ↔ UTC and UTC → Julian-day timescales (ERFA aligned)
#
# Public API:
#   local_to_utc(date, time, tz_name)       -> (aware UTC datetime, warnings)
#   utc_to_local(instant, tz_name)          -> aware local datetime
#   utc_offset_label(date, time, tz_name)   -> "+05:30"
#   build_timescales(instant)               -> TimeScales
#
# Guarantees:
#   • Zone rules are looked up for the historical date being converted
#     (zoneinfo), never for "now".
#   • DST-ambiguous local times resolve to the earlier instant (fold=0) and
#     are flagged "dst_ambiguous"; non-existent local times are flagged
#     "dst_gap". Neither is silent.
#   • ERFA chain for JDs: UTC (calendar → JD) → TAI → TT
#     (erfa.dtf2d → utctai → taitt); ΔAT via erfa.dat.
#   • No POSIX timestamp math feeds any JD.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import warnings as _warnings

import erfa  # pyERFA

from astrochart.core.constants import SECONDS_PER_DAY
from astrochart.core.errors import ConfigurationWarning, ValidationError, err

log = logging.getLogger(__name__)

__all__ = [
    "TimeScales",
    "local_to_utc",
    "utc_to_local",
    "utc_offset_label",
    "build_timescales",
]

# ───────────────────────────── Dataclass ─────────────────────────────

@dataclass(frozen=True)
class TimeScales:
    jd_utc: float
    jd_ut: float           # UT1 ≈ UTC (DUT1 taken as 0, |DUT1| < 0.9 s)
    jd_tt: float
    delta_t: float         # TT − UT [s]
    dat: float             # TAI − UTC [s]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

# ───────────────────────────── Zone helpers ─────────────────────────────

def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(err("timezone", f"Unknown IANA time zone '{tz_name}'")) from e


def local_to_utc(d: date, t: time, tz_name: str) -> Tuple[datetime, List[ConfigurationWarning]]:
    """
    Interpret wall-clock `d t` in `tz_name` using that zone's rules at that
    date, and return the UTC instant plus any DST caveats.
    """
    z = _zone(tz_name)
    naive = datetime.combine(d, t)
    warnings: List[ConfigurationWarning] = []

    aware0 = naive.replace(tzinfo=z, fold=0)
    aware1 = naive.replace(tzinfo=z, fold=1)
    off0, off1 = aware0.utcoffset(), aware1.utcoffset()

    if off0 != off1:
        # Either a repeated hour (fall back) or a skipped one (spring forward):
        # a wall time that exists round-trips unchanged.
        back = aware0.astimezone(timezone.utc).astimezone(z).replace(tzinfo=None)
        if back == naive:
            warnings.append(ConfigurationWarning(
                "dst_ambiguous",
                f"{naive.isoformat()} occurs twice in {tz_name}; the earlier instant "
                f"(UTC offset {_fmt_offset(off0.total_seconds())}) was used",
            ))
        else:
            warnings.append(ConfigurationWarning(
                "dst_gap",
                f"{naive.isoformat()} does not exist in {tz_name} (DST gap); "
                f"interpreted with the pre-transition offset {_fmt_offset(off0.total_seconds())}",
            ))
        log.info("DST edge for %s in %s: %s", naive.isoformat(), tz_name, warnings[-1].code)

    return aware0.astimezone(timezone.utc), warnings


def utc_to_local(instant: datetime, tz_name: str) -> datetime:
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    return instant.astimezone(_zone(tz_name))


def _fmt_offset(seconds: float) -> str:
    total = int(round(seconds / 60.0))
    sign = "+" if total >= 0 else "-"
    hh, mm = divmod(abs(total), 60)
    return f"{sign}{hh:02d}:{mm:02d}"


def utc_offset_label(d: date, t: time, tz_name: str) -> str:
    """Offset in force for that local date/time, e.g. '+05:30' (informational)."""
    z = _zone(tz_name)
    off = datetime.combine(d, t).replace(tzinfo=z, fold=0).utcoffset()
    return _fmt_offset(off.total_seconds() if off is not None else 0.0)

# ───────────────────────────── Julian days ─────────────────────────────

def build_timescales(instant: datetime) -> TimeScales:
    """
    JD(UTC), JD(UT), JD(TT), ΔT and ΔAT for an aware instant.

    Before 1960 UTC is not defined; ERFA still returns a value but warns
    ("dubious year"), which is surfaced in `warnings`.
    """
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    u = instant.astimezone(timezone.utc)
    sec = u.second + u.microsecond / 1e6
    warns: List[str] = []

    with _warnings.catch_warnings(record=True) as caught:
        _warnings.simplefilter("always", erfa.ErfaWarning)
        try:
            u1, u2 = erfa.dtf2d("UTC", u.year, u.month, u.day, u.hour, u.minute, sec)
            a1, a2 = erfa.utctai(u1, u2)
            t1, t2 = erfa.taitt(a1, a2)
            fd = (u.hour * 3600.0 + u.minute * 60.0 + sec) / SECONDS_PER_DAY
            dat = float(erfa.dat(u.year, u.month, u.day, fd))
        except erfa.ErfaError as e:
            raise ValidationError(err("date", f"date outside the supported calendar range: {e}")) from e

    if any(issubclass(w.category, erfa.ErfaWarning) for w in caught):
        # erfa.dat flags both pre-UTC years and years past its leap-second table
        warns.append("pre_1960_utc_approximate" if u.year < 1960 else "leap_seconds_extrapolated")

    jd_utc = float(u1) + float(u2)
    jd_tt = float(t1) + float(t2)
    delta_t = ((float(t1) - float(u1)) + (float(t2) - float(u2))) * SECONDS_PER_DAY

    return TimeScales(
        jd_utc=jd_utc,
        jd_ut=jd_utc,
        jd_tt=jd_tt,
        delta_t=delta_t,
        dat=dat,
        warnings=warns,
    )
