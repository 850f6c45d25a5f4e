# astrochart/core/validators.py
from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from astrochart.core.errors import ValidationError, err

__all__ = [
    "parse_date",
    "parse_time",
    "parse_latitude",
    "parse_longitude",
    "parse_latlon",
    "parse_timezone",
    "parse_age",
    "parse_bodies",
    "parse_profile_fields",
    "as_float",
]

# ───────────────────────── helpers ─────────────────────────

def as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x):
        return None
    return x

# ───────────────────────── atomic parsers ─────────────────────────

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")
_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?\s*$")


def parse_date(s: Any, loc: str = "date") -> date:
    if not isinstance(s, str) or not _DATE_RE.match(s):
        raise ValidationError(err(loc, "date must be 'YYYY-MM-DD'", "value_error.date"))
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(err(loc, f"'{s.strip()}' is not a calendar date", "value_error.date"))


def parse_time(s: Any, loc: str = "time") -> time:
    """Accept 'HH:MM' or 'HH:MM:SS' (24-hour)."""
    m = _TIME_RE.match(s) if isinstance(s, str) else None
    if not m:
        raise ValidationError(err(loc, "time must be 'HH:MM' or 'HH:MM:SS'", "value_error.time"))
    hh = int(m.group("h")); mm = int(m.group("m")); ss = int(m.group("s") or 0)
    if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0 <= ss <= 59):
        raise ValidationError(err(loc, "time fields out of range", "value_error.time"))
    return time(hh, mm, ss)


def parse_latitude(v: Any, loc: str = "latitude") -> float:
    x = as_float(v)
    if x is None:
        raise ValidationError(err(loc, f"latitude must be a finite number, got {v!r}", "type_error.float"))
    if not (-90.0 <= x <= 90.0):
        raise ValidationError(err(loc, f"latitude must be between -90 and 90, got {x}"))
    return x


def parse_longitude(v: Any, loc: str = "longitude") -> float:
    x = as_float(v)
    if x is None:
        raise ValidationError(err(loc, f"longitude must be a finite number, got {v!r}", "type_error.float"))
    if not (-180.0 <= x <= 180.0):
        raise ValidationError(err(loc, f"longitude must be between -180 and 180, got {x}"))
    return x


def parse_latlon(lat: Any, lon: Any) -> Tuple[float, float]:
    """Validate both and report every bad field at once."""
    details: List[Dict[str, Any]] = []
    out: List[float] = []
    for fn, v in ((parse_latitude, lat), (parse_longitude, lon)):
        try:
            out.append(fn(v))
        except ValidationError as e:
            details.extend(e.errors())
    if details:
        raise ValidationError(details)
    return out[0], out[1]


def parse_timezone(tz: Any, loc: str = "timezone") -> Optional[str]:
    """None/blank → None; otherwise must be a loadable IANA zone."""
    if tz is None:
        return None
    if not isinstance(tz, str):
        raise ValidationError(err(loc, "must be a string (IANA)", "type_error.str"))
    name = tz.strip()
    if not name:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(err(loc, f"'{name}' is not a valid IANA zone like 'Asia/Kolkata'"))
    return name


def parse_age(v: Any, loc: str = "age") -> float:
    x = as_float(v)
    if x is None:
        raise ValidationError(err(loc, "age must be a finite number of years", "type_error.float"))
    if x < 0:
        raise ValidationError(err(loc, "age must not be negative"))
    return x


def parse_bodies(v: Any, known: Tuple[str, ...], loc: str = "bodies") -> Optional[List[str]]:
    """Case-insensitive match against `known`; preserves caller order and drops duplicates."""
    if v is None:
        return None
    if isinstance(v, str):
        v = [p for p in (s.strip() for s in v.split(",")) if p]
    if not isinstance(v, (list, tuple)):
        raise ValidationError(err(loc, "must be an array of body names", "type_error.list"))
    lookup = {k.lower(): k for k in known}
    out: List[str] = []
    for i, item in enumerate(v):
        canon = lookup.get(str(item).strip().lower()) if isinstance(item, str) else None
        if canon is None:
            raise ValidationError(err([loc, i], f"unknown body {item!r}; expected one of {', '.join(known)}"))
        if canon not in out:
            out.append(canon)
    return out

# ───────────────────────── profile payload ─────────────────────────

def parse_profile_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the fields of a profile before it is stored or resolved.

    Collects every field error into one ValidationError.
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")

    details: List[Dict[str, Any]] = []
    out: Dict[str, Any] = {}

    def _take(key: str, fn):
        try:
            out[key] = fn(body.get(key), key)
        except ValidationError as e:
            details.extend(e.errors())

    _take("date", parse_date)
    _take("time", parse_time)
    _take("latitude", parse_latitude)
    _take("longitude", parse_longitude)
    _take("timezone", parse_timezone)

    loc = body.get("location")
    if loc is not None and not isinstance(loc, str):
        details.append(err("location", "must be a string", "type_error.str"))
    if details:
        raise ValidationError(details)

    out["location"] = (loc or "").strip()
    return out
