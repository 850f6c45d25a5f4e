# astrochart/core/resolver.py
# -----------------------------------------------------------------------------
# Temporal Resolver
#
#   resolve(spec, store=None, now=None) -> ResolvedInstant
#
# Two inputs:
#   • ProfileReference(name): look up a stored profile and convert its local
#     date/time with the profile's timezone as it was on that date.
#   • ExplicitSpec(date, time, latitude, longitude, timezone=None): the time is
#     UTC unless a timezone is given; "now" is the current UTC instant.
#
# Where the timezone comes from is a tagged variant (WithTimezone | AssumedUtc);
# the AssumedUtc warning is built in _assumed_utc_warning() and nowhere else.
# The process TZ is never consulted: every datetime built here is aware.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import re

from astrochart.core.angles import format_coordinates
from astrochart.core.errors import (
    ConfigurationWarning,
    ProfileNotFoundError,
    ValidationError,
    err,
)
from astrochart.core.profiles import PROFILE_NAME_RE, Profile, ProfileStore
from astrochart.core.timescales import local_to_utc
from astrochart.core.validators import (
    parse_date,
    parse_latitude,
    parse_latlon,
    parse_longitude,
    parse_time,
    parse_timezone,
)

log = logging.getLogger(__name__)

__all__ = [
    "GeoCoordinates",
    "ProfileReference",
    "ExplicitSpec",
    "TemporalSpec",
    "WithTimezone",
    "AssumedUtc",
    "TimezoneSource",
    "ResolvedInstant",
    "is_profile_reference",
    "spec_from_payload",
    "resolve",
]

_DATE_LIKE_RE = re.compile(r"\d+-\d+")

# ───────────────────────── value types ─────────────────────────

@dataclass(frozen=True)
class GeoCoordinates:
    latitude: float
    longitude: float
    name: Optional[str] = None

    def __post_init__(self) -> None:
        lat, lon = parse_latlon(self.latitude, self.longitude)
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "name": self.name,
            "label": self.name or format_coordinates(self.latitude, self.longitude),
        }


@dataclass(frozen=True)
class ProfileReference:
    name: str


@dataclass(frozen=True)
class ExplicitSpec:
    date: str
    latitude: Any
    longitude: Any
    time: Optional[str] = None
    timezone: Optional[str] = None
    location: Optional[str] = None


TemporalSpec = Union[ProfileReference, ExplicitSpec]


@dataclass(frozen=True)
class WithTimezone:
    tz: str

    def describe(self) -> str:
        return self.tz


@dataclass(frozen=True)
class AssumedUtc:
    def describe(self) -> str:
        return "assumed-utc"


TimezoneSource = Union[WithTimezone, AssumedUtc]


@dataclass(frozen=True)
class ResolvedInstant:
    utc_instant: datetime
    coordinates: GeoCoordinates
    timezone_source: TimezoneSource
    warnings: Tuple[ConfigurationWarning, ...] = field(default_factory=tuple)
    profile_name: Optional[str] = None

    @property
    def source_warnings(self) -> List[str]:
        return [w.message for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "utc_instant": self.utc_instant.isoformat().replace("+00:00", "Z"),
            "coordinates": self.coordinates.to_dict(),
            "timezone_source": self.timezone_source.describe(),
            "profile": self.profile_name,
            "warnings": [w.to_dict() for w in self.warnings],
        }

# ───────────────────────── classification ─────────────────────────

def is_profile_reference(arg: Any) -> bool:
    """Bare identifier that is neither "now" nor date-like."""
    if not isinstance(arg, str) or not arg:
        return False
    if not PROFILE_NAME_RE.match(arg):
        return False
    if arg.lower() == "now":
        return False
    if _DATE_LIKE_RE.search(arg):
        return False
    return True


def spec_from_payload(body: Dict[str, Any]) -> TemporalSpec:
    """
    Build a TemporalSpec from a request body.

    {"profile": "alice"} or {"date": "alice"} → ProfileReference;
    anything else is an explicit date/time/coordinates spec.
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")
    prof = body.get("profile")
    if prof is not None:
        if not is_profile_reference(prof):
            raise ValidationError(err("profile", "profile name may only contain letters, digits, '_' and '-'"))
        return ProfileReference(prof)
    primary = body.get("date")
    if is_profile_reference(primary):
        return ProfileReference(primary)
    return ExplicitSpec(
        date=primary,
        time=body.get("time"),
        latitude=body.get("latitude", body.get("lat")),
        longitude=body.get("longitude", body.get("lon")),
        timezone=body.get("timezone") or body.get("tz"),
        location=body.get("location"),
    )

# ───────────────────────── conversion ─────────────────────────

def _assumed_utc_warning(subject: str) -> ConfigurationWarning:
    return ConfigurationWarning(
        "timezone_assumed_utc",
        f"{subject} lacks timezone, time treated as UTC",
    )


def _to_utc(d: date, t: time, source: TimezoneSource) -> Tuple[datetime, List[ConfigurationWarning]]:
    if isinstance(source, WithTimezone):
        return local_to_utc(d, t, source.tz)
    if isinstance(source, AssumedUtc):
        return datetime.combine(d, t, tzinfo=timezone.utc), []
    raise TypeError(f"unknown timezone source {source!r}")


def _resolve_profile(ref: ProfileReference, store: ProfileStore) -> ResolvedInstant:
    profile: Optional[Profile] = store.lookup(ref.name)
    if profile is None:
        available = [(p.name, p.location or None) for p in store.list_all()]
        raise ProfileNotFoundError(ref.name, available)

    d = parse_date(profile.date)
    t = parse_time(profile.time)
    coords = GeoCoordinates(profile.latitude, profile.longitude, profile.location or None)

    warnings: List[ConfigurationWarning] = []
    tz = parse_timezone(profile.timezone)
    source: TimezoneSource
    if tz:
        source = WithTimezone(tz)
    else:
        source = AssumedUtc()
        warnings.append(_assumed_utc_warning(f"profile '{profile.name}'"))
        log.info("profile %s has no timezone; treating %s %s as UTC", profile.name, profile.date, profile.time)

    instant, dst_warnings = _to_utc(d, t, source)
    warnings.extend(dst_warnings)
    return ResolvedInstant(
        utc_instant=instant,
        coordinates=coords,
        timezone_source=source,
        warnings=tuple(warnings),
        profile_name=profile.name,
    )


def _resolve_explicit(spec: ExplicitSpec, now: Optional[datetime]) -> ResolvedInstant:
    details: List[Dict[str, Any]] = []
    if spec.date is None or spec.date == "":
        details.append(err("date", "date is required", "value_error.missing"))
    is_now = isinstance(spec.date, str) and spec.date.strip().lower() == "now"
    if not is_now and (spec.time is None or spec.time == ""):
        details.append(err("time", "time is required", "value_error.missing"))
    if spec.latitude is None:
        details.append(err("latitude", "latitude is required", "value_error.missing"))
    if spec.longitude is None:
        details.append(err("longitude", "longitude is required", "value_error.missing"))
    if details:
        raise ValidationError(details)

    lat = parse_latitude(spec.latitude)
    lon = parse_longitude(spec.longitude)
    coords = GeoCoordinates(lat, lon, spec.location or None)

    tz = parse_timezone(spec.timezone)
    # No timezone on an explicit spec means UTC by contract, not by assumption.
    source: TimezoneSource = WithTimezone(tz or "UTC")

    if is_now:
        instant = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        return ResolvedInstant(utc_instant=instant, coordinates=coords, timezone_source=WithTimezone("UTC"))

    d = parse_date(spec.date)
    t = parse_time(spec.time)
    instant, warnings = _to_utc(d, t, source)
    return ResolvedInstant(
        utc_instant=instant,
        coordinates=coords,
        timezone_source=source,
        warnings=tuple(warnings),
    )


def resolve(
    spec: TemporalSpec,
    store: Optional[ProfileStore] = None,
    now: Optional[datetime] = None,
) -> ResolvedInstant:
    if isinstance(spec, ProfileReference):
        return _resolve_profile(spec, store or ProfileStore())
    if isinstance(spec, ExplicitSpec):
        return _resolve_explicit(spec, now)
    raise TypeError(f"unsupported temporal spec {type(spec).__name__}")
