# astrochart/api/routes.py
"""
astrochart API routes
- Resolve (profile / explicit spec → UTC instant)
- Chart, Houses (+ comparison), Progressions, Moon phase, Transits
- Profiles (list / save / lookup / delete)
- Ops: /api/health

Notes:
- Every response is {"ok": true, ...} or {"ok": false, "error": ..., ...}.
- Domain errors map to 400 (validation_error), 404 (profile_not_found),
  422 (houses_unavailable: house system refused inside the polar circle)
  and 502 (ephemeris_error); nothing partial is returned on a fatal error.
- "extended": true adds Chiron only when the provider has the asteroid
  files; naming Chiron explicitly without them is a 502.
- Non-fatal warnings ride along on the successful result.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request

from astrochart.version import VERSION
from astrochart.core.chart import assemble
from astrochart.core.constants import ALL_BODIES, ASTEROID_BODIES, MAJOR_BODIES
from astrochart.core.ephemeris_adapter import EphemerisProvider, get_default_provider
from astrochart.core.errors import (
    EphemerisProviderError,
    PolarHousesUnavailableError,
    ProfileNotFoundError,
    ValidationError,
    err,
)
from astrochart.core.houses import (
    compare_house_systems,
    compute_houses,
    list_house_systems,
    normalize_system,
)
from astrochart.core.moon_phase import moon_phase, moon_phase_for_chart
from astrochart.core.profiles import Profile, ProfileStore
from astrochart.core.progressions import progressed_chart
from astrochart.core.resolver import GeoCoordinates, resolve, spec_from_payload
from astrochart.core.transits import transits
from astrochart.core.validators import (
    as_float,
    parse_age,
    parse_bodies,
    parse_date,
    parse_latlon,
    parse_time,
)
from astrochart.utils.metrics import MET_ERRORS, count_warnings

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)


# ───────────────────────── helpers ─────────────────────────
def _json_error(code: str, details: Any = None, http: int = 400, **extra: Any):
    out: Dict[str, Any] = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    out.update(extra)
    return jsonify(out), http


def _body_json() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def _provider() -> EphemerisProvider:
    return current_app.extensions.get("astrochart.provider") or get_default_provider()


def _store() -> ProfileStore:
    store = current_app.extensions.get("astrochart.profiles")
    if store is None:
        store = ProfileStore()
        current_app.extensions["astrochart.profiles"] = store
    return store


def _cfg(key: str, default: Any) -> Any:
    cfg = getattr(current_app, "cfg", None) or {}
    return cfg.get(key, default)


def _bodies(body: Dict[str, Any]) -> List[str]:
    if body.get("extended"):
        # providers without the notion (fakes, other engines) are assumed complete
        if getattr(_provider(), "has_asteroid_files", True):
            return list(ALL_BODIES)
        return [b for b in ALL_BODIES if b not in ASTEROID_BODIES]
    picked = parse_bodies(body.get("bodies"), ALL_BODIES)
    return picked if picked is not None else list(_cfg("bodies", MAJOR_BODIES))


def _house_system(body: Dict[str, Any]) -> str:
    return normalize_system(body.get("house_system") or body.get("system") or _cfg("house_system", None))


def _utc_from_body(body: Dict[str, Any], date_key: str, time_key: str) -> Optional[datetime]:
    """Optional 'YYYY-MM-DD' [+ 'HH:MM[:SS]'] read as UTC; 'now' or absent → None."""
    raw = body.get(date_key)
    if raw is None or (isinstance(raw, str) and raw.strip().lower() in ("", "now")):
        return None
    d = parse_date(raw, date_key)
    t = parse_time(body[time_key], time_key) if body.get(time_key) else parse_time("00:00:00", time_key)
    return datetime.combine(d, t, tzinfo=timezone.utc)


# ───────────────────────── domain error mapping ─────────────────────────
@api.app_errorhandler(ValidationError)
def _validation_error(e: ValidationError):
    MET_ERRORS.labels(kind="validation").inc()
    return _json_error("validation_error", e.errors(), 400)


@api.app_errorhandler(ProfileNotFoundError)
def _profile_not_found(e: ProfileNotFoundError):
    MET_ERRORS.labels(kind="profile_not_found").inc()
    return _json_error(
        "profile_not_found",
        http=404,
        message=e.message,
        available=[{"name": n, "location": loc} for n, loc in e.available],
    )


@api.app_errorhandler(EphemerisProviderError)
def _ephemeris_error(e: EphemerisProviderError):
    MET_ERRORS.labels(kind="ephemeris").inc()
    log.warning("ephemeris failure at %s %s: %s", request.method, request.path, e)
    return _json_error("ephemeris_error", http=502, stage=e.stage, message=e.message)


@api.app_errorhandler(PolarHousesUnavailableError)
def _polar_houses(e: PolarHousesUnavailableError):
    MET_ERRORS.labels(kind="houses_polar").inc()
    return _json_error(
        "houses_unavailable",
        http=422,
        stage=e.stage,
        system=normalize_system(e.system_code),
        latitude=e.latitude,
        message=e.message,
    )


# ───────────────────────── health / ops ─────────────────────────
@api.get("/api/health")
def health():
    out: Dict[str, Any] = {"ok": True, "status": "up", "version": VERSION}
    diagnostics = getattr(_provider(), "diagnostics", None)
    if callable(diagnostics):
        out["ephemeris"] = diagnostics()
    return jsonify(out), 200


# ───────────────────────── resolve ─────────────────────────
@api.post("/api/resolve")
def resolve_endpoint():
    body = _body_json()
    resolved = resolve(spec_from_payload(body), store=_store())
    count_warnings(resolved.warnings)
    return jsonify({"ok": True, "resolved": resolved.to_dict()}), 200


# ───────────────────────── chart ─────────────────────────
@api.post("/api/chart")
def chart_endpoint():
    body = _body_json()
    bodies = _bodies(body)
    system = _house_system(body)
    resolved = resolve(spec_from_payload(body), store=_store())
    chart = assemble(resolved.utc_instant, resolved.coordinates, bodies, system, _provider(),
                     warnings=resolved.warnings)
    count_warnings(chart.warnings)
    phase = moon_phase_for_chart(chart)
    return jsonify({
        "ok": True,
        "resolved": resolved.to_dict(),
        "chart": chart.to_dict(),
        "moon_phase": phase.to_dict() if phase else None,
    }), 200


# ───────────────────────── houses ─────────────────────────
@api.get("/api/houses/systems")
def house_systems():
    return jsonify({"ok": True, "default": _house_system({}), "systems": list_house_systems()}), 200


@api.post("/api/houses")
def houses_endpoint():
    body = _body_json()
    system = _house_system(body)
    resolved = resolve(spec_from_payload(body), store=_store())
    result = compute_houses(resolved.utc_instant, resolved.coordinates, system, _provider())
    warnings = list(resolved.warnings) + list(result.warnings)
    count_warnings(warnings)
    return jsonify({
        "ok": True,
        "resolved": resolved.to_dict(),
        "houses": {**result.to_dict(), "warnings": [w.to_dict() for w in warnings]},
    }), 200


@api.post("/api/houses/compare")
def houses_compare_endpoint():
    body = _body_json()
    systems = body.get("systems")
    if systems is not None and not isinstance(systems, list):
        raise ValidationError(err("systems", "must be an array of house system names", "type_error.list"))
    resolved = resolve(spec_from_payload(body), store=_store())
    comparison = compare_house_systems(
        resolved.utc_instant,
        resolved.coordinates,
        systems or list(_cfg("comparison_systems", [])) or None,
        _provider(),
    )
    out = comparison.to_dict()
    out["warnings"] = [w.to_dict() for w in resolved.warnings] + out["warnings"]
    return jsonify({"ok": True, "resolved": resolved.to_dict(), "comparison": out}), 200


# ───────────────────────── progressions ─────────────────────────
@api.post("/api/progressions")
def progressions_endpoint():
    body = _body_json()
    bodies = _bodies(body)
    system = _house_system(body)

    age = body.get("target_age")
    target_age = parse_age(age, "target_age") if age is not None else None
    target_instant = None
    if target_age is None:
        target_instant = _utc_from_body(body, "target_date", "target_time") or datetime.now(timezone.utc)

    resolved = resolve(spec_from_payload(body), store=_store())
    result = progressed_chart(
        resolved,
        target_instant=target_instant,
        target_age=target_age,
        bodies=bodies,
        house_system=system,
        provider=_provider(),
    )
    count_warnings(result.natal.warnings)
    return jsonify({"ok": True, "resolved": resolved.to_dict(), **result.to_dict()}), 200


# ───────────────────────── moon phase ─────────────────────────
@api.post("/api/moon-phase")
def moon_phase_endpoint():
    body = _body_json()
    sun = as_float(body.get("sun_longitude"))
    moon = as_float(body.get("moon_longitude"))
    details = []
    if sun is None:
        details.append(err("sun_longitude", "must be a finite number (degrees)", "type_error.float"))
    if moon is None:
        details.append(err("moon_longitude", "must be a finite number (degrees)", "type_error.float"))
    if details:
        raise ValidationError(details)
    return jsonify({"ok": True, "moon_phase": moon_phase(sun, moon).to_dict()}), 200


# ───────────────────────── transits ─────────────────────────
@api.post("/api/transits")
def transits_endpoint():
    body = _body_json()
    when = _utc_from_body(body, "date", "time")
    coords = None
    if body.get("latitude") is not None or body.get("longitude") is not None:
        lat, lon = parse_latlon(body.get("latitude"), body.get("longitude"))
        coords = GeoCoordinates(lat, lon, body.get("location") or None)
    result = transits(
        instant=when,
        coordinates=coords,
        profile=body.get("profile"),
        store=_store(),
        bodies=_bodies(body),
        house_system=_house_system(body),
        provider=_provider(),
    )
    count_warnings(result.chart.warnings)
    return jsonify({"ok": True, "transits": result.to_dict()}), 200


# ───────────────────────── profiles ─────────────────────────
@api.get("/api/profiles")
def profiles_list():
    profiles = _store().list_all()
    return jsonify({"ok": True, "count": len(profiles), "profiles": [p.to_dict() for p in profiles]}), 200


@api.post("/api/profiles")
def profiles_save():
    body = _body_json()
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(err("name", "required string", "value_error.missing"))
    lat = as_float(body.get("latitude"))
    lon = as_float(body.get("longitude"))
    if lat is None or lon is None:
        parse_latlon(body.get("latitude"), body.get("longitude"))  # raises with field names
    saved = _store().save(Profile(
        name=name.strip(),
        date=body.get("date") or "",
        time=body.get("time") or "",
        latitude=lat,
        longitude=lon,
        location=body.get("location") or "",
        timezone=body.get("timezone") or None,
    ))
    return jsonify({"ok": True, "profile": saved.to_dict()}), 201


@api.get("/api/profiles/<name>")
def profiles_get(name: str):
    store = _store()
    p = store.lookup(name)
    if p is None:
        raise ProfileNotFoundError(name, [(x.name, x.location or None) for x in store.list_all()])
    return jsonify({"ok": True, "profile": p.to_dict()}), 200


@api.delete("/api/profiles/<name>")
def profiles_delete(name: str):
    store = _store()
    if not store.delete(name):
        raise ProfileNotFoundError(name, [(x.name, x.location or None) for x in store.list_all()])
    return jsonify({"ok": True, "deleted": name}), 200
