# astrochart/core/profiles.py
"""
Profile Store: named birth data persisted as one JSON file.

    {"version": 1, "profiles": {"<lowercase name>": {...profile fields...}}}

Lookups are case-insensitive (keys are stored lowercase, the display name is
kept in the record). A missing file is an empty store; an unreadable or
corrupt file is also treated as empty and logged, so resolution can still
report "No profiles saved".
"""
from __future__ import annotations

from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import logging
import os
import re
import tempfile
import threading

from astrochart.core.errors import ValidationError, err
from astrochart.core.timescales import utc_offset_label
from astrochart.core.validators import parse_profile_fields

log = logging.getLogger(__name__)

__all__ = ["Profile", "ProfileStore", "PROFILE_NAME_RE", "default_profiles_path"]

PROFILE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_STORE_VERSION = 1


def default_profiles_path() -> str:
    return os.getenv("ASTRO_PROFILES_PATH") or os.path.join(
        os.path.expanduser("~"), ".astrochart", "profiles.json"
    )


@dataclass(frozen=True)
class Profile:
    name: str
    date: str                         # YYYY-MM-DD, local civil date
    time: str                         # HH:MM:SS, local civil time
    latitude: float
    longitude: float
    location: str = ""
    timezone: Optional[str] = None    # IANA id; None → time is taken as UTC
    utc_offset: Optional[str] = None  # "+05:30" at birth; informational only
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Profile":
        return cls(
            name=str(d["name"]),
            date=str(d["date"]),
            time=str(d["time"]),
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            location=str(d.get("location") or ""),
            timezone=d.get("timezone") or None,
            utc_offset=d.get("utc_offset") or None,
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class ProfileStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or default_profiles_path()
        self._lock = threading.RLock()

    # ---- file io ---------------------------------------------------------------
    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error("Could not read profile store %s: %s", self.path, e)
            return {}
        profiles = data.get("profiles") if isinstance(data, dict) else None
        if not isinstance(profiles, dict):
            log.error("Profile store %s has no 'profiles' object; ignoring its contents", self.path)
            return {}
        return profiles

    def _write(self, profiles: Dict[str, Dict[str, Any]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".profiles-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"version": _STORE_VERSION, "profiles": profiles}, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _records(self) -> List[Profile]:
        out: List[Profile] = []
        for key, rec in self._read().items():
            try:
                out.append(Profile.from_dict(rec))
            except (KeyError, TypeError, ValueError) as e:
                log.error("Skipping malformed profile %r in %s: %s", key, self.path, e)
        return out

    # ---- queries ---------------------------------------------------------------
    def lookup(self, name: str) -> Optional[Profile]:
        with self._lock:
            rec = self._read().get(str(name).lower())
        if rec is None:
            return None
        try:
            return Profile.from_dict(rec)
        except (KeyError, TypeError, ValueError) as e:
            log.error("Profile %r in %s is malformed: %s", name, self.path, e)
            return None

    def exists(self, name: str) -> bool:
        return self.lookup(name) is not None

    def list_all(self) -> List[Profile]:
        with self._lock:
            return sorted(self._records(), key=lambda p: p.name.lower())

    # ---- mutations -------------------------------------------------------------
    def save(self, profile: Profile) -> Profile:
        """
        Validate and store; keeps created_at of an existing profile with the
        same (case-insensitive) name and refreshes updated_at and utc_offset.
        """
        if not PROFILE_NAME_RE.match(profile.name or ""):
            raise ValidationError(err("name", "name may only contain letters, digits, '_' and '-'"))
        fields = parse_profile_fields(profile.to_dict())

        offset = None
        if fields["timezone"]:
            offset = utc_offset_label(fields["date"], fields["time"], fields["timezone"])

        key = profile.name.lower()
        with self._lock:
            profiles = self._read()
            prev = profiles.get(key) or {}
            now = _now_iso()
            stored = replace(
                profile,
                date=fields["date"].isoformat(),
                time=fields["time"].strftime("%H:%M:%S"),
                latitude=fields["latitude"],
                longitude=fields["longitude"],
                location=fields["location"],
                timezone=fields["timezone"],
                utc_offset=offset,
                created_at=prev.get("created_at") or now,
                updated_at=now,
            )
            profiles[key] = stored.to_dict()
            self._write(profiles)
        log.info("Saved profile %s (%s)", stored.name, self.path)
        return stored

    def delete(self, name: str) -> bool:
        key = str(name).lower()
        with self._lock:
            profiles = self._read()
            if key not in profiles:
                return False
            del profiles[key]
            self._write(profiles)
        log.info("Deleted profile %s (%s)", name, self.path)
        return True
