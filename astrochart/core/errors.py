# astrochart/core/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

__all__ = [
    "ValidationError",
    "ProfileNotFoundError",
    "EphemerisProviderError",
    "PolarHousesUnavailableError",
    "ConfigurationWarning",
    "err",
]

# ───────────────────────── fatal ─────────────────────────

Detail = Dict[str, Any]


def err(loc: Union[List[Any], str], msg: str, typ: str = "value_error") -> Detail:
    """One {"loc", "msg", "type"} entry naming the offending field."""
    return {"loc": [loc] if isinstance(loc, str) else list(loc), "msg": msg, "type": typ}


class ValidationError(ValueError):
    """
    Malformed or out-of-range input. Carries one or more field-level details
    (see err()); routes turn .errors() into a 400 body.
    """
    def __init__(self, details: Union[str, Detail, Sequence[Detail]]):
        if isinstance(details, str):
            items = [err([], details)]
        elif isinstance(details, dict):
            items = [details]
        else:
            items = list(details) or [err([], "invalid input")]
        self._details: List[Detail] = items
        super().__init__("; ".join(str(d.get("msg", "")) for d in items))

    def errors(self) -> List[Detail]:
        return [dict(d) for d in self._details]


class ProfileNotFoundError(LookupError):
    """
    Named profile is not in the store.

    `available` carries (name, location) for every saved profile so callers
    can list them; the message already does.
    """
    def __init__(self, name: str, available: Sequence[Tuple[str, Optional[str]]] = ()):
        self.name = name
        self.available: List[Tuple[str, Optional[str]]] = list(available)
        if self.available:
            listing = ", ".join(
                f"{n} ({loc})" if loc else n for n, loc in self.available
            )
            msg = f"Profile '{name}' not found. Available profiles: {listing}"
        else:
            msg = f"Profile '{name}' not found. No profiles saved."
        super().__init__(msg)
        self.message = msg


class EphemerisProviderError(RuntimeError):
    """Categorized failure from the ephemeris provider or a broken invariant on its output."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context


class PolarHousesUnavailableError(EphemerisProviderError):
    """The provider refuses a house system inside the polar circle (Placidus, Koch)."""
    def __init__(self, system_code: str, latitude: float, reason: str = "", **context: Any):
        msg = (
            f"house system {system_code!r} is undefined at latitude {latitude:.4f}° "
            f"(within the polar circle); use equal, whole-sign, porphyrius, meridian or morinus"
        )
        if reason:
            msg = f"{msg} [{reason}]"
        super().__init__("house_cusps", msg, system=system_code, latitude=latitude, **context)
        self.system_code = system_code
        self.latitude = latitude

# ───────────────────────── non-fatal ─────────────────────────

@dataclass(frozen=True)
class ConfigurationWarning:
    """A caveat attached to a result; never raised."""
    code: str
    message: str

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}
