# tests/conftest.py
"""
Pytest configuration for the astrochart suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to a non-UTC zone so any accidental reliance on the
  machine's local time shows up as a wrong instant.
- Provides a deterministic fake ephemeris provider and a temp profile store.
- Adds a 'slow' marker.
"""

from __future__ import annotations

import os
import time as _time
from typing import Dict, List, Optional, Tuple

import pytest
from hypothesis import settings, HealthCheck

from astrochart.core.angles import normalize_degrees
from astrochart.core.ephemeris_adapter import RawBodyPosition, RawHouses
from astrochart.core.constants import POLAR_CIRCLE_DEG
from astrochart.core.errors import EphemerisProviderError, PolarHousesUnavailableError
from astrochart.core.profiles import Profile, ProfileStore


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def foreign_process_tz():
    """
    Run with the process TZ far from UTC; instants must not move because of it.
    """
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "America/Los_Angeles"
    if hasattr(_time, "tzset"):
        _time.tzset()
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev
        if hasattr(_time, "tzset"):
            _time.tzset()


# ──────────────────────────────────────────────────────────────────────────────
# Fake provider
# ──────────────────────────────────────────────────────────────────────────────

# name → (longitude, speed)
DEFAULT_FAKE_POSITIONS: Dict[str, Tuple[float, float]] = {
    "Sun": (349.5, 0.99),
    "Moon": (120.25, 13.2),
    "Mercury": (335.0, -0.4),
    "Venus": (-10.0, 1.1),       # deliberately unnormalized
    "Mars": (375.0, 0.7),        # deliberately unnormalized
    "Jupiter": (95.0, 0.05),
    "Saturn": (292.0, 0.08),
    "Uranus": (278.0, 0.03),
    "Neptune": (284.0, 0.02),
    "Pluto": (226.0, -0.01),
    "Chiron": (100.0, 0.02),
    "Lilith": (200.0, 0.1),
    "Mean Lilith": (201.0, 0.11),
    "North Node": (318.5, -0.05),
}


class FakeProvider:
    """
    Deterministic stand-in for Swiss Ephemeris.

    Houses: 'W' → whole-sign from the ascendant's sign; 'A' → equal from the
    ascendant; anything else → a quadrant-like set built from asc/mc, unless
    `cusps` overrides it. With `refuse_polar`, Placidus and Koch are refused
    inside the polar circle the way Swiss Ephemeris refuses them.
    """

    def __init__(
        self,
        positions: Optional[Dict[str, Tuple[float, float]]] = None,
        ascendant: float = 170.05,
        midheaven: float = 80.0,
        cusps: Optional[Tuple[float, ...]] = None,
        fail_on: Optional[str] = None,
        refuse_polar: bool = False,
        has_asteroid_files: bool = True,
    ):
        self.positions = dict(DEFAULT_FAKE_POSITIONS if positions is None else positions)
        self.ascendant = ascendant
        self.midheaven = midheaven
        self.cusps = cusps
        self.fail_on = fail_on
        self.refuse_polar = refuse_polar
        self.has_asteroid_files = has_asteroid_files
        self.calls: List[tuple] = []

    def body_position(self, jd_ut: float, body: str) -> RawBodyPosition:
        self.calls.append(("body", jd_ut, body))
        if body == self.fail_on:
            raise EphemerisProviderError("body_position", "simulated failure", body=body)
        lon, speed = self.positions.get(body, (0.0, 1.0))
        return RawBodyPosition(longitude=lon, latitude=0.5, distance=1.0, speed=speed)

    def house_cusps(self, jd_ut: float, coordinates, system_code: str) -> RawHouses:
        self.calls.append(("houses", jd_ut, system_code, coordinates.latitude, coordinates.longitude))
        if self.fail_on == "houses":
            raise EphemerisProviderError("house_cusps", "simulated failure", system=system_code)
        if self.refuse_polar and system_code in ("P", "K") and abs(coordinates.latitude) >= POLAR_CIRCLE_DEG:
            raise PolarHousesUnavailableError(system_code, coordinates.latitude, reason="simulated refusal")
        asc, mc = self.ascendant, self.midheaven
        if self.cusps is not None:
            cusps = self.cusps
        elif system_code == "W":
            start = (normalize_degrees(asc) // 30.0) * 30.0
            cusps = tuple(normalize_degrees(start + 30.0 * i) for i in range(12))
        elif system_code == "A":
            cusps = tuple(normalize_degrees(asc + 30.0 * i) for i in range(12))
        else:
            ic = mc + 180.0
            q1 = normalize_degrees(ic - asc)  # asc → ic
            q2 = 180.0 - q1                   # ic → dsc
            cusps = (
                asc, asc + q1 / 3, asc + 2 * q1 / 3,
                ic, ic + q2 / 3, ic + 2 * q2 / 3,
                asc + 180.0, asc + 180.0 + q1 / 3, asc + 180.0 + 2 * q1 / 3,
                mc, mc + q2 / 3, mc + 2 * q2 / 3,
            )
            cusps = tuple(normalize_degrees(c) for c in cusps)
        return RawHouses(cusps=tuple(cusps), ascendant=asc, midheaven=mc)

    def bodies_requested(self) -> List[str]:
        return [c[2] for c in self.calls if c[0] == "body"]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def profile_store(tmp_path) -> ProfileStore:
    return ProfileStore(str(tmp_path / "profiles.json"))


@pytest.fixture
def kolkata_profile() -> Profile:
    return Profile(
        name="Kolkata-1990",
        date="1990-03-10",
        time="12:55:00",
        latitude=15.8309251,
        longitude=78.0425373,
        location="Kurnool, India",
        timezone="Asia/Kolkata",
    )
