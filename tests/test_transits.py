from datetime import datetime, timezone

import pytest

from astrochart.core.errors import ProfileNotFoundError
from astrochart.core.resolver import GeoCoordinates
from astrochart.core.transits import GREENWICH, transits

WHEN = datetime(2024, 4, 8, 18, 17, tzinfo=timezone.utc)


def _house_call(provider):
    return [c for c in provider.calls if c[0] == "houses"][-1]


def test_defaults_to_greenwich(fake_provider):
    r = transits(WHEN, provider=fake_provider)
    assert r.chart.location == GREENWICH
    assert _house_call(fake_provider)[3:] == (0.0, 0.0)
    assert r.profile_name is None
    assert r.moon_phase is not None


def test_profile_location(fake_provider, profile_store, kolkata_profile):
    profile_store.save(kolkata_profile)
    r = transits(WHEN, profile="kolkata-1990", store=profile_store, provider=fake_provider)
    assert r.profile_name == "Kolkata-1990"
    assert r.chart.location.name == "Kurnool, India"
    assert _house_call(fake_provider)[3:] == (15.8309251, 78.0425373)
    # transits are for the requested instant, not the birth time
    assert r.chart.timestamp == WHEN


def test_explicit_coordinates_beat_profile(fake_provider, profile_store, kolkata_profile):
    profile_store.save(kolkata_profile)
    paris = GeoCoordinates(48.8566, 2.3522, "Paris")
    r = transits(WHEN, coordinates=paris, profile="Kolkata-1990", store=profile_store, provider=fake_provider)
    assert r.chart.location == paris


def test_missing_profile(fake_provider, profile_store):
    with pytest.raises(ProfileNotFoundError):
        transits(WHEN, profile="nobody", store=profile_store, provider=fake_provider)


def test_default_instant_is_now(fake_provider):
    before = datetime.now(timezone.utc)
    r = transits(provider=fake_provider)
    after = datetime.now(timezone.utc)
    assert before <= r.chart.timestamp <= after


def test_to_dict(fake_provider):
    d = transits(WHEN, provider=fake_provider).to_dict()
    assert d["timestamp"] == "2024-04-08T18:17:00Z"
    assert d["location"]["name"] == "Greenwich"
    assert d["moon_phase"]["name"]
    assert d["profile"] is None
