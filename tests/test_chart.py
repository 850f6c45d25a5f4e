from datetime import datetime, timezone

import pytest

from astrochart.core.chart import (
    CelestialBodyPosition,
    assemble,
    derive_angles,
    polar_warning,
    validate_cusps,
)
from astrochart.core.constants import ALL_BODIES, MAJOR_BODIES
from astrochart.core.errors import (
    ConfigurationWarning,
    EphemerisProviderError,
    PolarHousesUnavailableError,
    ValidationError,
)
from astrochart.core.resolver import GeoCoordinates

from conftest import FakeProvider

WHEN = datetime(1990, 3, 10, 7, 25, tzinfo=timezone.utc)
KURNOOL = GeoCoordinates(15.8309251, 78.0425373, "Kurnool")


def test_default_bodies_and_normalization(fake_provider):
    chart = assemble(WHEN, KURNOOL, provider=fake_provider)
    assert list(chart.bodies) == list(MAJOR_BODIES)
    assert chart.bodies["Venus"].longitude == pytest.approx(350.0)
    assert chart.bodies["Venus"].sign == "Pisces"
    assert chart.bodies["Mars"].longitude == pytest.approx(15.0)
    assert chart.bodies["Mars"].sign == "Aries"
    for b in chart.bodies.values():
        assert 0.0 <= b.longitude < 360.0
        assert 0.0 <= b.degree_in_sign < 30.0


def test_retrograde_flags(fake_provider):
    chart = assemble(WHEN, KURNOOL, provider=fake_provider)
    assert chart.bodies["Mercury"].retrograde is True
    assert chart.bodies["Pluto"].retrograde is True
    assert chart.bodies["Moon"].retrograde is False


def test_sun_never_retrograde():
    provider = FakeProvider(positions={"Sun": (10.0, -0.5)})
    chart = assemble(WHEN, KURNOOL, bodies=["Sun"], provider=provider)
    assert chart.bodies["Sun"].retrograde is False


def test_south_node_derived_not_requested(fake_provider):
    chart = assemble(WHEN, KURNOOL, bodies=["South Node"], provider=fake_provider)
    assert list(chart.bodies) == ["South Node"]
    assert chart.bodies["South Node"].longitude == pytest.approx(138.5)
    assert "South Node" not in fake_provider.bodies_requested()
    assert fake_provider.bodies_requested() == ["North Node"]


def test_extended_set(fake_provider):
    chart = assemble(WHEN, KURNOOL, bodies=ALL_BODIES, provider=fake_provider)
    assert set(chart.bodies) == set(ALL_BODIES)
    assert chart.bodies["South Node"].longitude == pytest.approx(
        (chart.bodies["North Node"].longitude + 180.0) % 360.0
    )


def test_angles_exact_opposition(fake_provider):
    chart = assemble(WHEN, KURNOOL, provider=fake_provider)
    a = chart.angles
    assert a.ascendant == pytest.approx(170.05)
    assert a.descendant == (a.ascendant + 180.0) % 360.0
    assert a.imum_coeli == (a.midheaven + 180.0) % 360.0


def test_derive_angles_wraps():
    a = derive_angles(-10.0, 370.0)
    assert a.ascendant == pytest.approx(350.0)
    assert a.descendant == pytest.approx(170.0)
    assert a.midheaven == pytest.approx(10.0)
    assert a.imum_coeli == pytest.approx(190.0)


def test_julian_day_from_instant(fake_provider):
    chart = assemble(datetime(2000, 1, 1, 12, tzinfo=timezone.utc), KURNOOL, bodies=["Sun"], provider=fake_provider)
    assert chart.julian_day == pytest.approx(2451545.0)
    assert fake_provider.calls[0][1] == pytest.approx(2451545.0)


def test_provider_error_aborts_whole_chart():
    provider = FakeProvider(fail_on="Saturn")
    with pytest.raises(EphemerisProviderError) as ei:
        assemble(WHEN, KURNOOL, provider=provider)
    assert ei.value.stage == "body_position"


def test_unknown_body_and_system_rejected(fake_provider):
    with pytest.raises(ValidationError):
        assemble(WHEN, KURNOOL, bodies=["Vulcan"], provider=fake_provider)
    with pytest.raises(ValidationError):
        assemble(WHEN, KURNOOL, house_system="topocentric", provider=fake_provider)


def test_naive_instant_rejected(fake_provider):
    with pytest.raises(ValidationError):
        assemble(datetime(1990, 3, 10, 7, 25), KURNOOL, provider=fake_provider)


def test_non_monotonic_cusps_fatal_outside_polar():
    bad = (10.0, 5.0) + tuple(float(30 * i) for i in range(2, 12))
    provider = FakeProvider(cusps=bad)
    with pytest.raises(EphemerisProviderError) as ei:
        assemble(WHEN, KURNOOL, provider=provider)
    assert ei.value.stage == "house_cusps"


def test_polar_placidus_passes_through_with_warning():
    bad = (10.0, 5.0) + tuple(float(30 * i) for i in range(2, 12))
    provider = FakeProvider(cusps=bad)
    tromso = GeoCoordinates(69.65, 18.96, "Tromsø")
    chart = assemble(WHEN, tromso, provider=provider)
    assert chart.houses.cusps[:2] == (10.0, 5.0)
    assert [w.code for w in chart.warnings] == ["houses_polar_degenerate_possible"]


def test_polar_warning_covers_quadrant_systems():
    assert polar_warning("placidus", 70.0) is not None
    assert polar_warning("koch", -67.0) is not None
    assert polar_warning("regiomontanus", 70.0) is not None
    assert polar_warning("campanus", 75.0) is not None
    assert polar_warning("porphyrius", -80.0) is not None
    assert polar_warning("whole-sign", 80.0) is None
    assert polar_warning("equal", 80.0) is None
    assert polar_warning("placidus", 60.0) is None


def test_polar_regiomontanus_out_of_order_passes_through():
    bad = (10.0, 5.0) + tuple(float(30 * i) for i in range(2, 12))
    tromso = GeoCoordinates(69.65, 18.96, "Tromsø")
    chart = assemble(WHEN, tromso, house_system="regiomontanus", provider=FakeProvider(cusps=bad))
    assert chart.houses.system == "regiomontanus"
    assert chart.houses.cusps[:2] == (10.0, 5.0)
    assert [w.code for w in chart.warnings] == ["houses_polar_degenerate_possible"]


def test_polar_refusal_aborts_chart():
    provider = FakeProvider(refuse_polar=True)
    with pytest.raises(PolarHousesUnavailableError) as ei:
        assemble(WHEN, GeoCoordinates(70.0, 25.0), house_system="koch", provider=provider)
    assert ei.value.stage == "house_cusps"
    assert ei.value.system_code == "K"



def test_validate_cusps():
    assert validate_cusps([(100.0 + 30 * i) % 360 for i in range(12)])
    assert not validate_cusps([0.0] * 12)
    assert not validate_cusps([1.0, 2.0])


def test_warnings_passed_in_are_kept(fake_provider):
    w = ConfigurationWarning("timezone_assumed_utc", "x lacks timezone, time treated as UTC")
    chart = assemble(WHEN, KURNOOL, provider=fake_provider, warnings=(w,))
    assert chart.warnings[0] == w


def test_to_dict_shape(fake_provider):
    d = assemble(WHEN, KURNOOL, provider=fake_provider).to_dict()
    assert d["timestamp"] == "1990-03-10T07:25:00Z"
    assert set(d) >= {"timestamp", "julian_day", "location", "bodies", "angles", "houses", "warnings"}
    assert d["angles"]["ascendant"]["formatted"] == "20°03' Virgo"
    assert len(d["houses"]["cusps"]) == 12
    assert d["bodies"]["Sun"]["formatted"] == "19°30' Pisces"


def test_body_position_from_raw():
    p = CelestialBodyPosition.from_raw("Moon", 725.5, 1.0, 0.0025, 13.0)
    assert p.longitude == pytest.approx(5.5)
    assert p.sign == "Aries"
    assert p.degree_in_sign == pytest.approx(5.5)
