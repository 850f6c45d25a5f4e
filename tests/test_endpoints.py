import pytest

from astrochart.main import create_app

from conftest import FakeProvider

sample = {
    "date": "1990-03-10",
    "time": "12:55",
    "timezone": "Asia/Kolkata",
    "latitude": 15.8309251,
    "longitude": 78.0425373,
    "location": "Kurnool, India",
}


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider, profile_store):
    app = create_app(provider=provider, profile_store=profile_store)
    app.testing = True
    return app.test_client()


def test_health(client):
    rv = client.get("/api/health")
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["ok"] is True and data["status"] == "up"
    assert client.get("/healthz").status_code == 200


def test_resolve(client):
    rv = client.post("/api/resolve", json=sample)
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["resolved"]["utc_instant"] == "1990-03-10T07:25:00Z"


def test_chart(client, provider):
    rv = client.post("/api/chart", json=sample)
    assert rv.status_code == 200
    data = rv.get_json()
    chart = data["chart"]
    assert chart["timestamp"] == "1990-03-10T07:25:00Z"
    assert list(chart["bodies"]) == ["Sun", "Moon", "Mercury", "Venus", "Mars",
                                     "Jupiter", "Saturn", "Uranus", "Neptune", "Pluto"]
    assert chart["houses"]["system"] == "placidus"
    assert data["moon_phase"]["name"]
    assert [c[2] for c in provider.calls if c[0] == "houses"] == ["P"]


def test_chart_extended_and_system(client, provider):
    rv = client.post("/api/chart", json={**sample, "extended": True, "house_system": "whole sign"})
    assert rv.status_code == 200
    chart = rv.get_json()["chart"]
    assert "South Node" in chart["bodies"] and "Chiron" in chart["bodies"]
    assert chart["houses"]["system"] == "whole-sign"
    assert "South Node" not in provider.bodies_requested()


def test_chart_validation_error_shape(client):
    rv = client.post("/api/chart", json={**sample, "latitude": 123})
    assert rv.status_code == 400
    data = rv.get_json()
    assert data["ok"] is False and data["error"] == "validation_error"
    assert data["details"][0]["loc"] == ["latitude"]


def test_non_object_body(client):
    rv = client.post("/api/chart", data="[]", content_type="application/json")
    assert rv.status_code == 400
    assert rv.get_json()["error"] == "validation_error"


def test_unknown_house_system_suggests(client):
    rv = client.post("/api/houses", json={**sample, "house_system": "placidos"})
    assert rv.status_code == 400
    assert "placidus" in rv.get_json()["details"][0]["msg"]


def test_ephemeris_failure_is_502(profile_store):
    app = create_app(provider=FakeProvider(fail_on="Moon"), profile_store=profile_store)
    rv = app.test_client().post("/api/chart", json=sample)
    assert rv.status_code == 502
    data = rv.get_json()
    assert data["error"] == "ephemeris_error"
    assert data["stage"] == "body_position"
    assert "chart" not in data


def test_house_systems_listing(client):
    data = client.get("/api/houses/systems").get_json()
    assert data["default"] == "placidus"
    assert len(data["systems"]) == 10


def test_houses_and_compare(client):
    rv = client.post("/api/houses", json={**sample, "house_system": "equal"})
    assert rv.status_code == 200
    houses = rv.get_json()["houses"]
    assert houses["code"] == "A"
    assert len(houses["cusps"]) == 12

    rv = client.post("/api/houses/compare", json={**sample, "systems": ["placidus", "whole-sign"]})
    assert rv.status_code == 200
    cmp = rv.get_json()["comparison"]
    assert cmp["systems"] == ["placidus", "whole-sign"]

    rv = client.post("/api/houses/compare", json={**sample, "systems": "placidus"})
    assert rv.status_code == 400


def test_progressions(client):
    rv = client.post("/api/progressions", json={**sample, "target_age": 30})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["progression"]["progressed_instant"] == "1990-04-09T07:25:00Z"
    assert data["natal"]["timestamp"] == "1990-03-10T07:25:00Z"

    rv = client.post("/api/progressions", json={**sample, "target_date": "1980-01-01"})
    assert rv.status_code == 400
    assert rv.get_json()["details"][0]["loc"] == ["target_date"]

    rv = client.post("/api/progressions", json={**sample, "target_age": -1})
    assert rv.status_code == 400


def test_moon_phase(client):
    rv = client.post("/api/moon-phase", json={"sun_longitude": 10, "moon_longitude": 190})
    assert rv.status_code == 200
    assert rv.get_json()["moon_phase"]["name"] == "Full Moon"

    rv = client.post("/api/moon-phase", json={"sun_longitude": "x"})
    assert rv.status_code == 400
    assert {d["loc"][0] for d in rv.get_json()["details"]} == {"sun_longitude", "moon_longitude"}


def test_profiles_crud_and_chart_by_name(client):
    rv = client.post("/api/profiles", json={**sample, "name": "manu"})
    assert rv.status_code == 201
    assert rv.get_json()["profile"]["name"] == "manu"

    data = client.get("/api/profiles").get_json()
    assert data["count"] == 1

    rv = client.post("/api/chart", json={"date": "manu"})
    assert rv.status_code == 200
    assert rv.get_json()["chart"]["timestamp"] == "1990-03-10T07:25:00Z"

    rv = client.post("/api/transits", json={"profile": "manu", "date": "2024-04-08", "time": "18:17"})
    assert rv.status_code == 200
    assert rv.get_json()["transits"]["location"]["name"] == "Kurnool, India"

    assert client.get("/api/profiles/MANU").status_code == 200
    assert client.delete("/api/profiles/manu").status_code == 200
    assert client.delete("/api/profiles/manu").status_code == 404


def test_profile_not_found_lists_available(client):
    client.post("/api/profiles", json={**sample, "name": "manu"})
    rv = client.post("/api/chart", json={"profile": "bob"})
    assert rv.status_code == 404
    data = rv.get_json()
    assert data["error"] == "profile_not_found"
    assert data["available"] == [{"name": "manu", "location": "Kurnool, India"}]


def test_profile_save_validation(client):
    rv = client.post("/api/profiles", json={**sample, "name": "bad name!"})
    assert rv.status_code == 400
    rv = client.post("/api/profiles", json={**sample, "name": "ok", "latitude": "north"})
    assert rv.status_code == 400
    assert rv.get_json()["details"][0]["loc"] == ["latitude"]


def test_unknown_route_is_json(client):
    rv = client.get("/api/nope")
    assert rv.status_code == 404
    assert rv.get_json()["error"] == "http_error"


def test_metrics(client):
    client.get("/api/health")
    rv = client.get("/metrics")
    assert rv.status_code == 200
    assert b"astrochart_requests_total" in rv.data


def test_metrics_basic_auth(client, monkeypatch):
    monkeypatch.setenv("METRICS_USER", "ops")
    monkeypatch.setenv("METRICS_PASS", "secret")
    assert client.get("/metrics").status_code == 401
    rv = client.get("/metrics", headers={"Authorization": "Basic b3BzOnNlY3JldA=="})
    assert rv.status_code == 200


def test_progressions_age_beyond_calendar_is_400(client):
    rv = client.post("/api/progressions", json={**sample, "target_age": 1e20})
    assert rv.status_code == 400
    assert rv.get_json()["details"][0]["loc"] == ["target_age"]


def test_extended_skips_chiron_without_asteroid_files(profile_store):
    provider = FakeProvider(has_asteroid_files=False)
    client = create_app(provider=provider, profile_store=profile_store).test_client()
    rv = client.post("/api/chart", json={**sample, "extended": True})
    assert rv.status_code == 200
    bodies = rv.get_json()["chart"]["bodies"]
    assert "Chiron" not in bodies
    assert "South Node" in bodies and "Lilith" in bodies
    assert "Chiron" not in provider.bodies_requested()


polar = {**sample, "timezone": "Europe/Oslo", "latitude": 70.0, "longitude": 18.96, "location": "Tromsø"}


def test_polar_houses_refusal_is_422(profile_store):
    client = create_app(provider=FakeProvider(refuse_polar=True), profile_store=profile_store).test_client()
    rv = client.post("/api/houses", json={**polar, "house_system": "placidus"})
    assert rv.status_code == 422
    data = rv.get_json()
    assert data["error"] == "houses_unavailable"
    assert data["system"] == "placidus"
    assert data["latitude"] == 70.0

    rv = client.post("/api/houses", json={**polar, "house_system": "regiomontanus"})
    assert rv.status_code == 200
    assert [w["code"] for w in rv.get_json()["houses"]["warnings"]] == ["houses_polar_degenerate_possible"]


def test_polar_comparison_lists_unavailable(profile_store):
    client = create_app(provider=FakeProvider(refuse_polar=True), profile_store=profile_store).test_client()
    rv = client.post("/api/houses/compare", json=polar)
    assert rv.status_code == 200
    cmp = rv.get_json()["comparison"]
    assert cmp["systems"] == ["equal", "whole-sign"]
    assert [u["system"] for u in cmp["unavailable"]] == ["placidus", "koch"]
    assert "houses_unavailable_polar" in {w["code"] for w in cmp["warnings"]}


def test_health_reports_ephemeris_diagnostics(profile_store):
    from astrochart.core.ephemeris_adapter import Config, SwissEphemerisProvider

    provider = SwissEphemerisProvider(Config(ephe_path=None, backend="moseph"))
    client = create_app(provider=provider, profile_store=profile_store).test_client()
    eph = client.get("/api/health").get_json()["ephemeris"]
    assert eph["backend"] == "moseph"
    assert eph["asteroid_files"] is False
    assert "Sun" in eph["bodies"]


def test_health_without_diagnostics(client):
    assert "ephemeris" not in client.get("/api/health").get_json()


def test_request_metrics_labelled_by_route_template(client):
    from prometheus_client import REGISTRY

    labels = {"route": "/api/profiles/<name>"}
    before = REGISTRY.get_sample_value("astrochart_requests_total", labels) or 0.0
    client.get("/api/profiles/alice")
    client.get("/api/profiles/bob")
    assert REGISTRY.get_sample_value("astrochart_requests_total", labels) == before + 2
    assert REGISTRY.get_sample_value("astrochart_requests_total", {"route": "/api/profiles/alice"}) is None
