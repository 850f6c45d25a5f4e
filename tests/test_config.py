from pathlib import Path

from astrochart.core.constants import MAJOR_BODIES
from astrochart.utils.config import load_config


def test_missing_file_gives_builtin_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yaml"))
    assert cfg.house_system == "placidus"
    assert cfg["bodies"] == list(MAJOR_BODIES)


def test_yaml_overrides(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("house_system: koch\nbodies: [Sun, Moon]\n", encoding="utf-8")
    cfg = load_config(str(p))
    assert cfg.house_system == "koch"
    assert cfg.bodies == ["Sun", "Moon"]
    assert cfg.comparison_systems  # untouched default


def test_env_overrides_house_system(tmp_path, monkeypatch):
    monkeypatch.setenv("ASTRO_DEFAULT_HOUSE_SYSTEM", "equal")
    assert load_config(str(tmp_path / "absent.yaml")).house_system == "equal"


def test_shipped_defaults_file():
    cfg = load_config(str(Path(__file__).resolve().parent.parent / "config" / "defaults.yaml"))
    assert cfg.house_system == "placidus"
    assert len(cfg.bodies) == 10
