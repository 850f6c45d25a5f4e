# astrochart/utils/config.py
import os
import yaml

from astrochart.core.constants import (
    DEFAULT_COMPARISON_SYSTEMS,
    DEFAULT_HOUSE_SYSTEM,
    MAJOR_BODIES,
)

_BUILTIN_DEFAULTS = {
    "house_system": DEFAULT_HOUSE_SYSTEM,
    "comparison_systems": list(DEFAULT_COMPARISON_SYSTEMS),
    "bodies": list(MAJOR_BODIES),
}


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.house_system and cfg['house_system'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def load_config(path: str = None):
    """
    Load YAML defaults from `path` (or $ASTRO_CONFIG) over the built-in ones.

    Missing file → built-in defaults. Optional override:
      - ASTRO_DEFAULT_HOUSE_SYSTEM  (overrides config['house_system'])
    Returns an AttrDict for convenient access.
    """
    path = path or os.getenv("ASTRO_CONFIG", "config/defaults.yaml")
    data = dict(_BUILTIN_DEFAULTS)
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{path}: top level must be a mapping")
        data.update(loaded)

    hs = os.getenv("ASTRO_DEFAULT_HOUSE_SYSTEM")
    if hs:
        data["house_system"] = hs

    return _to_attr(data)
