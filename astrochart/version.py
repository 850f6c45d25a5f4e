# astrochart/version.py
from __future__ import annotations
import os
from importlib.metadata import PackageNotFoundError, version as _dist_version


def _installed_version() -> str:
    try:
        return _dist_version("astrochart")
    except PackageNotFoundError:
        # running from a source checkout
        return "0.1.0"


# ASTRO_VERSION wins for CI/preview builds
VERSION = os.getenv("ASTRO_VERSION") or _installed_version()
