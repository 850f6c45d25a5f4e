# astrochart/utils/metrics.py
from __future__ import annotations

from typing import Final, Iterable

from prometheus_client import Counter, Gauge, Histogram

# Shared by main.py (request hooks, /metrics) and api/routes.py (domain events).
MET_REQUESTS: Final = Counter("astrochart_requests_total", "API requests", ["route"])
MET_WARNINGS: Final = Counter("astrochart_warning_total", "Non-fatal warnings attached to results", ["code"])
MET_ERRORS: Final = Counter("astrochart_error_total", "Fatal errors returned to clients", ["kind"])
GAUGE_APP_UP: Final = Gauge("astrochart_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("astrochart_request_seconds", "API request latency", ["route"])


def count_warnings(warnings: Iterable) -> None:
    for w in warnings:
        MET_WARNINGS.labels(code=getattr(w, "code", "unknown")).inc()
