# astrochart/main.py
"""
WSGI entry point.

    create_app(provider=None, profile_store=None, config_path=None) -> Flask

Tests build their own app with a fake provider and a temp profile store; the
module-level `app` is what gunicorn serves (gunicorn.conf.py).
"""
from __future__ import annotations

import hmac
import logging
import os
import traceback
import uuid
from time import perf_counter
from typing import Any, List, Optional

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from astrochart.api.routes import api as api_bp
from astrochart.core.ephemeris_adapter import EphemerisProvider
from astrochart.core.profiles import ProfileStore
from astrochart.utils.config import load_config
from astrochart.utils.metrics import GAUGE_APP_UP, MET_ERRORS, MET_REQUESTS, REQ_LATENCY
from astrochart.version import VERSION

log = logging.getLogger(__name__)

# routes counted individually; everything else would blow up label cardinality
_TRACKED_PREFIX = "/api/"
_TRACKED_PATHS = ("/health", "/healthz", "/metrics")


# ───────────────────────── logging ─────────────────────────
def _configure_logging(app: Flask) -> None:
    """Reuse gunicorn's handlers when served by it; plain basicConfig otherwise."""
    gunicorn_err = logging.getLogger("gunicorn.error")
    if gunicorn_err.handlers:
        app.logger.handlers = gunicorn_err.handlers
        app.logger.setLevel(gunicorn_err.level)
        logging.getLogger("astrochart").handlers = gunicorn_err.handlers
        logging.getLogger("astrochart").setLevel(gunicorn_err.level)
        return
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _request_id() -> str:
    return getattr(g, "request_id", None) or "-"


# ───────────────────────── error envelopes ─────────────────────────
def _register_errors(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s %s %s [%s]: %s", e.code, request.method, request.path, _request_id(), e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
            request_id=_request_id(),
        ), e.code

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):
        MET_ERRORS.labels(kind="internal").inc()
        app.logger.error(
            "unhandled %s on %s %s [%s]\n%s",
            type(e).__name__, request.method, request.path, _request_id(), traceback.format_exc(),
        )
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
            request_id=_request_id(),
        ), 500


# ───────────────────────── ops endpoints ─────────────────────────
def _metrics_auth_ok() -> bool:
    """Open unless METRICS_USER and METRICS_PASS are both set."""
    user = os.getenv("METRICS_USER", "")
    password = os.getenv("METRICS_PASS", "")
    if not (user and password):
        return True
    auth = request.authorization
    if not auth or auth.type != "basic":
        return False
    return hmac.compare_digest(auth.username or "", user) and hmac.compare_digest(auth.password or "", password)


def _register_ops(app: Flask) -> None:
    @app.get("/")
    def index():
        return jsonify(
            ok=True,
            service="astrochart",
            version=VERSION,
            house_system=app.cfg.house_system,  # type: ignore[attr-defined]
            api="/api",
            health="/health",
        ), 200

    @app.get("/health")
    @app.get("/healthz")
    def liveness():
        return jsonify(ok=True, status="ok"), 200

    @app.get("/metrics")
    def metrics():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="astrochart metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)


# ───────────────────────── request hooks ─────────────────────────
def _tracked(path: str) -> bool:
    return path.startswith(_TRACKED_PREFIX) or path in _TRACKED_PATHS


def _route_label() -> str:
    """URL rule template ('/api/profiles/<name>'), so labels stay bounded."""
    rule = request.url_rule
    return rule.rule if rule is not None else "<unmatched>"


def _register_hooks(app: Flask) -> None:
    @app.before_request
    def _start():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        if _tracked(request.path or ""):
            g.route = _route_label()
            MET_REQUESTS.labels(route=g.route).inc()
            g.t0 = perf_counter()

    @app.after_request
    def _finish(resp):
        t0: Any = g.pop("t0", None)
        if t0 is not None:
            REQ_LATENCY.labels(route=g.pop("route", _route_label())).observe(perf_counter() - t0)
        resp.headers["X-Request-ID"] = _request_id()
        return resp


def _cors_origins() -> List[str]:
    raw = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


# ───────────────────────── factory ─────────────────────────
def create_app(
    provider: Optional[EphemerisProvider] = None,
    profile_store: Optional[ProfileStore] = None,
    config_path: Optional[str] = None,
) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False  # keep body order (Sun, Moon, ...) and house order
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore[assignment]
    _configure_logging(app)

    app.cfg = load_config(config_path)  # type: ignore[attr-defined]
    # routes fall back to the process-wide Swiss Ephemeris provider and the
    # default profile file when these are absent
    if provider is not None:
        app.extensions["astrochart.provider"] = provider
    if profile_store is not None:
        app.extensions["astrochart.profiles"] = profile_store

    _register_hooks(app)
    _register_ops(app)
    _register_errors(app)
    app.register_blueprint(api_bp)

    CORS(
        app,
        resources={r"/api/*": {"origins": _cors_origins()}},
        methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        supports_credentials=False,
        max_age=600,
    )

    GAUGE_APP_UP.set(1.0)
    app.logger.info("astrochart %s ready (house system %s)", VERSION, app.cfg.house_system)  # type: ignore[attr-defined]
    return app


app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
