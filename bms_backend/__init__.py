# bms_backend/__init__.py
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .errors import register_error_handlers
from .extensions import db, jwt, mail, migrate


# --- Config ------------------------------------------------------------------
def _get_allowed_origins(app: Flask) -> list[str]:
    """Allowed CORS origins; comma-separated ``CORS_ALLOWED_ORIGINS`` extends the dev defaults."""
    default = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
    extra = app.config.get("CORS_ALLOWED_ORIGINS") or ""
    extra_list = [o.strip() for o in extra.split(",") if o.strip()]
    return sorted(set(default + extra_list))


def _load_config(app: Flask, config_object: Optional[str | Any]) -> None:
    if config_object is None:
        config_object = os.getenv("CONFIG_CLASS", "bms_backend.config.Config")
    if isinstance(config_object, str):
        module, _, cls = config_object.rpartition(".")
        config_object = getattr(__import__(module, fromlist=[cls]), cls)
    validate = getattr(config_object, "validate", None)
    if callable(validate):
        validate()
    app.config.from_object(config_object)


def _configure_logging(app: Flask) -> None:
    """JSON logs to stdout."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers in reloaders
    if not any(getattr(h, "_bms_json", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler._bms_json = True
        formatter = logging.Formatter(
            fmt='{"ts":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s","name":"%(name)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _configure_cors(app: Flask) -> None:
    CORS(
        app,
        resources={r"/api/*": {"origins": _get_allowed_origins(app)}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=["Content-Type"],
        max_age=86400,
    )


def _configure_proxy(app: Flask) -> None:
    """Respect X-Forwarded-* from the load balancer."""
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore


def _init_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return jsonify({"error": "unauthorized", "message": reason}), 401

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return jsonify({"error": "unauthorized", "message": reason}), 401

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "token_expired", "message": "Token has expired"}), 401


def _register_blueprints(app: Flask) -> None:
    """Register all API blueprints under /api."""
    from .routes import BLUEPRINTS

    prefix = app.config.get("API_PREFIX", "/api")
    for bp in BLUEPRINTS:
        app.register_blueprint(bp, url_prefix=prefix)
        app.logger.debug("Registered blueprint %s at %s", bp.name, prefix)


def _register_cli(app: Flask) -> None:
    from .cli import register_cli

    register_cli(app)


# --- Application Factory ------------------------------------------------------
def create_app(config_object: Optional[str | Any] = None) -> Flask:
    """
    Standard Flask application factory.

    `config_object` may be:
      - a config class
      - dotted path to a config class (e.g., "bms_backend.config.TestingConfig")
      - None (then CONFIG_CLASS env or bms_backend.config.Config)
    """
    app = Flask(__name__)
    _load_config(app, config_object)
    app.config.setdefault("API_PREFIX", "/api")

    # Core middleware/logging/CORS
    _configure_logging(app)
    _configure_proxy(app)
    _configure_cors(app)

    # Init extensions & blueprints
    _init_extensions(app)
    _register_blueprints(app)
    _register_cli(app)
    register_error_handlers(app)

    @app.get(app.config["API_PREFIX"] + "/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "time": datetime.utcnow().isoformat() + "Z",
                "service": "bms-backend",
            }
        ), 200

    return app
