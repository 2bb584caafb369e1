"""
Flask application factory for the Apex web API.

Exposes the garage, rides, fuel, maintenance and notification services as
JSON for companion tools and the desktop dashboard.
"""

import logging

from flask import Flask

from ..backend import Backend, get_backend
from ..core.config import Config
from ..core.log_buffer import LogBuffer
from ..core.preferences import Preferences
from ..services.container import Services, create_services

logger = logging.getLogger(__name__)


def create_app(
    config: Config | None = None,
    backend: Backend | None = None,
    services: Services | None = None,
    log_buffer: LogBuffer | None = None,
) -> Flask:
    """
    Application factory for Flask app.

    Args:
        config: Apex configuration, or None to load defaults
        backend: Data backend, or None to build one from config
        services: Prebuilt services (tests), overrides ``backend``
        log_buffer: Recent log records attached to bug reports

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    if config is None:
        config = Config()

    if services is None:
        if backend is None:
            backend = get_backend(config)
        preferences = Preferences(config.preferences_path)
        services = create_services(
            backend,
            preferences,
            service_interval_km=config.get("maintenance.service_interval_km", 5000),
        )

    app.config["APEX_CONFIG"] = config
    app.config["services"] = services
    app.config["LOG_BUFFER"] = log_buffer
    app.json.sort_keys = False

    # Register blueprints
    from .routes import api

    app.register_blueprint(api.bp, url_prefix="/api")

    @app.route("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": config.get("app.version", "0.4.0"),
            "backend": type(services.backend).__name__,
        }

    logger.info("Flask app created")
    return app
