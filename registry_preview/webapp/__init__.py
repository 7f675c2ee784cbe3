"""Flask application factory for the registry preview HTTP surface."""

from __future__ import annotations

from typing import Any, Dict

from flask import Flask, current_app

from registry_preview.service import PreviewService


def create_app(config: Dict[str, Any] | None = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config.setdefault("PREVIEW_SERVICE", None)

    if config:
        app.config.update(config)

    from .api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    return app


def get_service(app: Flask | None = None) -> PreviewService:
    """Return the configured preview service, building it from env once."""
    ctx_app = app or current_app
    service = ctx_app.config.get("PREVIEW_SERVICE")
    if service is None:
        service = PreviewService.from_env()
        ctx_app.config["PREVIEW_SERVICE"] = service
    if not isinstance(service, PreviewService):
        raise RuntimeError("PREVIEW_SERVICE config must be a PreviewService instance")
    return service
