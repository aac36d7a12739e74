"""Application entrypoint.

Builds the Flask app, wires CORS, error handlers and all blueprints.

    flask --app gallery.app run
    python -m gallery.app
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from flask import Flask, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, InternalServerError

from gallery.config import config, get_gallery_config
from gallery.logging_conf import configure_logging
from gallery.middleware import error_response

logger = logging.getLogger("gallery.app")


def _register_error_handlers(app: Flask) -> None:
    """JSON errors for /api/*; everything else keeps Flask's default pages."""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        if not request.path.startswith("/api/"):
            return e
        code = (e.name or "error").upper().replace(" ", "_")
        return error_response(code, e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_internal_error(e: Exception):
        if isinstance(e, HTTPException):
            return handle_http_exception(e)
        logger.exception("[APP] Unhandled error on %s %s", request.method, request.path)
        if not request.path.startswith("/api/"):
            return InternalServerError(original_exception=e)
        return error_response("INTERNAL_ERROR", "Internal server error", 500)


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Build the app.

    Args:
        overrides: Flask config values to set after the defaults, e.g.
            {"EXAMPLES_DIR": "/tmp/examples", "GALLERY": GalleryConfig({...})}
    """
    configure_logging()

    app = Flask(__name__)
    app.config.update(
        EXAMPLES_DIR=config.EXAMPLES_DIR,
        EXAMPLES_URL_PREFIX=config.EXAMPLES_URL_PREFIX,
        DEFAULT_TOOLKIT=config.DEFAULT_TOOLKIT,
        ASSETS_URL=config.ASSETS_URL,
    )
    if overrides:
        app.config.update(overrides)
    if "GALLERY" not in app.config:
        app.config["GALLERY"] = get_gallery_config()

    if config.ALLOW_ALL_ORIGINS:
        origins = [re.compile(r".*")]
    else:
        origins = config.ALLOWED_ORIGINS

    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=["Content-Type"],
        methods=["GET", "POST", "DELETE", "OPTIONS"],
    )

    _register_error_handlers(app)

    from gallery.routes import register_blueprints

    register_blueprints(app)

    return app


def main() -> None:
    configure_logging()
    config.log_summary()

    from gallery.db import init_db

    init_db()

    app = create_app()
    app.run(host=config.HOST, port=config.PORT, debug=config.IS_DEV)


if __name__ == "__main__":
    main()
