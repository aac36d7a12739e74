"""
Middleware for gallery routes.

Provides decorators and helpers shared by the blueprints.

Usage:
    from gallery.middleware import no_cache, require_database, error_response

    @bp.route("/token", methods=["POST"])
    @no_cache
    @require_database
    def create_token():
        ...
"""

import logging
from functools import wraps

from flask import jsonify, make_response

logger = logging.getLogger("gallery.middleware")


def error_response(code: str, message: str, status: int):
    """Build the standard JSON error body: {"error": {"code", "message"}}."""
    return jsonify({
        "error": {
            "code": code,
            "message": message,
        }
    }), status


def no_cache(f):
    """
    Decorator that adds Cache-Control headers to prevent caching.

    Adds:
        - Cache-Control: no-store, no-cache, must-revalidate, max-age=0
        - Pragma: no-cache (for HTTP/1.0 compatibility)
        - Expires: 0

    Use for token endpoints and generated example pages.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        result = f(*args, **kwargs)

        if hasattr(result, "headers"):
            response = result
        elif isinstance(result, tuple):
            response = make_response(result[0], result[1] if len(result) > 1 else 200)
            if len(result) > 2:
                for key, value in result[2].items():
                    response.headers[key] = value
        else:
            response = make_response(result)

        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"

        return response

    return decorated


def require_database(f):
    """
    Decorator that returns 503 when the database is not configured,
    and converts database failures raised by the view into 503/500 JSON.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        # Lazy import so tests can toggle gallery.db.USE_DB
        from gallery import db

        if not db.is_available():
            return error_response("DB_UNAVAILABLE", "Database is not configured", 503)

        try:
            return f(*args, **kwargs)
        except db.DatabaseNotConfiguredError as e:
            return error_response("DB_UNAVAILABLE", str(e), 503)
        except db.DatabaseConnectionError as e:
            logger.error("[DB] Connection failed in %s: %s", f.__name__, e)
            return error_response("DB_UNAVAILABLE", "Database connection failed", 503)
        except db.DatabaseError as e:
            logger.error("[DB] Query failed in %s: %s", f.__name__, e)
            return error_response("INTERNAL_ERROR", "Database error", 500)

    return decorated
