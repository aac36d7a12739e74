"""
Health check routes.

Registered under /api.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from gallery import db

logger = logging.getLogger("gallery.health")

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({"ok": True, "db": db.is_available()})


@bp.route("/db-check", methods=["GET"])
def db_check():
    if not db.is_available():
        return jsonify({"ok": False, "error": "db_disabled"}), 503
    try:
        with db.get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                _ = cur.fetchone()
        return jsonify({"ok": True, "db": "connected"})
    except db.DatabaseError as e:
        logger.warning("[DB] db_check failed: %s", e)
        return jsonify({"ok": False, "error": "db_query_failed"}), 503
