"""
/api/token routes - Token issuance and lookup.

Handles:
- POST /api/token - Create one or more tokens
- GET /api/token - Look up the live token sent as "Authorization: Bearer <token>"
- DELETE /api/token - Revoke the token sent as "Authorization: Bearer <token>"

Existing tokens never travel in the URL, so they stay out of access logs.
"""

from flask import Blueprint, request, jsonify

from gallery.middleware import error_response, no_cache, require_database
from gallery.services.token_service import (
    TOKEN_TYPES,
    TokenCreate,
    TokenError,
    TokenStore,
)

bp = Blueprint("tokens", __name__)

# Column widths of tokens.user_id / tokens.client_id
MAX_ID_LENGTH = 255


def _serialize(row: dict) -> dict:
    """Make datetimes JSON friendly."""
    out = {}
    for key, value in row.items():
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        out[key] = value
    return out


def _bearer_token():
    """Token from the Authorization header, or None."""
    scheme, _, value = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def _validate_owner_fields(data: dict):
    """Return an error message for a bad user_id/client_id/scope, or None."""
    for field in ("user_id", "client_id", "scope"):
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            return f"{field} must be a string"
    for field in ("user_id", "client_id"):
        value = data.get(field)
        if value is not None and len(value) > MAX_ID_LENGTH:
            return f"{field} must be at most {MAX_ID_LENGTH} characters"
    return None


@bp.route("", methods=["POST"])
@no_cache
@require_database
def create_token():
    """
    Create tokens.

    Request body:
    {
        "type": "access" | ["access", "refresh"],
        "user_id": "...",       (optional, <= 255 chars)
        "client_id": "...",     (optional, <= 255 chars)
        "scope": "read write"   (optional)
    }

    Response (201):
    {
        "tokens": [{"type": "access", "token": "...", "expires_at": "..."}]
    }
    """
    data = request.get_json(silent=True) or {}
    token_type = data.get("type")

    if not token_type:
        return error_response(
            "VALIDATION_ERROR",
            f"type is required (one of {', '.join(TOKEN_TYPES)})",
            400,
        )
    if not isinstance(token_type, (str, list)):
        return error_response("VALIDATION_ERROR", "type must be a string or a list", 400)

    problem = _validate_owner_fields(data)
    if problem:
        return error_response("VALIDATION_ERROR", problem, 400)

    try:
        tokens = TokenCreate().create(
            token_type,
            user_id=data.get("user_id"),
            client_id=data.get("client_id"),
            scope=data.get("scope"),
        )
    except TokenError as e:
        return error_response(e.code, str(e), 400)

    return jsonify({"tokens": [_serialize(t) for t in tokens]}), 201


@bp.route("", methods=["GET"])
@no_cache
@require_database
def get_token():
    """Return the stored row of the bearer token (optionally filtered by ?type=)."""
    token = _bearer_token()
    if not token:
        return error_response("TOKEN_REQUIRED", "Send the token as 'Authorization: Bearer <token>'", 401)

    token_type = request.args.get("type") or None
    try:
        row = TokenStore.get(token, token_type)
    except TokenError as e:
        return error_response(e.code, str(e), 400)

    if row is None:
        return error_response("TOKEN_NOT_FOUND", "Token not found, expired or revoked", 404)
    return jsonify({"token": _serialize(row)})


@bp.route("", methods=["DELETE"])
@no_cache
@require_database
def revoke_token():
    """Revoke the bearer token. Idempotent: revoking twice reports revoked=false."""
    token = _bearer_token()
    if not token:
        return error_response("TOKEN_REQUIRED", "Send the token as 'Authorization: Bearer <token>'", 401)
    return jsonify({"revoked": TokenStore.revoke(token)})
