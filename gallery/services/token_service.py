"""
Token Service - Issues and tracks access, code and refresh tokens.

Flow:
1. TokenCreate().create("access") -> random token, row inserted, row read back
2. Client presents the token
3. TokenStore.verify(token) -> row if the token is live, else TokenNotFoundError

Storage:
- Only the SHA256 hash of a token is stored; the plain value is returned once
- expires_at is computed by the database: NOW() + <timeframe>::interval
- Several types requested together are written in a single transaction

Timeframes are PostgreSQL interval literals ("30 minutes", "36 hours").
"""

import logging
import secrets
from typing import Any, Dict, Iterable, List, Optional, Union

from gallery.config import config
from gallery.db import (
    transaction,
    fetch_one,
    fetch_all,
    fetch_scalar,
    query_one,
    execute,
    require_db,
    hash_string,
    sql_in_clause,
    Tables,
)
from gallery.logging_conf import mask_token

logger = logging.getLogger("gallery.tokens")

TOKEN_TYPES = ("access", "code", "refresh")

# Columns safe to hand back to callers (never token_hash)
_PUBLIC_COLUMNS = "id, type, user_id, client_id, scope, created_at, expires_at, revoked_at"


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
class TokenError(Exception):
    """Base class for token errors. `code` is the machine-readable API code."""

    code = "TOKEN_ERROR"


class InvalidTokenTypeError(TokenError, ValueError):
    code = "INVALID_TOKEN_TYPE"

    def __init__(self, token_type: Any):
        super().__init__(
            f"Unknown token type {token_type!r}; expected one of {', '.join(TOKEN_TYPES)}"
        )
        self.token_type = token_type


class TokenNotFoundError(TokenError):
    code = "TOKEN_NOT_FOUND"

    def __init__(self, message: str = "Token not found, expired or revoked"):
        super().__init__(message)


def _normalize_types(token_type: Union[str, Iterable[str], None]) -> List[str]:
    if token_type is None:
        raise InvalidTokenTypeError(token_type)
    if isinstance(token_type, str):
        types = [token_type]
    else:
        types = list(token_type)
    for t in types:
        if t not in TOKEN_TYPES:
            raise InvalidTokenTypeError(t)
    return types


# ─────────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────────
class TokenCreate:
    """Creates tokens with a per-type expiry window."""

    def __init__(self, timeframes: Optional[Dict[str, str]] = None):
        self.timeframes = dict(config.TOKEN_TIMEFRAMES)
        if timeframes:
            for token_type, interval in timeframes.items():
                if token_type not in TOKEN_TYPES:
                    raise InvalidTokenTypeError(token_type)
                self.timeframes[token_type] = interval

    @staticmethod
    def generate_token() -> str:
        """Generate a URL-safe random token."""
        return secrets.token_urlsafe(config.TOKEN_BYTES)

    def create(
        self,
        token_type: Union[str, List[str]],
        user_id: Optional[str] = None,
        client_id: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Create one token per requested type.

        Args:
            token_type: "access", "code", "refresh" or a list of them
            user_id: Owner of the token (optional)
            client_id: Client the token was issued to (optional)
            scope: Space separated scope string (optional)

        Returns:
            List of token dicts in the order the types were requested.
            Each dict carries the plain `token` plus the stored row.

        Raises:
            InvalidTokenTypeError: If any type is unknown (nothing is written)
            DatabaseError: If the insert or read-back fails
        """
        types = _normalize_types(token_type)
        if not types:
            return []

        require_db()

        issued = [(t, self.generate_token()) for t in types]
        inserted_ids = []

        with transaction() as cur:
            for t, plain in issued:
                cur.execute(
                    f"""
                    INSERT INTO {Tables.TOKENS}
                    (type, token_hash, user_id, client_id, scope, created_at, expires_at)
                    VALUES (%s, %s, %s, %s, %s, NOW(), NOW() + %s::interval)
                    RETURNING id
                    """,
                    (t, hash_string(plain), user_id, client_id, scope, self.timeframes[t]),
                )
                row = fetch_one(cur)
                if not row:
                    raise TokenError(f"Insert of {t} token returned no row")
                inserted_ids.append(row["id"])

            placeholders, params = sql_in_clause(inserted_ids)
            cur.execute(
                f"SELECT {_PUBLIC_COLUMNS} FROM {Tables.TOKENS} WHERE id IN ({placeholders})",
                params,
            )
            rows = {row["id"]: row for row in fetch_all(cur)}
            missing = [i for i in inserted_ids if i not in rows]
            if missing:
                raise TokenError(f"Read-back of inserted tokens {missing} returned no row")

        tokens = []
        for token_id, (t, plain) in zip(inserted_ids, issued):
            row = dict(rows[token_id])
            row["token"] = plain
            tokens.append(row)
            logger.info(
                "[TOKEN] Created %s token %s (user=%s, client=%s, expires=%s)",
                t, mask_token(plain), user_id, client_id, row.get("expires_at"),
            )
        return tokens


# ─────────────────────────────────────────────────────────────
# Lookup / Revocation
# ─────────────────────────────────────────────────────────────
class TokenStore:
    """Read-side and housekeeping operations on stored tokens."""

    @staticmethod
    def get(token: str, token_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Look up a live token (not revoked, not expired).
        Returns the row or None.
        """
        if not token:
            return None
        if token_type is not None:
            _normalize_types(token_type)

        require_db()

        sql = (
            f"SELECT {_PUBLIC_COLUMNS} FROM {Tables.TOKENS} "
            "WHERE token_hash = %s AND revoked_at IS NULL AND expires_at > NOW()"
        )
        params = [hash_string(token)]
        if token_type is not None:
            sql += " AND type = %s"
            params.append(token_type)
        return query_one(sql, tuple(params))

    @staticmethod
    def verify(token: str, token_type: Optional[str] = None) -> Dict[str, Any]:
        """Like get() but raises TokenNotFoundError when the token is not live."""
        row = TokenStore.get(token, token_type)
        if row is None:
            logger.info("[TOKEN] Rejected token %s", mask_token(token))
            raise TokenNotFoundError()
        return row

    @staticmethod
    def revoke(token: str) -> bool:
        """Mark a token revoked. Returns True if a live row was changed."""
        if not token:
            return False
        require_db()
        count = execute(
            f"UPDATE {Tables.TOKENS} SET revoked_at = NOW() "
            "WHERE token_hash = %s AND revoked_at IS NULL",
            (hash_string(token),),
        )
        if count:
            logger.info("[TOKEN] Revoked token %s", mask_token(token))
        return count > 0

    @staticmethod
    def count_expired() -> int:
        require_db()
        with transaction() as cur:
            cur.execute(f"SELECT COUNT(*) AS n FROM {Tables.TOKENS} WHERE expires_at <= NOW()")
            return int(fetch_scalar(cur) or 0)

    @staticmethod
    def purge_expired() -> int:
        """Delete expired tokens. Returns number of rows removed."""
        require_db()
        count = execute(f"DELETE FROM {Tables.TOKENS} WHERE expires_at <= NOW()")
        logger.info("[TOKEN] Purged %s expired tokens", count)
        return count
