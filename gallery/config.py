"""
Configuration module for the Example Gallery Server.
Centralizes all environment variables and settings.

Two kinds of configuration live here:
- Config: process settings read from the environment (.env supported)
- GalleryConfig: the static gallery description (toolkits, themes, packages,
  default requires) loaded from a JSON file

Usage:
    from gallery.config import config, get_gallery_config

    if config.IS_DEV:
        ...

    toolkits = get_gallery_config().get("toolkits")
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file (safe - won't override existing env vars)
load_dotenv()

logger = logging.getLogger("gallery.config")


def _get_env(key: str, default: str = "") -> str:
    """Safely get and strip an environment variable."""
    return os.getenv(key, default).strip()


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get an environment variable as boolean."""
    val = _get_env(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int = 0) -> int:
    """Get an environment variable as integer."""
    try:
        return int(_get_env(key, str(default)))
    except ValueError:
        return default


def _get_env_list(key: str, default: List[str] = None) -> List[str]:
    """Get a comma-separated environment variable as list."""
    val = _get_env(key, "")
    if not val:
        return default or []
    return [item.strip() for item in val.split(",") if item.strip()]


def _fix_database_url(url: str) -> str:
    """
    Normalize the DATABASE_URL scheme.
    Some hosts hand out 'postgres://' but psycopg3 requires 'postgresql://'.
    """
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass
class Config:
    """
    Application configuration with all settings.
    Loaded from environment variables with sensible defaults.
    """

    # ─────────────────────────────────────────────────────────────
    # Paths
    # ─────────────────────────────────────────────────────────────
    APP_DIR: Path = field(default_factory=lambda: Path(__file__).resolve().parent)

    @property
    def ROOT_DIR(self) -> Path:
        """Repository root (parent of the gallery package)."""
        return self.APP_DIR.parent

    _EXAMPLES_DIR_RAW: str = field(default_factory=lambda: _get_env("EXAMPLES_DIR"))

    @property
    def EXAMPLES_DIR(self) -> Path:
        """Directory holding one sub-directory per example."""
        if self._EXAMPLES_DIR_RAW:
            return Path(self._EXAMPLES_DIR_RAW).resolve()
        return self.ROOT_DIR / "examples"

    EXAMPLES_URL_PREFIX: str = field(default_factory=lambda: "/" + _get_env("EXAMPLES_URL_PREFIX", "examples").strip("/"))

    _GALLERY_CONFIG_FILE_RAW: str = field(default_factory=lambda: _get_env("GALLERY_CONFIG_FILE"))

    @property
    def GALLERY_CONFIG_FILE(self) -> Path:
        """JSON file describing toolkits, themes and packages."""
        if self._GALLERY_CONFIG_FILE_RAW:
            return Path(self._GALLERY_CONFIG_FILE_RAW).resolve()
        return self.APP_DIR / "gallery.json"

    DEFAULT_TOOLKIT: str = field(default_factory=lambda: _get_env("DEFAULT_TOOLKIT", "modern"))

    # Where framework, theme and package builds are served from (trailing slash kept)
    ASSETS_URL: str = field(default_factory=lambda: _get_env("ASSETS_URL", "/").rstrip("/") + "/")

    # ─────────────────────────────────────────────────────────────
    # Environment
    # ─────────────────────────────────────────────────────────────
    FLASK_ENV: str = field(default_factory=lambda: _get_env("FLASK_ENV", "production").lower())

    @property
    def IS_DEV(self) -> bool:
        """True if running in development mode."""
        return self.FLASK_ENV in ("development", "dev", "local")

    @property
    def IS_PROD(self) -> bool:
        """True if running in production mode."""
        return not self.IS_DEV

    LOG_LEVEL: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO").upper())

    # ─────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────
    PORT: int = field(default_factory=lambda: _get_env_int("PORT", 1841))
    HOST: str = field(default_factory=lambda: _get_env("HOST", "0.0.0.0"))

    # ─────────────────────────────────────────────────────────────
    # Database
    # ─────────────────────────────────────────────────────────────
    _DATABASE_URL_RAW: str = field(default_factory=lambda: _get_env("DATABASE_URL"))

    @property
    def DATABASE_URL(self) -> str:
        """Database connection URL (fixed for psycopg3 compatibility)."""
        return _fix_database_url(self._DATABASE_URL_RAW)

    @property
    def HAS_DATABASE(self) -> bool:
        """True if database URL is configured."""
        return bool(self._DATABASE_URL_RAW)

    APP_SCHEMA: str = field(default_factory=lambda: _get_env("APP_SCHEMA", "gallery_auth"))
    DB_CONNECT_TIMEOUT: int = field(default_factory=lambda: _get_env_int("DB_CONNECT_TIMEOUT", 10))

    # ─────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────
    # PostgreSQL interval literals, added to NOW() when a token is created
    TOKEN_ACCESS_TIMEFRAME: str = field(default_factory=lambda: _get_env("TOKEN_ACCESS_TIMEFRAME", "30 minutes"))
    TOKEN_CODE_TIMEFRAME: str = field(default_factory=lambda: _get_env("TOKEN_CODE_TIMEFRAME", "2 minutes"))
    TOKEN_REFRESH_TIMEFRAME: str = field(default_factory=lambda: _get_env("TOKEN_REFRESH_TIMEFRAME", "36 hours"))
    TOKEN_BYTES: int = field(default_factory=lambda: _get_env_int("TOKEN_BYTES", 32))

    @property
    def TOKEN_TIMEFRAMES(self) -> Dict[str, str]:
        """Expiry window per token type."""
        return {
            "access": self.TOKEN_ACCESS_TIMEFRAME,
            "code": self.TOKEN_CODE_TIMEFRAME,
            "refresh": self.TOKEN_REFRESH_TIMEFRAME,
        }

    # ─────────────────────────────────────────────────────────────
    # CORS
    # ─────────────────────────────────────────────────────────────
    _ALLOWED_ORIGINS_RAW: str = field(default_factory=lambda: _get_env("ALLOWED_ORIGINS"))

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """
        List of allowed CORS origins.
        Parses comma-separated URLs and drops anything that is not http(s).
        """
        raw = self._ALLOWED_ORIGINS_RAW

        if not raw:
            if self.IS_DEV:
                return [
                    "http://localhost:1841",
                    "http://127.0.0.1:1841",
                    "http://localhost:3000",
                ]
            return []

        origins = []
        for origin in _get_env_list("ALLOWED_ORIGINS"):
            origin = origin.rstrip("/")
            if origin.startswith("http://") or origin.startswith("https://"):
                origins.append(origin)
        return origins

    @property
    def ALLOW_ALL_ORIGINS(self) -> bool:
        """True if wildcard CORS is enabled."""
        return self._ALLOWED_ORIGINS_RAW == "*"

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────
    def log_summary(self) -> None:
        """Log configuration summary for debugging."""
        logger.info("[CONFIG] Example Gallery configuration")
        logger.info("[CONFIG]   Environment: %s (IS_DEV=%s)", self.FLASK_ENV, self.IS_DEV)
        logger.info("[CONFIG]   Listening on: %s:%s", self.HOST, self.PORT)
        logger.info("[CONFIG]   Database: %s", "configured" if self.HAS_DATABASE else "not configured")
        logger.info("[CONFIG]   Examples dir: %s", self.EXAMPLES_DIR)
        logger.info("[CONFIG]   Gallery config: %s", self.GALLERY_CONFIG_FILE)
        logger.info("[CONFIG]   Token timeframes: %s", self.TOKEN_TIMEFRAMES)
        for warning in self.validate():
            logger.warning("[CONFIG] %s", warning)

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of warnings.
        Returns empty list if all critical config is present.
        """
        warnings = []

        if not self.EXAMPLES_DIR.is_dir():
            warnings.append(f"EXAMPLES_DIR {self.EXAMPLES_DIR} does not exist - no examples will be served")
        if not self.GALLERY_CONFIG_FILE.is_file():
            warnings.append(f"GALLERY_CONFIG_FILE {self.GALLERY_CONFIG_FILE} does not exist")

        if self.IS_PROD:
            if not self.HAS_DATABASE:
                warnings.append("DATABASE_URL not set - token endpoints are disabled!")
            if not self.ALLOWED_ORIGINS and not self.ALLOW_ALL_ORIGINS:
                warnings.append("ALLOWED_ORIGINS not set - CORS will block requests")
            if self.ALLOW_ALL_ORIGINS:
                warnings.append("ALLOWED_ORIGINS=* - allowing all origins (not recommended for production)")

        return warnings

    def to_dict(self) -> dict:
        """Export safe configuration as dictionary (no secrets)."""
        return {
            "environment": self.FLASK_ENV,
            "is_dev": self.IS_DEV,
            "port": self.PORT,
            "has_database": self.HAS_DATABASE,
            "examples_dir": str(self.EXAMPLES_DIR),
            "examples_url_prefix": self.EXAMPLES_URL_PREFIX,
            "default_toolkit": self.DEFAULT_TOOLKIT,
            "token_timeframes": self.TOKEN_TIMEFRAMES,
        }


# ─────────────────────────────────────────────────────────────
# Gallery configuration object
# ─────────────────────────────────────────────────────────────
class GalleryConfig:
    """
    Static description of what the gallery can serve.

    {
        "toolkits": {
            "modern": {
                "ext": "ext-modern-all-debug.js",
                "themes": {"material": {"default": true, "css": "..."}}
            }
        },
        "packages": {
            "charts": {"build": "packages/charts", "css": {"modern": {"material": "charts-all.css"}}}
        },
        "defaultRequires": ["Ext.app.Util"]
    }
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = data or {}

    @classmethod
    def load(cls, path) -> "GalleryConfig":
        """Load the gallery description from a JSON file."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Gallery config {path} must contain a JSON object")
        return cls(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


_gallery_config: Optional[GalleryConfig] = None


def get_gallery_config() -> GalleryConfig:
    """Lazily load the gallery configuration named by GALLERY_CONFIG_FILE."""
    global _gallery_config
    if _gallery_config is None:
        _gallery_config = GalleryConfig.load(config.GALLERY_CONFIG_FILE)
        logger.info("[CONFIG] Gallery config loaded from %s", config.GALLERY_CONFIG_FILE)
    return _gallery_config


# ─────────────────────────────────────────────────────────────
# Singleton instance
# ─────────────────────────────────────────────────────────────
try:
    config = Config()
except Exception as e:
    logger.critical("[CONFIG] FATAL: Failed to load config: %r", e)
    raise
