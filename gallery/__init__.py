"""
Example Gallery Server
----------------------
Serves runnable framework examples and issues auth tokens.

This package contains:
- config: Application configuration and the gallery configuration object
- db: Database connection utilities
- logging_conf: Logging setup
- routes/: Flask blueprints for pages and API endpoints
- services/: Page assembly and token lifecycle services
"""

__version__ = "1.0.0"

from .routes import register_blueprints
