"""
Routes package for the gallery server.
Contains Flask Blueprints for pages and API namespaces.
"""

import logging

__all__ = [
    "register_blueprints",
]

logger = logging.getLogger("gallery.routes")


def _log_route_map(app):
    """Log all registered routes at startup for debugging."""
    routes = []
    for rule in app.url_map.iter_rules():
        methods = ",".join(sorted(m for m in rule.methods if m not in ("HEAD", "OPTIONS")))
        routes.append(f"  {methods:8s} {rule.rule}")

    routes.sort(key=lambda x: x.split()[-1])
    logger.debug("[ROUTES] Registered endpoints:\n%s", "\n".join(routes))
    logger.info("[ROUTES] Total: %s endpoints", len(routes))


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    from gallery.routes.examples import bp as examples_bp, api_bp as examples_api_bp
    from gallery.routes.health import bp as health_bp
    from gallery.routes.tokens import bp as tokens_bp

    app.register_blueprint(examples_bp, url_prefix=app.config["EXAMPLES_URL_PREFIX"])
    app.register_blueprint(examples_api_bp, url_prefix="/api/examples")
    app.register_blueprint(tokens_bp, url_prefix="/api/token")
    app.register_blueprint(health_bp, url_prefix="/api")

    _log_route_map(app)
