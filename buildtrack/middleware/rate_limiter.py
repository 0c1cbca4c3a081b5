"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in buildtrack/__init__.py with no default
limits; this module applies limits per route category.

Usage:
    from buildtrack.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]
READ_METHODS = ["GET"]


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Project/task API: 60/minute on mutating methods, 200/minute on reads
        - Templates (read-only): 200/minute
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    bp = app.blueprints.get("project")
    if bp:
        limiter.limit(WRITE_LIMIT, methods=WRITE_METHODS)(bp)
        limiter.limit(READ_LIMIT, methods=READ_METHODS)(bp)

    bp = app.blueprints.get("template")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — project writes: %s, reads: %s", WRITE_LIMIT, READ_LIMIT,
    )
