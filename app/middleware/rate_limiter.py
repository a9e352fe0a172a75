"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_BLUEPRINTS = ("hr_project_bp", "company_bp")
READ_BLUEPRINTS = ("notification_bp",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Workflow endpoints:      60/minute
        - Notification endpoints:  200/minute (polled by the SPA)
        - Health check:            exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("60/minute")(bp)

    for bp_name in READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("200/minute")(bp)

    # Health check: exempt from rate limiting
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: workflow: 60/min, notifications: 200/min")
