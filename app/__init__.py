"""
HR System Design Wizard
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit: apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware ──────────────────────────────────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import audit as _audit_models                # noqa: F401
    from app.models import auth as _auth_models                  # noqa: F401
    from app.models import hr_project as _hr_project_models      # noqa: F401
    from app.models import notification as _notification_models  # noqa: F401
    from app.models import review_comment as _review_comment_models  # noqa: F401
    from app.models import step_answers as _step_answer_models   # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if not app.config.get("TESTING"):
        os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.company_bp import company_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.hr_project_bp import hr_project_bp
    from app.blueprints.notification_bp import notification_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(company_bp)
    app.register_blueprint(hr_project_bp)
    app.register_blueprint(notification_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    _register_cli(app)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_cli(app):
    @app.cli.command("init-ledgers")
    def init_ledgers_cmd():
        """Normalize every HR project's step ledger (idempotent)."""
        from app.services.hr_project_service import initialize_all_ledgers
        changed = initialize_all_ledgers()
        click.echo(f"Initialized ledgers: {changed} project(s) updated.")

    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--name", "full_name", default=None, help="Full name.")
    @click.option("--role", "roles", multiple=True,
                  type=click.Choice(["hr_manager", "ceo", "consultant", "admin"]),
                  help="Global role (repeatable).")
    def create_user_cmd(email, full_name, roles):
        """Create a user with global roles."""
        from app.services.user_service import create_user
        user = create_user(email, full_name=full_name, role_names=list(roles))
        click.echo(f"Created user {user.id} <{user.email}> roles={','.join(user.role_names)}")

    @app.cli.command("issue-token")
    @click.argument("email")
    @click.option("--expires", default=None, type=int, help="Lifetime in seconds.")
    def issue_token_cmd(email, expires):
        """Print an access token for an existing user (local use)."""
        from app.services.jwt_service import generate_access_token
        from app.services.user_service import get_user_by_email
        user = get_user_by_email(email)
        if user is None:
            raise click.ClickException(f"No user with email {email}")
        click.echo(generate_access_token(user.id, user.role_names, expires_in=expires))
