"""
Application factory for Zeta Rewards.

This module provides create_app() which initializes Flask, extensions,
logging, error handlers, and registers blueprints.
"""

import os
import logging
from datetime import timedelta
from logging.handlers import RotatingFileHandler

from flask import Flask, request
from dotenv import load_dotenv
from werkzeug.middleware.proxy_fix import ProxyFix

# Load environment variables
load_dotenv()


# Validate required environment variables
required_env_vars = ["SECRET_KEY", "DATABASE_URL", "FLASK_ENV", "JWT_SECRET_KEY"]
missing_vars = [var for var in required_env_vars if not os.getenv(var)]
if missing_vars:
    raise RuntimeError(
        "Missing required environment variables: " + ", ".join(missing_vars)
    )


def _env_flag(name, default):
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


# -------------------- APPLICATION FACTORY --------------------

def create_app():
    """
    Application factory function.

    Creates and configures the Flask application, initializes extensions,
    sets up logging, error handlers, and registers blueprints.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # -------------------- CONFIGURATION --------------------
    app.config.from_mapping(
        DEBUG=False,
        ENV=os.environ["FLASK_ENV"],
        SECRET_KEY=os.environ["SECRET_KEY"],
        SQLALCHEMY_DATABASE_URI=os.environ["DATABASE_URL"],
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        JWT_SECRET_KEY=os.environ["JWT_SECRET_KEY"],
        JWT_TOKEN_LOCATION=["headers"],
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(days=int(os.getenv("JWT_ACCESS_TOKEN_DAYS", "7"))),
        RATELIMIT_ENABLED=_env_flag("RATELIMIT_ENABLED", "true"),
        FEED_DEFAULT_LIMIT=int(os.getenv("FEED_DEFAULT_LIMIT", "6")),
        PROXY_FIX_X_FOR=int(os.getenv("PROXY_FIX_X_FOR", "0")),
    )

    # Trust X-Forwarded-For only for the configured number of proxy hops
    if app.config["PROXY_FIX_X_FOR"] > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config["PROXY_FIX_X_FOR"], x_proto=1)

    # -------------------- EXTENSIONS --------------------
    from zeta_rewards.extensions import db, migrate, jwt, limiter

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # -------------------- LOGGING --------------------
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    log_format = os.getenv(
        "LOG_FORMAT",
        "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(logging.Formatter(log_format))

    app.logger.setLevel(log_level)
    # Prevent duplicate log entries by clearing handlers first
    app.logger.handlers.clear()
    app.logger.addHandler(stream_handler)

    # Background loggers share the app's handlers and level
    for name in ("notifications", "scheduled_tasks"):
        named_logger = logging.getLogger(name)
        named_logger.setLevel(log_level)
        named_logger.handlers.clear()
        named_logger.addHandler(stream_handler)

    if os.getenv("FLASK_ENV", app.config.get("ENV")) == "production":
        log_file = os.getenv("LOG_FILE", "app.log")
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        app.logger.addHandler(file_handler)
        for name in ("notifications", "scheduled_tasks"):
            logging.getLogger(name).addHandler(file_handler)

    # -------------------- AUTH & ERROR HANDLERS --------------------
    from zeta_rewards.auth import register_jwt_callbacks
    from zeta_rewards.errors import register_error_handlers

    register_jwt_callbacks(jwt)
    register_error_handlers(app)

    # -------------------- REGISTER BLUEPRINTS --------------------
    from zeta_rewards.routes.main import main_bp
    from zeta_rewards.routes.auth import auth_bp
    from zeta_rewards.routes.admin import admin_bp
    from zeta_rewards.routes.admin_rewards import admin_rewards_bp
    from zeta_rewards.routes.rewards import rewards_bp
    from zeta_rewards.routes.manager import manager_bp
    from zeta_rewards.routes.employee import employee_bp
    from zeta_rewards.routes.posts import posts_bp
    from zeta_rewards.routes.leaderboard import leaderboard_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(admin_rewards_bp)
    app.register_blueprint(rewards_bp)
    app.register_blueprint(manager_bp)
    app.register_blueprint(employee_bp)
    app.register_blueprint(posts_bp)
    app.register_blueprint(leaderboard_bp)

    # -------------------- SECURITY HEADERS --------------------
    @app.after_request
    def set_security_headers(response):
        """
        Add security headers to all HTTP responses.

        - HSTS: Force HTTPS connections
        - X-Frame-Options: the API is never framed
        - X-Content-Type-Options: Prevent MIME sniffing attacks
        - Referrer-Policy: Control referrer information leakage
        """
        if app.config.get('ENV') == 'production':
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        return response

    @app.before_request
    def log_request():
        app.logger.debug(f"{request.method} {request.path}")

    # -------------------- CLI COMMANDS --------------------
    from zeta_rewards import cli_commands
    cli_commands.init_app(app)

    # -------------------- SCHEDULED TASKS --------------------
    if not app.config.get("TESTING") and app.config.get("ENV") != "testing":
        from zeta_rewards.scheduled_tasks import init_scheduled_tasks
        init_scheduled_tasks(app)

    return app


# Create a default application instance for gunicorn and the flask CLI
app = create_app()

# Re-export commonly used objects for convenience
from zeta_rewards.extensions import db  # noqa: E402

__all__ = [
    "app",
    "create_app",
    "db",
]
