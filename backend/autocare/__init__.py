# backend/autocare/__init__.py
import logging

from flask import Flask, request, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def _verify_database(app: Flask) -> None:
    """Refuse to serve when the configured database cannot answer SELECT 1."""
    with app.app_context():
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            app.logger.critical("Database unreachable at startup: %s", exc)
            raise RuntimeError("Database connection check failed; refusing to start") from exc
        finally:
            db.session.remove()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(OperationalError)
    def database_unavailable(exc):
        db.session.rollback()
        current_app.logger.error("Database unavailable during %s %s: %s", request.method, request.path, exc)
        return jsonify({"error": "Database unavailable, try again shortly"}), 503

    @app.errorhandler(Exception)
    def unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return exc
        db.session.rollback()
        current_app.logger.exception("Unhandled error during %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.admin import admin_bp
    from .routes.invoices import invoices_bp
    from .routes.tires import tires_bp
    from .routes.tyre_purchases import tyre_purchases_bp
    from .routes.bookkeeping import expenses_bp, payments_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(tires_bp)
    app.register_blueprint(tyre_purchases_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(reports_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in set(app.config.get("CORS_ALLOWED_ORIGINS", [])):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("VERIFY_DB_ON_STARTUP"):
        _verify_database(app)

    return app
