# backend/shopdesk/__init__.py
import logging

from flask import Flask, request, current_app

from .config import Config, validate_config
from .extensions import db, migrate
from .services.storage import StorageError


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    validate_config(app.config)
    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.clients import clients_bp
    from .routes.orders import orders_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(StorageError)
    def handle_storage_error(exc):
        current_app.logger.exception("Storage failure on %s %s", request.method, request.path)
        return {"error": str(exc)}, 503

    @app.errorhandler(404)
    def handle_not_found(exc):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def handle_too_large(exc):
        return {"error": "Uploaded file is too large"}, 413

    @app.errorhandler(500)
    def handle_internal_error(exc):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return {"error": "Internal server error"}, 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
