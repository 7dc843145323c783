# backend/mercado/__init__.py
import logging

from flask import Flask, request, jsonify

from .config import Config, ConfigurationError, validate_config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # An empty DATABASE_URL keeps the app up in setup-required mode
    setup_error = None
    try:
        validate_config(app.config)
    except ConfigurationError as e:
        if str(e) != "SETUP_REQUIRED:DATABASE_URL":
            raise
        setup_error = str(e)
        app.config["SETUP_REQUIRED"] = setup_error
        app.logger.error("DATABASE_URL is not configured; API answers 503 until it is set")
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.operators import operators_bp
    from .routes.settings import settings_bp
    from .routes.pos import pos_bp
    from .routes.reports import reports_bp
    from .routes.advisory import advisory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(operators_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(advisory_bp)

    if setup_error:
        @app.before_request
        def setup_required():
            if request.path == "/health":
                return None
            return jsonify({"error": setup_error}), 503

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
