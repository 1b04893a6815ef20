# backend/buygroup/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.deals import deals_bp
    from .routes.commitments import commitments_bp
    from .routes.tracking import tracking_bp
    from .routes.labels import labels_bp
    from .routes.invoices import invoices_bp
    from .routes.warehouses import warehouses_bp
    from .routes.profile import profile_bp
    from .routes.bot import bot_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(deals_bp)
    app.register_blueprint(commitments_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(labels_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(bot_bp)
    app.register_blueprint(admin_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            app.config.get("WEBSITE_URL"),
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        }
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Bot-API-Key"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
