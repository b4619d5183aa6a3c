# backend/barbershop/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None, commission_calculator=None) -> Flask:
    """
    Build the application.

    overrides: config values applied before extensions bind (tests pass an
    in-memory SQLite URI here).
    commission_calculator: replaces the default rate-table calculator.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.commission_calculator import init_commission_calculator
    init_commission_calculator(app, commission_calculator)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.comandas import comandas_bp
    from .routes.stock_movements import stock_movements_bp
    from .routes.appointments import appointments_bp
    from .routes.commissions import commissions_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(comandas_bp)
    app.register_blueprint(stock_movements_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(commissions_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
