# backend/storeops/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate
from .time_utils import Clock, SystemClock


def create_app(config_overrides: dict | None = None, clock: Clock | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Handlers read "now" from here; tests inject a FixedClock
    app.extensions["clock"] = clock or SystemClock()

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.receipts import receipts_bp
    from .routes.customers import customers_bp
    from .routes.summaries import summaries_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(summaries_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
