from __future__ import annotations
import os
from importlib import import_module
from flask import Flask
from config import config_map
from extensions import db, migrate
from sqlalchemy import inspect

def _seed_from_config(app):
    if not app.config.get("SEED_DEMO_DATA"):
        return
    with app.app_context():
        # the schema may not exist yet (before `flask db upgrade`)
        if not inspect(db.engine).has_table("room"):
            return
        from seed import seed_demo  # local import to avoid a cycle
        seed_demo()

def register_blueprints(app: Flask) -> None:
    # core registers logging and error handlers, import its routes first
    import_module("blueprints.core.routes")
    from blueprints.core import bp as core_bp
    from blueprints.rooms.routes import api_bp as rooms_api_bp
    from blueprints.timetable.routes import api_bp as timetable_api_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(rooms_api_bp, url_prefix="/api/v1")
    app.register_blueprint(timetable_api_bp, url_prefix="/api/v1")

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # pytest always sets PYTEST_CURRENT_TEST; keep every test on its own in-memory database
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config["SEED_DEMO_DATA"] = False
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"check_same_thread": False}})

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    register_blueprints(app)
    _seed_from_config(app)
    return app
