from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from config import get_settings_module

from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_profiles, list_tables
from .records.controller import register as register_records
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[2] / "database"


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("classroom_attendance").setLevel(level)


def create_app(container: Optional[Container] = None) -> Flask:
    """Application factory.

    Pass a prebuilt ``container`` to run the API on other repositories
    (tests use in-memory ones); the database bootstrap is then skipped.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    _configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_profiles(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            swipe_require_enrollment=bool(getattr(settings, "SWIPE_REQUIRE_ENROLLMENT", False)),
            allow_cancel_terminal=bool(getattr(settings, "ALLOW_CANCEL_TERMINAL_SESSIONS", False)),
        )

    @app.route("/", endpoint="health")
    def health():
        return "API is running..."

    register_sessions(app, container)
    register_records(app, container)

    @app.errorhandler(404)
    def not_found(_e):
        return jsonify({"success": False, "kind": "NotFound", "message": f"Can't find {request.path} on this server!"}), 404

    if app.config["DEBUG"]:

        @app.after_request
        def log_request(response):
            logger.debug("%s %s -> %s", request.method, request.path, response.status_code)
            return response

    return app
