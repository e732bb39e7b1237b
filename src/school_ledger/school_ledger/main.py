from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .core.exceptions import DomainError
from .database.bootstrap import apply_schema, list_tables
from .fees.controller import register as register_fees
from .reports.controller import register as register_reports
from .settings.controller import register as register_settings

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    "validation_error": 400,
    "invalid_amount": 400,
    "concurrency_conflict": 409,
    "duplicate_record": 409,
    "record_not_found": 404,
    "student_not_found": 404,
    "store_unavailable": 503,
}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify({"error": exc.to_dict()}), HTTP_STATUS.get(exc.kind, 400)


def create_app(container: Optional[Container] = None, *, settings: Any = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    if settings is None:
        settings = importlib.import_module(get_settings_module())
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            getattr(settings, "__name__", settings), db_config.get("user"), db_config.get("host"),
            db_config.get("port", 3306), db_config.get("database"),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            change_feed_interval=float(getattr(settings, "CHANGE_FEED_INTERVAL", 5.0)),
        )

    container.config_sync.start()
    app.extensions["school_ledger"] = container

    register_error_handlers(app)
    register_attendance(app, container)
    register_fees(app, container)
    register_settings(app, container)
    register_reports(app, container)

    return app
