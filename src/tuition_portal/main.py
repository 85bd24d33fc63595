from __future__ import annotations

import importlib
import logging
import logging.config
from types import ModuleType
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import build_logging, get_settings_module

from .attendance.controller import register as register_attendance
from .common.http import register_error_handlers
from .container import Container, build_container
from .core.constants import DEFAULT_PAGE_LIMIT, DEFAULT_TOKEN_MAX_AGE_SECONDS, PAYMENT_THRESHOLD_DAYS
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .payments.controller import register as register_payments
from .users.controller import register as register_users

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(build_logging(level))


def create_app(settings: Optional[ModuleType] = None, *, container: Optional[Container] = None) -> Flask:
    """Build the API application.

    ``settings`` defaults to the module selected by ``APP_ENV``. A prebuilt
    ``container`` skips database bootstrap entirely.
    """
    load_dotenv(override=False)
    if settings is None:
        settings = importlib.import_module(get_settings_module())

    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app = Flask(__name__)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "Using settings=%s db=%s@%s:%s/%s",
            settings.__name__, db_config.get("user"), db_config.get("host"),
            db_config.get("port", 3306), db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config)
            ensure_demo_users(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            secret_key=app.secret_key,
            token_max_age=int(getattr(settings, "TOKEN_MAX_AGE_SECONDS", DEFAULT_TOKEN_MAX_AGE_SECONDS)),
            threshold_days=int(getattr(settings, "PAYMENT_THRESHOLD_DAYS", PAYMENT_THRESHOLD_DAYS)),
            page_limit=int(getattr(settings, "API_PAGE_LIMIT", DEFAULT_PAGE_LIMIT)),
        )

    register_error_handlers(app)
    register_users(app, container)
    register_attendance(app, container)
    register_payments(app, container)

    return app
