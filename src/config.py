"""Centralized application configuration for all environments."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Final, Optional

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Load environment variables once, prioritizing runtime env over file values
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _str_to_bool(value: str | bool | None, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def _determine_database_url() -> str:
    """
    Return a connection string using the following precedence:
    1. Explicit DATABASE_URL
    2. Individual DB_* components (for PostgreSQL)
    3. Local SQLite file under /db (only touched when the database store is used)
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    username = os.getenv("DB_USERNAME")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT")
    name = os.getenv("DB_NAME")

    if all([username, password, host, port, name]):
        driver = os.getenv("DB_DRIVER", "postgresql+psycopg2")
        return f"{driver}://{username}:{password}@{host}:{port}/{name}"

    fallback_path = BASE_DIR / "db" / "pricing.db"
    return f"sqlite:///{fallback_path.as_posix()}"


class Config:
    """Default runtime configuration shared across Flask, services, and scripts."""

    APP_NAME: Final[str] = os.getenv("APP_NAME", "Magnetico API")
    APP_ENV: Final[str] = os.getenv("APP_ENV", "development")
    APP_VERSION: Final[str] = os.getenv("APP_VERSION", "1.0.0")

    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-prod")
    DEBUG: Final[bool] = _str_to_bool(os.getenv("FLASK_DEBUG"), default=APP_ENV == "development")
    TESTING: Final[bool] = _str_to_bool(os.getenv("FLASK_TESTING"), default=False)

    # Flask run configuration (used by run.py)
    FLASK_RUN_HOST: Final[str] = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    FLASK_RUN_PORT: Final[int] = int(os.getenv("FLASK_RUN_PORT", "5000"))

    # Shared secret for the admin API; empty means admin endpoints refuse to run
    ADMIN_KEY: Final[Optional[str]] = _optional_str("ADMIN_KEY")

    # Pricing
    # Kept raw so an invalid value is reported by the pricing service instead of crashing startup.
    PRODUCT_UNIT_PRICE: Final[Optional[str]] = _optional_str("PRODUCT_UNIT_PRICE")
    PRICE_CURRENCY: Final[str] = os.getenv("PRICE_CURRENCY", "ARS")
    MIN_PRICE: Final[float] = float(os.getenv("MIN_PRICE", "100"))
    MAX_PRICE: Final[float] = float(os.getenv("MAX_PRICE", "100000"))
    HARD_DEFAULT_PRICE: Final[float] = float(os.getenv("HARD_DEFAULT_PRICE", "2000"))
    PRICE_HISTORY_SIZE: Final[int] = int(os.getenv("PRICE_HISTORY_SIZE", "50"))
    PRICE_MAX_CHANGE_PERCENT: Final[float] = float(os.getenv("PRICE_MAX_CHANGE_PERCENT", "50"))

    # Durable price store: "file" (JSON record) or "database" (SQLAlchemy)
    PRICE_STORE_BACKEND: Final[str] = os.getenv("PRICE_STORE_BACKEND", "file").strip().lower()
    PRICE_FILE_PATH: Final[Path] = Path(
        os.getenv("PRICE_FILE_PATH", (BASE_DIR / "data" / "price.json").as_posix())
    )
    PRICE_STORE_REFRESH_SECONDS: Final[float] = float(os.getenv("PRICE_STORE_REFRESH_SECONDS", "0"))
    DATABASE_URL: Final[str] = _determine_database_url()
    SQL_ECHO: Final[bool] = _str_to_bool(os.getenv("SQL_ECHO"), default=False)
    DB_POOL_SIZE: Final[int] = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW: Final[int] = int(os.getenv("DB_MAX_OVERFLOW", "10"))

    # Storefront / order intake
    CONFIG_CACHE_SECONDS: Final[int] = int(os.getenv("CONFIG_CACHE_SECONDS", "300"))
    ORDER_MIN_PHOTOS: Final[int] = int(os.getenv("ORDER_MIN_PHOTOS", "4"))
    ORDER_MAX_PHOTOS: Final[int] = int(os.getenv("ORDER_MAX_PHOTOS", "15"))
    MAX_FILE_SIZE_BYTES: Final[int] = int(os.getenv("MAX_FILE_SIZE_BYTES", str(8 * 1024 * 1024)))
    _formats = [
        fmt.strip().upper()
        for fmt in os.getenv("SUPPORTED_FORMATS", "JPEG,PNG,WebP").split(",")
        if fmt.strip()
    ]
    SUPPORTED_FORMATS: Final[tuple[str, ...]] = tuple(_formats) or ("JPEG", "PNG", "WEBP")
    MAINTENANCE_MODE: Final[bool] = _str_to_bool(os.getenv("MAINTENANCE_MODE"), default=False)

    # Observability
    STRUCTURED_LOGS_ENABLED: Final[bool] = _str_to_bool(os.getenv("STRUCTURED_LOGS_ENABLED"), default=True)
    LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")
    REQUEST_ID_HEADER: Final[str] = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")

    @classmethod
    def configure_app(cls, app: Any) -> None:
        """Apply core configuration to a Flask app instance."""
        app.config["SECRET_KEY"] = cls.SECRET_KEY
        app.config["ENV"] = cls.APP_ENV
        app.config["DEBUG"] = cls.DEBUG
        app.config["TESTING"] = cls.TESTING
        app.config["APP_NAME"] = cls.APP_NAME
        app.config["APP_VERSION"] = cls.APP_VERSION
        app.config["ADMIN_KEY"] = cls.ADMIN_KEY
        app.config["PRICE_CURRENCY"] = cls.PRICE_CURRENCY
        app.config["PRICE_MAX_CHANGE_PERCENT"] = cls.PRICE_MAX_CHANGE_PERCENT
        app.config["PRICE_STORE_BACKEND"] = cls.PRICE_STORE_BACKEND
        app.config["MAINTENANCE_MODE"] = cls.MAINTENANCE_MODE
        app.config["STRUCTURED_LOGS_ENABLED"] = cls.STRUCTURED_LOGS_ENABLED
