"""Factory pattern for creating database connection factories."""

from __future__ import annotations

from app.adapters.database.base import AbstractConnectionFactory
from app.adapters.database.pymysql_driver import PyMySQLConnectionFactory
from app.core.config import DatabaseSettings, settings
from app.core.errors import ValidationAppError


def create_connection_factory(
    db_settings: DatabaseSettings | None = None,
) -> AbstractConnectionFactory:
    """Instantiate the connection factory for the configured driver.

    Args:
        db_settings: Optional database settings; defaults to global settings.

    Returns:
        AbstractConnectionFactory: Factory opening sessions with fixed config.

    Raises:
        ValidationAppError: If the driver is not supported.
    """
    cfg = db_settings or settings.db
    driver = cfg.driver.lower()

    if driver == "pymysql":
        return PyMySQLConnectionFactory(
            host=cfg.host,
            port=cfg.port,
            user=cfg.user,
            password=cfg.password,
            database=cfg.name,
            multiple_statements=cfg.multiple_statements,
            connect_timeout_seconds=cfg.connect_timeout_seconds,
        )

    raise ValidationAppError(
        code="db_unknown_driver",
        message=f"Unknown database driver: '{driver}'. Supported drivers: pymysql",
    )
