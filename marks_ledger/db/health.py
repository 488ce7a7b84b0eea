"""Database health service implementations for connectivity checks."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from marks_ledger.domain import HealthStatus

from .interfaces import DatabaseHealthPort


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service that probes the ledger schema through SQLAlchemy."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password masked.

        Returns:
            str: Rendered engine URL string.

        Raises:
            RuntimeError: Raised if URL rendering fails.
        """

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and that the ledger watermark table is reachable.

        Returns:
            HealthStatus: Health payload with status and diagnostic detail.

        Raises:
            ConnectionError: Raised when the database or ledger schema is unreachable.
        """

        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                tracker_count = connection.execute(
                    text("SELECT COUNT(*) AS tracker_count FROM ledger_tracker")
                ).mappings().one()["tracker_count"]
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error
        return HealthStatus(status="ok", detail=f"database connectivity verified; trackers={tracker_count}")
