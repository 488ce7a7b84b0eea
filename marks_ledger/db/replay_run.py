"""Database service for replay run lifecycle persistence and lock enforcement."""

from __future__ import annotations

import hashlib
import json
from typing import Any
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import ReplayRunAlreadyActiveError, ReplayRunRecord, ReplayRunRepositoryPort, ReplayRunState

REPLAY_RUN_LOCK_SCOPE = "marks_ledger.event_replay"

_REPLAY_RUN_COLUMNS = (
    "replay_run_id, run_type, batch_path, status, started_at_utc, ended_at_utc, duration_ms, "
    "error_code, error_message, diagnostics, created_at_utc "
)


class SQLAlchemyReplayRunService(ReplayRunRepositoryPort):
    """SQLAlchemy-backed replay run service.

    The ledger is single-writer, so at most one replay run may be `started`
    at any time. The advisory lock closes the race between two triggers that
    both observe no active row.
    """

    def __init__(self, engine: Engine):
        """Initialize replay run persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_replay_run_create_started(self, run_type: str, batch_path: str) -> ReplayRunRecord:
        """Create a started run while enforcing a single active run.

        Args:
            run_type: Trigger source (`manual`, `scheduled`).
            batch_path: Event batch consumed by the run.

        Returns:
            ReplayRunRecord: Newly created started run.

        Raises:
            ReplayRunAlreadyActiveError: Raised when lock cannot be obtained or active run exists.
            ValueError: Raised when required inputs are blank.
            RuntimeError: Raised when persistence fails.
        """

        normalized_run_type = self._validate_non_empty_text(run_type, "run_type")
        normalized_batch_path = self._validate_non_empty_text(batch_path, "batch_path")
        advisory_key_1, advisory_key_2 = self._build_advisory_lock_keys(REPLAY_RUN_LOCK_SCOPE)

        try:
            with self._engine.begin() as connection:
                lock_row = connection.execute(
                    text("SELECT pg_try_advisory_xact_lock(:key_1, :key_2) AS lock_acquired"),
                    {"key_1": advisory_key_1, "key_2": advisory_key_2},
                ).mappings().one()
                if not bool(lock_row["lock_acquired"]):
                    raise ReplayRunAlreadyActiveError("run already active")

                active_row = connection.execute(
                    text("SELECT replay_run_id FROM replay_run WHERE status = 'started' LIMIT 1"),
                ).first()
                if active_row is not None:
                    raise ReplayRunAlreadyActiveError("run already active")

                created_row = connection.execute(
                    text(
                        "INSERT INTO replay_run (run_type, status, batch_path, started_at_utc) "
                        "VALUES (:run_type, 'started', :batch_path, now()) "
                        "RETURNING replay_run_id"
                    ),
                    {"run_type": normalized_run_type, "batch_path": normalized_batch_path},
                ).mappings().one()

                return self._db_fetch_run_by_id_or_raise(
                    connection=connection,
                    replay_run_id=created_row["replay_run_id"],
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to create started replay run") from error

    def db_replay_run_finalize(
        self,
        replay_run_id: UUID,
        status: str,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ReplayRunRecord:
        """Finalize one run with deterministic end timestamp and duration.

        Args:
            replay_run_id: Run identifier.
            status: Final status (`success` or `failed`).
            error_code: Optional deterministic error code.
            error_message: Optional human-readable message.
            diagnostics: Optional structured diagnostics payload.

        Returns:
            ReplayRunRecord: Finalized run row.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

        if status not in {"success", "failed"}:
            raise ValueError("status must be one of: success, failed")

        diagnostics_payload = None
        if diagnostics is not None:
            diagnostics_payload = json.dumps(diagnostics)

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE replay_run SET "
                        "status = :status, "
                        "ended_at_utc = now(), "
                        "duration_ms = GREATEST(0, CAST(EXTRACT(EPOCH FROM (now() - started_at_utc)) * 1000 AS BIGINT)), "
                        "error_code = :error_code, "
                        "error_message = :error_message, "
                        "diagnostics = CAST(:diagnostics AS jsonb) "
                        "WHERE replay_run_id = :replay_run_id "
                        "RETURNING replay_run_id"
                    ),
                    {
                        "status": status,
                        "error_code": error_code,
                        "error_message": error_message,
                        "diagnostics": diagnostics_payload,
                        "replay_run_id": replay_run_id,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("replay run not found")

                return self._db_fetch_run_by_id_or_raise(connection=connection, replay_run_id=replay_run_id)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to finalize replay run") from error

    def db_replay_run_get_by_id(self, replay_run_id: UUID) -> ReplayRunRecord | None:
        """Fetch one replay run by id.

        Args:
            replay_run_id: Run identifier.

        Returns:
            ReplayRunRecord | None: Matching run row or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text("SELECT " + _REPLAY_RUN_COLUMNS + "FROM replay_run WHERE replay_run_id = :replay_run_id"),
                    {"replay_run_id": replay_run_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_replay_run_record(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch replay run by id") from error

    def db_replay_run_list(self, limit: int, offset: int) -> list[ReplayRunRecord]:
        """List runs newest first.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[ReplayRunRecord]: Ordered run rows.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        "SELECT " + _REPLAY_RUN_COLUMNS + "FROM replay_run "
                        "ORDER BY started_at_utc DESC, replay_run_id DESC "
                        "LIMIT :limit OFFSET :offset"
                    ),
                    {"limit": limit, "offset": offset},
                ).mappings().all()
                return [self._map_replay_run_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list replay runs") from error

    def _db_fetch_run_by_id_or_raise(self, connection, replay_run_id: UUID) -> ReplayRunRecord:
        row = connection.execute(
            text("SELECT " + _REPLAY_RUN_COLUMNS + "FROM replay_run WHERE replay_run_id = :replay_run_id"),
            {"replay_run_id": replay_run_id},
        ).mappings().first()
        if row is None:
            raise LookupError("replay run not found")
        return self._map_replay_run_record(row)

    def _map_replay_run_record(self, row: Any) -> ReplayRunRecord:
        """Map SQLAlchemy row mapping to typed replay run record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            ReplayRunRecord: Typed run record.

        Raises:
            TypeError: Raised when row structure is incompatible.
        """

        diagnostics_value = row["diagnostics"]
        if diagnostics_value is not None and not isinstance(diagnostics_value, list):
            raise TypeError("replay_run.diagnostics must be a JSON array when present")

        return ReplayRunRecord(
            replay_run_id=row["replay_run_id"],
            run_type=row["run_type"],
            batch_path=row["batch_path"],
            state=ReplayRunState(
                status=row["status"],
                started_at_utc=row["started_at_utc"],
                ended_at_utc=row["ended_at_utc"],
                duration_ms=row["duration_ms"],
                error_code=row["error_code"],
                error_message=row["error_message"],
                diagnostics=diagnostics_value,
            ),
            created_at_utc=row["created_at_utc"],
        )

    def _build_advisory_lock_keys(self, lock_scope: str) -> tuple[int, int]:
        """Create deterministic advisory lock keys for one lock scope.

        Args:
            lock_scope: Lock scope label.

        Returns:
            tuple[int, int]: Two signed int32 lock keys for PostgreSQL advisory lock.

        Raises:
            ValueError: Raised when lock_scope is blank.
        """

        normalized_scope = self._validate_non_empty_text(lock_scope, "lock_scope")
        digest = hashlib.sha256(normalized_scope.encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2

    def _validate_non_empty_text(self, value: str, field_name: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError(f"{field_name} must not be blank")
        return stripped_value
