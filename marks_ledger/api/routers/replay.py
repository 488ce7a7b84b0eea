"""Replay API router composition for trigger and run diagnostics endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from marks_ledger.config import AppSettings
from marks_ledger.db import ReplayRunAlreadyActiveError, ReplayRunRecord, ReplayRunRepositoryPort
from marks_ledger.jobs import JobOrchestratorPort


def api_create_replay_router(
    settings: AppSettings,
    replay_repository: ReplayRunRepositoryPort,
    replay_orchestrator: JobOrchestratorPort,
) -> APIRouter:
    """Create replay router with trigger and run list/detail endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        replay_repository: DB-layer replay run repository.
        replay_orchestrator: Job orchestrator executing event replays.

    Returns:
        APIRouter: Router exposing replay APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if replay_repository is None:
        raise ValueError("replay_repository must not be None")
    if replay_orchestrator is None:
        raise ValueError("replay_orchestrator must not be None")

    router = APIRouter(prefix="/replay", tags=["replay"])

    @router.post("/run")
    def api_replay_run_trigger() -> JSONResponse:
        """Trigger one replay of the configured event batch.

        Returns:
            JSONResponse: Trigger result, 409 when a run is active or 500 when the run failed.

        Raises:
            RuntimeError: This handler maps execution failures to responses.
        """

        try:
            execution_result = replay_orchestrator.job_execute(job_name="event_replay")
        except ReplayRunAlreadyActiveError:
            payload = {
                "status": "error",
                "message": "run already active",
            }
            return JSONResponse(content=payload, status_code=status.HTTP_409_CONFLICT)
        except RuntimeError as error:
            payload = {
                "status": "error",
                "message": str(error),
            }
            return JSONResponse(content=payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        payload = {
            "job_name": execution_result.job_name,
            "status": execution_result.status,
            "replay_run_id": execution_result.run_id,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/runs")
    def api_replay_run_list(
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return replay runs newest first.

        Args:
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            JSONResponse: Runs list payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        applied_limit = min(limit, settings.api_max_limit)
        run_rows = replay_repository.db_replay_run_list(limit=applied_limit, offset=offset)
        payload = {
            "items": [api_serialize_replay_run_record(run_record) for run_record in run_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(run_rows),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/runs/{replay_run_id}")
    def api_replay_run_detail(replay_run_id: UUID) -> JSONResponse:
        run_record = replay_repository.db_replay_run_get_by_id(replay_run_id=replay_run_id)
        if run_record is None:
            payload = {
                "status": "error",
                "message": "replay run not found",
            }
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

        return JSONResponse(
            content=api_serialize_replay_run_record(run_record),
            status_code=status.HTTP_200_OK,
        )

    return router


def api_serialize_replay_run_record(run_record: ReplayRunRecord) -> dict[str, object]:
    """Serialize replay run record into API payload.

    Args:
        run_record: Replay run record.

    Returns:
        dict[str, object]: JSON-safe run payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "replay_run_id": str(run_record.replay_run_id),
        "run_type": run_record.run_type,
        "batch_path": run_record.batch_path,
        "status": run_record.state.status,
        "started_at_utc": run_record.state.started_at_utc.isoformat(),
        "ended_at_utc": run_record.state.ended_at_utc.isoformat() if run_record.state.ended_at_utc else None,
        "duration_ms": run_record.state.duration_ms,
        "error_code": run_record.state.error_code,
        "error_message": run_record.state.error_message,
        "diagnostics": run_record.state.diagnostics,
        "created_at_utc": run_record.created_at_utc.isoformat(),
    }
