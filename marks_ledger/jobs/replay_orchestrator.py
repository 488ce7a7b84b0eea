"""Job-layer event replay orchestrator with persisted stage timeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import traceback

from loguru import logger

from marks_ledger.db import ReplayRunRepositoryPort
from marks_ledger.domain import domain_build_stage_event

from .event_router import EventRouter
from .event_source import EventBatchError, job_read_event_batch
from .interfaces import JobExecutionResult, JobOrchestratorPort


@dataclass(frozen=True)
class ReplayOrchestratorConfig:
    """Configuration values for replay execution.

    Attributes:
        batch_path: JSON Lines batch consumed by each run.
        run_type: Run source type (`manual`, `scheduled`).
    """

    batch_path: str
    run_type: str = "manual"


class EventReplayOrchestrator(JobOrchestratorPort):
    """Replay one event batch through the router and record the run."""

    _REPLAY_JOB_NAME = "event_replay"

    def __init__(
        self,
        replay_repository: ReplayRunRepositoryPort,
        event_router: EventRouter,
        config: ReplayOrchestratorConfig,
    ):
        """Initialize replay orchestrator dependencies.

        Args:
            replay_repository: DB-layer replay run persistence service.
            event_router: Router applying events to the ledgers.
            config: Replay execution configuration.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if replay_repository is None:
            raise ValueError("replay_repository must not be None")
        if event_router is None:
            raise ValueError("event_router must not be None")
        if config is None:
            raise ValueError("config must not be None")
        if not config.batch_path.strip():
            raise ValueError("config.batch_path must not be blank")
        if not config.run_type.strip():
            raise ValueError("config.run_type must not be blank")

        self._replay_repository = replay_repository
        self._event_router = event_router
        self._config = config

    def job_supported_names(self) -> tuple[str, ...]:
        return (self._REPLAY_JOB_NAME,)

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Read the configured batch and apply every event in order.

        Args:
            job_name: Name of job to execute.

        Returns:
            JobExecutionResult: Successful execution payload.

        Raises:
            ValueError: Raised when job name is unsupported.
            ReplayRunAlreadyActiveError: Raised when another run is active.
            RuntimeError: Raised after the run is finalized as failed.
        """

        normalized_job_name = job_name.strip()
        if normalized_job_name != self._REPLAY_JOB_NAME:
            raise ValueError(f"unsupported job_name={normalized_job_name}")

        run_record = self._replay_repository.db_replay_run_create_started(
            run_type=self._config.run_type,
            batch_path=self._config.batch_path,
        )
        timeline: list[dict[str, object]] = [domain_build_stage_event(stage="run", status="started")]

        try:
            timeline.append(domain_build_stage_event(stage="load", status="started"))
            events = job_read_event_batch(self._config.batch_path)
            timeline.append(
                domain_build_stage_event(stage="load", status="completed", details={"event_count": len(events)})
            )

            timeline.append(domain_build_stage_event(stage="apply", status="started"))
            apply_started_at = datetime.now(timezone.utc)
            batch_result = self._event_router.router_apply_batch(events)
            apply_duration_ms = max(
                0,
                int((datetime.now(timezone.utc) - apply_started_at).total_seconds() * 1000),
            )
            timeline.append(
                domain_build_stage_event(
                    stage="apply",
                    status="completed",
                    details={
                        "applied_count": batch_result.applied_count,
                        "skipped_count": batch_result.skipped_count,
                        "apply_duration_ms": apply_duration_ms,
                    },
                    order_key=batch_result.last_order_key,
                )
            )

            timeline.append(domain_build_stage_event(stage="run", status="success"))
            self._replay_repository.db_replay_run_finalize(
                replay_run_id=run_record.replay_run_id,
                status="success",
                error_code=None,
                error_message=None,
                diagnostics=timeline,
            )
            logger.info(
                "event replay completed | run={} | applied={} | skipped={}",
                run_record.replay_run_id,
                batch_result.applied_count,
                batch_result.skipped_count,
            )
            return JobExecutionResult(
                job_name=normalized_job_name,
                status="success",
                run_id=str(run_record.replay_run_id),
            )
        except (OSError, ValueError, RuntimeError) as error:
            error_code = self._job_error_code_for_exception(error)
            timeline.append(
                domain_build_stage_event(
                    stage="run",
                    status="failed",
                    details={
                        "error_code": error_code,
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                        "traceback": traceback.format_exc(),
                    },
                )
            )
            self._replay_repository.db_replay_run_finalize(
                replay_run_id=run_record.replay_run_id,
                status="failed",
                error_code=error_code,
                error_message=str(error),
                diagnostics=timeline,
            )
            logger.error("event replay failed | run={} | code={} | error={}", run_record.replay_run_id, error_code, error)
            raise RuntimeError("event replay execution failed") from error

    def _job_error_code_for_exception(self, error: Exception) -> str:
        """Map a workflow exception to a deterministic replay failure code.

        Args:
            error: Caught workflow exception.

        Returns:
            str: Deterministic error code.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        if isinstance(error, EventBatchError):
            return "REPLAY_BATCH_FORMAT_ERROR"
        if isinstance(error, OSError):
            return "REPLAY_BATCH_READ_ERROR"
        if isinstance(error, ValueError):
            return "REPLAY_CONTRACT_ERROR"
        return "REPLAY_PERSISTENCE_ERROR"
