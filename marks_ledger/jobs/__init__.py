"""Job layer package for event routing and replay orchestration."""

from .interfaces import JobExecutionResult, JobOrchestratorPort
from .event_router import DAILY_MARKS_TRACKER, EventRouter, RouterBatchResult
from .event_source import EventBatchError, job_parse_event, job_read_event_batch
from .replay_orchestrator import EventReplayOrchestrator, ReplayOrchestratorConfig

__all__ = [
	"JobExecutionResult",
	"JobOrchestratorPort",
	"DAILY_MARKS_TRACKER",
	"EventRouter",
	"RouterBatchResult",
	"EventBatchError",
	"job_parse_event",
	"job_read_event_batch",
	"EventReplayOrchestrator",
	"ReplayOrchestratorConfig",
]
