"""FastAPI application factory for the read-only ledger service."""

from fastapi import FastAPI

from marks_ledger.config import AppSettings
from marks_ledger.db import DatabaseHealthPort, LedgerStorePort, ReplayRunRepositoryPort
from marks_ledger.jobs import JobOrchestratorPort
from marks_ledger.ledger import AggregationView

from .routers import (
    api_create_campaigns_router,
    api_create_health_router,
    api_create_marks_router,
    api_create_positions_router,
    api_create_replay_router,
)


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    store: LedgerStorePort,
    aggregation_view: AggregationView,
    replay_repository: ReplayRunRepositoryPort,
    replay_orchestrator: JobOrchestratorPort,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        store: Ledger record store backing position and campaign reads.
        aggregation_view: Per-user marks rollup.
        replay_repository: Replay run repository for list/detail APIs.
        replay_orchestrator: Job orchestrator for replay trigger execution.

    Returns:
        FastAPI: Framework application instance with every router included.

    Raises:
        ValueError: Raised when a router dependency is None.
    """
    application = FastAPI(title="Marks Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        return {
            "service": "marks-ledger",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(api_create_marks_router(aggregation_view=aggregation_view))
    application.include_router(api_create_positions_router(store=store))
    application.include_router(api_create_campaigns_router(store=store))
    application.include_router(
        api_create_replay_router(
            settings=settings,
            replay_repository=replay_repository,
            replay_orchestrator=replay_orchestrator,
        )
    )

    return application
