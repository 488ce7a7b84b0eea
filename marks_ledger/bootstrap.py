"""Application bootstrap wiring for startup validation and dependency assembly."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI

from marks_ledger.adapters import JsonRpcChainStateAdapter
from marks_ledger.api import create_api_application
from marks_ledger.config import AppSettings, config_load_market_table, config_load_settings, config_setup_logging
from marks_ledger.db import (
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyLedgerStore,
    SQLAlchemyReplayRunService,
    db_create_engine,
)
from marks_ledger.jobs import EventReplayOrchestrator, EventRouter, ReplayOrchestratorConfig
from marks_ledger.ledger import (
    AggregationView,
    BalanceLedger,
    BoostWindowRegistry,
    CampaignLedger,
    SailPositionService,
)
from marks_ledger.pricing import PriceNormalizer


@dataclass(frozen=True)
class LedgerRuntime:
    """Fully wired runtime services shared by the API and replay entrypoints."""

    settings: AppSettings
    db_health_service: SQLAlchemyDatabaseHealthService
    store: SQLAlchemyLedgerStore
    replay_repository: SQLAlchemyReplayRunService
    aggregation_view: AggregationView
    replay_orchestrator: EventReplayOrchestrator


def bootstrap_create_runtime(run_type: str = "manual", batch_path: str | None = None) -> LedgerRuntime:
    """Validate configuration and wire every runtime service.

    Args:
        run_type: Replay run type recorded for triggered runs.
        batch_path: Optional batch path override; defaults to `EVENT_BATCH_PATH`.

    Returns:
        LedgerRuntime: Wired services.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
        MarketConfigLoadError: Raised when the market table is invalid.
    """

    settings = config_load_settings()
    config_setup_logging(settings.log_level, settings.environment_name)
    market_table = config_load_market_table(settings.market_config_path)

    engine = db_create_engine(database_url=settings.database_url)
    store = SQLAlchemyLedgerStore(engine=engine)
    replay_repository = SQLAlchemyReplayRunService(engine=engine)
    chain = JsonRpcChainStateAdapter(
        rpc_url=settings.rpc_url,
        request_timeout_seconds=settings.rpc_timeout_seconds,
    )
    price_normalizer = PriceNormalizer(chain=chain, market_table=market_table)
    boost_registry = BoostWindowRegistry(
        store=store,
        boost_duration_seconds=market_table.reward_rules.boost_duration_seconds,
    )
    event_router = EventRouter(
        store=store,
        balance_ledger=BalanceLedger(
            store=store,
            market_table=market_table,
            chain=chain,
            price_normalizer=price_normalizer,
            boost_registry=boost_registry,
        ),
        campaign_ledger=CampaignLedger(
            store=store,
            market_table=market_table,
            price_normalizer=price_normalizer,
            boost_registry=boost_registry,
        ),
        position_service=SailPositionService(
            store=store,
            market_table=market_table,
            chain=chain,
            price_normalizer=price_normalizer,
        ),
    )
    replay_orchestrator = EventReplayOrchestrator(
        replay_repository=replay_repository,
        event_router=event_router,
        config=ReplayOrchestratorConfig(
            batch_path=batch_path or settings.event_batch_path,
            run_type=run_type,
        ),
    )
    return LedgerRuntime(
        settings=settings,
        db_health_service=SQLAlchemyDatabaseHealthService(engine=engine),
        store=store,
        replay_repository=replay_repository,
        aggregation_view=AggregationView(store=store, market_table=market_table),
        replay_orchestrator=replay_orchestrator,
    )


def bootstrap_create_application() -> FastAPI:
    """Assemble the API application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    runtime = bootstrap_create_runtime()
    return create_api_application(
        settings=runtime.settings,
        db_health_service=runtime.db_health_service,
        store=runtime.store,
        aggregation_view=runtime.aggregation_view,
        replay_repository=runtime.replay_repository,
        replay_orchestrator=runtime.replay_orchestrator,
    )
