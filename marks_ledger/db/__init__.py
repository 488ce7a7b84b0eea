"""Database layer package for all SQL and persistence boundaries."""

from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	DatabaseHealthPort,
	LedgerStorePort,
	ReplayRunAlreadyActiveError,
	ReplayRunRecord,
	ReplayRunRepositoryPort,
	ReplayRunState,
)
from .ledger_store import SQLAlchemyLedgerStore
from .memory_store import InMemoryLedgerStore
from .replay_run import REPLAY_RUN_LOCK_SCOPE, SQLAlchemyReplayRunService
from .session import db_create_engine

__all__ = [
	"DatabaseHealthPort",
	"LedgerStorePort",
	"ReplayRunRepositoryPort",
	"ReplayRunRecord",
	"ReplayRunState",
	"ReplayRunAlreadyActiveError",
	"REPLAY_RUN_LOCK_SCOPE",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyLedgerStore",
	"SQLAlchemyReplayRunService",
	"InMemoryLedgerStore",
	"db_create_engine",
]
