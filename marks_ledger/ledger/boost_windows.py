"""Market-wide boost window registry keyed by source kind and address."""

from __future__ import annotations

from decimal import Decimal

from loguru import logger

from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import SECONDS_PER_DAY, BoostWindow, domain_validate_source_kind

ONE = Decimal("1")


class BoostWindowRegistry:
    """Store-backed registry holding at most one window per source.

    Windows are created lazily on first observed activity, or opened
    explicitly (overwriting) when a campaign ends.
    """

    def __init__(self, store: LedgerStorePort, boost_duration_seconds: int = 8 * SECONDS_PER_DAY):
        """Initialize boost window registry.

        Args:
            store: Ledger store holding window rows.
            boost_duration_seconds: Length of lazily created windows.

        Raises:
            ValueError: Raised when store is None or duration is negative.
        """

        if store is None:
            raise ValueError("store must not be None")
        if boost_duration_seconds < 0:
            raise ValueError("boost_duration_seconds must be >= 0")
        self._store = store
        self._boost_duration_seconds = boost_duration_seconds

    def get_window(self, source_kind: str, source_address: str) -> BoostWindow | None:
        return self._store.db_get_boost_window(source_kind, source_address)

    def get_or_create_window(
        self,
        source_kind: str,
        source_address: str,
        now: int,
        default_multiplier: Decimal,
    ) -> BoostWindow:
        """Return the source window, creating `[now, now + duration)` on first activity.

        Args:
            source_kind: Reward source kind.
            source_address: Token or pool address.
            now: First-activity timestamp.
            default_multiplier: Multiplier of a newly created window.

        Returns:
            BoostWindow: Existing or newly created window.

        Raises:
            ValueError: Raised when source kind or multiplier is invalid.
        """

        existing_window = self._store.db_get_boost_window(source_kind, source_address)
        if existing_window is not None:
            return existing_window

        created_window = self._build_window(
            source_kind=source_kind,
            source_address=source_address,
            start_timestamp=now,
            end_timestamp=now + self._boost_duration_seconds,
            multiplier=default_multiplier,
        )
        self._store.db_put_boost_window(created_window)
        logger.info(
            "boost window created | source_kind={} | source={} | start={} | end={} | multiplier={}",
            source_kind,
            source_address,
            created_window.start_timestamp,
            created_window.end_timestamp,
            created_window.multiplier,
        )
        return created_window

    def open_window(
        self,
        source_kind: str,
        source_address: str,
        start_timestamp: int,
        end_timestamp: int,
        multiplier: Decimal,
    ) -> BoostWindow:
        """Open an explicit window, replacing any existing one.

        Args:
            source_kind: Reward source kind.
            source_address: Token or pool address.
            start_timestamp: Inclusive window start.
            end_timestamp: Exclusive window end.
            multiplier: Window multiplier.

        Returns:
            BoostWindow: Persisted window.

        Raises:
            ValueError: Raised when bounds, kind, or multiplier are invalid.
        """

        opened_window = self._build_window(
            source_kind=source_kind,
            source_address=source_address,
            start_timestamp=start_timestamp,
            end_timestamp=end_timestamp,
            multiplier=multiplier,
        )
        self._store.db_put_boost_window(opened_window)
        logger.info(
            "boost window opened | source_kind={} | source={} | start={} | end={} | multiplier={}",
            source_kind,
            source_address,
            start_timestamp,
            end_timestamp,
            multiplier,
        )
        return opened_window

    def active_multiplier(self, source_kind: str, source_address: str, now: int) -> Decimal:
        """Return the window multiplier when `start <= now < end`, else `1`."""

        window = self._store.db_get_boost_window(source_kind, source_address)
        if window is None:
            return ONE
        if window.start_timestamp <= now < window.end_timestamp:
            return window.multiplier
        return ONE

    @staticmethod
    def _build_window(
        source_kind: str,
        source_address: str,
        start_timestamp: int,
        end_timestamp: int,
        multiplier: Decimal,
    ) -> BoostWindow:
        domain_validate_source_kind(source_kind)
        if start_timestamp > end_timestamp:
            raise ValueError("start_timestamp must be <= end_timestamp")
        if multiplier < ONE:
            raise ValueError("multiplier must be >= 1")
        return BoostWindow(
            source_kind=source_kind,
            source_address=source_address,
            start_timestamp=start_timestamp,
            end_timestamp=end_timestamp,
            multiplier=multiplier,
        )
