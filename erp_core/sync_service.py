"""
Refresh service keeping the local snapshot in sync with the ERP.

One run walks annual windows from the configured start year through the
current year, oldest first, and for each window does
fetch -> normalize -> merge. Windows run sequentially to bound upstream
load and keep merges serialized. Runs are single-flight: a run that
starts while another is still going is skipped, not queued.
"""
import asyncio
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from erp_core.config import config as app_config, ERPConfig, SyncConfig
from erp_core.erp_client import ERPClient
from erp_core.models import QueryWindow, SalesOrderRecord
from erp_core.normalizer import normalize_record
from erp_core.observability import get_logger, Timer, correlation_context
from erp_core.snapshot_store import SnapshotStore

logger = get_logger(__name__)


def annual_windows(start_year: int, today: date, erp_config: ERPConfig) -> List[QueryWindow]:
    """Annual windows from ``start_year`` through ``today.year``, ascending."""
    return [QueryWindow.for_year(year, erp_config) for year in range(start_year, today.year + 1)]


class SyncService:
    """
    Drives ERPClient + normalizer + SnapshotStore.

    The store is injected; the service owns write access to it during a
    run while readers keep using ``store.snapshot()``.
    """

    def __init__(
        self,
        store: SnapshotStore,
        client: ERPClient,
        sync_config: SyncConfig = None,
        erp_config: ERPConfig = None,
    ):
        self.store = store
        self.client = client
        self.sync_config = sync_config or app_config.sync
        self.erp_config = erp_config or app_config.erp
        self._run_lock = asyncio.Lock()

        self._run_count = 0
        self._skipped_runs = 0
        self._last_sync_time: Optional[datetime] = None
        self._last_run_stats: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def windows(self, today: Optional[date] = None) -> List[QueryWindow]:
        """Windows for one run, based on the current date in the ERP timezone."""
        today = today or datetime.now(self.sync_config.tz).date()
        return annual_windows(self.sync_config.start_year, today, self.erp_config)

    async def run_once(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Run one full refresh cycle.

        Returns:
            Run statistics, or ``{"skipped": True}`` if a run was already active
        """
        if self._run_lock.locked():
            self._skipped_runs += 1
            logger.info("Refresh already in progress, skipping this run")
            return {"skipped": True, "reason": "refresh already in progress"}

        async with self._run_lock:
            with correlation_context(), Timer("refresh_run", logger, warn_threshold_ms=60_000) as timer:
                window_stats = []
                for window in self.windows(today):
                    window_stats.append(await self._refresh_window(window))

            stats = {
                "skipped": False,
                "windows": window_stats,
                "fetched": sum(w["fetched"] for w in window_stats),
                "added": sum(w["added"] for w in window_stats),
                "total_records": len(self.store),
                "duration_ms": round(timer.elapsed_ms, 2),
            }
            self._run_count += 1
            self._last_sync_time = datetime.now(self.sync_config.tz)
            self._last_run_stats = stats

            logger.info(
                f"Refresh complete: {stats['added']} new of {stats['fetched']} fetched "
                f"across {len(window_stats)} windows",
                extra={"added": stats["added"], "fetched": stats["fetched"], "total": stats["total_records"]}
            )
            return stats

    async def _refresh_window(self, window: QueryWindow) -> Dict[str, Any]:
        """Fetch, normalize and merge one window; never raises."""
        try:
            raw_orders = await self.client.fetch_window(window)
            records = self._normalize(raw_orders, window)
            added = await self.store.merge_insert(records)
        except Exception as e:
            logger.error(
                f"Window {window.label} failed: {e}",
                exc_info=True,
                extra={"window": window.label}
            )
            return {"window": window.label, "fetched": 0, "added": 0, "error": str(e)}

        logger.debug(
            f"Window {window.label}: {added} new of {len(records)} fetched",
            extra={"window": window.label}
        )
        return {"window": window.label, "fetched": len(records), "added": added, "error": None}

    def _normalize(self, raw_orders: List[Any], window: QueryWindow) -> List[SalesOrderRecord]:
        """Normalize a window's raw orders, skipping entries that are not objects."""
        records = []
        skipped = 0
        for raw in raw_orders:
            if not isinstance(raw, Mapping):
                skipped += 1
                continue
            records.append(normalize_record(raw, self.sync_config.tz))

        if skipped:
            logger.warning(
                f"Window {window.label}: skipped {skipped} malformed entries",
                extra={"window": window.label, "skipped": skipped}
            )
        return records

    def get_sync_stats(self) -> Dict[str, Any]:
        """Current refresh statistics for the status endpoint."""
        last_added = self._last_run_stats["added"] if self._last_run_stats else None
        return {
            "is_running": self.is_running,
            "run_count": self._run_count,
            "skipped_runs": self._skipped_runs,
            "last_sync_time": self._last_sync_time.isoformat() if self._last_sync_time else None,
            "last_records_added": last_added,
            "interval_seconds": self.sync_config.interval_seconds,
            "start_year": self.sync_config.start_year,
        }
