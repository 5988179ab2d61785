"""
Durable, deduplicated snapshot of sales order records.

The store is append-only by identity: a record whose ``id`` is already
known is never replaced or duplicated. Readers get an immutable tuple
published with a single reference swap, so a query sees either the
pre-merge or the post-merge collection and nothing in between.

Persistence is a single JSON file (orjson) replaced atomically via a
temp file + ``os.replace``. File I/O runs in a worker thread so the
event loop keeps serving queries.
"""
import asyncio
import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import orjson

from erp_core.exceptions import StorageUnreadableError, StorageWriteError
from erp_core.models import SalesOrderRecord
from erp_core.observability import get_logger, Timer

logger = get_logger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # str keeps the exact value through a load/persist cycle
        return str(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def _dedupe(records: Iterable[SalesOrderRecord], known_ids: Iterable[str] = ()) -> List[SalesOrderRecord]:
    """Records whose id is not in ``known_ids``, first occurrence wins."""
    seen = set(known_ids)
    fresh = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        fresh.append(record)
    return fresh


class SnapshotStore:
    """
    Owns the in-memory snapshot and its durable copy.

    Usage:
        store = SnapshotStore(Path("data/sales_orders.json"))
        await store.load()
        added = await store.merge_insert(records)
        records = store.snapshot()
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._records: Tuple[SalesOrderRecord, ...] = ()
        self._known_ids: set = set()
        self._lock = asyncio.Lock()  # Serializes merges and file writes

        self._loaded = False
        self.last_merge_at: Optional[datetime] = None
        self.last_persist_at: Optional[datetime] = None
        self.last_persist_error: Optional[str] = None

    def __len__(self) -> int:
        return len(self._records)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    # ═══════════════════════════════════════════════════════════════════════════
    # READ PATH
    # ═══════════════════════════════════════════════════════════════════════════

    def snapshot(self) -> Tuple[SalesOrderRecord, ...]:
        """Point-in-time view of all records in merge order."""
        return self._records

    # ═══════════════════════════════════════════════════════════════════════════
    # LOAD / MERGE
    # ═══════════════════════════════════════════════════════════════════════════

    async def load(self) -> Tuple[SalesOrderRecord, ...]:
        """
        Load the persisted snapshot, or start empty.

        Never raises: a missing, unreadable or corrupt file is logged and
        treated as no data, since refreshes can repopulate everything.
        """
        async with self._lock:
            try:
                with Timer("snapshot_load", logger):
                    records = await asyncio.to_thread(self._read_file)
            except StorageUnreadableError as e:
                logger.warning(f"Ignoring unreadable snapshot, starting empty: {e}")
                records = []

            records = _dedupe(records)
            self._known_ids = {record.id for record in records}
            self._records = tuple(records)
            self._loaded = True

        logger.info(
            f"Snapshot loaded with {len(records)} records",
            extra={"path": str(self.path), "records": len(records)}
        )
        return self._records

    async def merge_insert(self, candidates: Iterable[SalesOrderRecord]) -> int:
        """
        Append candidates whose id is not yet known.

        The new superset is published before it is persisted; the file is
        written only when at least one record was added, so re-merging the
        same candidates adds nothing and performs no write.

        Returns:
            Number of records actually added
        """
        async with self._lock:
            fresh = _dedupe(candidates, self._known_ids)
            if not fresh:
                return 0

            self._records = self._records + tuple(fresh)
            self._known_ids.update(record.id for record in fresh)
            self.last_merge_at = datetime.now(timezone.utc)

            logger.info(
                f"Merged {len(fresh)} new records ({len(self._records)} total)",
                extra={"added": len(fresh), "total": len(self._records)}
            )

            await self._persist(self._records)
            return len(fresh)

    async def _persist(self, records: Tuple[SalesOrderRecord, ...]) -> None:
        """Write the snapshot; failures leave in-memory state authoritative."""
        try:
            with Timer("snapshot_persist", logger):
                await asyncio.to_thread(self._write_file, records)
        except StorageWriteError as e:
            self.last_persist_error = str(e)
            logger.warning(
                f"Snapshot persist failed, keeping in-memory state: {e}",
                extra={"path": str(self.path), "records": len(records)}
            )
            return

        self.last_persist_at = datetime.now(timezone.utc)
        self.last_persist_error = None

    # ═══════════════════════════════════════════════════════════════════════════
    # FILE I/O (runs in worker thread)
    # ═══════════════════════════════════════════════════════════════════════════

    def _read_file(self) -> List[SalesOrderRecord]:
        """
        Decode the snapshot file.

        Raises:
            StorageUnreadableError: If the file cannot be read or decoded
        """
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting empty")
            return []

        try:
            document = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise StorageUnreadableError(self.path, f"Cannot decode snapshot: {e}") from e

        if isinstance(document, dict):
            entries = document.get("records")
        else:
            entries = document
        if not isinstance(entries, list):
            raise StorageUnreadableError(self.path, "Snapshot has no record list")

        records = []
        skipped = 0
        for entry in entries:
            try:
                records.append(SalesOrderRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                skipped += 1
        if skipped:
            logger.warning(
                f"Skipped {skipped} malformed snapshot entries",
                extra={"path": str(self.path), "skipped": skipped}
            )
        return records

    def _write_file(self, records: Tuple[SalesOrderRecord, ...]) -> None:
        """
        Atomically replace the snapshot file.

        Raises:
            StorageWriteError: If the file cannot be written
        """
        document = {
            "version": SNAPSHOT_FORMAT_VERSION,
            "savedAt": datetime.now(timezone.utc).isoformat(),
            "records": [record.to_dict() for record in records],
        }

        tmp_path = None
        try:
            payload = orjson.dumps(document, default=_encode_default)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageWriteError(self.path, f"Cannot write snapshot: {e}") from e

    # ═══════════════════════════════════════════════════════════════════════════
    # STATS
    # ═══════════════════════════════════════════════════════════════════════════

    def get_stats(self) -> Dict[str, Any]:
        """Store statistics for health/status endpoints."""
        try:
            size_bytes = self.path.stat().st_size
        except OSError:
            size_bytes = None

        return {
            "records": len(self._records),
            "loaded": self._loaded,
            "path": str(self.path),
            "size_bytes": size_bytes,
            "last_merge_at": self.last_merge_at.isoformat() if self.last_merge_at else None,
            "last_persist_at": self.last_persist_at.isoformat() if self.last_persist_at else None,
            "last_persist_error": self.last_persist_error,
        }
