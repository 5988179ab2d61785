"""
Pydantic request/response models for API endpoints.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# QUERY
# ═══════════════════════════════════════════════════════════════════════════════

class GrossProfitThresholdIn(BaseModel):
    """Gross profit comparison, e.g. {"operator": ">", "value": 50}."""
    operator: str = Field(description="One of >, <, >=, <=, =")
    value: Union[float, str] = Field(description="Gross profit rate in percent")


class DateRangeIn(BaseModel):
    """Inclusive created-date range."""
    start: str = Field(description="Start date (YYYY-MM-DD)")
    end: Optional[str] = Field(None, description="End date (YYYY-MM-DD), defaults to start")


class QueryRequest(BaseModel):
    """Structured sales order query (already resolved from free text)."""
    intent: str = Field(description="count, list, sample, topCustomers, topDivision, topSales, total, max, min, breakdown")
    customerKeyword: Optional[str] = Field(None, description="Substring of customer name, description or memo")
    grossProfitThreshold: Optional[GrossProfitThresholdIn] = None
    exactDate: Optional[str] = Field(None, description="Created date (YYYY-MM-DD)")
    year: Optional[Union[int, str]] = Field(None, description="Created year (YYYY)")
    dateRange: Optional[DateRangeIn] = None
    topN: Optional[int] = Field(None, description="Groups to return for top* intents")
    fields: List[str] = Field(default_factory=list, description="Fields to project in list/sample output")
    metric: Optional[str] = Field(None, description="amount or grossProfitRate, for max/min")
    dimension: Optional[str] = Field(None, description="customer, division, salesRep, year, month or date")

    def to_descriptor_input(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class QueryResponse(BaseModel):
    """Query result plus the snapshot size it was computed from."""
    snapshot_records: int
    result: Dict[str, Any]


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH / SYNC
# ═══════════════════════════════════════════════════════════════════════════════

class SnapshotStats(BaseModel):
    """Snapshot store statistics."""
    records: int
    loaded: bool
    path: str
    size_bytes: Optional[int] = None
    last_merge_at: Optional[str] = None
    last_persist_at: Optional[str] = None
    last_persist_error: Optional[str] = None


class SyncStatus(BaseModel):
    """Background refresh status."""
    is_running: bool
    run_count: int
    skipped_runs: int
    last_sync_time: Optional[str] = None
    last_records_added: Optional[int] = None
    interval_seconds: int
    start_year: int
    jobs: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str
    uptime_seconds: int
    correlation_id: Optional[str] = None
    snapshot: SnapshotStats
