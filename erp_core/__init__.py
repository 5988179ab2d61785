"""
Core library for the ERP sales order assistant.

This package contains the sync engine and the local query engine:
- erp_client: Paginated ERP fetches with soft failure
- normalizer: Raw ERP order -> SalesOrderRecord
- snapshot_store: Durable, deduplicated record snapshot
- sync_service / scheduler: Periodic single-flight refresh
- query_engine: Filters and aggregations over a snapshot
- config, exceptions, observability: Ambient plumbing
"""

# Import in dependency order
from erp_core.exceptions import (
    ERPError,
    ERPConnectionError,
    ERPAPIError,
    ERPDataError,
    StorageError,
    StorageUnreadableError,
    StorageWriteError,
    ValidationError,
)

from erp_core.models import (
    Intent,
    QueryDescriptor,
    QueryWindow,
    SalesOrderRecord,
)

from erp_core.config import config

__all__ = [
    # Exceptions
    "ERPError",
    "ERPConnectionError",
    "ERPAPIError",
    "ERPDataError",
    "StorageError",
    "StorageUnreadableError",
    "StorageWriteError",
    "ValidationError",
    # Models
    "Intent",
    "QueryDescriptor",
    "QueryWindow",
    "SalesOrderRecord",
    # Config
    "config",
]
