"""
Custom exception hierarchy for ERP sync and query operations.

Exception Hierarchy:
    ERPError (base)
    ├── ERPConnectionError     - Network/timeout issues (recoverable)
    ├── ERPAPIError            - ERP returned error response
    └── ERPDataError           - Invalid response structure

    StorageError (base)
    ├── StorageUnreadableError - Snapshot file missing or corrupt
    └── StorageWriteError      - Snapshot could not be persisted

    ValidationError            - Query descriptor validation failed
"""


class ERPError(Exception):
    """Base exception for all ERP-related errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ERPConnectionError(ERPError):
    """
    Network-related errors (timeout, connection refused, etc.).

    These are typically recoverable with retry.
    """

    def __init__(self, message: str, details: str = None, retry_after: int = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class ERPAPIError(ERPError):
    """ERP returned an error response."""

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class ERPDataError(ERPError):
    """
    ERP response has unexpected structure.

    The page is treated like a failed request by the paginator.
    """

    def __init__(self, message: str, details: str = None, expected: str = None, got: str = None):
        super().__init__(message, details)
        self.expected = expected
        self.got = got


class StorageError(Exception):
    """Base exception for snapshot storage errors."""

    def __init__(self, path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{message} ({path})")


class StorageUnreadableError(StorageError):
    """Snapshot file exists but cannot be read or decoded."""


class StorageWriteError(StorageError):
    """Snapshot could not be written to durable storage."""


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating query descriptors before they reach the query engine.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
