"""
Async HTTP client for the ERP sales order API.

Features:
- Connection pooling with httpx
- Per-request timeout
- Exponential backoff retry on connection errors
- Offset pagination with soft failure: a window that breaks mid-way
  returns what was fetched so far instead of raising
- Request correlation IDs for tracing
"""
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import httpx

from erp_core.config import config as app_config, ERPConfig
from erp_core.exceptions import ERPAPIError, ERPConnectionError, ERPDataError, ERPError
from erp_core.models import QueryWindow
from erp_core.observability import get_logger, get_correlation_id, Timer
from erp_core.resilience import RetryConfig, retry_with_backoff

logger = get_logger(__name__)

RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    exponential_base=2.0
)


def build_payload(window: QueryWindow, limit: int, offset: int) -> Dict[str, Any]:
    """ERP request body for one page of a window."""
    return {
        "empl_pk": window.empl_pk,
        "preparedBy": window.prepared_by,
        "viewAll": window.view_all,
        "searchKey": "",
        "customerPK": None,
        "departmentPK": None,
        "filterDate": {
            "filter": "range",
            "date1": {"hide": False, "date": window.start.isoformat()},
            "date2": {"hide": False, "date": window.end.isoformat()},
        },
        "limit": limit,
        "offset": offset,
        "locationPK": window.location_pk,
        "salesRepPK": None,
        "status": "",
    }


def extract_page(response: Any) -> Tuple[List[Dict[str, Any]], Optional[int]]:
    """
    Pull the record list and total count out of an ERP response.

    Records live at ``data[0]``; the total, when the ERP sends it, at
    ``data[1][0]["total"]``.

    Raises:
        ERPDataError: If the response does not have that shape
    """
    if not isinstance(response, dict):
        raise ERPDataError(
            "Invalid response type",
            expected="dict",
            got=type(response).__name__
        )

    data = response.get("data")
    if data is None:
        raise ERPDataError("Response missing 'data' field", expected="list", got="None")
    if not isinstance(data, list):
        raise ERPDataError(
            "Response 'data' field is not a list",
            expected="list",
            got=type(data).__name__
        )
    if not data:
        return [], None

    records = data[0]
    if not isinstance(records, list):
        raise ERPDataError(
            "Response 'data[0]' is not a list of records",
            expected="list",
            got=type(records).__name__
        )

    total = None
    if len(data) > 1 and isinstance(data[1], list) and data[1] and isinstance(data[1][0], dict):
        raw_total = data[1][0].get("total")
        if isinstance(raw_total, int):
            total = raw_total
        elif isinstance(raw_total, str) and raw_total.isdigit():
            total = int(raw_total)

    return records, total


class ERPClient:
    """
    Async client for the ERP ``get_sales_orders`` endpoint.

    Usage:
        async with ERPClient() as client:
            raw_orders = await client.fetch_window(window)
    """

    def __init__(
        self,
        token: str = None,
        api_url: str = None,
        timeout: float = None,
        page_size: int = None,
        max_pages: int = None,
        retry_config: RetryConfig = RETRY_CONFIG,
        erp_config: ERPConfig = None,
    ):
        """
        Initialize ERP client.

        Args:
            token: Bearer token (defaults to ERP_TOKEN)
            api_url: Sales order endpoint URL (defaults to ERP_API_URL)
            timeout: Per-page request timeout in seconds
            page_size: Records requested per page
            max_pages: Safety cap on pages per window
            retry_config: Retry policy for connection errors
            erp_config: Config to take defaults from
        """
        cfg = erp_config or app_config.erp
        self.token = token or cfg.token
        self.api_url = api_url or cfg.api_url
        self.timeout = timeout or cfg.request_timeout
        self.page_size = page_size or cfg.page_size
        self.max_pages = max_pages or cfg.max_pages
        self.retry_config = retry_config
        self._client: Optional[httpx.AsyncClient] = None

        if not self.token:
            raise ValueError("ERP_TOKEN is required")

    @property
    def headers(self) -> Dict[str, str]:
        """Request headers with auth."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def connect(self) -> None:
        """Create HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                )
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ERPClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_sales_orders(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST one page request, retrying connection errors.

        Raises:
            ERPConnectionError: Network/timeout errors after all retries
            ERPAPIError: ERP returned an error response
        """
        return await retry_with_backoff(
            self._do_request,
            payload,
            config=self.retry_config,
            retryable_exceptions=(ERPConnectionError,),
        )

    async def _do_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a single HTTP request (called by retry wrapper)."""
        if not self._client:
            await self.connect()

        request_headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer("erp_get_sales_orders", logger):
                response = await self._client.request(
                    method="POST",
                    url=self.api_url,
                    json=payload,
                    headers=request_headers if request_headers else None,
                )
        except httpx.TimeoutException as e:
            logger.error(
                "ERP request timeout",
                extra={"offset": payload.get("offset"), "timeout": self.timeout}
            )
            raise ERPConnectionError(
                f"Request timeout after {self.timeout}s",
                retry_after=5
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"ERP request failed: {e}",
                extra={"offset": payload.get("offset")}
            )
            raise ERPConnectionError(str(e)) from e

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(
                f"ERP error {response.status_code}: {error_text}",
                extra={"status_code": response.status_code}
            )
            raise ERPAPIError(
                f"ERP returned {response.status_code}",
                status_code=response.status_code,
                details=error_text
            )

        try:
            return response.json()
        except ValueError as e:
            raise ERPDataError("Response is not valid JSON", details=response.text[:200]) from e

    async def paginate(self, window: QueryWindow) -> AsyncGenerator[List[Dict[str, Any]], None]:
        """
        Yield successive pages of raw records for a window.

        Stops after the first short page (fewer than ``page_size`` records).

        Raises:
            ERPError: If any page fails; pages already yielded stay valid
        """
        offset = 0
        for page in range(1, self.max_pages + 1):
            response = await self.get_sales_orders(build_payload(window, self.page_size, offset))
            batch, total = extract_page(response)

            if page == 1 and total is not None:
                logger.debug(f"Window {window.label} reports {total} records")

            yield batch

            if len(batch) < self.page_size:
                return
            offset += self.page_size

        logger.warning(
            f"Window {window.label} hit the {self.max_pages}-page cap, stopping",
            extra={"max_pages": self.max_pages}
        )

    async def fetch_window(self, window: QueryWindow) -> List[Dict[str, Any]]:
        """
        Fetch every raw record in a window.

        Never raises for upstream problems: if a page fails, the records
        accumulated so far (possibly none) are returned and the next
        scheduled refresh picks up the rest.
        """
        records: List[Dict[str, Any]] = []
        try:
            async for batch in self.paginate(window):
                records.extend(batch)
        except ERPError as e:
            logger.warning(
                f"Fetch for window {window.label} failed after {len(records)} records: {e}",
                extra={"window": window.label, "fetched": len(records), "error_type": type(e).__name__}
            )
        return records

