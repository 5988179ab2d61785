"""
Pytest configuration and shared fixtures.
"""
import pytest
from decimal import Decimal
from typing import Dict, List, Any, Callable

from erp_core.config import ERPConfig, SyncConfig
from erp_core.models import SalesOrderRecord


@pytest.fixture
def sample_raw_order() -> Dict[str, Any]:
    """Sample sales order as returned by the ERP API."""
    return {
        "so_pk": "5f1c2a80-8d11-11ee-9c3b-4b1a2f7e9d01",
        "so_upk": "SO-2024-00123",
        "Name_Cust": "Acme Printing Corp",
        "Name_Dept": "Large Format",
        "Name_SalesRep": "Maria Santos",
        "TotalAmount_TransH": "12,500.50",
        "gpRate": "45.5%",
        "Status_TransH": "Approved",
        "DateCreated_TransH": "2024-03-15T08:30:00.000Z",
        "Description_TransH": "Tarpaulin banners",
        "Memo_TransH": "Rush order",
    }


@pytest.fixture
def make_record() -> Callable[..., SalesOrderRecord]:
    """Factory for SalesOrderRecord with sensible defaults."""
    def _make(id: str, **overrides) -> SalesOrderRecord:
        fields = {
            "id": id,
            "display_number": f"SO-{id}",
            "customer_name": "Acme",
            "division_name": "Print",
            "sales_rep_name": "Rep A",
            "amount": Decimal("100"),
            "gross_profit_rate": Decimal("10"),
            "status": "Approved",
            "created_date": "2024-03-15",
        }
        for key in ("amount", "gross_profit_rate"):
            if key in overrides and not isinstance(overrides[key], Decimal):
                overrides[key] = Decimal(str(overrides[key]))
        fields.update(overrides)
        return SalesOrderRecord(**fields)
    return _make


@pytest.fixture
def sample_records(make_record) -> List[SalesOrderRecord]:
    """Three records used for filter composition tests."""
    return [
        make_record("1", customer_name="Acme", gross_profit_rate=60, created_date="2024-03-15"),
        make_record("2", customer_name="Acme", gross_profit_rate=40, created_date="2024-03-15"),
        make_record("3", customer_name="Beta", gross_profit_rate=70, created_date="2024-03-15"),
    ]


@pytest.fixture
def ranking_records(make_record) -> List[SalesOrderRecord]:
    """Records for top-N ranking: Beta 500, Acme 300, Gamma 50."""
    return [
        make_record("1", customer_name="Acme", amount=100, division_name="Print", sales_rep_name="Rep A"),
        make_record("2", customer_name="Acme", amount=200, division_name="Signage", sales_rep_name="Rep B"),
        make_record("3", customer_name="Beta", amount=500, division_name="Print", sales_rep_name="Rep B"),
        make_record("4", customer_name="Gamma", amount=50, division_name="Signage", sales_rep_name="Rep A"),
    ]


@pytest.fixture
def erp_config() -> ERPConfig:
    """ERP config with a fake token and small pages."""
    return ERPConfig(
        api_url="https://erp.example.test/api/get_sales_orders",
        token="test-token",
        location_pk="loc-1",
        empl_pk="empl-1",
        prepared_by="Test User",
        page_size=500,
    )


@pytest.fixture
def sync_config(tmp_path) -> SyncConfig:
    """Refresh config writing its snapshot under tmp_path."""
    return SyncConfig(
        start_year=2022,
        interval_seconds=60,
        snapshot_path=tmp_path / "sales_orders.json",
    )


@pytest.fixture
def raw_page() -> Callable[..., Dict[str, Any]]:
    """Factory for ERP response bodies holding ``size`` records with ids start..start+size-1."""
    def _page(start: int, size: int, total: int = None) -> Dict[str, Any]:
        records = [
            {"so_pk": str(i), "so_upk": f"SO-{i}", "TotalAmount_TransH": "100"}
            for i in range(start, start + size)
        ]
        data: List[Any] = [records]
        if total is not None:
            data.append([{"total": total}])
        return {"data": data}
    return _page
