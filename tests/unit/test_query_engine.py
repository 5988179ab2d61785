"""
Tests for erp_core.query_engine module.
"""
import pytest
from decimal import Decimal

from erp_core.exceptions import ValidationError
from erp_core.models import QueryDescriptor
from erp_core.query_engine import (
    NO_MATCH_MESSAGE,
    answer,
    filter_records,
    group_amounts,
)


def _query(**data) -> QueryDescriptor:
    return QueryDescriptor.from_dict(data)


class TestFilterRecords:
    """Tests for filter_records."""

    def test_filters_compose(self, sample_records):
        """Keyword, threshold and date filters should all apply."""
        descriptor = _query(
            intent="list",
            customerKeyword="acme",
            grossProfitThreshold={"operator": ">", "value": 50},
            exactDate="2024-03-15",
        )
        matches = filter_records(descriptor, sample_records)
        assert [r.id for r in matches] == ["1"]

    def test_no_filters_keeps_all_in_order(self, sample_records):
        matches = filter_records(_query(intent="list"), sample_records)
        assert [r.id for r in matches] == ["1", "2", "3"]

    def test_keyword_case_insensitive(self, make_record):
        records = [make_record("1", customer_name="ACME Corp"), make_record("2", customer_name="Beta")]
        matches = filter_records(_query(intent="list", customerKeyword="acme"), records)
        assert [r.id for r in matches] == ["1"]

    def test_keyword_matches_description_and_memo(self, make_record):
        """Keyword should also search description and memo."""
        records = [
            make_record("1", customer_name="Beta", description="for ACME event"),
            make_record("2", customer_name="Beta", memo="acme reorder"),
            make_record("3", customer_name="Beta"),
        ]
        matches = filter_records(_query(intent="list", customerKeyword="Acme"), records)
        assert [r.id for r in matches] == ["1", "2"]

    @pytest.mark.parametrize("operator,expected", [
        (">", ["3"]),
        (">=", ["1", "3"]),
        ("<", ["2"]),
        ("<=", ["1", "2"]),
        ("=", ["1"]),
    ])
    def test_threshold_operators(self, sample_records, operator, expected):
        matches = filter_records(
            _query(intent="list", grossProfitThreshold={"operator": operator, "value": 60}),
            sample_records,
        )
        assert [r.id for r in matches] == expected

    def test_year_prefix(self, make_record):
        records = [
            make_record("1", created_date="2023-12-31"),
            make_record("2", created_date="2024-01-01"),
            make_record("3", created_date=""),
        ]
        matches = filter_records(_query(intent="list", year="2024"), records)
        assert [r.id for r in matches] == ["2"]

    def test_date_range_inclusive(self, make_record):
        """Both bounds should be inclusive; undated records excluded."""
        records = [
            make_record("1", created_date="2024-01-01"),
            make_record("2", created_date="2024-01-31"),
            make_record("3", created_date="2024-02-01"),
            make_record("4", created_date=""),
        ]
        descriptor = _query(intent="list", dateRange={"start": "2024-01-01", "end": "2024-01-31"})
        assert [r.id for r in filter_records(descriptor, records)] == ["1", "2"]


class TestGroupAmounts:
    """Tests for group_amounts."""

    def test_groups_in_first_encounter_order(self, ranking_records):
        groups = group_amounts(ranking_records, "customer")
        assert [g["name"] for g in groups] == ["Acme", "Beta", "Gamma"]
        assert groups[0]["amount"] == Decimal("300")
        assert groups[0]["count"] == 2


class TestAnswerAggregations:
    """Tests for answer() per intent."""

    def test_count(self, sample_records):
        result = answer(_query(intent="count", customerKeyword="acme"), sample_records)

        assert result["intent"] == "count"
        assert result["no_match"] is False
        assert result["matched"] == 2
        assert result["count"] == 2
        assert result["total_amount"] == Decimal("200")
        assert result["max_gross_profit_rate"] == Decimal("60")

    def test_total(self, ranking_records):
        result = answer(_query(intent="total"), ranking_records)
        assert result["count"] == 4
        assert result["total_amount"] == Decimal("850")

    def test_top_customers(self, ranking_records):
        """Top 2 customers by summed amount."""
        result = answer(_query(intent="topCustomers", topN=2), ranking_records)

        assert result["dimension"] == "customer"
        assert result["groups"] == [
            {"rank": 1, "name": "Beta", "amount": Decimal("500")},
            {"rank": 2, "name": "Acme", "amount": Decimal("300")},
        ]

    def test_top_default_is_one(self, ranking_records):
        result = answer(_query(intent="topCustomers"), ranking_records)
        assert len(result["groups"]) == 1
        assert result["groups"][0]["name"] == "Beta"

    def test_top_n_larger_than_groups(self, ranking_records):
        result = answer(_query(intent="topCustomers", topN=10), ranking_records)
        assert [g["name"] for g in result["groups"]] == ["Beta", "Acme", "Gamma"]

    def test_top_division(self, ranking_records):
        result = answer(_query(intent="topDivision"), ranking_records)
        assert result["dimension"] == "division"
        assert result["groups"][0] == {"rank": 1, "name": "Print", "amount": Decimal("600")}

    def test_top_sales_rep(self, ranking_records):
        result = answer(_query(intent="topSales"), ranking_records)
        assert result["dimension"] == "salesRep"
        assert result["groups"][0] == {"rank": 1, "name": "Rep B", "amount": Decimal("700")}

    def test_top_ties_keep_encounter_order(self, make_record):
        """Equal totals should rank in first-encounter order."""
        records = [
            make_record("1", customer_name="Zed", amount=100),
            make_record("2", customer_name="Abe", amount=100),
        ]
        result = answer(_query(intent="topCustomers", topN=2), records)
        assert [g["name"] for g in result["groups"]] == ["Zed", "Abe"]

    def test_list_default_projection(self, sample_records):
        result = answer(_query(intent="list", customerKeyword="beta"), sample_records)
        assert result["records"] == [{"displayNumber": "SO-3", "grossProfitRate": Decimal("70")}]

    def test_list_requested_fields(self, sample_records):
        result = answer(
            _query(intent="list", customerKeyword="beta", fields=["customerName", "createdDate"]),
            sample_records,
        )
        assert result["records"] == [{"customerName": "Beta", "createdDate": "2024-03-15"}]

    def test_sample_returns_first(self, sample_records):
        result = answer(_query(intent="sample", customerKeyword="acme"), sample_records)
        assert result["record"] == {"displayNumber": "SO-1", "grossProfitRate": Decimal("60")}

    def test_max_amount(self, ranking_records):
        result = answer(_query(intent="max"), ranking_records)
        assert result["metric"] == "amount"
        assert result["value"] == Decimal("500")
        assert result["record"]["id"] == "3"

    def test_min_gross_profit(self, sample_records):
        result = answer(_query(intent="min", metric="grossProfitRate"), sample_records)
        assert result["value"] == Decimal("40")
        assert result["record"]["displayNumber"] == "SO-2"

    def test_max_tie_first_wins(self, make_record):
        records = [make_record("1", amount=10), make_record("2", amount=10)]
        assert answer(_query(intent="max"), records)["record"]["id"] == "1"

    def test_breakdown_by_customer(self, ranking_records):
        """Name dimensions sort by descending amount."""
        result = answer(_query(intent="breakdown"), ranking_records)

        assert result["dimension"] == "customer"
        assert result["total_amount"] == Decimal("850")
        assert [g["name"] for g in result["groups"]] == ["Beta", "Acme", "Gamma"]

    def test_breakdown_by_month(self, make_record):
        """Time dimensions sort chronologically with Unknown for undated records."""
        records = [
            make_record("1", created_date="2024-03-02", amount=10),
            make_record("2", created_date="2024-01-15", amount=20),
            make_record("3", created_date="2024-03-20", amount=5),
            make_record("4", created_date="", amount=1),
        ]
        result = answer(_query(intent="breakdown", dimension="month"), records)

        assert [(g["name"], g["amount"]) for g in result["groups"]] == [
            ("2024-01", Decimal("20")),
            ("2024-03", Decimal("15")),
            ("Unknown", Decimal("1")),
        ]


class TestAnswerNoMatch:
    """Tests for empty results."""

    def test_count_no_match(self, sample_records):
        result = answer(_query(intent="count", customerKeyword="zzz"), sample_records)

        assert result["no_match"] is True
        assert result["message"] == NO_MATCH_MESSAGE
        assert result["matched"] == 0
        assert result["count"] == 0
        assert result["total_amount"] == Decimal("0")
        assert result["max_gross_profit_rate"] is None

    def test_total_no_match(self):
        result = answer(_query(intent="total"), [])
        assert result["no_match"] is True
        assert result["count"] == 0
        assert result["total_amount"] == Decimal("0")

    @pytest.mark.parametrize("intent", ["list", "sample", "topCustomers", "max", "min", "breakdown"])
    def test_other_intents_no_match(self, intent):
        result = answer(_query(intent=intent), [])
        assert result["no_match"] is True
        assert result["message"] == NO_MATCH_MESSAGE
        assert "records" not in result
        assert "groups" not in result

    def test_general_intent_rejected(self, sample_records):
        """General questions are not answered from the snapshot."""
        with pytest.raises(ValidationError):
            answer(_query(intent="general"), sample_records)

    def test_does_not_mutate_snapshot(self, sample_records):
        snapshot = tuple(sample_records)
        answer(_query(intent="breakdown", dimension="date"), snapshot)
        assert snapshot == tuple(sample_records)
