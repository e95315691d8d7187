"""
Dashboard Queries - Tests

Tests verify:
1. Stage and urgency counts cover every value
2. Filters combine
3. Needs-attention ordering: stale, then stuck, then urgency
"""
from datetime import date

import pytest

from atelier.models.domain import RecordType, RiskSignal, Stage, STAGES, UrgencyLevel
from atelier.services.pipeline.dashboard import (
    OrderFilter,
    attention_summary,
    filter_orders,
    group_by_stage,
    needs_attention,
    risk_count,
    stage_counts,
    urgency_counts,
)


@pytest.fixture
def pipeline(make_order, make_enquiry, ledger, days_ago):
    """
    A small book of business:
    - fresh: new order, delivery in 36 days
    - stuck: Building for 10 days, note yesterday, delivery overdue
    - stale: silent 9 days, due in 5 days
    - done: collected, long ago
    - enquiry: fresh enquiry with no delivery date
    """
    fresh = make_order(customer_name="Priya Sharma", delivery_date=date(2025, 4, 15))

    stuck = make_order(customer_name="Meera Rao", category="Necklace", created_days_ago=14,
                       delivery_date=date(2025, 3, 8))
    ledger.post_update(stuck, "Rahul", None, None, Stage.BUILDING, days_ago(10))
    ledger.post_note(stuck, "Shree", None, "Setting stones", days_ago(1))

    stale = make_order(customer_name="Arjun Kapoor", category="Bangle", created_days_ago=9,
                       delivery_date=date(2025, 3, 15))

    done = make_order(customer_name="Sana Khan", created_days_ago=60, delivery_date=date(2025, 1, 20))
    ledger.post_update(done, "Rahul", None, None, Stage.CUSTOMER_PICKUP, days_ago(40))

    enquiry = make_enquiry(customer_name="Ananya Iyer")
    return {"fresh": fresh, "stuck": stuck, "stale": stale, "done": done, "enquiry": enquiry}


class TestCounts:
    """Tests for headline counts."""

    def test_stage_counts_cover_every_stage(self, pipeline):
        counts = stage_counts(pipeline.values())
        assert list(counts) == STAGES
        assert counts[Stage.ORDER_CONFIRMED] == 2
        assert counts[Stage.BUILDING] == 1
        assert counts[Stage.CUSTOMER_PICKUP] == 1
        assert counts[Stage.ENQUIRY] == 1
        assert counts[Stage.CAD_DESIGN] == 0

    def test_stage_counts_by_type(self, pipeline):
        counts = stage_counts(pipeline.values(), RecordType.ENQUIRY)
        assert sum(counts.values()) == 1

    def test_urgency_counts(self, pipeline, now):
        counts = urgency_counts(pipeline.values(), now)
        assert counts[UrgencyLevel.OVERDUE] == 2
        assert counts[UrgencyLevel.DUE_SOON] == 1
        assert counts[UrgencyLevel.ON_TRACK] == 1
        assert counts[UrgencyLevel.NONE] == 1

    def test_risk_count_skips_terminal(self, pipeline, now):
        assert risk_count(pipeline.values(), now) == 2

    def test_group_by_stage(self, pipeline):
        columns = group_by_stage(pipeline.values())
        assert list(columns) == STAGES
        assert columns[Stage.BUILDING] == [pipeline["stuck"]]


class TestFilterOrders:
    """Tests for the dashboard filter bar."""

    def test_no_filter_keeps_everything(self, pipeline, now):
        assert filter_orders(pipeline.values(), OrderFilter(), now) == list(pipeline.values())

    def test_at_risk_only(self, pipeline, now):
        result = filter_orders(pipeline.values(), OrderFilter(at_risk=True), now)
        assert result == [pipeline["stuck"], pipeline["stale"]]

    def test_urgency_and_type(self, pipeline, now):
        criteria = OrderFilter(record_type=RecordType.ORDER, urgency=UrgencyLevel.OVERDUE)
        assert filter_orders(pipeline.values(), criteria, now) == [pipeline["stuck"], pipeline["done"]]

    def test_search_is_case_insensitive(self, pipeline, now):
        result = filter_orders(pipeline.values(), OrderFilter(search="NECKLACE"), now)
        assert result == [pipeline["stuck"]]

    def test_search_by_order_number(self, pipeline, now):
        number = pipeline["stale"].order_number
        result = filter_orders(pipeline.values(), OrderFilter(search=number.lower()), now)
        assert result == [pipeline["stale"]]

    def test_staff_matches_vendor_or_salesperson(self, pipeline, now):
        by_vendor = filter_orders(pipeline.values(), OrderFilter(staff="shree"), now)
        by_sales = filter_orders(pipeline.values(), OrderFilter(staff="kavya"), now)
        assert len(by_vendor) == 4
        assert by_sales == [pipeline["enquiry"]]

    def test_stage_filter(self, pipeline, now):
        result = filter_orders(pipeline.values(), OrderFilter(stage=Stage.CUSTOMER_PICKUP), now)
        assert result == [pipeline["done"]]


class TestNeedsAttention:
    """Tests for the attention list."""

    def test_stale_before_stuck(self, pipeline, now):
        flagged = needs_attention(pipeline.values(), now)
        assert [o for o, _ in flagged] == [pipeline["stale"], pipeline["stuck"]]
        assert flagged[0][1].signal == RiskSignal.STALE

    def test_urgency_breaks_ties(self, make_order, now):
        later = make_order(customer_name="A", created_days_ago=10, delivery_date=date(2025, 5, 1))
        sooner = make_order(customer_name="B", created_days_ago=10, delivery_date=date(2025, 3, 12))
        undated = make_order(customer_name="C", created_days_ago=10, delivery_date=date(2025, 3, 5))
        undated.delivery_date = None

        flagged = needs_attention([undated, later, sooner], now)

        assert [o for o, _ in flagged] == [sooner, later, undated]

    def test_limit(self, pipeline, now):
        assert len(needs_attention(pipeline.values(), now, limit=1)) == 1

    def test_attention_summary(self, pipeline, now):
        assert attention_summary(pipeline.values(), now) == {"stale": 1, "stuck": 1}
