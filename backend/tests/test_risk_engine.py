"""
Risk Signal Engine - Tests

Tests verify:
1. Stale beats stuck
2. Stuck is strictly greater than the dwell threshold
3. Terminal orders are never at risk
4. Day counts fall back to created_at
"""
import pytest

from atelier.models.domain import ActorRole, RiskSignal, Stage
from atelier.services.pipeline.risk_engine import (
    STALE_AFTER_DAYS,
    RiskSignalEngine,
    compute_risk_signal,
    days_in_current_stage,
    days_since_last_activity,
)


# =============================================================================
# SCENARIO TESTS
# =============================================================================

class TestRiskScenarios:
    """End-to-end risk classification."""

    def test_fresh_enquiry_is_not_at_risk(self, make_enquiry, now):
        """Created now with only order_created: 0 days, no risk."""
        enquiry = make_enquiry(created_days_ago=0)

        assert enquiry.current_stage == Stage.ENQUIRY
        assert days_since_last_activity(enquiry, now) == 0
        assert compute_risk_signal(enquiry, now) == RiskSignal.NONE

    def test_long_building_with_recent_note_is_stuck(self, building_order, now):
        """10 days in Building (threshold 7) with a note yesterday."""
        assert days_since_last_activity(building_order, now) == 1
        assert days_in_current_stage(building_order, now) == 10
        assert compute_risk_signal(building_order, now) == RiskSignal.STUCK

    def test_silent_estimation_is_stale(self, make_enquiry, ledger, days_ago, now):
        """9 silent days in Estimation: stale wins over stuck."""
        enquiry = make_enquiry(created_days_ago=12)
        ledger.post_update(enquiry, "Kavya", ActorRole.SALES, None, Stage.ESTIMATION, days_ago(9))

        assessment = RiskSignalEngine().assess(enquiry, now)

        assert assessment.days_in_current_stage == 9
        assert assessment.signal == RiskSignal.STALE
        assert assessment.label == "9d silent"
        assert assessment.description == "No activity for 9 days, follow up needed"


# =============================================================================
# BOUNDARY TESTS
# =============================================================================

class TestRiskBoundaries:
    """Threshold edges."""

    def test_stale_at_exactly_threshold(self, make_order, now):
        order = make_order(created_days_ago=STALE_AFTER_DAYS)
        assert compute_risk_signal(order, now) == RiskSignal.STALE

    def test_dwell_reached_but_not_exceeded(self, make_order, ledger, days_ago, now):
        """Order Confirmed allows 3 days; day 3 is fine, day 4 is stuck."""
        order = make_order(created_days_ago=3)
        assert compute_risk_signal(order, now) == RiskSignal.NONE

        older = make_order(customer_name="Meera Rao", created_days_ago=4)
        assessment = RiskSignalEngine().assess(older, now)
        assert assessment.signal == RiskSignal.STUCK
        assert assessment.label == "4d in stage"
        assert assessment.description == "In Order Confirmed for 4 days, longer than expected"

    def test_stage_days_fall_back_to_created_at(self, make_order, ledger, days_ago, now):
        """Notes do not reset the creation-stage clock."""
        order = make_order(created_days_ago=5)
        ledger.post_note(order, "Rahul", None, "Checking in", days_ago(1))

        assert days_in_current_stage(order, now) == 5
        assert compute_risk_signal(order, now) == RiskSignal.STUCK

    def test_reentering_stage_uses_latest_entry(self, make_order, ledger, days_ago, now):
        order = make_order(created_days_ago=20)
        ledger.post_update(order, "Rahul", None, None, Stage.BUILDING, days_ago(15))
        ledger.post_update(order, "Rahul", None, None, Stage.CERTIFICATION, days_ago(8))
        ledger.post_update(order, "Rahul", None, "Reset stone", Stage.BUILDING, days_ago(2))

        assert days_in_current_stage(order, now) == 2


# =============================================================================
# TERMINAL AND EMPTY TESTS
# =============================================================================

class TestRiskExclusions:
    """Orders the engine never flags."""

    def test_pickup_is_never_at_risk(self, make_order, ledger, days_ago, now):
        order = make_order(created_days_ago=90)
        ledger.post_update(order, "Rahul", None, None, Stage.CUSTOMER_PICKUP, days_ago(60))

        assessment = RiskSignalEngine().assess(order, now)

        assert assessment.signal == RiskSignal.NONE
        assert not assessment.at_risk
        assert assessment.label == ""
        assert assessment.expected_days is None

    def test_empty_feed_has_no_activity_age(self, make_order, now):
        order = make_order(created_days_ago=2)
        order.activity_feed.clear()

        assert days_since_last_activity(order, now) is None
        assert compute_risk_signal(order, now) == RiskSignal.NONE

    @pytest.mark.parametrize("threshold,expected", [(3, RiskSignal.STALE), (10, RiskSignal.NONE)])
    def test_custom_stale_threshold(self, make_order, now, threshold, expected):
        order = make_order(created_days_ago=3)
        assert RiskSignalEngine(stale_after_days=threshold).compute_risk_signal(order, now) == expected

    def test_recomputed_against_given_clock(self, make_order, now, days_ago):
        """Same order, later clock, different answer."""
        order = make_order(created_days_ago=0)
        assert compute_risk_signal(order, now) == RiskSignal.NONE
        assert compute_risk_signal(order, days_ago(-8)) == RiskSignal.STALE
