"""
Risk Signal Engine

Classifies each order as stale, stuck, or neither.

Rules (highest priority first):
- Terminal stage (Customer Pickup): never at risk
- Stale: no ledger activity for STALE_AFTER_DAYS or more
- Stuck: longer in the current stage than its expected dwell days

Read-side only. Nothing is cached or persisted; every call is evaluated
against the `now` it is given.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ...models.domain import Order, RiskSignal
from .activity_ledger import ActivityLedger
from .stage_machine import expected_dwell_days, is_terminal
from .temporal import days_between


logger = logging.getLogger(__name__)

# Days without any ledger entry before an order is flagged stale
STALE_AFTER_DAYS = 7


@dataclass
class RiskAssessment:
    """
    Result of a risk evaluation.

    label: compact chip text ("9d silent", "10d in stage")
    description: tooltip sentence
    """
    signal: RiskSignal
    days_since_last_activity: Optional[int]
    days_in_current_stage: int
    expected_days: Optional[int]
    label: str = ""
    description: str = ""

    @property
    def at_risk(self) -> bool:
        return self.signal != RiskSignal.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "days_since_last_activity": self.days_since_last_activity,
            "days_in_current_stage": self.days_in_current_stage,
            "expected_days": self.expected_days,
            "label": self.label,
            "description": self.description,
        }


def days_since_last_activity(order: Order, now: datetime) -> Optional[int]:
    """Calendar days since the latest entry, or None for an empty feed."""
    latest = ActivityLedger.latest_entry(order)
    if latest is None:
        return None
    return days_between(latest.timestamp, now)


def days_in_current_stage(order: Order, now: datetime) -> int:
    """
    Calendar days since the order entered its current stage.

    Falls back to created_at when the order never explicitly moved into
    the stage it is in (e.g. still in its creation stage).
    """
    entered = ActivityLedger.latest_entry_into_stage(order, order.current_stage)
    entered_at = entered.timestamp if entered else order.created_at
    return days_between(entered_at, now)


class RiskSignalEngine:
    """Computes risk assessments for orders."""

    def __init__(self, stale_after_days: int = STALE_AFTER_DAYS):
        self.stale_after_days = stale_after_days

    def assess(self, order: Order, now: datetime) -> RiskAssessment:
        """Full evaluation with the figures behind the signal."""
        since_activity = days_since_last_activity(order, now)
        in_stage = days_in_current_stage(order, now)
        expected = expected_dwell_days(order.current_stage)

        assessment = RiskAssessment(
            signal=RiskSignal.NONE,
            days_since_last_activity=since_activity,
            days_in_current_stage=in_stage,
            expected_days=expected,
        )

        if is_terminal(order.current_stage):
            return assessment

        if since_activity is not None and since_activity >= self.stale_after_days:
            assessment.signal = RiskSignal.STALE
            assessment.label = f"{since_activity}d silent"
            assessment.description = f"No activity for {since_activity} days, follow up needed"
        elif expected is not None and in_stage > expected:
            assessment.signal = RiskSignal.STUCK
            assessment.label = f"{in_stage}d in stage"
            assessment.description = (
                f"In {order.current_stage.value} for {in_stage} days, longer than expected"
            )

        if assessment.at_risk:
            logger.debug(f"Order {order.id} flagged {assessment.signal.value}: {assessment.label}")
        return assessment

    def compute_risk_signal(self, order: Order, now: datetime) -> RiskSignal:
        return self.assess(order, now).signal


def compute_risk_signal(order: Order, now: datetime) -> RiskSignal:
    """Risk signal with the default thresholds."""
    return RiskSignalEngine().compute_risk_signal(order, now)
