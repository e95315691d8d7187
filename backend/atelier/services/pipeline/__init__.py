"""
Pipeline Services

Stage state machine, activity ledger, and the derived risk and urgency
signals for jewellery enquiries and orders.

- StageStateMachine: stage order, dwell policy, transitions
- ActivityLedger: append-only history per order
- RiskSignalEngine: stale / stuck classification
- classify_urgency: delivery-date pressure
- OrderFactory: creation of valid enquiries and orders
"""

from .stage_machine import (
    StageStateMachine,
    TransitionPolicy,
    STAGE_CONFIG,
    stage_index,
    visible_stages,
    expected_dwell_days,
    is_terminal,
    is_stage_complete,
    is_stage_current,
    stage_progress,
)
from .activity_ledger import ActivityLedger
from .risk_engine import (
    RiskSignalEngine,
    RiskAssessment,
    compute_risk_signal,
    days_since_last_activity,
    days_in_current_stage,
)
from .urgency import UrgencyAssessment, classify_urgency
from .order_factory import OrderFactory

__all__ = [
    'StageStateMachine',
    'TransitionPolicy',
    'STAGE_CONFIG',
    'stage_index',
    'visible_stages',
    'expected_dwell_days',
    'is_terminal',
    'is_stage_complete',
    'is_stage_current',
    'stage_progress',
    'ActivityLedger',
    'RiskSignalEngine',
    'RiskAssessment',
    'compute_risk_signal',
    'days_since_last_activity',
    'days_in_current_stage',
    'UrgencyAssessment',
    'classify_urgency',
    'OrderFactory',
]
