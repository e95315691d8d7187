"""
Stage State Machine

Defines the pipeline stages, their total order, the expected dwell time
per stage, and the single mutation path for stage changes.

Any stage is reachable from any other stage by default; moving backward
is used for corrections. The reachability rule lives in `can_transition`
only, so a stricter policy is a configuration change.
"""
import logging
import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ...exceptions import ValidationError
from ...models.domain import ActorRole, Order, Stage, StageChangeEntry, STAGES
from .temporal import to_datetime


logger = logging.getLogger(__name__)


# =============================================================================
# STAGE CONFIGURATION
# =============================================================================
#
# expected_days is the operational dwell threshold used by the risk engine.
# It is tunable policy: adjust the table, not the code.
# The terminal stage has no threshold and is never evaluated for risk.
#
# =============================================================================

STAGE_CONFIG: Dict[Stage, Dict[str, Any]] = {
    Stage.ENQUIRY: {
        "expected_days": 3,
        "short_label": "Enquiry",
        "terminal": False,
        "hint": {
            "title": "Enquiry received",
            "body": "Follow up with the customer to confirm interest and collect full specs. "
                    "Convert to an order once details are agreed.",
            "audience": "sales",
        },
    },
    Stage.ESTIMATION: {
        "expected_days": 5,
        "short_label": "Estimation",
        "terminal": False,
        "hint": {
            "title": "Awaiting estimate",
            "body": "Vendor: please confirm stone availability and share a price breakdown. "
                    "Sales: confirm delivery timeline with the customer once received.",
            "audience": "both",
        },
    },
    Stage.CAD_DESIGN: {
        "expected_days": 7,
        "short_label": "CAD",
        "terminal": False,
        "hint": {
            "title": "CAD design in progress",
            "body": "Vendor: share CAD renders as soon as ready. A customer sign-off on the "
                    "design is required before casting begins.",
            "audience": "vendor",
        },
    },
    Stage.ORDER_CONFIRMED: {
        "expected_days": 3,
        "short_label": "Confirmed",
        "terminal": False,
        "hint": {
            "title": "Ready to start production",
            "body": "Vendor: please confirm receipt of specs and your expected start date. "
                    "Post an update once materials are procured.",
            "audience": "vendor",
        },
    },
    Stage.BUILDING: {
        "expected_days": 7,
        "short_label": "Building",
        "terminal": False,
        "hint": {
            "title": "In production",
            "body": "Vendor: post progress photos at key milestones (casting, stone setting, "
                    "polishing). Move to Certification once the piece is complete.",
            "audience": "vendor",
        },
    },
    Stage.CERTIFICATION: {
        "expected_days": 7,
        "short_label": "Certify",
        "terminal": False,
        "hint": {
            "title": "Awaiting certification",
            "body": "Vendor: attach the certification PDF (GIA / IGI / SGL / hallmark) once "
                    "received and move to Shipped to Store.",
            "audience": "vendor",
        },
    },
    Stage.SHIPPED_TO_STORE: {
        "expected_days": 3,
        "short_label": "Shipped",
        "terminal": False,
        "hint": {
            "title": "In transit to store",
            "body": "Piece is on its way. Sales: confirm receipt and notify the customer that "
                    "their order is ready for pickup.",
            "audience": "sales",
        },
    },
    Stage.CUSTOMER_PICKUP: {
        "expected_days": None,
        "short_label": "Pickup",
        "terminal": True,
        "hint": {
            "title": "Order complete",
            "body": "Customer has collected the piece. Remember to collect the balance payment "
                    "and request a review.",
            "audience": "sales",
        },
    },
}


class TransitionPolicy(str, Enum):
    """Which stage moves are accepted."""
    UNRESTRICTED = "unrestricted"
    FORWARD_ONLY = "forward_only"


TRANSITION_POLICY = TransitionPolicy(
    os.getenv("ATELIER_TRANSITION_POLICY", TransitionPolicy.UNRESTRICTED.value)
)


# =============================================================================
# ORDERING QUERIES
# =============================================================================

def stage_index(stage: Stage) -> int:
    """Position of a stage in the fixed pipeline order."""
    return STAGES.index(Stage(stage))


def visible_stages(cad_design_required: bool) -> List[Stage]:
    """Stages shown for an order; CAD Design is hidden when not required."""
    if cad_design_required:
        return list(STAGES)
    return [s for s in STAGES if s != Stage.CAD_DESIGN]


def expected_dwell_days(stage: Stage) -> Optional[int]:
    """Dwell threshold in days, or None for the terminal stage."""
    return STAGE_CONFIG[Stage(stage)]["expected_days"]


def is_terminal(stage: Stage) -> bool:
    return STAGE_CONFIG[Stage(stage)]["terminal"]


def is_stage_complete(stage: Stage, current_stage: Stage) -> bool:
    """True when `stage` lies strictly before `current_stage`."""
    return stage_index(stage) < stage_index(current_stage)


def is_stage_current(stage: Stage, current_stage: Stage) -> bool:
    return Stage(stage) == Stage(current_stage)


def stage_progress(current_stage: Stage, cad_design_required: bool) -> float:
    """
    Fraction of the visible pipeline reached (0.0 at the first stage,
    1.0 at the terminal stage).

    A current stage hidden from the visible set is placed after every
    visible stage that precedes it in the global order.
    """
    stages = visible_stages(cad_design_required)
    current = Stage(current_stage)
    if current in stages:
        position = stages.index(current)
    else:
        position = sum(1 for s in stages if stage_index(s) < stage_index(current))
    return position / (len(stages) - 1)


def short_label(stage: Stage) -> str:
    return STAGE_CONFIG[Stage(stage)]["short_label"]


def stage_hint(stage: Stage) -> Dict[str, str]:
    return dict(STAGE_CONFIG[Stage(stage)]["hint"])


# =============================================================================
# STATE MACHINE
# =============================================================================

class StageStateMachine:
    """
    Applies stage transitions to an order.

    - A move to the current stage is a no-op: no entry, no timestamp change
    - Every real move appends exactly one stage_change entry
    - The entry is fully built before the order is touched
    """

    def __init__(self, policy: Optional[TransitionPolicy] = None):
        self.policy = policy or TRANSITION_POLICY

    def can_transition(self, from_stage: Stage, to_stage: Stage) -> Tuple[bool, str]:
        """
        Check if a stage move is allowed under the configured policy.

        Returns (allowed, reason)
        """
        if from_stage == to_stage:
            return False, f"Order is already in {to_stage.value}"

        if (
            self.policy == TransitionPolicy.FORWARD_ONLY
            and stage_index(to_stage) < stage_index(from_stage)
        ):
            return False, f"Cannot move back from {from_stage.value} to {to_stage.value}"

        return True, "Transition allowed"

    def apply_transition(
        self,
        order: Order,
        new_stage: Stage,
        posted_by: str,
        now: datetime,
        actor_role: Optional[ActorRole] = None,
        note: Optional[str] = None,
    ) -> Optional[StageChangeEntry]:
        """
        Move an order to `new_stage`.

        Returns the appended entry, or None when the order is already in
        `new_stage`.
        """
        new_stage = Stage(new_stage)
        from_stage = order.current_stage

        if new_stage == from_stage:
            logger.debug(f"Order {order.id} already in {new_stage.value}; no transition recorded")
            return None

        allowed, reason = self.can_transition(from_stage, new_stage)
        if not allowed:
            logger.warning(f"Rejected transition for order {order.id}: {reason}")
            raise ValidationError(reason, {"new_stage": reason})

        posted_by = (posted_by or "").strip()
        if not posted_by:
            raise ValidationError("Name is required", {"posted_by": "Name is required"})

        # A skewed clock never stamps an entry before the latest one
        timestamp = max(to_datetime(now), order.last_updated_at)
        entry = StageChangeEntry(
            id=str(uuid4()),
            order_id=order.id,
            posted_by=posted_by,
            actor_role=actor_role,
            timestamp=timestamp,
            new_stage=new_stage,
            previous_stage=from_stage,
            note=(note or "").strip() or None,
        )

        order.activity_feed.append(entry)
        order.current_stage = new_stage
        order.last_updated_at = timestamp

        logger.info(f"Order {order.id} moved {from_stage.value} -> {new_stage.value} by {posted_by}")
        return entry
