"""
Urgency Classifier

Delivery-date pressure, independent of pipeline stage.

Level and label both derive from a single days_remaining value so a
badge colour and its text can never disagree.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from ...models.domain import UrgencyLevel
from .temporal import days_between


# Inclusive upper bound of the due-soon window
DUE_SOON_DAYS = 7

# Sort rank used when ordering by urgency (most pressing first)
URGENCY_RANK: Dict[UrgencyLevel, int] = {
    UrgencyLevel.OVERDUE: 0,
    UrgencyLevel.DUE_SOON: 1,
    UrgencyLevel.ON_TRACK: 2,
    UrgencyLevel.NONE: 3,
}


@dataclass
class UrgencyAssessment:
    level: UrgencyLevel
    days_remaining: Optional[int]
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "days_remaining": self.days_remaining,
            "label": self.label,
        }


def days_remaining(delivery_date: Optional[Union[date, str]], now: datetime) -> Optional[int]:
    """Calendar days until delivery; negative once overdue."""
    if not delivery_date:
        return None
    return days_between(now, delivery_date)


def urgency_level(remaining: Optional[int]) -> UrgencyLevel:
    if remaining is None:
        return UrgencyLevel.NONE
    if remaining < 0:
        return UrgencyLevel.OVERDUE
    if remaining <= DUE_SOON_DAYS:
        return UrgencyLevel.DUE_SOON
    return UrgencyLevel.ON_TRACK


def urgency_label(remaining: Optional[int]) -> str:
    if remaining is None:
        return "No date"
    if remaining < 0:
        return f"{abs(remaining)}d overdue"
    if remaining == 0:
        return "Due today"
    if remaining == 1:
        return "Due tomorrow"
    return f"{remaining}d remaining"


def classify_urgency(delivery_date: Optional[Union[date, str]], now: datetime) -> UrgencyAssessment:
    """Level, day count and label from one date calculation."""
    remaining = days_remaining(delivery_date, now)
    return UrgencyAssessment(
        level=urgency_level(remaining),
        days_remaining=remaining,
        label=urgency_label(remaining),
    )
