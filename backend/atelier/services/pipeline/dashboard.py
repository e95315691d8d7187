"""
Dashboard Queries

Read-side aggregations over a set of orders: pipeline counts, urgency
breakdown, filtering, the board grouping, and the "needs attention" list.
All risk and urgency figures come from the shared engines.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ...models.domain import Order, RecordType, RiskSignal, Stage, STAGES, UrgencyLevel
from .risk_engine import RiskAssessment, RiskSignalEngine
from .urgency import URGENCY_RANK, classify_urgency


@dataclass
class OrderFilter:
    """Dashboard filter state. Unset fields do not filter."""
    record_type: Optional[RecordType] = None
    stage: Optional[Stage] = None
    urgency: Optional[UrgencyLevel] = None
    at_risk: bool = False
    staff: Optional[str] = None
    search: Optional[str] = None


def stage_counts(
    orders: Iterable[Order],
    record_type: Optional[RecordType] = None,
) -> Dict[Stage, int]:
    """Orders per stage; every stage is present."""
    counts = {stage: 0 for stage in STAGES}
    for order in orders:
        if record_type is not None and order.type != record_type:
            continue
        counts[order.current_stage] += 1
    return counts


def urgency_counts(orders: Iterable[Order], now: datetime) -> Dict[UrgencyLevel, int]:
    counts = {level: 0 for level in UrgencyLevel}
    for order in orders:
        counts[classify_urgency(order.delivery_date, now).level] += 1
    return counts


def risk_count(orders: Iterable[Order], now: datetime) -> int:
    engine = RiskSignalEngine()
    return sum(1 for o in orders if engine.compute_risk_signal(o, now) != RiskSignal.NONE)


def group_by_stage(orders: Iterable[Order]) -> Dict[Stage, List[Order]]:
    """Board columns in pipeline order."""
    columns = {stage: [] for stage in STAGES}
    for order in orders:
        columns[order.current_stage].append(order)
    return columns


def _matches_search(order: Order, query: str) -> bool:
    haystack = " ".join([
        order.customer_name,
        order.order_number or "",
        order.shareable_token,
        order.vendor_name or "",
        order.salesperson_name,
        order.category or "",
    ]).lower()
    return query in haystack


def _matches_staff(order: Order, staff: str) -> bool:
    if staff in order.salesperson_name.lower():
        return True
    return bool(order.vendor_name and staff in order.vendor_name.lower())


def filter_orders(orders: Iterable[Order], criteria: OrderFilter, now: datetime) -> List[Order]:
    """Apply every set filter; input order is preserved."""
    engine = RiskSignalEngine()
    query = (criteria.search or "").strip().lower()
    staff = (criteria.staff or "").strip().lower()

    result = []
    for order in orders:
        if criteria.record_type is not None and order.type != criteria.record_type:
            continue
        if criteria.stage is not None and order.current_stage != criteria.stage:
            continue
        if criteria.urgency is not None:
            if classify_urgency(order.delivery_date, now).level != criteria.urgency:
                continue
        if criteria.at_risk and engine.compute_risk_signal(order, now) == RiskSignal.NONE:
            continue
        if staff and not _matches_staff(order, staff):
            continue
        if query and not _matches_search(order, query):
            continue
        result.append(order)
    return result


def needs_attention(
    orders: Iterable[Order],
    now: datetime,
    limit: Optional[int] = None,
) -> List[Tuple[Order, RiskAssessment]]:
    """
    At-risk orders, most pressing first.

    Stale before stuck, then by delivery urgency. Ties keep input order.
    """
    engine = RiskSignalEngine()
    flagged = []
    for order in orders:
        assessment = engine.assess(order, now)
        if assessment.at_risk:
            flagged.append((order, assessment))

    flagged.sort(key=lambda pair: (
        0 if pair[1].signal == RiskSignal.STALE else 1,
        URGENCY_RANK[classify_urgency(pair[0].delivery_date, now).level],
    ))
    return flagged[:limit] if limit is not None else flagged


def attention_summary(orders: Iterable[Order], now: datetime) -> Dict[str, int]:
    """Stale and stuck counts for the attention strip."""
    flagged = needs_attention(orders, now)
    return {
        "stale": sum(1 for _, a in flagged if a.signal == RiskSignal.STALE),
        "stuck": sum(1 for _, a in flagged if a.signal == RiskSignal.STUCK),
    }
