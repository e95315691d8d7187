"""
Order Tracker API Routes

Endpoints for enquiries and orders.
Handles creation, the dashboard views, the activity timeline, and posting
updates, board moves, and enquiry conversion.
"""
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models.domain import ActorRole, Order, RecordType, Stage, UrgencyLevel
from ..services.order_store import OrderStore, SqlOrderStore
from ..services.pipeline import (
    ActivityLedger,
    OrderFactory,
    RiskSignalEngine,
    classify_urgency,
    stage_progress,
    visible_stages,
)
from ..services.pipeline.dashboard import (
    OrderFilter,
    attention_summary,
    filter_orders,
    group_by_stage,
    needs_attention,
    risk_count,
    stage_counts,
    urgency_counts,
)
from ..services.pipeline.stage_machine import short_label, stage_hint
from ..services.pipeline.temporal import relative_time_label, utcnow


router = APIRouter(prefix="/orders", tags=["orders"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_store(db: Session = Depends(get_db)) -> OrderStore:
    """Order store bound to the request's database session."""
    return SqlOrderStore(db)


def get_clock() -> datetime:
    """Reference instant for every derived value in a request."""
    return utcnow()


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateOrderRequest(BaseModel):
    """Request to create an enquiry or an order."""
    type: RecordType = Field(default=RecordType.ORDER, description="enquiry or order")
    customer_name: str = Field(..., description="Customer full name")
    salesperson_name: str = Field(..., description="Assigned salesperson")
    created_by: Optional[str] = Field(None, description="Name recorded on the creation entry")
    initial_stage: Optional[Stage] = Field(None, description="Starting stage for orders")

    vendor_name: Optional[str] = Field(None, description="Vendor / manufacturer")
    category: Optional[str] = Field(None, description="Jewellery category (Ring, Necklace, ...)")
    metal_type: Optional[str] = Field(None, description="Metal (Gold, Platinum, ...)")
    delivery_date: Optional[date] = Field(None, description="Promised delivery date")

    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    metal_purity: Optional[str] = None
    metal_weight: Optional[float] = None
    polish: Optional[str] = None
    stone_description: Optional[str] = None
    stone_quality: Optional[str] = None
    stone_cut: Optional[str] = None
    stone_carat_estimate: Optional[float] = None
    ring_size: Optional[str] = None
    chain_length: Optional[str] = None
    bangle_size: Optional[str] = None
    certification: Optional[str] = Field(None, description="IGI, GIA, BIS Hallmark, ...")
    cad_design_required: bool = Field(default=False, description="Show the CAD Design stage")
    total_estimate: Optional[float] = Field(None, description="Total estimate in rupees")
    advance_paid: Optional[float] = Field(None, description="Advance received in rupees")
    special_instructions: Optional[str] = None
    budget_range: Optional[str] = None
    occasion: Optional[str] = None
    timeline_notes: Optional[str] = None


class PostUpdateRequest(BaseModel):
    """Compose box submission: a note, a stage move, or both."""
    posted_by: str = Field(..., description="Display name of the poster")
    actor_role: Optional[ActorRole] = Field(None, description="sales, vendor, owner or customer")
    note: Optional[str] = Field(None, description="Free-text update")
    new_stage: Optional[Stage] = Field(None, description="Stage to move to")


class MoveRequest(BaseModel):
    """Drag-and-drop move on the board."""
    new_stage: Stage = Field(..., description="Column the card was dropped on")
    posted_by: Optional[str] = Field(None, description="Defaults to the dashboard user")


class ConvertEnquiryRequest(BaseModel):
    """Order details needed to turn an enquiry into an order."""
    vendor_name: Optional[str] = Field(None, description="Vendor / manufacturer")
    delivery_date: Optional[date] = Field(None, description="Promised delivery date")
    created_by: Optional[str] = Field(None, description="Name recorded on both records")
    category: Optional[str] = Field(None, description="Overrides the enquiry's category")
    metal_type: Optional[str] = Field(None, description="Overrides the enquiry's metal")
    metal_purity: Optional[str] = None
    metal_weight: Optional[float] = None
    stone_description: Optional[str] = None
    ring_size: Optional[str] = None
    chain_length: Optional[str] = None
    bangle_size: Optional[str] = None
    certification: Optional[str] = None
    cad_design_required: bool = Field(default=False, description="Show the CAD Design stage")
    total_estimate: Optional[float] = None
    advance_paid: Optional[float] = None
    special_instructions: Optional[str] = None


# =============================================================================
# HELPERS
# =============================================================================

def _validation_error(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"message": e.message, "errors": e.errors})


def _load(store: OrderStore, ref: str) -> Order:
    try:
        return store.load(ref)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=f"Order not found: {ref}")


def _save(store: OrderStore, order: Order) -> Order:
    try:
        return store.save(order)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


def _summary(order: Order, now: datetime, engine: RiskSignalEngine) -> dict:
    """Card payload: order fields plus derived risk and urgency."""
    data = order.to_dict(include_feed=False)
    data["risk"] = engine.assess(order, now).to_dict()
    data["urgency"] = classify_urgency(order.delivery_date, now).to_dict()
    data["last_updated_label"] = relative_time_label(order.last_updated_at, now)
    return data


# =============================================================================
# COLLECTION ENDPOINTS
# =============================================================================

@router.post("", status_code=201, response_model=dict)
async def create_order(
    request: CreateOrderRequest,
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """
    Create a new enquiry or order.

    The record starts with a single order_created entry.
    """
    factory = OrderFactory(store=store)
    fields = request.model_dump(exclude_none=True, exclude={"type", "initial_stage"})

    try:
        if request.type == RecordType.ENQUIRY:
            order = factory.create_enquiry(now=now, **fields)
        else:
            if request.initial_stage is not None:
                fields["initial_stage"] = request.initial_stage
            fields.setdefault("vendor_name", "")
            fields.setdefault("category", "")
            fields.setdefault("metal_type", "")
            fields.setdefault("delivery_date", None)
            order = factory.create_order(now=now, **fields)
    except ValidationError as e:
        raise _validation_error(e)

    _save(store, order)
    return _summary(order, now, RiskSignalEngine())


@router.get("", response_model=dict)
async def list_orders(
    type: Optional[RecordType] = Query(None, description="enquiry or order"),
    stage: Optional[Stage] = Query(None, description="Current stage"),
    urgency: Optional[UrgencyLevel] = Query(None, description="Urgency level"),
    at_risk: bool = Query(False, description="Only stale or stuck orders"),
    staff: Optional[str] = Query(None, description="Salesperson or vendor name"),
    q: Optional[str] = Query(None, description="Free-text search"),
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """List orders matching every given filter, newest first."""
    criteria = OrderFilter(
        record_type=type,
        stage=stage,
        urgency=urgency,
        at_risk=at_risk,
        staff=staff,
        search=q,
    )
    orders = sorted(store.list_orders(), key=lambda o: o.created_at, reverse=True)
    matched = filter_orders(orders, criteria, now)

    engine = RiskSignalEngine()
    return {
        "count": len(matched),
        "orders": [_summary(o, now, engine) for o in matched],
    }


@router.get("/summary", response_model=dict)
async def get_summary(
    limit: int = Query(5, ge=1, le=50, description="Size of the needs-attention list"),
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """Dashboard headline figures."""
    orders = store.list_orders()
    flagged = needs_attention(orders, now, limit=limit)

    return {
        "total": len(orders),
        "enquiries": sum(1 for o in orders if o.type == RecordType.ENQUIRY),
        "orders": sum(1 for o in orders if o.type == RecordType.ORDER),
        "stage_counts": {s.value: n for s, n in stage_counts(orders).items()},
        "urgency_counts": {u.value: n for u, n in urgency_counts(orders, now).items()},
        "at_risk": risk_count(orders, now),
        "attention": attention_summary(orders, now),
        "needs_attention": [
            {
                "id": order.id,
                "shareable_token": order.shareable_token,
                "customer_name": order.customer_name,
                "order_number": order.order_number,
                "current_stage": order.current_stage.value,
                "risk": assessment.to_dict(),
            }
            for order, assessment in flagged
        ],
    }


@router.get("/board", response_model=dict)
async def get_board(
    type: Optional[RecordType] = Query(None, description="enquiry or order"),
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """Orders grouped into one column per stage, in pipeline order."""
    orders = filter_orders(store.list_orders(), OrderFilter(record_type=type), now)
    engine = RiskSignalEngine()

    return {
        "columns": [
            {
                "stage": stage.value,
                "short_label": short_label(stage),
                "count": len(members),
                "orders": [_summary(o, now, engine) for o in members],
            }
            for stage, members in group_by_stage(orders).items()
        ]
    }


# =============================================================================
# SINGLE ORDER ENDPOINTS
# =============================================================================

@router.get("/{ref}", response_model=dict)
async def get_order(
    ref: str,
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """
    Order detail by shareable token or id.

    Includes the pipeline as shown for this order and the hint for its
    current stage.
    """
    order = _load(store, ref)
    data = _summary(order, now, RiskSignalEngine())
    data["visible_stages"] = [s.value for s in visible_stages(order.cad_design_required)]
    data["progress"] = stage_progress(order.current_stage, order.cad_design_required)
    data["hint"] = stage_hint(order.current_stage)
    return data


@router.get("/{ref}/timeline", response_model=dict)
async def get_timeline(
    ref: str,
    direction: str = Query("desc", pattern="^(asc|desc)$", description="asc or desc"),
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """Activity feed, newest first by default."""
    order = _load(store, ref)
    entries = ActivityLedger.entries_sorted(order, direction)

    timeline = []
    for entry in entries:
        item = entry.to_dict()
        item["relative_time"] = relative_time_label(entry.timestamp, now)
        timeline.append(item)

    return {
        "order_id": order.id,
        "direction": direction,
        "entries": timeline,
    }


@router.post("/{ref}/updates", status_code=201, response_model=dict)
async def post_update(
    ref: str,
    request: PostUpdateRequest,
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """
    Post a note and/or move the order to another stage.

    Exactly one ledger entry is recorded per call.
    """
    order = _load(store, ref)
    try:
        entry = ActivityLedger().post_update(
            order,
            posted_by=request.posted_by,
            actor_role=request.actor_role,
            note=request.note,
            new_stage=request.new_stage,
            now=now,
        )
    except ValidationError as e:
        raise _validation_error(e)

    _save(store, order)
    return {
        "entry": entry.to_dict(),
        "order": _summary(order, now, RiskSignalEngine()),
    }


@router.post("/{ref}/convert", status_code=201, response_model=dict)
async def convert_enquiry(
    ref: str,
    request: ConvertEnquiryRequest,
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """
    Convert an enquiry into a new order.

    The order is pre-filled from the enquiry and gets its own token and
    order number. The enquiry records a note pointing at the new order.
    """
    enquiry = _load(store, ref)
    fields = request.model_dump(exclude_none=True, exclude={"vendor_name", "delivery_date", "created_by"})

    try:
        order = OrderFactory(store=store).create_order_from_enquiry(
            enquiry,
            vendor_name=request.vendor_name or "",
            delivery_date=request.delivery_date,
            now=now,
            created_by=request.created_by,
            **fields,
        )
    except ValidationError as e:
        raise _validation_error(e)

    _save(store, order)
    ActivityLedger().post_note(
        enquiry,
        posted_by=request.created_by or enquiry.salesperson_name,
        actor_role=ActorRole.SALES,
        note=f"Converted to order {order.order_number}",
        now=now,
    )
    _save(store, enquiry)

    return {
        "enquiry_id": enquiry.id,
        "order": _summary(order, now, RiskSignalEngine()),
    }


@router.post("/{ref}/move", response_model=dict)
async def move_order(
    ref: str,
    request: MoveRequest,
    store: OrderStore = Depends(get_store),
    now: datetime = Depends(get_clock),
):
    """Board drop. Dropping on the current column records nothing."""
    order = _load(store, ref)
    ledger = ActivityLedger()
    try:
        if request.posted_by:
            entry = ledger.move_on_board(order, request.new_stage, now, posted_by=request.posted_by)
        else:
            entry = ledger.move_on_board(order, request.new_stage, now)
    except ValidationError as e:
        raise _validation_error(e)

    if entry is not None:
        _save(store, order)
    return {
        "moved": entry is not None,
        "entry": entry.to_dict() if entry else None,
        "order": _summary(order, now, RiskSignalEngine()),
    }
