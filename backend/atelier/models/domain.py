"""
Atelier Tracker - Domain Contracts

The Order aggregate, its fixed Stage enumeration, and the ActivityEntry
ledger types.

Ledger entries are immutable once created. The Order is the only owner of
its activity feed; the feed is appended to by the ledger operations and
never edited or truncated.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class Stage(str, Enum):
    """Pipeline positions, declared in pipeline order."""
    ENQUIRY = "Enquiry"
    ESTIMATION = "Estimation"
    CAD_DESIGN = "CAD Design"
    ORDER_CONFIRMED = "Order Confirmed"
    BUILDING = "Building"
    CERTIFICATION = "Certification"
    SHIPPED_TO_STORE = "Shipped to Store"
    CUSTOMER_PICKUP = "Customer Pickup"


# Total order of the pipeline (index == position)
STAGES: List[Stage] = list(Stage)


class RecordType(str, Enum):
    """Pre-sale enquiry or confirmed order."""
    ENQUIRY = "enquiry"
    ORDER = "order"


class ActorRole(str, Enum):
    """The party posting an update."""
    SALES = "sales"
    VENDOR = "vendor"
    OWNER = "owner"
    CUSTOMER = "customer"


ACTOR_ROLE_LABELS: Dict[ActorRole, str] = {
    ActorRole.SALES: "Sales",
    ActorRole.VENDOR: "Vendor",
    ActorRole.OWNER: "Owner",
    ActorRole.CUSTOMER: "Customer",
}


class EntryType(str, Enum):
    """Ledger entry kinds."""
    ORDER_CREATED = "order_created"
    STAGE_CHANGE = "stage_change"
    NOTE = "note"
    FILE_UPLOAD = "file_upload"


class FileType(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    OTHER = "other"


class UrgencyLevel(str, Enum):
    """Delivery-date pressure."""
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    ON_TRACK = "on-track"
    NONE = "none"


class RiskSignal(str, Enum):
    """Attention flag derived from the ledger."""
    NONE = "none"
    STALE = "stale"
    STUCK = "stuck"


# =============================================================================
# ACTIVITY LEDGER ENTRIES
# =============================================================================

@dataclass(frozen=True)
class FileAttachment:
    """Metadata for an uploaded file. Storage of the bytes is external."""
    url: str
    filename: str
    file_type: FileType = FileType.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "filename": self.filename,
            "file_type": self.file_type.value,
        }


@dataclass(frozen=True, kw_only=True)
class ActivityEntry:
    """
    Single immutable fact in an order's ledger.

    `timestamp` is authoritative for ordering; position in the feed breaks
    ties. `actor_role` is genuinely optional: an absent role is never
    replaced with a default here.
    """
    entry_type: ClassVar[EntryType]

    id: str
    order_id: str
    posted_by: str
    timestamp: datetime
    actor_role: Optional[ActorRole] = None

    def __post_init__(self):
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "type": self.entry_type.value,
            "posted_by": self.posted_by,
            "actor_role": self.actor_role.value if self.actor_role else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, kw_only=True)
class CreationEntry(ActivityEntry):
    """System event seeded when the order is created. Always first."""
    entry_type: ClassVar[EntryType] = EntryType.ORDER_CREATED


@dataclass(frozen=True, kw_only=True)
class StageChangeEntry(ActivityEntry):
    """Move from `previous_stage` to `new_stage`, optionally with a comment."""
    entry_type: ClassVar[EntryType] = EntryType.STAGE_CHANGE

    new_stage: Stage
    previous_stage: Optional[Stage] = None
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "new_stage": self.new_stage.value,
            "previous_stage": self.previous_stage.value if self.previous_stage else None,
            "note": self.note,
        })
        return data


@dataclass(frozen=True, kw_only=True)
class NoteEntry(ActivityEntry):
    """Free-text update."""
    entry_type: ClassVar[EntryType] = EntryType.NOTE

    note: str

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["note"] = self.note
        return data


@dataclass(frozen=True, kw_only=True)
class FileEntry(ActivityEntry):
    """File or photo attached by an external upload collaborator."""
    entry_type: ClassVar[EntryType] = EntryType.FILE_UPLOAD

    file: FileAttachment
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"file": self.file.to_dict(), "note": self.note})
        return data


ENTRY_CLASSES: Dict[EntryType, type] = {
    EntryType.ORDER_CREATED: CreationEntry,
    EntryType.STAGE_CHANGE: StageChangeEntry,
    EntryType.NOTE: NoteEntry,
    EntryType.FILE_UPLOAD: FileEntry,
}


# =============================================================================
# ORDER AGGREGATE
# =============================================================================

@dataclass
class Order:
    """
    Enquiry or order record; the aggregate root.

    Invariants kept by the ledger operations:
    - current_stage equals the new_stage of the latest stage_change entry,
      or the creation stage when none exists
    - last_updated_at equals the latest entry timestamp
    """
    id: str
    type: RecordType
    shareable_token: str
    customer_name: str
    salesperson_name: str
    current_stage: Stage
    created_at: datetime
    last_updated_at: datetime
    activity_feed: List[ActivityEntry] = field(default_factory=list)

    order_number: Optional[str] = None
    vendor_name: Optional[str] = None

    # Customer contact
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None

    # Product
    category: Optional[str] = None
    metal_type: Optional[str] = None
    metal_purity: Optional[str] = None
    metal_weight: Optional[float] = None
    polish: Optional[str] = None

    # Stones
    stone_description: Optional[str] = None
    stone_quality: Optional[str] = None
    stone_cut: Optional[str] = None
    stone_carat_estimate: Optional[float] = None

    # Sizing
    ring_size: Optional[str] = None
    chain_length: Optional[str] = None
    bangle_size: Optional[str] = None

    # Commercial
    certification: str = "None"
    cad_design_required: bool = False
    total_estimate: Optional[float] = None
    advance_paid: Optional[float] = None
    delivery_date: Optional[date] = None

    # Extra
    special_instructions: Optional[str] = None
    budget_range: Optional[str] = None
    occasion: Optional[str] = None
    timeline_notes: Optional[str] = None

    # Storage concurrency counter, owned by the store
    version: int = 0

    # Fields copied verbatim into the serialised form
    DETAIL_FIELDS: ClassVar[List[str]] = [
        "order_number", "vendor_name",
        "customer_phone", "customer_email", "customer_address",
        "category", "metal_type", "metal_purity", "metal_weight", "polish",
        "stone_description", "stone_quality", "stone_cut", "stone_carat_estimate",
        "ring_size", "chain_length", "bangle_size",
        "certification", "cad_design_required", "total_estimate", "advance_paid",
        "special_instructions", "budget_range", "occasion", "timeline_notes",
    ]

    @property
    def balance_due(self) -> Optional[float]:
        """Outstanding amount, when both figures are known."""
        if self.total_estimate is None:
            return None
        return self.total_estimate - (self.advance_paid or 0)

    def to_dict(self, include_feed: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            "id": self.id,
            "type": self.type.value,
            "shareable_token": self.shareable_token,
            "customer_name": self.customer_name,
            "salesperson_name": self.salesperson_name,
            "current_stage": self.current_stage.value,
            "created_at": self.created_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
            "delivery_date": self.delivery_date.isoformat() if self.delivery_date else None,
            "balance_due": self.balance_due,
            "version": self.version,
        }
        for name in self.DETAIL_FIELDS:
            data[name] = getattr(self, name)
        if include_feed:
            data["activity_feed"] = [e.to_dict() for e in self.activity_feed]
        return data
