"""
Atelier Tracker - SQLAlchemy ORM Models
Persistent storage for orders and their activity ledger
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean, Date
from sqlalchemy.orm import relationship

from ..database import Base
from .domain import ActorRole, EntryType, FileType, RecordType, Stage


class OrderDB(Base):
    """Persisted enquiry or order."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)  # UUID
    type = Column(SQLEnum(RecordType), nullable=False, index=True)
    shareable_token = Column(String(255), unique=True, nullable=False, index=True)
    order_number = Column(String(32), unique=True, nullable=True)

    customer_name = Column(String(255), nullable=False)
    salesperson_name = Column(String(255), nullable=False)
    vendor_name = Column(String(255), nullable=True)

    category = Column(String(50), nullable=True)
    metal_type = Column(String(50), nullable=True)
    certification = Column(String(50), default="None")
    cad_design_required = Column(Boolean, default=False)
    total_estimate = Column(Float, nullable=True)
    advance_paid = Column(Float, nullable=True)
    delivery_date = Column(Date, nullable=True)

    # Remaining informational attributes (contact, stones, sizing, notes)
    details = Column(JSON, nullable=True, default=dict)

    # Pipeline
    current_stage = Column(SQLEnum(Stage), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), nullable=False)

    # Optimistic concurrency counter
    version = Column(Integer, nullable=False, default=0)

    # Relationships
    entries = relationship(
        "ActivityEntryDB",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ActivityEntryDB.sequence",
    )


class ActivityEntryDB(Base):
    """
    Ledger entry for an order.

    Append-only. Immutable after insert.
    `sequence` is the insertion position and breaks timestamp ties.
    """
    __tablename__ = "activity_entries"

    id = Column(String(36), primary_key=True)  # UUID
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    entry_type = Column(SQLEnum(EntryType), nullable=False)
    posted_by = Column(String(255), nullable=False)
    actor_role = Column(SQLEnum(ActorRole), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    note = Column(Text, nullable=True)
    new_stage = Column(SQLEnum(Stage), nullable=True)
    previous_stage = Column(SQLEnum(Stage), nullable=True)

    # File metadata only; bytes live with the upload collaborator
    file_url = Column(String(1000), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_type = Column(SQLEnum(FileType), nullable=True)

    # Relationships
    order = relationship("OrderDB", back_populates="entries")
