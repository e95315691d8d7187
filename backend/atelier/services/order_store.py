"""
Order Store

Storage collaborator for the Order aggregate.

Contract:
- load(token_or_id) -> Order, or NotFoundError
- save(order) -> Order, or ConflictError when the order was loaded at a
  version that is no longer current

Stores are explicit objects handed to their consumers. There is no
module-level order list.
"""
import copy
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, NotFoundError
from ..models.db_models import ActivityEntryDB, OrderDB
from ..models.domain import (
    ActivityEntry,
    CreationEntry,
    EntryType,
    FileAttachment,
    FileEntry,
    NoteEntry,
    Order,
    StageChangeEntry,
)


logger = logging.getLogger(__name__)


class OrderStore(ABC):
    """Interface shared by the concrete stores."""

    @abstractmethod
    def load(self, ref: str) -> Order:
        raise NotImplementedError

    @abstractmethod
    def save(self, order: Order) -> Order:
        raise NotImplementedError

    @abstractmethod
    def list_orders(self) -> List[Order]:
        raise NotImplementedError

    @abstractmethod
    def token_exists(self, token: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def order_number_exists(self, order_number: str) -> bool:
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryOrderStore(OrderStore):
    """
    Process-local store.

    Returns copies, so two callers editing the same order independently
    are detected on the second save.
    """

    def __init__(self, orders: Optional[List[Order]] = None):
        self._orders: Dict[str, Order] = {}
        self._tokens: Dict[str, str] = {}
        for order in orders or []:
            self.save(order)

    def load(self, ref: str) -> Order:
        order_id = self._tokens.get(ref, ref)
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError(ref)
        return copy.deepcopy(order)

    def save(self, order: Order) -> Order:
        stored = self._orders.get(order.id)
        if stored is not None and stored.version != order.version:
            logger.warning(f"Conflict saving order {order.id}: v{order.version} vs stored v{stored.version}")
            raise ConflictError(order.id, order.version, stored.version)

        order.version += 1
        self._orders[order.id] = copy.deepcopy(order)
        self._tokens[order.shareable_token] = order.id
        logger.debug(f"Saved order {order.id} at version {order.version}")
        return order

    def list_orders(self) -> List[Order]:
        return [copy.deepcopy(o) for o in self._orders.values()]

    def token_exists(self, token: str) -> bool:
        return token in self._tokens

    def order_number_exists(self, order_number: str) -> bool:
        return any(o.order_number == order_number for o in self._orders.values())

    def clear(self) -> None:
        """Drop every order (test teardown)."""
        self._orders.clear()
        self._tokens.clear()


# =============================================================================
# SQL STORE
# =============================================================================

# Order attributes kept in the JSON details column
DETAIL_COLUMNS = [
    "customer_phone", "customer_email", "customer_address",
    "metal_purity", "metal_weight", "polish",
    "stone_description", "stone_quality", "stone_cut", "stone_carat_estimate",
    "ring_size", "chain_length", "bangle_size",
    "special_instructions", "budget_range", "occasion", "timeline_notes",
]

# Order attributes with their own column
SCALAR_COLUMNS = [
    "type", "shareable_token", "order_number",
    "customer_name", "salesperson_name", "vendor_name",
    "category", "metal_type", "certification", "cad_design_required",
    "total_estimate", "advance_paid", "delivery_date", "current_stage",
]


def _to_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


def _from_db(value: datetime) -> datetime:
    # SQLite drops tzinfo; values are always written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlOrderStore(OrderStore):
    """SQLAlchemy-backed store. One instance per database session."""

    def __init__(self, db: Session):
        self.db = db

    def load(self, ref: str) -> Order:
        row = self.db.query(OrderDB).filter(
            or_(OrderDB.id == ref, OrderDB.shareable_token == ref)
        ).first()
        if row is None:
            raise NotFoundError(ref)
        return self._to_domain(row)

    def save(self, order: Order) -> Order:
        row = self.db.get(OrderDB, order.id)
        if row is None:
            row = OrderDB(id=order.id, created_at=_to_utc(order.created_at), version=0)
            self.db.add(row)
        elif row.version != order.version:
            logger.warning(f"Conflict saving order {order.id}: v{order.version} vs stored v{row.version}")
            raise ConflictError(order.id, order.version, row.version)

        for name in SCALAR_COLUMNS:
            setattr(row, name, getattr(order, name))
        row.details = {name: getattr(order, name) for name in DETAIL_COLUMNS}
        row.last_updated_at = _to_utc(order.last_updated_at)
        row.version = order.version + 1

        # Feed is append-only: only entries not yet persisted are inserted
        persisted = {e.id for e in row.entries}
        for sequence, entry in enumerate(order.activity_feed):
            if entry.id not in persisted:
                row.entries.append(self._entry_row(entry, sequence))

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving order {order.id}: {e}")
            raise
        order.version = row.version
        logger.info(f"Saved order {order.id} at version {order.version}")
        return order

    def list_orders(self) -> List[Order]:
        rows = self.db.query(OrderDB).order_by(OrderDB.created_at).all()
        return [self._to_domain(r) for r in rows]

    def token_exists(self, token: str) -> bool:
        return self.db.query(OrderDB.id).filter(OrderDB.shareable_token == token).first() is not None

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.query(OrderDB.id).filter(OrderDB.order_number == order_number).first() is not None

    # =========================================================================
    # MAPPING
    # =========================================================================

    @staticmethod
    def _entry_row(entry: ActivityEntry, sequence: int) -> ActivityEntryDB:
        row = ActivityEntryDB(
            id=entry.id,
            order_id=entry.order_id,
            sequence=sequence,
            entry_type=entry.entry_type,
            posted_by=entry.posted_by,
            actor_role=entry.actor_role,
            timestamp=_to_utc(entry.timestamp),
            note=getattr(entry, "note", None),
        )
        if isinstance(entry, StageChangeEntry):
            row.new_stage = entry.new_stage
            row.previous_stage = entry.previous_stage
        elif isinstance(entry, FileEntry):
            row.file_url = entry.file.url
            row.file_name = entry.file.filename
            row.file_type = entry.file.file_type
        return row

    @staticmethod
    def _entry_from_row(row: ActivityEntryDB) -> ActivityEntry:
        common = dict(
            id=row.id,
            order_id=row.order_id,
            posted_by=row.posted_by,
            actor_role=row.actor_role,
            timestamp=_from_db(row.timestamp),
        )
        if row.entry_type == EntryType.STAGE_CHANGE:
            return StageChangeEntry(
                new_stage=row.new_stage, previous_stage=row.previous_stage, note=row.note, **common
            )
        if row.entry_type == EntryType.NOTE:
            return NoteEntry(note=row.note, **common)
        if row.entry_type == EntryType.FILE_UPLOAD:
            attachment = FileAttachment(url=row.file_url, filename=row.file_name, file_type=row.file_type)
            return FileEntry(file=attachment, note=row.note, **common)
        return CreationEntry(**common)

    def _to_domain(self, row: OrderDB) -> Order:
        fields = {name: getattr(row, name) for name in SCALAR_COLUMNS}
        fields.update({name: (row.details or {}).get(name) for name in DETAIL_COLUMNS})
        return Order(
            id=row.id,
            created_at=_from_db(row.created_at),
            last_updated_at=_from_db(row.last_updated_at),
            activity_feed=[self._entry_from_row(e) for e in row.entries],
            version=row.version,
            **fields,
        )
