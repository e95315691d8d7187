"""
Activity Ledger

Append-only history for one order.

Core Principles:
1. The ledger records what happened. It never edits history.
2. Every mutating call appends at most one entry.
3. Ordering is by timestamp; insertion order breaks ties.
4. Validation happens before anything is appended.
"""
import logging
from datetime import datetime
from typing import List, Optional, Union
from uuid import uuid4

from ...exceptions import ValidationError
from ...models.domain import (
    ActivityEntry,
    ActorRole,
    CreationEntry,
    EntryType,
    NoteEntry,
    Order,
    Stage,
    StageChangeEntry,
)
from .stage_machine import StageStateMachine
from .temporal import to_datetime


logger = logging.getLogger(__name__)

BOARD_USER = "Dashboard User"


class ActivityLedger:
    """
    Write and read operations over an order's activity feed.

    Write paths:
    - post_note: plain note
    - post_update: compose box (note and/or stage move, one entry)
    - move_on_board: drag-and-drop stage move
    """

    def __init__(self, state_machine: Optional[StageStateMachine] = None):
        self.state_machine = state_machine or StageStateMachine()

    # =========================================================================
    # CREATION
    # =========================================================================

    @staticmethod
    def creation_entry(order_id: str, posted_by: str, timestamp: datetime) -> CreationEntry:
        """Build the order_created entry that seeds every new feed."""
        return CreationEntry(
            id=str(uuid4()),
            order_id=order_id,
            posted_by=posted_by,
            timestamp=to_datetime(timestamp),
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    def post_note(
        self,
        order: Order,
        posted_by: str,
        actor_role: Optional[ActorRole],
        note: str,
        now: datetime,
    ) -> NoteEntry:
        """
        Append a note entry.

        Raises ValidationError when the name or the trimmed note is empty.
        """
        posted_by = (posted_by or "").strip()
        note = (note or "").strip()

        errors = {}
        if not posted_by:
            errors["posted_by"] = "Name is required"
        if not note:
            errors["note"] = "Note cannot be empty"
        if errors:
            logger.warning(f"Rejected note on order {order.id}: {sorted(errors)}")
            raise ValidationError("Note could not be posted", errors)

        return self._append_note(order, posted_by, actor_role, note, now)

    def post_update(
        self,
        order: Order,
        posted_by: str,
        actor_role: Optional[ActorRole],
        note: Optional[str],
        new_stage: Optional[Stage],
        now: datetime,
    ) -> ActivityEntry:
        """
        Unified compose entrypoint.

        - Stage differs from current: one stage_change entry carrying the note
        - Otherwise, non-empty note: one note entry
        - Otherwise: rejected, nothing recorded
        """
        posted_by = (posted_by or "").strip()
        note = (note or "").strip()
        moving = new_stage is not None and Stage(new_stage) != order.current_stage

        errors = {}
        if not posted_by:
            errors["posted_by"] = "Name is required"
        if not moving and not note:
            errors["note"] = "Write a note or choose a different stage"
        if errors:
            logger.warning(f"Rejected update on order {order.id}: {sorted(errors)}")
            raise ValidationError("Nothing to post", errors)

        if moving:
            return self.state_machine.apply_transition(
                order,
                new_stage,
                posted_by=posted_by,
                now=now,
                actor_role=actor_role,
                note=note or None,
            )

        return self._append_note(order, posted_by, actor_role, note, now)

    def move_on_board(
        self,
        order: Order,
        new_stage: Stage,
        now: datetime,
        posted_by: str = BOARD_USER,
        actor_role: Optional[ActorRole] = ActorRole.SALES,
    ) -> Optional[StageChangeEntry]:
        """
        Drag-and-drop move. Dropping on the current column is a silent no-op.
        """
        new_stage = Stage(new_stage)
        if new_stage == order.current_stage:
            logger.debug(f"Board drop on current column for order {order.id}; ignored")
            return None

        note = f"Moved from {order.current_stage.value} to {new_stage.value} via kanban board"
        return self.post_update(order, posted_by, actor_role, note, new_stage, now)

    def _append_note(
        self,
        order: Order,
        posted_by: str,
        actor_role: Optional[ActorRole],
        note: str,
        now: datetime,
    ) -> NoteEntry:
        # A skewed clock never stamps an entry before the latest one
        timestamp = max(to_datetime(now), order.last_updated_at)
        entry = NoteEntry(
            id=str(uuid4()),
            order_id=order.id,
            posted_by=posted_by,
            actor_role=actor_role,
            timestamp=timestamp,
            note=note,
        )
        order.activity_feed.append(entry)
        order.last_updated_at = timestamp
        logger.info(f"Note posted on order {order.id} by {posted_by}")
        return entry

    # =========================================================================
    # READS
    # =========================================================================

    @staticmethod
    def entries_sorted(order: Order, direction: str = "asc") -> List[ActivityEntry]:
        """
        Entries ordered by timestamp.

        Equal timestamps keep insertion order ("asc") or reversed insertion
        order ("desc"), so the newest-first view is the exact mirror.
        """
        if direction not in ("asc", "desc"):
            raise ValueError(f"direction must be 'asc' or 'desc', got {direction!r}")
        ordered = [
            entry for _, entry in sorted(
                enumerate(order.activity_feed),
                key=lambda pair: (pair[1].timestamp, pair[0]),
            )
        ]
        if direction == "desc":
            ordered.reverse()
        return ordered

    @classmethod
    def latest_entry(cls, order: Order) -> Optional[ActivityEntry]:
        """Chronologically latest entry; the last inserted wins a tie."""
        if not order.activity_feed:
            return None
        return cls.entries_sorted(order)[-1]

    @classmethod
    def entries_of_type(
        cls,
        order: Order,
        entry_type: Union[EntryType, str],
    ) -> List[ActivityEntry]:
        """Entries of one kind, oldest first."""
        entry_type = EntryType(entry_type)
        return [e for e in cls.entries_sorted(order) if e.entry_type == entry_type]

    @classmethod
    def latest_entry_into_stage(cls, order: Order, stage: Stage) -> Optional[StageChangeEntry]:
        """Most recent stage_change whose new_stage is `stage`."""
        matches = [
            e for e in cls.entries_of_type(order, EntryType.STAGE_CHANGE)
            if e.new_stage == Stage(stage)
        ]
        return matches[-1] if matches else None
