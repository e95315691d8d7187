"""Atelier Tracker - Data Models"""
from .domain import (
    # Enums
    Stage, STAGES, RecordType, ActorRole, EntryType, FileType, UrgencyLevel, RiskSignal,
    # Ledger entries
    FileAttachment, ActivityEntry, CreationEntry, StageChangeEntry, NoteEntry, FileEntry,
    # Aggregate
    Order,
)

__all__ = [
    "Stage", "STAGES", "RecordType", "ActorRole", "EntryType", "FileType", "UrgencyLevel", "RiskSignal",
    "FileAttachment", "ActivityEntry", "CreationEntry", "StageChangeEntry", "NoteEntry", "FileEntry",
    "Order",
]
