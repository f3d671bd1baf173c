"""Classroom seat assignment with fixed seats, pairing rules and layout history."""

from .engine import AssignmentResult, assign_seats, build_confirmed_record
from .fixed_seats import FixedSeatRegistry
from .history import LayoutHistory
from .models import ConfirmedLayoutRecord, HistoryEntry, Layout, Seat, Slot, Student, parse_roster
from .pairing import Topology, build_layout
from .session import SeatingSession

__all__ = [
    "AssignmentResult",
    "ConfirmedLayoutRecord",
    "FixedSeatRegistry",
    "HistoryEntry",
    "Layout",
    "LayoutHistory",
    "Seat",
    "SeatingSession",
    "Slot",
    "Student",
    "Topology",
    "assign_seats",
    "build_confirmed_record",
    "build_layout",
    "parse_roster",
]
