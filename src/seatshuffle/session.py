from __future__ import annotations

import logging
import random
from dataclasses import asdict
from typing import Dict, List, Optional, Set

from .constraints import HistoricalConstraints, extract_constraints
from .engine import (
    STATUS_FAILED,
    AssignmentResult,
    RandomSource,
    assign_seats,
    build_confirmed_record,
    swap_assignments,
)
from .fixed_seats import FixedSeatRegistry
from .history import MAX_HISTORY_SIZE, HistoryOutcome, LayoutHistory
from .models import (
    HISTORY_LAYOUT,
    HISTORY_OPTIONS,
    HISTORY_STUDENT_INPUT,
    ConfirmedLayoutRecord,
    HistoryEntry,
    Layout,
    Seat,
    Student,
    parse_gender,
    seat_to_dict,
    validate_name,
)
from .pairing import Topology, build_layout
from .storage import ConfirmedLayoutStore

logger = logging.getLogger(__name__)


class SeatingSession:
    """State for one class: roster, topology, fixed seats, mapping and history.

    Every mutating call pushes exactly one full-state snapshot onto the
    history, so undo and redo restore the whole session.
    """

    def __init__(
        self,
        class_id: str,
        store: Optional[ConfirmedLayoutStore] = None,
        rng: RandomSource = None,
        history_capacity: int = MAX_HISTORY_SIZE,
    ) -> None:
        self.class_id = class_id
        self.store = store
        self.rng = rng if isinstance(rng, random.Random) else random.Random(rng)
        self.fixed_seats = FixedSeatRegistry()
        self.history = LayoutHistory(capacity=history_capacity)
        self.students: List[Student] = []
        self.topology = Topology()
        self.layout: Layout = build_layout(self.topology, [])
        self.assignments: Dict[int, Student] = {}
        self.last_result: Optional[AssignmentResult] = None

    # Roster

    def set_roster(self, students: List[Student]) -> None:
        self.students = list(students)
        self.fixed_seats.clear()
        for seat_id in {s.fixed_seat_id for s in self.students if s.fixed_seat_id is not None}:
            self.fixed_seats.add(seat_id)
        self._rebuild_layout()
        self._record(HISTORY_STUDENT_INPUT)

    def add_student(self, name: str, gender: str) -> Student:
        name = validate_name(name)
        if self._find_student(name) is not None:
            raise ValueError(f"Duplicate student name: {name}.")
        next_id = max((s.id for s in self.students), default=0) + 1
        student = Student(id=next_id, name=name, gender=parse_gender(gender))
        self.students.append(student)
        self._rebuild_layout()
        self._record(HISTORY_STUDENT_INPUT)
        return student

    def remove_student(self, name: str) -> None:
        student = self._require_student(name)
        self.students = [s for s in self.students if s.id != student.id]
        self._rebuild_layout()
        self._record(HISTORY_STUDENT_INPUT)

    def pin_student(self, name: str, seat_id: int) -> None:
        student = self._require_student(name)
        self._require_seat(seat_id)
        for other in self.students:
            if other.fixed_seat_id == seat_id and other.id != student.id:
                other.fixed_seat_id = None
        student.fixed_seat_id = seat_id
        self.fixed_seats.add(seat_id)
        self._record(HISTORY_STUDENT_INPUT)

    def unpin_student(self, name: str) -> None:
        student = self._require_student(name)
        student.fixed_seat_id = None
        self._record(HISTORY_STUDENT_INPUT)

    # Options

    def configure(self, topology: Topology) -> None:
        self.topology = topology
        self._rebuild_layout()
        self._record(HISTORY_OPTIONS)

    def toggle_fixed_seat(self, seat_id: int) -> bool:
        self._require_seat(seat_id)
        pinned = self.fixed_seats.toggle(seat_id)
        if not pinned:
            for student in self.students:
                if student.fixed_seat_id == seat_id:
                    student.fixed_seat_id = None
        self._record(HISTORY_OPTIONS)
        return pinned

    # Layout

    def shuffle(self, avoid_prev_seat: bool = False, avoid_prev_partner: bool = False) -> AssignmentResult:
        constraints = HistoricalConstraints()
        if self.store is not None and (avoid_prev_seat or avoid_prev_partner):
            constraints = extract_constraints(
                self.store.list(self.class_id), avoid_prev_seat, avoid_prev_partner
            )
        result = assign_seats(self.students, self.layout, self.fixed_seats, constraints, self.rng)
        self.last_result = result
        if result.status != STATUS_FAILED:
            self.assignments = dict(result.assignments)
            self._record(HISTORY_LAYOUT)
        return result

    def swap(self, seat_a: int, seat_b: int) -> None:
        self._require_seat(seat_a)
        self._require_seat(seat_b)
        if seat_a == seat_b:
            raise ValueError("Pick two different seats to swap.")
        self.assignments = swap_assignments(
            self.assignments, seat_a, seat_b, fixed_seats=self._pinned_seats()
        )
        self._record(HISTORY_LAYOUT)

    def seats(self) -> List[Seat]:
        seats: List[Seat] = []
        for seat in self.layout.seats:
            student = self.assignments.get(seat.id)
            seats.append(
                Seat(
                    id=seat.id,
                    position=dict(seat.position) if seat.position else None,
                    is_fixed=self.fixed_seats.contains(seat.id),
                    is_active=seat.is_active,
                    student_id=student.id if student else None,
                    student_name=student.name if student else None,
                )
            )
        return seats

    # History

    def undo(self) -> HistoryOutcome:
        outcome = self.history.undo()
        if outcome.ok and outcome.entry is not None:
            self._restore(outcome.entry.payload)
        return outcome

    def redo(self) -> HistoryOutcome:
        outcome = self.history.redo()
        if outcome.ok and outcome.entry is not None:
            self._restore(outcome.entry.payload)
        return outcome

    def confirm(self) -> ConfirmedLayoutRecord:
        if self.store is None:
            raise ValueError("No confirmed-layout store is configured.")
        if not self.assignments:
            raise ValueError("There is no seating arrangement to confirm.")
        record = build_confirmed_record(
            self.assignments, self.layout, self.topology, class_id=self.class_id
        )
        self.store.append(self.class_id, record)
        logger.info("Confirmed layout %s for class %s", record.id, self.class_id)
        return record

    def confirmed_history(self) -> List[ConfirmedLayoutRecord]:
        if self.store is None:
            return []
        return self.store.list(self.class_id)

    def delete_confirmed(self, record_id: str) -> bool:
        if self.store is None:
            return False
        return self.store.delete(self.class_id, record_id)

    # Snapshots

    def snapshot(self) -> Dict[str, object]:
        return {
            "students": [asdict(student) for student in self.students],
            "topology": asdict(self.topology),
            "fixedSeats": sorted(self.fixed_seats.all()),
            "assignments": {seat_id: student.id for seat_id, student in self.assignments.items()},
        }

    def state(self) -> Dict[str, object]:
        return {
            "classId": self.class_id,
            "topology": self.topology.to_dict(),
            "students": [asdict(student) for student in self.students],
            "seats": [seat_to_dict(seat) for seat in self.seats()],
            "fixedSeats": sorted(self.fixed_seats.all()),
            "history": self.history.stats(),
            "lastResult": self.last_result.to_dict() if self.last_result else None,
        }

    def _record(self, entry_type: str) -> None:
        self.history.push(HistoryEntry(type=entry_type, payload=self.snapshot()))

    def _restore(self, payload: object) -> None:
        if not isinstance(payload, dict):
            raise ValueError("History snapshot must be an object.")
        self.students = [Student(**data) for data in payload["students"]]
        self.topology = Topology(**payload["topology"])
        self.layout = build_layout(self.topology, [s.gender for s in self.students])
        self.fixed_seats.clear()
        for seat_id in payload["fixedSeats"]:
            self.fixed_seats.add(seat_id)
        by_id = {student.id: student for student in self.students}
        self.assignments = {
            int(seat_id): by_id[student_id]
            for seat_id, student_id in payload["assignments"].items()
            if student_id in by_id
        }

    def _rebuild_layout(self) -> None:
        self.layout = build_layout(self.topology, [s.gender for s in self.students])
        seat_ids = {seat.id for seat in self.layout.seats}
        for seat_id in self.fixed_seats.all() - seat_ids:
            self.fixed_seats.remove(seat_id)
        self.assignments = {}

    def _pinned_seats(self) -> Set[int]:
        pinned = self.fixed_seats.all()
        pinned.update(s.fixed_seat_id for s in self.students if s.fixed_seat_id is not None)
        return pinned

    def _find_student(self, name: str) -> Optional[Student]:
        for student in self.students:
            if student.name == name:
                return student
        return None

    def _require_student(self, name: str) -> Student:
        student = self._find_student(name)
        if student is None:
            raise KeyError(f"Student '{name}' not found.")
        return student

    def _require_seat(self, seat_id: int) -> Seat:
        try:
            return self.layout.seat(seat_id)
        except KeyError as exc:
            raise ValueError(f"Seat {seat_id} is not part of the layout.") from exc
