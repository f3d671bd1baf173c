from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .constraints import HistoricalConstraints
from .fixed_seats import FixedSeatRegistry
from .models import (
    ANY,
    FEMALE,
    MALE,
    ConfirmedLayoutRecord,
    Layout,
    LayoutItem,
    PairInfo,
    Seat,
    Slot,
    Student,
)
from .pairing import GROUP, Topology

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"

EMPTY_ROSTER = "EMPTY_ROSTER"
NO_SEATS = "NO_SEATS"
MORE_STUDENTS_THAN_SEATS = "MORE_STUDENTS_THAN_SEATS"
UNFILLED_FIXED_SEATS = "UNFILLED_FIXED_SEATS"
FIXED_SEAT_MISSING = "FIXED_SEAT_MISSING"
FIXED_SEAT_CONFLICT = "FIXED_SEAT_CONFLICT"

REASON_MESSAGES = {
    EMPTY_ROSTER: "There are no students to seat.",
    NO_SEATS: "The layout has no seats.",
    MORE_STUDENTS_THAN_SEATS: "There are more students than seats; some students were not seated.",
    UNFILLED_FIXED_SEATS: "Some fixed seats have no student assigned to them.",
    FIXED_SEAT_MISSING: "Some students are pinned to a seat that is not in the layout.",
    FIXED_SEAT_CONFLICT: "Several students are pinned to the same seat.",
}

RandomSource = Union[random.Random, int, None]


@dataclass
class AssignmentResult:
    assignments: Dict[int, Student]
    seats: List[Seat]
    unassigned_seats: List[int]
    unassigned_students: List[Student]
    status: str
    reasons: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    realized_seats: Dict[str, int] = field(default_factory=dict)
    realized_partners: Dict[str, str] = field(default_factory=dict)
    violations: int = 0

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def messages(self) -> List[str]:
        return [REASON_MESSAGES[reason] for reason in self.reasons] + list(self.notes)

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "assignments": {
                str(seat_id): student.name for seat_id, student in sorted(self.assignments.items())
            },
            "unassignedSeats": list(self.unassigned_seats),
            "unassignedStudents": [student.name for student in self.unassigned_students],
            "reasons": list(self.reasons),
            "messages": self.messages,
            "violations": self.violations,
        }


class _Pool:
    """Students still waiting for a seat, in shuffle order.

    Every student gets an independent random rank, so the male and female
    orders are independent uniform permutations and the combined order is
    one as well.
    """

    def __init__(self, students: Iterable[Student], rng: random.Random) -> None:
        ranked = [(rng.random(), student) for student in students]
        ranked.sort(key=lambda pair: pair[0])
        self._order: List[Student] = [student for _, student in ranked]

    def ordered(self, gender: str) -> List[Student]:
        if gender == ANY:
            return list(self._order)
        return [student for student in self._order if student.gender == gender]

    def take(self, student: Student) -> None:
        self._order.remove(student)

    def remaining(self) -> List[Student]:
        return list(self._order)


class _Placer:
    def __init__(
        self,
        layout: Layout,
        constraints: HistoricalConstraints,
        assignments: Dict[int, Student],
        pinned: Set[int],
    ) -> None:
        self.layout = layout
        self.constraints = constraints
        self.assignments = assignments
        self.pinned = pinned
        self.slot_by_seat: Dict[int, Slot] = {}
        for slot in layout.slots:
            for seat_id in slot.seat_ids:
                self.slot_by_seat[seat_id] = slot
        self.relaxed = 0

    def fill(self, slots: List[Slot], active: Set[int], pool: _Pool) -> None:
        for slot in slots:
            for seat_id, tag in zip(slot.seat_ids, slot.tags):
                if seat_id not in active or seat_id in self.pinned or seat_id in self.assignments:
                    continue
                student = self._pick(pool, seat_id, tag)
                if student is None:
                    continue
                pool.take(student)
                self.assignments[seat_id] = student

    def _pick(self, pool: _Pool, seat_id: int, tag: str) -> Optional[Student]:
        if tag == ANY:
            ladder = [pool.ordered(ANY)]
        else:
            ladder = [pool.ordered(tag), pool.ordered(FEMALE if tag == MALE else MALE)]

        for step, candidates in enumerate(ladder):
            if not candidates:
                continue
            for candidate in candidates:
                if self._conflicts(candidate, seat_id) == 0:
                    if step:
                        logger.debug("Seat %s: no %s left, took %s", seat_id, tag, candidate.name)
                    return candidate
            self.relaxed += 1
            logger.debug("Seat %s: constraints relaxed for %s", seat_id, candidates[0].name)
            return candidates[0]
        return None

    def partners_of(self, seat_id: int) -> List[Student]:
        slot = self.slot_by_seat.get(seat_id)
        if slot is None or slot.size != 2:
            return []
        return [
            self.assignments[other]
            for other in slot.seat_ids
            if other != seat_id and other in self.assignments
        ]

    def _conflicts(self, student: Student, seat_id: int) -> int:
        count = 0
        if self.constraints.sat_here_last_time(student.name, seat_id):
            count += 1
        for partner in self.partners_of(seat_id):
            if self.constraints.were_partners(student.name, partner.name):
                count += 1
        return count

    def violations_at(self, seat_id: int) -> int:
        student = self.assignments.get(seat_id)
        if student is None:
            return 0
        return self._conflicts(student, seat_id)

    def total_violations(self) -> int:
        return sum(self.violations_at(seat_id) for seat_id in self.assignments)

    def repair(self) -> int:
        """Swap movable occupants while that strictly lowers the violation count."""
        if self.constraints.is_empty:
            return 0
        movable = sorted(seat_id for seat_id in self.assignments if seat_id not in self.pinned)
        passes = 0
        for _ in range(len(movable)):
            if not self._repair_pass(movable):
                break
            passes += 1
        if passes:
            logger.debug("Repair improved the layout over %d passes", passes)
        return passes

    def _repair_pass(self, movable: List[int]) -> bool:
        improved = False
        for seat_id in movable:
            if self.violations_at(seat_id) == 0:
                continue
            for other in movable:
                if other == seat_id or not self._swappable(seat_id, other):
                    continue
                affected = self._affected(seat_id, other)
                before = sum(self.violations_at(s) for s in affected)
                self._swap(seat_id, other)
                after = sum(self.violations_at(s) for s in affected)
                if after < before:
                    improved = True
                    break
                self._swap(seat_id, other)
        return improved

    def _swappable(self, first: int, second: int) -> bool:
        a, b = self.assignments[first], self.assignments[second]
        if a.gender == b.gender:
            return True
        return self.layout.tag_for(first) == ANY and self.layout.tag_for(second) == ANY

    def _affected(self, first: int, second: int) -> Set[int]:
        seats = {first, second}
        for seat_id in (first, second):
            slot = self.slot_by_seat.get(seat_id)
            if slot is not None:
                seats.update(s for s in slot.seat_ids if s in self.assignments)
        return seats

    def _swap(self, first: int, second: int) -> None:
        self.assignments[first], self.assignments[second] = (
            self.assignments[second],
            self.assignments[first],
        )


def assign_seats(
    students: List[Student],
    layout: Layout,
    fixed_seats: Optional[FixedSeatRegistry] = None,
    constraints: Optional[HistoricalConstraints] = None,
    rng: RandomSource = None,
) -> AssignmentResult:
    """Fill ``layout`` with ``students`` and report what could not be placed.

    Pinned students go straight to their seats. Paired slots are filled before
    single seats; each position takes the first student in shuffle order that
    fits its gender tag and avoids the historical constraints, relaxing the
    constraints first and the gender second. Never raises on bad input.
    """
    if not isinstance(rng, random.Random):
        rng = random.Random(rng)
    constraints = constraints or HistoricalConstraints()
    registry_ids = fixed_seats.all() if fixed_seats is not None else set()

    active_ids = {seat.id for seat in layout.seats if seat.is_active}
    reasons: List[str] = []
    notes: List[str] = []
    if not students:
        reasons.append(EMPTY_ROSTER)
    if not active_ids:
        reasons.append(NO_SEATS)

    assignments: Dict[int, Student] = {}
    pinned: Set[int] = registry_ids & active_ids
    free: List[Student] = []
    for student in students:
        seat_id = student.fixed_seat_id
        if seat_id is None:
            free.append(student)
            continue
        if seat_id not in active_ids:
            _add_once(reasons, FIXED_SEAT_MISSING)
            notes.append(f"{student.name} is pinned to seat {seat_id}, which is not in the layout.")
            free.append(student)
            continue
        displaced = assignments.get(seat_id)
        if displaced is not None:
            _add_once(reasons, FIXED_SEAT_CONFLICT)
            notes.append(f"{student.name} replaced {displaced.name} on fixed seat {seat_id}.")
            free.append(displaced)
        assignments[seat_id] = student
        pinned.add(seat_id)

    empty_fixed = pinned - set(assignments)
    if empty_fixed:
        reasons.append(UNFILLED_FIXED_SEATS)
    # Fixed seats left empty are not available to anyone else.
    if active_ids and len(students) > len(active_ids - empty_fixed):
        reasons.append(MORE_STUDENTS_THAN_SEATS)

    placer = _Placer(layout, constraints, assignments, pinned)
    pool = _Pool(free, rng)
    paired = [slot for slot in layout.slots if slot.is_paired]
    singles = [slot for slot in layout.slots if not slot.is_paired]
    slotted = {seat_id for slot in layout.slots for seat_id in slot.seat_ids}
    loose = [Slot(seat_ids=[seat.id], tags=[ANY]) for seat in layout.seats if seat.id not in slotted]
    placer.fill(paired + singles + loose, active_ids, pool)
    placer.repair()

    violations = placer.total_violations()
    if violations:
        notes.append(f"{violations} seat(s) could not avoid a previous seat or partner.")

    unassigned_students = pool.remaining()
    unassigned_seats = [seat.id for seat in layout.seats if seat.is_active and seat.id not in assignments]
    seats = [
        replace(
            seat,
            is_fixed=seat.id in registry_ids,
            student_id=assignments[seat.id].id if seat.id in assignments else None,
            student_name=assignments[seat.id].name if seat.id in assignments else None,
        )
        for seat in layout.seats
    ]

    if not assignments:
        status = STATUS_FAILED
    elif reasons or unassigned_students:
        status = STATUS_PARTIAL
    else:
        status = STATUS_SUCCESS

    realized_seats, realized_partners = realized_history(assignments, layout)
    logger.info(
        "Assigned %d of %d students (%s, %d relaxed, %d violations)",
        len(assignments),
        len(students),
        status,
        placer.relaxed,
        violations,
    )
    return AssignmentResult(
        assignments=assignments,
        seats=seats,
        unassigned_seats=unassigned_seats,
        unassigned_students=unassigned_students,
        status=status,
        reasons=reasons,
        notes=notes,
        realized_seats=realized_seats,
        realized_partners=realized_partners,
        violations=violations,
    )


def realized_history(
    assignments: Dict[int, Student], layout: Layout
) -> Tuple[Dict[str, int], Dict[str, str]]:
    """Seat and desk partner each student actually got, for the next run's constraints."""
    seat_by_name = {student.name: seat_id for seat_id, student in assignments.items()}
    partner_by_name: Dict[str, str] = {}
    for first, second in realized_pairs(assignments, layout):
        partner_by_name[first] = second
        partner_by_name[second] = first
    return seat_by_name, partner_by_name


def realized_pairs(assignments: Dict[int, Student], layout: Layout) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for slot in layout.slots:
        if slot.size != 2:
            continue
        first, second = slot.seat_ids
        if first in assignments and second in assignments:
            pairs.append((assignments[first].name, assignments[second].name))
    return pairs


def swap_assignments(
    assignments: Dict[int, Student],
    seat_a: int,
    seat_b: int,
    fixed_seats: Optional[Iterable[int]] = None,
) -> Dict[int, Student]:
    """Return a copy with the occupants of two seats exchanged; either may be empty.

    Raises ``ValueError`` when either seat is in ``fixed_seats``.
    """
    pinned = set(fixed_seats or ())
    if seat_a in pinned or seat_b in pinned:
        raise ValueError("Fixed seats cannot be swapped.")
    swapped = dict(assignments)
    first = swapped.pop(seat_a, None)
    second = swapped.pop(seat_b, None)
    if first is not None:
        swapped[seat_b] = first
    if second is not None:
        swapped[seat_a] = second
    return swapped


def build_confirmed_record(
    assignments: Dict[int, Student],
    layout: Layout,
    topology: Optional[Topology] = None,
    class_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConfirmedLayoutRecord:
    now = now or datetime.now()
    items = [
        LayoutItem(seat_id=seat_id, student_name=student.name, gender=student.gender)
        for seat_id, student in sorted(assignments.items())
    ]
    pairs = [PairInfo(first, second) for first, second in realized_pairs(assignments, layout)]
    return ConfirmedLayoutRecord(
        id=uuid.uuid4().hex,
        date=now.strftime("%Y-%m-%d %H:%M"),
        timestamp=now.timestamp() * 1000,
        layout=items,
        pair_info=pairs,
        layout_type=topology.layout_type if topology else None,
        single_mode=topology.single_mode if topology else None,
        pair_mode=topology.pair_mode if topology else None,
        partition_count=topology.partitions if topology else None,
        group_size=topology.group_size if topology and topology.layout_type == GROUP else None,
        class_id=class_id,
    )


def _add_once(items: List[str], value: str) -> None:
    if value not in items:
        items.append(value)
