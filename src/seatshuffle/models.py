from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

MALE = "M"
FEMALE = "F"
ANY = "any"
GENDERS = (MALE, FEMALE)

HISTORY_LAYOUT = "layout"
HISTORY_STUDENT_INPUT = "student-input"
HISTORY_OPTIONS = "options"
HISTORY_TYPES = (HISTORY_LAYOUT, HISTORY_STUDENT_INPUT, HISTORY_OPTIONS)

MAX_NAME_LENGTH = 20

_GENDER_ALIASES = {
    "m": MALE,
    "male": MALE,
    "boy": MALE,
    "f": FEMALE,
    "female": FEMALE,
    "girl": FEMALE,
}


@dataclass
class Student:
    id: int
    name: str
    gender: str
    fixed_seat_id: Optional[int] = None


@dataclass
class Seat:
    id: int
    position: Optional[Dict[str, int]] = None
    is_fixed: bool = False
    is_active: bool = True
    student_id: Optional[int] = None
    student_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.student_id is None


@dataclass(frozen=True)
class Slot:
    """Seats filled together; one tag (M, F or any) per seat."""

    seat_ids: List[int]
    tags: List[str]
    partition: int = 1

    def __post_init__(self) -> None:
        if not self.seat_ids:
            raise ValueError("A slot needs at least one seat.")
        if len(self.seat_ids) != len(self.tags):
            raise ValueError("Each seat in a slot needs exactly one gender tag.")
        for tag in self.tags:
            if tag not in (MALE, FEMALE, ANY):
                raise ValueError(f"Invalid slot tag: {tag}")

    @property
    def size(self) -> int:
        return len(self.seat_ids)

    @property
    def is_paired(self) -> bool:
        return len(self.seat_ids) > 1


@dataclass
class Layout:
    seats: List[Seat]
    slots: List[Slot]

    def __post_init__(self) -> None:
        seat_ids = {seat.id for seat in self.seats}
        if len(seat_ids) != len(self.seats):
            raise ValueError("Seat ids must be unique within a layout.")
        claimed: Dict[int, int] = {}
        for index, slot in enumerate(self.slots):
            for seat_id in slot.seat_ids:
                if seat_id not in seat_ids:
                    raise ValueError(f"Slot references unknown seat {seat_id}.")
                if seat_id in claimed:
                    raise ValueError(f"Seat {seat_id} belongs to more than one slot.")
                claimed[seat_id] = index

    def seat(self, seat_id: int) -> Seat:
        for seat in self.seats:
            if seat.id == seat_id:
                return seat
        raise KeyError(f"Seat {seat_id} not found.")

    def slot_for(self, seat_id: int) -> Optional[Slot]:
        for slot in self.slots:
            if seat_id in slot.seat_ids:
                return slot
        return None

    def tag_for(self, seat_id: int) -> str:
        slot = self.slot_for(seat_id)
        if slot is None:
            return ANY
        return slot.tags[slot.seat_ids.index(seat_id)]


@dataclass
class HistoryEntry:
    type: str
    payload: object
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.type not in HISTORY_TYPES:
            raise ValueError(f"Invalid history entry type: {self.type}")


@dataclass(frozen=True)
class LayoutItem:
    seat_id: int
    student_name: str
    gender: str


@dataclass(frozen=True)
class PairInfo:
    student1: str
    student2: str


@dataclass
class ConfirmedLayoutRecord:
    id: str
    date: str
    timestamp: float
    layout: List[LayoutItem]
    pair_info: Optional[List[PairInfo]] = None
    layout_type: Optional[str] = None
    single_mode: Optional[str] = None
    pair_mode: Optional[str] = None
    partition_count: Optional[int] = None
    group_size: Optional[int] = None
    class_id: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "id": self.id,
            "date": self.date,
            "timestamp": self.timestamp,
            "layout": [
                {"seatId": item.seat_id, "studentName": item.student_name, "gender": item.gender}
                for item in self.layout
            ],
        }
        if self.pair_info is not None:
            data["pairInfo"] = [
                {"student1": pair.student1, "student2": pair.student2} for pair in self.pair_info
            ]
        optional = {
            "layoutType": self.layout_type,
            "singleMode": self.single_mode,
            "pairMode": self.pair_mode,
            "partitionCount": self.partition_count,
            "groupSize": self.group_size,
            "classId": self.class_id,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: object) -> "ConfirmedLayoutRecord":
        if not isinstance(data, dict):
            raise ValueError("Confirmed layout must be an object.")
        for key in ("id", "date", "timestamp", "layout"):
            if key not in data:
                raise ValueError(f"Confirmed layout is missing '{key}'.")
        raw_layout = data["layout"]
        if not isinstance(raw_layout, list):
            raise ValueError("Confirmed layout 'layout' must be a list.")
        try:
            timestamp = float(data["timestamp"])
        except (TypeError, ValueError) as exc:
            raise ValueError("Confirmed layout timestamp must be a number.") from exc

        layout: List[LayoutItem] = []
        for item in raw_layout:
            if not isinstance(item, dict):
                raise ValueError("Each layout item must be an object.")
            try:
                seat_id = int(item["seatId"])
                name = str(item["studentName"]).strip()
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Invalid layout item: {item}") from exc
            if not name:
                continue
            layout.append(LayoutItem(seat_id=seat_id, student_name=name, gender=str(item.get("gender", ""))))

        pair_info: Optional[List[PairInfo]] = None
        raw_pairs = data.get("pairInfo")
        if raw_pairs is not None:
            if not isinstance(raw_pairs, list):
                raise ValueError("Confirmed layout 'pairInfo' must be a list.")
            pair_info = []
            for pair in raw_pairs:
                if not isinstance(pair, dict) or "student1" not in pair or "student2" not in pair:
                    raise ValueError(f"Invalid pair entry: {pair}")
                pair_info.append(PairInfo(str(pair["student1"]), str(pair["student2"])))

        partition_count = data.get("partitionCount")
        if partition_count is not None:
            try:
                partition_count = int(partition_count)
            except (TypeError, ValueError) as exc:
                raise ValueError("Confirmed layout partitionCount must be an integer.") from exc
        group_size = data.get("groupSize")
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            timestamp=timestamp,
            layout=layout,
            pair_info=pair_info,
            layout_type=_optional_str(data.get("layoutType")),
            single_mode=_optional_str(data.get("singleMode")),
            pair_mode=_optional_str(data.get("pairMode")),
            partition_count=partition_count,
            group_size=_parse_group_size(group_size),
            class_id=_optional_str(data.get("classId")),
        )


def parse_roster(entries: Iterable[object]) -> List[Student]:
    """Build students from ``{name, gender, fixedSeatId?}`` objects, ids 1..n in order."""
    if not isinstance(entries, (list, tuple)):
        raise ValueError("Roster must be a list of objects.")

    students: List[Student] = []
    seen = set()
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ValueError("Each student entry must be an object.")
        name = validate_name(entry.get("name", ""))
        if name in seen:
            raise ValueError(f"Duplicate student name: {name}.")
        seen.add(name)
        gender = parse_gender(entry.get("gender"))
        fixed = entry.get("fixedSeatId", entry.get("fixed_seat_id"))
        fixed_seat_id: Optional[int] = None
        if fixed not in (None, ""):
            try:
                fixed_seat_id = int(fixed)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid fixedSeatId for {name}.") from exc
            if fixed_seat_id < 1:
                raise ValueError(f"Invalid fixedSeatId for {name}.")
        students.append(Student(id=index, name=name, gender=gender, fixed_seat_id=fixed_seat_id))
    return students


def roster_to_list(students: Iterable[Student]) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    for student in students:
        row: Dict[str, object] = {"name": student.name, "gender": student.gender}
        if student.fixed_seat_id is not None:
            row["fixedSeatId"] = student.fixed_seat_id
        rows.append(row)
    return rows


def validate_name(value: object) -> str:
    name = str(value if value is not None else "").strip()
    if not name:
        raise ValueError("Each student must have a name.")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Name '{name}' is longer than {MAX_NAME_LENGTH} characters.")
    if not name.isprintable():
        raise ValueError(f"Name '{name}' contains non-printable characters.")
    return name


def parse_gender(value: object) -> str:
    text = str(value if value is not None else "").strip()
    if text in GENDERS:
        return text
    gender = _GENDER_ALIASES.get(text.lower())
    if gender is None:
        raise ValueError(f"Invalid gender: {value!r}. Use M or F.")
    return gender


def seat_to_dict(seat: Seat) -> Dict[str, object]:
    return {
        "id": seat.id,
        "position": dict(seat.position) if seat.position else None,
        "isFixed": seat.is_fixed,
        "isActive": seat.is_active,
        "studentId": seat.student_id,
        "studentName": seat.student_name,
    }


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _parse_group_size(value: object) -> Optional[int]:
    if value is None:
        return None
    text = str(value)
    if text.startswith("group-"):
        text = text[len("group-"):]
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(f"Invalid groupSize: {value!r}") from exc
