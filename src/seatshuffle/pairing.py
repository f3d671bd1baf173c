from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .models import ANY, FEMALE, MALE, Layout, Seat, Slot

SINGLE = "single-uniform"
PAIR = "pair-uniform"
GROUP = "group"
LAYOUT_TYPES = (SINGLE, PAIR, GROUP)

BASIC_ROW = "basic-row"
GENDER_ROW = "gender-row"
GENDER_SYMMETRIC_ROW = "gender-symmetric-row"
SINGLE_MODES = (BASIC_ROW, GENDER_ROW, GENDER_SYMMETRIC_ROW)

GENDER_PAIR = "gender-pair"
SAME_GENDER_PAIR = "same-gender-pair"
PAIR_MODES = (GENDER_PAIR, SAME_GENDER_PAIR)

GROUP_SIZES = (3, 4, 5, 6)

PARTITION_BOUNDS: Dict[str, Tuple[int, int]] = {
    SINGLE: (3, 6),
    PAIR: (3, 5),
    "group-3": (3, 5),
    "group-4": (3, 4),
    "group-5": (3, 5),
    "group-6": (2, 4),
}


@dataclass(frozen=True)
class Topology:
    layout_type: str = SINGLE
    partitions: int = 3
    single_mode: str = BASIC_ROW
    pair_mode: Optional[str] = GENDER_PAIR
    group_size: int = 4
    gender_mix: bool = False

    def __post_init__(self) -> None:
        if self.layout_type not in LAYOUT_TYPES:
            raise ValueError(f"Unknown layout type: {self.layout_type}")
        if self.partitions < 1:
            raise ValueError("Partition count must be positive.")
        if self.single_mode not in SINGLE_MODES:
            raise ValueError(f"Unknown single-seat mode: {self.single_mode}")
        if self.pair_mode is not None and self.pair_mode not in PAIR_MODES:
            raise ValueError(f"Unknown pair mode: {self.pair_mode}")
        if self.group_size not in GROUP_SIZES:
            raise ValueError("Group size must be between 3 and 6.")

    @property
    def bounds_key(self) -> str:
        if self.layout_type == GROUP:
            return f"group-{self.group_size}"
        return self.layout_type

    def to_dict(self) -> Dict[str, object]:
        return {
            "layoutType": self.layout_type,
            "partitions": self.partitions,
            "singleMode": self.single_mode,
            "pairMode": self.pair_mode,
            "groupSize": self.group_size,
            "genderMix": self.gender_mix,
        }


def topology_from_options(options: Dict[str, object]) -> Topology:
    """Validate caller options and build a topology, enforcing partition bounds."""
    if not isinstance(options, dict):
        raise ValueError("Layout options must be an object.")
    layout_type = str(options.get("layoutType", SINGLE))
    if layout_type not in LAYOUT_TYPES:
        raise ValueError(f"Unknown layout type: {layout_type}")

    raw_group = str(options.get("groupSize", "4"))
    if raw_group.startswith("group-"):
        raw_group = raw_group[len("group-"):]
    try:
        group_size = int(raw_group)
        partitions = int(options.get("partitions", options.get("numberOfPartitions", 3)))
    except (TypeError, ValueError) as exc:
        raise ValueError("Partition count and group size must be integers.") from exc

    pair_mode = options.get("pairMode", GENDER_PAIR)
    topology = Topology(
        layout_type=layout_type,
        partitions=partitions,
        single_mode=str(options.get("singleMode", BASIC_ROW)),
        pair_mode=str(pair_mode) if pair_mode else None,
        group_size=group_size,
        gender_mix=_parse_bool(options.get("genderMix", False)),
    )
    low, high = PARTITION_BOUNDS[topology.bounds_key]
    if not low <= partitions <= high:
        raise ValueError(
            f"Partition count for {topology.bounds_key} must be between {low} and {high}."
        )
    return topology


def build_layout(topology: Topology, genders: Sequence[str]) -> Layout:
    """Build seats and slots for a roster whose genders appear in ``genders``.

    Seat ids run 1..n in generation order. Slots are spread row by row
    across partitions, except groups which fill one partition at a time.
    """
    males = sum(1 for gender in genders if gender == MALE)
    females = sum(1 for gender in genders if gender == FEMALE)

    if topology.layout_type == SINGLE:
        placements = _single_slots(topology, males, females)
    elif topology.layout_type == PAIR:
        placements = _pair_slots(topology, males, females)
    else:
        placements = _group_slots(topology, genders)
    return _materialize(placements)


def count_per_partition(layout: Layout) -> Dict[int, int]:
    counts: Dict[int, int] = {}
    for slot in layout.slots:
        counts[slot.partition] = counts.get(slot.partition, 0) + slot.size
    return counts


# A placement is (partition, row, tags) before seat ids are handed out.
Placement = Tuple[int, int, List[str]]


def _single_slots(topology: Topology, males: int, females: int) -> List[Placement]:
    total = males + females
    partitions = topology.partitions
    cells = [(index % partitions + 1, index // partitions + 1) for index in range(total)]

    if topology.single_mode == BASIC_ROW:
        return [
            (partition, row, [MALE if (partition + row) % 2 == 0 else FEMALE])
            for partition, row in cells
        ]

    if topology.single_mode == GENDER_ROW:
        tags = _alternate(males, females)
        return [(partition, row, [tag]) for (partition, row), tag in zip(cells, tags)]

    # Symmetric: walk partitions in order and give every male seat out first.
    by_partition = sorted(cells, key=lambda cell: (cell[0], cell[1]))
    tag_by_cell = {
        cell: (MALE if index < males else FEMALE) for index, cell in enumerate(by_partition)
    }
    return [(partition, row, [tag_by_cell[(partition, row)]]) for partition, row in cells]


def _pair_slots(topology: Topology, males: int, females: int) -> List[Placement]:
    if topology.pair_mode == SAME_GENDER_PAIR:
        return _same_gender_pairs(topology.partitions, males, females)

    groups: List[List[str]] = []
    if topology.pair_mode == GENDER_PAIR:
        mixed = min(males, females)
        groups.extend([MALE, FEMALE] for _ in range(mixed))
        surplus_gender = MALE if males > females else FEMALE
        surplus = abs(males - females)
        groups.extend([surplus_gender, surplus_gender] for _ in range(surplus // 2))
        if surplus % 2:
            groups.append([surplus_gender])
    else:
        total = males + females
        groups.extend([ANY, ANY] for _ in range(total // 2))
        if total % 2:
            groups.append([ANY])

    partitions = topology.partitions
    return [
        (index % partitions + 1, index // partitions + 1, tags)
        for index, tags in enumerate(groups)
    ]


def _same_gender_pairs(partitions: int, males: int, females: int) -> List[Placement]:
    remaining = {MALE: males, FEMALE: females}
    placements: List[Placement] = []
    row = 0
    while remaining[MALE] or remaining[FEMALE]:
        for partition in range(partitions):
            if not (remaining[MALE] or remaining[FEMALE]):
                break
            gender = MALE if (row + partition) % 2 == 0 else FEMALE
            if not remaining[gender]:
                gender = FEMALE if gender == MALE else MALE
            take = min(2, remaining[gender])
            remaining[gender] -= take
            placements.append((partition + 1, row + 1, [gender] * take))
        row += 1
    return placements


def _group_slots(topology: Topology, genders: Sequence[str]) -> List[Placement]:
    size = topology.group_size
    total = len(genders)
    if total == 0:
        return []
    group_count = math.ceil(total / size)

    if topology.gender_mix:
        males = sum(1 for gender in genders if gender == MALE)
        females = total - males
        tags: List[str] = []
        for group in range(group_count):
            tags.extend([MALE] * (males // group_count + (1 if group < males % group_count else 0)))
            tags.extend(
                [FEMALE] * (females // group_count + (1 if group < females % group_count else 0))
            )
    else:
        tags = list(genders)

    per_partition = math.ceil(group_count / topology.partitions)
    placements: List[Placement] = []
    for group in range(group_count):
        chunk = tags[group * size:(group + 1) * size]
        partition = group // per_partition + 1
        row = group % per_partition + 1
        placements.append((partition, row, chunk))
    return placements


def _alternate(males: int, females: int) -> List[str]:
    tags: List[str] = []
    remaining = {MALE: males, FEMALE: females}
    turn = MALE
    while remaining[MALE] or remaining[FEMALE]:
        if not remaining[turn]:
            turn = FEMALE if turn == MALE else MALE
        tags.append(turn)
        remaining[turn] -= 1
        turn = FEMALE if turn == MALE else MALE
    return tags


def _materialize(placements: List[Placement]) -> Layout:
    seats: List[Seat] = []
    slots: List[Slot] = []
    next_id = 1
    for partition, row, tags in placements:
        if not tags:
            continue
        seat_ids: List[int] = []
        for column, _ in enumerate(tags, start=1):
            seats.append(
                Seat(id=next_id, position={"partition": partition, "row": row, "column": column})
            )
            seat_ids.append(next_id)
            next_id += 1
        slots.append(Slot(seat_ids=seat_ids, tags=list(tags), partition=partition))
    return Layout(seats=seats, slots=slots)


def _parse_bool(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    return text in {"1", "true", "yes", "y", "on"}
