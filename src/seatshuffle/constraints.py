from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from .models import ConfirmedLayoutRecord, LayoutItem

logger = logging.getLogger(__name__)

# Legacy records without pairInfo: seats this close in id are assumed to be desk partners.
ADJACENT_SEAT_DISTANCE = 2


@dataclass
class HistoricalConstraints:
    last_seat_by_student: Dict[str, int] = field(default_factory=dict)
    last_partner_by_student: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.last_seat_by_student and not self.last_partner_by_student

    def sat_here_last_time(self, name: str, seat_id: int) -> bool:
        return self.last_seat_by_student.get(name) == seat_id

    def were_partners(self, first: str, second: str) -> bool:
        return (
            self.last_partner_by_student.get(first) == second
            or self.last_partner_by_student.get(second) == first
        )


def extract_constraints(
    records: Iterable[object],
    avoid_prev_seat: bool,
    avoid_prev_partner: bool,
) -> HistoricalConstraints:
    """Derive each student's last seat and last partner from confirmed layouts.

    Records are read most recent first and the first record that mentions a
    student decides their entry. Records that fail to parse are skipped.
    """
    constraints = HistoricalConstraints()
    if not (avoid_prev_seat or avoid_prev_partner):
        return constraints

    parsed = _parse_records(records)
    seat_seen: Set[str] = set()
    partner_seen: Set[str] = set()
    for record in parsed:
        if avoid_prev_seat:
            for item in record.layout:
                if item.student_name in seat_seen:
                    continue
                seat_seen.add(item.student_name)
                constraints.last_seat_by_student[item.student_name] = item.seat_id

        if avoid_prev_partner:
            partners = _partners_in(record)
            for name in (item.student_name for item in record.layout):
                if name in partner_seen:
                    continue
                partner_seen.add(name)
                if name in partners:
                    constraints.last_partner_by_student[name] = partners[name]
            # pairInfo may name students missing from the layout list.
            for name, partner in partners.items():
                if name not in partner_seen:
                    partner_seen.add(name)
                    constraints.last_partner_by_student[name] = partner

    logger.debug(
        "Extracted %d seat and %d partner constraints from %d records",
        len(constraints.last_seat_by_student),
        len(constraints.last_partner_by_student),
        len(parsed),
    )
    return constraints


def _parse_records(records: Iterable[object]) -> List[ConfirmedLayoutRecord]:
    parsed: List[ConfirmedLayoutRecord] = []
    for raw in records:
        if isinstance(raw, ConfirmedLayoutRecord):
            parsed.append(raw)
            continue
        try:
            parsed.append(ConfirmedLayoutRecord.from_dict(raw))
        except ValueError as exc:
            logger.warning("Skipping malformed confirmed layout: %s", exc)
    # Stable sort keeps caller order for equal timestamps.
    parsed.sort(key=lambda record: record.timestamp, reverse=True)
    return parsed


def _partners_in(record: ConfirmedLayoutRecord) -> Dict[str, str]:
    partners: Dict[str, str] = {}
    if record.pair_info is not None:
        for pair in record.pair_info:
            if not pair.student1 or not pair.student2:
                continue
            partners.setdefault(pair.student1, pair.student2)
            partners.setdefault(pair.student2, pair.student1)
        return partners
    return infer_partners(record.layout)


def infer_partners(layout: List[LayoutItem]) -> Dict[str, str]:
    """Best-effort partner guess for legacy records that lack pairInfo.

    Two names on the same seat id are partners; otherwise neighbours in seat-id
    order whose ids differ by at most ``ADJACENT_SEAT_DISTANCE`` are paired
    greedily. Wrong for layouts whose numbering does not follow desks.
    """
    partners: Dict[str, str] = {}
    by_seat: Dict[int, List[str]] = {}
    for item in layout:
        by_seat.setdefault(item.seat_id, []).append(item.student_name)

    for names in by_seat.values():
        if len(names) == 2:
            first, second = names
            partners[first] = second
            partners[second] = first

    singles = sorted(
        (item for item in layout if item.student_name not in partners and len(by_seat[item.seat_id]) == 1),
        key=lambda item: item.seat_id,
    )
    index = 0
    while index < len(singles) - 1:
        current, following = singles[index], singles[index + 1]
        if following.seat_id - current.seat_id <= ADJACENT_SEAT_DISTANCE:
            partners[current.student_name] = following.student_name
            partners[following.student_name] = current.student_name
            index += 2
        else:
            index += 1
    return partners
