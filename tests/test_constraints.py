from seatshuffle.constraints import HistoricalConstraints, extract_constraints, infer_partners
from seatshuffle.models import LayoutItem


def _record(record_id, timestamp, layout, pairs=None):
    data = {
        "id": record_id,
        "date": "2026-03-01 09:30",
        "timestamp": timestamp,
        "layout": [
            {"seatId": seat_id, "studentName": name, "gender": "M"} for seat_id, name in layout
        ],
    }
    if pairs is not None:
        data["pairInfo"] = [{"student1": a, "student2": b} for a, b in pairs]
    return data


def test_no_flags_means_no_constraints():
    records = [_record("r1", 1, [(1, "Al")])]

    constraints = extract_constraints(records, False, False)

    assert constraints.is_empty


def test_most_recent_record_wins_regardless_of_input_order():
    older = _record("r1", 100, [(3, "Al"), (4, "Bo")], pairs=[("Al", "Bo")])
    newer = _record("r2", 200, [(5, "Al"), (6, "Cy")], pairs=[("Al", "Cy")])

    constraints = extract_constraints([older, newer], True, True)

    assert constraints.last_seat_by_student["Al"] == 5
    assert constraints.last_seat_by_student["Bo"] == 4
    assert constraints.last_partner_by_student["Al"] == "Cy"
    assert constraints.last_partner_by_student["Bo"] == "Al"


def test_unpaired_in_latest_record_clears_older_partner():
    older = _record("r1", 100, [(1, "Al"), (2, "Bo")], pairs=[("Al", "Bo")])
    newer = _record("r2", 200, [(1, "Al"), (2, "Bo")], pairs=[])

    constraints = extract_constraints([older, newer], False, True)

    assert "Al" not in constraints.last_partner_by_student
    assert constraints.last_seat_by_student == {}


def test_malformed_records_are_skipped():
    good = _record("r1", 100, [(2, "Al")])
    bad = {"id": "broken", "layout": []}

    constraints = extract_constraints([bad, good, "junk"], True, False)

    assert constraints.last_seat_by_student == {"Al": 2}


def test_record_with_non_numeric_partition_count_is_skipped():
    good = _record("r1", 1, [(1, "Al")])
    broken = dict(_record("r2", 2, [(5, "Al")]), partitionCount=[3])

    constraints = extract_constraints([broken, good], True, False)

    assert constraints.last_seat_by_student == {"Al": 1}


def test_legacy_records_infer_partners_from_seat_ids():
    legacy = _record("r1", 100, [(1, "Al"), (2, "Bo"), (5, "Cy"), (9, "Di")])

    constraints = extract_constraints([legacy], False, True)

    assert constraints.were_partners("Al", "Bo")
    assert "Cy" not in constraints.last_partner_by_student
    assert "Di" not in constraints.last_partner_by_student


def test_infer_partners_pairs_students_sharing_a_seat():
    partners = infer_partners([LayoutItem(7, "Al", "M"), LayoutItem(7, "Bo", "F"), LayoutItem(8, "Cy", "F")])

    assert partners == {"Al": "Bo", "Bo": "Al"}


def test_were_partners_is_symmetric():
    constraints = HistoricalConstraints(last_partner_by_student={"Al": "Bo"})

    assert constraints.were_partners("Bo", "Al")
    assert not constraints.were_partners("Al", "Cy")
    assert constraints.sat_here_last_time("Al", 1) is False
