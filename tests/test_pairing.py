import pytest

from seatshuffle.pairing import (
    BASIC_ROW,
    GENDER_PAIR,
    GENDER_ROW,
    GENDER_SYMMETRIC_ROW,
    GROUP,
    PAIR,
    SAME_GENDER_PAIR,
    SINGLE,
    Topology,
    build_layout,
    count_per_partition,
    topology_from_options,
)


def _tags(layout):
    return [layout.tag_for(seat.id) for seat in layout.seats]


def test_basic_row_splits_seats_across_partitions():
    layout = build_layout(Topology(SINGLE, 5, BASIC_ROW), ["M"] * 12 + ["F"] * 12)

    assert len(layout.seats) == 24
    assert count_per_partition(layout) == {1: 5, 2: 5, 3: 5, 4: 5, 5: 4}
    for seat in layout.seats:
        partition = seat.position["partition"]
        row = seat.position["row"]
        expected = "M" if (partition + row) % 2 == 0 else "F"
        assert layout.tag_for(seat.id) == expected


def test_seat_ids_are_sequential():
    layout = build_layout(Topology(PAIR, 3, pair_mode=GENDER_PAIR), ["M", "F", "M", "F", "F"])

    assert [seat.id for seat in layout.seats] == [1, 2, 3, 4, 5]


def test_gender_row_alternates_and_appends_surplus():
    layout = build_layout(Topology(SINGLE, 3, GENDER_ROW), ["M", "M", "M", "F"])

    assert _tags(layout) == ["M", "F", "M", "M"]


def test_symmetric_row_fills_partitions_with_males_first():
    layout = build_layout(Topology(SINGLE, 3, GENDER_SYMMETRIC_ROW), ["M", "M", "M", "F", "F", "F"])

    assert _tags(layout) == ["M", "M", "F", "M", "F", "F"]


def test_gender_pair_mixes_then_pairs_surplus():
    layout = build_layout(Topology(PAIR, 3, pair_mode=GENDER_PAIR), ["M"] * 3 + ["F"] * 5)

    assert [slot.tags for slot in layout.slots] == [["M", "F"]] * 3 + [["F", "F"]]


def test_gender_pair_odd_surplus_gets_a_single_seat():
    layout = build_layout(Topology(PAIR, 3, pair_mode=GENDER_PAIR), ["M"] * 3 + ["F"] * 2)

    assert [slot.tags for slot in layout.slots] == [["M", "F"], ["M", "F"], ["M"]]


def test_pair_without_policy_uses_any_tags():
    layout = build_layout(Topology(PAIR, 3, pair_mode=None), ["M", "F", "M", "F", "M"])

    assert [slot.tags for slot in layout.slots] == [["any", "any"], ["any", "any"], ["any"]]


def test_same_gender_pairs_are_homogeneous():
    layout = build_layout(Topology(PAIR, 3, pair_mode=SAME_GENDER_PAIR), ["M"] * 4 + ["F"] * 4)

    assert len(layout.seats) == 8
    for slot in layout.slots:
        assert len(set(slot.tags)) == 1
    assert _tags(layout).count("M") == 4


def test_groups_fill_partitions_in_order_with_gender_mix():
    genders = ["M"] * 6 + ["F"] * 4
    layout = build_layout(Topology(GROUP, 2, group_size=4, gender_mix=True), genders)

    assert [slot.size for slot in layout.slots] == [4, 4, 2]
    assert [slot.partition for slot in layout.slots] == [1, 1, 2]
    assert _tags(layout).count("M") == 6
    assert _tags(layout).count("F") == 4


def test_groups_without_mix_follow_roster_order():
    layout = build_layout(Topology(GROUP, 3, group_size=3), ["F", "M", "M", "F"])

    assert [slot.tags for slot in layout.slots] == [["F", "M", "M"], ["F"]]


def test_empty_roster_builds_empty_layout():
    layout = build_layout(Topology(GROUP, 3, group_size=3), [])

    assert layout.seats == []
    assert layout.slots == []


class TestTopologyFromOptions:
    def test_defaults(self):
        topology = topology_from_options({})

        assert topology.layout_type == SINGLE
        assert topology.partitions == 3

    def test_group_size_accepts_prefixed_value(self):
        topology = topology_from_options({"layoutType": "group", "groupSize": "group-6", "partitions": 2})

        assert topology.group_size == 6
        assert topology.bounds_key == "group-6"

    @pytest.mark.parametrize(
        "options",
        [
            {"layoutType": "pair-uniform", "partitions": 6},
            {"layoutType": "single-uniform", "partitions": 2},
            {"layoutType": "group", "groupSize": 4, "partitions": 5},
            {"layoutType": "circle"},
            {"partitions": "many"},
        ],
    )
    def test_rejects_invalid_options(self, options):
        with pytest.raises(ValueError):
            topology_from_options(options)
