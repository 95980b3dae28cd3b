"""Tests for the anchor set and the piecewise-proportional alignment engine."""
from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from aligntext.analysis.alignment import (
    AlignmentEngine,
    AnchorSet,
    InvalidAnchor,
    OutOfRange,
    build_segments,
    compute_mapping,
    round_half_up,
)
from aligntext.util.types import Anchor, Segment, Side


def _proportional(i: int, len_src: int, len_dst: int) -> int:
    if len_src == 1:
        return 0
    return math.floor(i / (len_src - 1) * (len_dst - 1) + 0.5)


class TestRounding:
    def test_ties_round_up(self) -> None:
        values = np.array([0.5, 1.5, 2.5, 2.49, -0.5, -2.5])
        assert round_half_up(values).tolist() == [1, 2, 3, 2, 0, -2]

    def test_half_up_differs_from_bankers_rounding(self) -> None:
        # i=2 of 5 onto 2 blocks lands exactly on 0.5
        mapping = compute_mapping(5, 2)
        assert mapping.map_a_to_b.tolist() == [0, 0, 1, 1, 1]


class TestBuildSegments:
    def test_no_anchors_single_segment(self) -> None:
        assert build_segments(10, 20, []) == [Segment(0, 9, 0, 19)]

    def test_one_anchor_splits_in_two(self) -> None:
        assert build_segments(10, 20, [(5, 10)]) == [Segment(0, 5, 0, 10), Segment(5, 9, 10, 19)]

    def test_anchor_at_origin_emits_no_leading_segment(self) -> None:
        assert build_segments(10, 20, [Anchor(0, 0)]) == [Segment(0, 9, 0, 19)]

    def test_anchor_at_end_emits_single_point_trailing_segment(self) -> None:
        segments = build_segments(10, 20, [(9, 19)])
        assert segments == [Segment(0, 9, 0, 19), Segment(9, 9, 19, 19)]
        assert segments[-1].len_a == 0 and segments[-1].len_b == 0

    def test_anchors_are_sorted_by_index_a(self) -> None:
        assert build_segments(10, 20, [(7, 15), (3, 4)]) == build_segments(10, 20, [(3, 4), (7, 15)])


class TestComputeMapping:
    def test_empty_sequences_give_empty_maps(self) -> None:
        for len_a, len_b in [(0, 0), (0, 5), (5, 0)]:
            mapping = compute_mapping(len_a, len_b)
            assert mapping.map_a_to_b.shape == (0,)
            assert mapping.map_b_to_a.shape == (0,)
            assert mapping.segments == []

    def test_no_anchors_concrete_values(self) -> None:
        mapping = compute_mapping(10, 20)
        assert mapping.mode == "proportional"
        assert mapping.map_a_to_b[0] == 0
        assert mapping.map_a_to_b[9] == 19
        assert mapping.map_a_to_b[4] == 8

    @pytest.mark.parametrize("len_a,len_b", [(10, 20), (20, 10), (1, 7), (7, 1), (13, 13), (3, 100)])
    def test_no_anchors_is_pure_proportional(self, len_a: int, len_b: int) -> None:
        mapping = compute_mapping(len_a, len_b)
        assert mapping.map_a_to_b.tolist() == [_proportional(i, len_a, len_b) for i in range(len_a)]
        assert mapping.map_b_to_a.tolist() == [_proportional(j, len_b, len_a) for j in range(len_b)]

    def test_single_anchor_scenario(self) -> None:
        mapping = compute_mapping(10, 20, [(5, 10)])
        assert mapping.mode == "anchored"
        assert mapping.map_a_to_b.tolist() == [0, 2, 4, 6, 8, 10, 12, 15, 17, 19]
        assert mapping.map_a_to_b[5] == 10
        assert mapping.map_b_to_a[10] == 5

    def test_unsorted_input_matches_sorted(self) -> None:
        a = compute_mapping(30, 40, [(20, 31), (4, 9), (12, 15)])
        b = compute_mapping(30, 40, [(4, 9), (12, 15), (20, 31)])
        assert np.array_equal(a.map_a_to_b, b.map_a_to_b)
        assert np.array_equal(a.map_b_to_a, b.map_b_to_a)

    def test_idempotent(self) -> None:
        anchors = [(3, 8), (11, 12), (17, 30)]
        first = compute_mapping(25, 40, anchors)
        second = compute_mapping(25, 40, anchors)
        assert np.array_equal(first.map_a_to_b, second.map_a_to_b)
        assert np.array_equal(first.map_b_to_a, second.map_b_to_a)
        assert first.segments == second.segments

    @pytest.mark.parametrize(
        "len_a,len_b,anchors",
        [
            (10, 20, [(5, 10)]),
            (25, 40, [(3, 8), (11, 12), (17, 30)]),
            (40, 25, [(0, 0), (1, 10), (39, 24)]),
            (10, 20, [(3, 4), (4, 12)]),
            (15, 15, [(7, 0)]),
            (15, 15, [(0, 7)]),
        ],
    )
    def test_anchor_exactness_and_monotonicity(self, len_a, len_b, anchors) -> None:
        mapping = compute_mapping(len_a, len_b, anchors)
        for index_a, index_b in anchors:
            assert mapping.map_a_to_b[index_a] == index_b
            assert mapping.map_b_to_a[index_b] == index_a
        assert np.all(np.diff(mapping.map_a_to_b) >= 0)
        assert np.all(np.diff(mapping.map_b_to_a) >= 0)
        assert mapping.map_a_to_b.min() >= 0 and mapping.map_a_to_b.max() < len_b
        assert mapping.map_b_to_a.min() >= 0 and mapping.map_b_to_a.max() < len_a

    def test_adjacent_anchors_resolve_every_boundary(self) -> None:
        mapping = compute_mapping(10, 20, [(3, 4), (4, 12)])
        assert mapping.segments == [Segment(0, 3, 0, 4), Segment(3, 4, 4, 12), Segment(4, 9, 12, 19)]
        assert mapping.map_a_to_b[3] == 4
        assert mapping.map_a_to_b[4] == 12
        # B indices inside the jump split between the two anchors, tie rounding up
        assert mapping.map_b_to_a[4:13].tolist() == [3, 3, 3, 3, 4, 4, 4, 4, 4]

    def test_degenerate_segment_collapses_to_start(self) -> None:
        mapping = compute_mapping(10, 20, [(5, 0)])
        assert mapping.map_a_to_b[:6].tolist() == [0] * 6
        assert mapping.map_b_to_a[0] == 5

    def test_crossing_anchors_stay_exact(self) -> None:
        anchors = [(2, 8), (5, 3)]
        mapping = compute_mapping(10, 10, anchors)
        for index_a, index_b in anchors:
            assert mapping.map_a_to_b[index_a] == index_b
            assert mapping.map_b_to_a[index_b] == index_a

    def test_anchor_at_origin_matches_proportional_values(self) -> None:
        anchored = compute_mapping(10, 20, [(0, 0)])
        plain = compute_mapping(10, 20)
        assert anchored.mode == "anchored"
        assert np.array_equal(anchored.map_a_to_b, plain.map_a_to_b)
        assert np.array_equal(anchored.map_b_to_a, plain.map_b_to_a)


class TestAnchorSet:
    def test_duplicate_is_rejected(self) -> None:
        anchors = AnchorSet()
        assert anchors.add(2, 5) is True
        assert anchors.add(2, 5) is False
        assert anchors.snapshot() == (Anchor(2, 5),)

    def test_same_index_a_replaces(self) -> None:
        anchors = AnchorSet()
        anchors.add(2, 5)
        anchors.add(2, 9)
        assert anchors.snapshot() == (Anchor(2, 9),)

    def test_shared_index_b_displaces(self) -> None:
        anchors = AnchorSet()
        anchors.add(2, 5)
        anchors.add(7, 5)
        assert anchors.snapshot() == (Anchor(7, 5),)

    def test_new_anchor_can_displace_two(self) -> None:
        anchors = AnchorSet()
        anchors.add(2, 5)
        anchors.add(7, 9)
        anchors.add(2, 9)
        assert anchors.snapshot() == (Anchor(2, 9),)

    def test_kept_sorted_by_index_a(self) -> None:
        anchors = AnchorSet()
        for pair in [(8, 1), (1, 7), (4, 3)]:
            anchors.add(*pair)
        assert [a.index_a for a in anchors] == [1, 4, 8]
        assert (4, 3) in anchors

    def test_remove_by_sorted_position(self) -> None:
        anchors = AnchorSet()
        anchors.add(8, 1)
        anchors.add(1, 7)
        assert anchors.remove(0) is True
        assert anchors.snapshot() == (Anchor(8, 1),)
        assert anchors.remove(1) is False
        assert anchors.remove(-1) is False
        assert len(anchors) == 1

    def test_on_change_fires_only_on_mutation(self) -> None:
        calls = []
        anchors = AnchorSet(on_change=lambda: calls.append(1))
        anchors.add(1, 1)
        anchors.add(1, 1)
        anchors.remove(3)
        assert len(calls) == 1
        anchors.remove(0)
        anchors.clear()
        assert len(calls) == 3


class TestAlignmentEngine:
    def test_initial_state(self) -> None:
        engine = AlignmentEngine(10, 20)
        assert engine.anchor_count() == 0
        assert engine.current_alignment_mode() == "proportional"
        assert engine.map_index(Side.A, 4) == 8
        assert engine.map_index("b", 19) == 9

    def test_add_anchor_recomputes(self) -> None:
        engine = AlignmentEngine(10, 20)
        assert engine.add_anchor(5, 10) is True
        assert engine.current_alignment_mode() == "anchored"
        assert engine.map_index(Side.A, 7) == 15
        assert engine.add_anchor(5, 10) is False

    @pytest.mark.parametrize("pair", [(-1, 0), (0, -1), (10, 0), (0, 20)])
    def test_invalid_anchor_rejected_before_insertion(self, pair) -> None:
        engine = AlignmentEngine(10, 20)
        engine.add_anchor(1, 1)
        with pytest.raises(InvalidAnchor):
            engine.add_anchor(*pair)
        assert engine.anchors == (Anchor(1, 1),)

    @pytest.mark.parametrize("pair", [(2.5, 5), (2, 5.0), (True, 5), ("2", 5), (None, 5)])
    def test_non_integer_anchor_rejected_and_engine_stays_usable(self, pair) -> None:
        engine = AlignmentEngine(10, 20)
        with pytest.raises(InvalidAnchor):
            engine.add_anchor(*pair)
        assert engine.anchors == ()
        assert engine.current_alignment_mode() == "proportional"
        assert engine.add_anchor(7, 15) is True
        assert engine.map_index(Side.A, 7) == 15

    def test_numpy_integer_anchor_accepted(self) -> None:
        engine = AlignmentEngine(10, 20)
        assert engine.add_anchor(np.int64(5), np.int32(10)) is True
        assert engine.anchors == (Anchor(5, 10),)
        assert type(engine.anchors[0].index_a) is int

    def test_non_integer_lookup_is_out_of_range(self) -> None:
        with pytest.raises(OutOfRange, match="not an integer index"):
            AlignmentEngine(10, 20).map_index(Side.A, 2.5)

    def test_invalid_anchor_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            AlignmentEngine(3, 3).add_anchor(3, 0)

    @pytest.mark.parametrize("side,index", [(Side.A, -1), (Side.A, 10), (Side.B, 20), (Side.B, -5)])
    def test_lookup_out_of_range_raises(self, side, index) -> None:
        engine = AlignmentEngine(10, 20)
        with pytest.raises(OutOfRange):
            engine.map_index(side, index)

    def test_zero_length_side_makes_every_lookup_out_of_range(self) -> None:
        engine = AlignmentEngine(0, 5)
        with pytest.raises(OutOfRange):
            engine.map_index(Side.A, 0)
        with pytest.raises(OutOfRange):
            engine.map_index(Side.B, 0)
        with pytest.raises(InvalidAnchor):
            engine.add_anchor(0, 0)

    def test_removing_only_anchor_restores_proportional(self) -> None:
        engine = AlignmentEngine(10, 20)
        baseline = engine.mapping.map_a_to_b.copy()
        engine.add_anchor(2, 15)
        assert not np.array_equal(engine.mapping.map_a_to_b, baseline)
        assert engine.remove_anchor_at(0) is True
        assert engine.current_alignment_mode() == "proportional"
        assert np.array_equal(engine.mapping.map_a_to_b, baseline)

    def test_clear_anchors(self) -> None:
        engine = AlignmentEngine(10, 20)
        engine.add_anchor(2, 15)
        engine.add_anchor(6, 16)
        engine.clear_anchors()
        assert engine.anchor_count() == 0
        assert engine.current_alignment_mode() == "proportional"

    def test_remove_out_of_range_is_noop(self) -> None:
        engine = AlignmentEngine(10, 20)
        engine.add_anchor(2, 15)
        assert engine.remove_anchor_at(4) is False
        assert engine.anchor_count() == 1

    def test_set_lengths_drops_anchors_that_no_longer_fit(self, caplog) -> None:
        engine = AlignmentEngine(10, 20)
        engine.add_anchor(5, 10)
        engine.add_anchor(8, 18)
        with caplog.at_level(logging.WARNING, logger="aligntext.analysis.alignment"):
            engine.set_lengths(6, 20)
        assert engine.anchors == (Anchor(5, 10),)
        assert engine.mapping.len_a == 6
        assert engine.map_index(Side.A, 5) == 10
        assert "Dropped 1 anchor" in caplog.text

    def test_set_lengths_rejects_negative(self) -> None:
        with pytest.raises(ValueError):
            AlignmentEngine(10, 20).set_lengths(-1, 3)

    def test_mapping_to_dict(self) -> None:
        engine = AlignmentEngine(3, 3)
        data = engine.mapping.to_dict()
        assert data["mode"] == "proportional"
        assert data["map_a_to_b"] == [0, 1, 2]
        assert data["segments"] == [{"start_a": 0, "end_a": 2, "start_b": 0, "end_b": 2}]
