"""Unit tests for bracket math and slot labels."""

import pytest

from courtside.draw import (
    ConcreteParticipant,
    QualifierSlot,
    WinnerOfMatch,
    first_round_pairings,
    get_feeder_matches,
    group_name,
    largest_bracket_size,
    parse_slot_label,
    qualifier_label,
    round_name,
    winner_label,
)


class TestLabels:
    """Tests for label formatting and parsing."""

    def test_group_name(self):
        assert group_name(0) == "第 1 组"
        assert group_name(15) == "第 16 组"

    def test_qualifier_label_round_trip(self):
        label = qualifier_label("第 3 组", 2)
        assert label == "第 3 组第 2 名"
        assert parse_slot_label(label) == QualifierSlot(group="第 3 组", rank=2)

    def test_winner_label_round_trip(self):
        label = winner_label("R2-M1")
        assert label == "胜者 R2-M1"
        assert parse_slot_label(label) == WinnerOfMatch(match_id="R2-M1")

    def test_concrete_name(self):
        assert parse_slot_label("Alice") == ConcreteParticipant(display_name="Alice")

    def test_concrete_with_id_wins_over_pattern(self):
        """A stored participant id means the slot is concrete, whatever the label."""
        source = parse_slot_label("第 1 组第 1 名", participant_id="p9")
        assert source == ConcreteParticipant(display_name="第 1 组第 1 名", participant_id="p9")

    def test_source_labels(self):
        assert QualifierSlot("第 1 组", 1).label == "第 1 组第 1 名"
        assert WinnerOfMatch("R1-M4").label == "胜者 R1-M4"


class TestBracketMath:
    """Tests for bracket sizes, pairings and round names."""

    @pytest.mark.parametrize(
        "qualified,expected",
        [(0, 0), (1, 0), (2, 2), (3, 2), (6, 4), (8, 8), (12, 8), (100, 64)],
    )
    def test_largest_bracket_size(self, qualified, expected):
        assert largest_bracket_size(qualified) == expected

    def test_largest_bracket_size_respects_cap(self):
        assert largest_bracket_size(40, max_size=16) == 16

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_pairings_sum_to_size_plus_one(self, size):
        pairings = first_round_pairings(size)
        assert len(pairings) == size // 2
        assert all(a + b == size + 1 for a, b in pairings)
        seeds = [s for pair in pairings for s in pair]
        assert sorted(seeds) == list(range(1, size + 1))

    def test_pairings_reject_non_power_of_two(self):
        with pytest.raises(ValueError):
            first_round_pairings(6)

    def test_feeder_matches(self):
        assert get_feeder_matches(2, 2) == ("R1-M3", "R1-M4")
        with pytest.raises(ValueError):
            get_feeder_matches(1, 1)

    def test_round_names(self):
        assert round_name(2) == "决赛"
        assert round_name(4) == "半决赛"
        assert round_name(8) == "8 强赛"
        assert round_name(8, is_first_round=True) == "1/4 决赛"
        assert round_name(32) == "32 强赛"
        assert round_name(32, is_first_round=True) == "淘汰赛首轮"
