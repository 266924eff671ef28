"""
Unit tests for the bracket resolution engine.

The main scenario is 16 players in 4 groups of 4 with 2 qualifiers each.
With complete_groups() the first-listed player of every group wins it:

    第 1 组: p1 p8 p9 p16      第 2 组: p2 p7 p10 p15
    第 3 组: p3 p6 p11 p14     第 4 组: p4 p5 p12 p13

so the quarterfinals are p1-p5, p2-p6, p3-p7 and p4-p8.
"""

import logging
from datetime import datetime, timezone

import pytest

from courtside.bracket import (
    current_opponent,
    find_deciding_result,
    resolve_knockout,
    screen_results,
)
from courtside.grouping import (
    FORMAT_GROUP_ONLY,
    FORMAT_GROUP_THEN_KNOCKOUT,
    BracketMatch,
    BracketRound,
    Group,
    GroupingPayload,
    KnockoutSkeleton,
    SeedPlayer,
    generate_grouping_payload,
)
from courtside.statuses import (
    OPPONENT_ELIMINATED,
    OPPONENT_FINISHED,
    OPPONENT_NOT_ENTERED,
    OPPONENT_READY,
    OPPONENT_WAITING,
    OUTCOME_LOSER,
    OUTCOME_WINNER,
)

PUBLISHED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def payload(seed_players):
    return generate_grouping_payload(
        FORMAT_GROUP_THEN_KNOCKOUT, seed_players(16), generated_at=PUBLISHED
    )


@pytest.fixture
def group_results(payload, complete_groups):
    return complete_groups(payload)


@pytest.fixture
def quarterfinals(make_snapshot, group_results):
    return [
        make_snapshot("p1", "p5", phase="knockout"),
        make_snapshot("p6", "p2", phase="knockout"),
        make_snapshot("p3", "p7", phase="knockout"),
        make_snapshot("p8", "p4", phase="knockout"),
    ]


def _sides(match):
    return match.home.participant_id, match.away.participant_id


class TestQualifierResolution:
    """Tests for filling round 1 from group standings."""

    def test_complete_groups_fill_quarterfinals(self, payload, group_results):
        view = resolve_knockout(payload, group_results)
        quarterfinals = view.rounds[0].matches
        assert [_sides(m) for m in quarterfinals] == [
            ("p1", "p5"),
            ("p2", "p6"),
            ("p3", "p7"),
            ("p4", "p8"),
        ]
        assert not any(m.decided for m in quarterfinals)
        assert quarterfinals[0].home.label == "Player 1"
        assert quarterfinals[0].home.source_label == "第 1 组第 1 名"
        assert view.qualifiers["第 4 组第 2 名"] == "p5"

    def test_incomplete_group_keeps_label(self, payload, group_results):
        view = resolve_knockout(payload, group_results[:-1])
        first = view.rounds[0].matches[0]
        assert first.home.participant_id == "p1"
        assert first.away.participant_id is None
        assert first.away.label == "第 4 组第 2 名"
        assert not first.away.filled

    def test_later_rounds_show_winner_labels(self, payload, group_results):
        view = resolve_knockout(payload, group_results)
        semi = view.rounds[1].matches[0]
        assert semi.home.label == "胜者 R1-M1"
        assert semi.home.participant_id is None

    def test_group_only_has_no_rounds(self, seed_players, complete_groups):
        payload = generate_grouping_payload(
            FORMAT_GROUP_ONLY, seed_players(9), generated_at=PUBLISHED
        )
        view = resolve_knockout(payload, complete_groups(payload))
        assert view.rounds == []
        assert view.final is None
        assert not view.is_finished
        assert all(g.completed for g in view.groups)


class TestEightQualifierFlow:
    """Quarterfinals, semifinals and final resolve in order."""

    def test_quarterfinals_resolve_semifinals(self, payload, group_results, quarterfinals):
        view = resolve_knockout(payload, group_results + quarterfinals)
        semis = view.rounds[1].matches
        assert [_sides(m) for m in semis] == [("p1", "p6"), ("p3", "p8")]
        final = view.rounds[2].matches[0]
        assert _sides(final) == (None, None)
        assert not view.is_finished

    def test_final_waits_for_both_semifinals(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        semi_one = make_snapshot("p1", "p6", phase="knockout")
        view = resolve_knockout(payload, group_results + quarterfinals + [semi_one])
        assert _sides(view.final) == ("p1", None)
        assert view.final.away.label == "胜者 R2-M2"

        semi_two = make_snapshot("p8", "p3", phase="knockout")
        view = resolve_knockout(
            payload, group_results + quarterfinals + [semi_one, semi_two]
        )
        assert _sides(view.final) == ("p1", "p8")
        assert not view.is_finished

    def test_final_decides_champion(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        results = group_results + quarterfinals + [
            make_snapshot("p1", "p6", phase="knockout"),
            make_snapshot("p8", "p3", phase="knockout"),
            make_snapshot("p8", "p1", score="3:2", phase="knockout"),
        ]
        view = resolve_knockout(payload, results)
        assert view.is_finished
        assert view.champion_id == "p8"
        assert view.final.home.outcome == OUTCOME_LOSER
        assert view.final.home.score_text == "2:3"
        assert view.final.away.outcome == OUTCOME_WINNER
        assert view.final.away.score_text == "3:2"
        assert view.eliminated_ids == {"p1", "p2", "p3", "p4", "p5", "p6", "p7"}

    def test_monotonic_under_more_results(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        """Adding confirmed results never un-resolves a slot or a match."""
        results = group_results + quarterfinals + [
            make_snapshot("p1", "p6", phase="knockout"),
            make_snapshot("p8", "p3", phase="knockout"),
            make_snapshot("p8", "p1", phase="knockout"),
        ]
        previous = None
        for count in range(len(results) + 1):
            view = resolve_knockout(payload, results[:count])
            if previous is not None:
                for before, after in zip(previous.iter_matches(), view.iter_matches()):
                    for side_before, side_after in ((before.home, after.home), (before.away, after.away)):
                        if side_before.filled:
                            assert side_after.participant_id == side_before.participant_id
                    if before.decided:
                        assert after.decided
            previous = view

    def test_same_group_final_keeps_bracket(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        """
        p1 and p8 both come out of 第 1 组. An untagged 3:0 final between them
        would put p8 ahead on set difference if it counted as a group game.
        """
        results = group_results + quarterfinals + [
            make_snapshot("p1", "p6", phase="knockout"),
            make_snapshot("p8", "p3", phase="knockout"),
            make_snapshot("p8", "p1", score="3:0"),
        ]
        view = resolve_knockout(payload, results)

        table = view.group("第 1 组").standings
        assert [row.id for row in table[:2]] == ["p1", "p8"]
        assert table[0].wins == 3 and table[1].wins == 2

        assert _sides(view.rounds[0].matches[0]) == ("p1", "p5")
        assert all(m.decided for m in view.rounds[1].matches)
        assert view.final.decided
        assert view.champion_id == "p8"
        assert current_opponent(view, "p8").status == OPPONENT_FINISHED

    def test_recompute_is_pure(self, payload, group_results, quarterfinals):
        results = group_results + quarterfinals
        first = resolve_knockout(payload, results)
        second = resolve_knockout(payload, list(reversed(results)))
        assert first.to_dict() == second.to_dict()


class TestDecidingResult:
    """Tests for choosing the result that decides a knockout match."""

    def test_score_flipped_for_loser(self, payload, group_results, make_snapshot):
        upset = make_snapshot("p5", "p1", score="3:1", phase="knockout")
        view = resolve_knockout(payload, group_results + [upset])
        match = view.rounds[0].matches[0]
        assert match.home.outcome == OUTCOME_LOSER
        assert match.home.score_text == "1:3"
        assert match.away.outcome == OUTCOME_WINNER
        assert match.away.score_text == "3:1"
        assert match.result_id == upset.id
        assert match.winner_id == "p5"

    def test_result_before_publish_ignored(self, payload, group_results, make_snapshot):
        old = make_snapshot("p1", "p5", created_at=datetime(2026, 2, 1, 10, 0))
        view = resolve_knockout(payload, group_results + [old])
        assert not view.rounds[0].matches[0].decided

    def test_group_tagged_result_ignored(self, payload, group_results, make_snapshot):
        tagged = make_snapshot("p1", "p5", phase="group")
        view = resolve_knockout(payload, group_results + [tagged])
        assert not view.rounds[0].matches[0].decided

    def test_untagged_result_after_publish_decides(self, payload, group_results, make_snapshot):
        untagged = make_snapshot("p1", "p5")
        view = resolve_knockout(payload, group_results + [untagged])
        assert view.rounds[0].matches[0].winner_id == "p1"

    def test_unconfirmed_result_ignored(self, payload, group_results, make_snapshot):
        pending = make_snapshot("p1", "p5", phase="knockout", confirmed=False)
        view = resolve_knockout(payload, group_results + [pending])
        assert not view.rounds[0].matches[0].decided

    def test_most_recent_verified_wins(self, payload, group_results, make_snapshot):
        first = make_snapshot("p5", "p1", phase="knockout")
        second = make_snapshot("p1", "p5", phase="knockout")
        view = resolve_knockout(payload, group_results + [second, first])
        assert view.rounds[0].matches[0].winner_id == "p1"

    def test_tie_on_time_broken_by_id(self, make_snapshot):
        when = datetime(2026, 3, 5, 10, 0)
        a = make_snapshot("x", "y", created_at=when, rid="aaa")
        b = make_snapshot("y", "x", created_at=when, rid="bbb")
        assert find_deciding_result("x", "y", [a, b]).id == "bbb"
        assert find_deciding_result("x", "y", [b, a]).id == "bbb"

    def test_doubles_never_decide(self, make_snapshot):
        doubles = make_snapshot(("x", "z"), ("y", "w"))
        assert find_deciding_result("x", "y", [doubles]) is None


class TestWarnings:
    """Inconsistent results are skipped and reported, never raised."""

    def test_overlap_and_unknown_participants(self, payload, group_results, make_snapshot, caplog):
        overlap = make_snapshot(("p1", "p2"), ("p2", "p3"))
        unknown = make_snapshot("p1", "stranger")
        unconfirmed_bad = make_snapshot("p1", "stranger", confirmed=False)

        with caplog.at_level(logging.WARNING, logger="courtside.bracket"):
            view = resolve_knockout(
                payload, group_results + [overlap, unknown, unconfirmed_bad]
            )

        assert len(view.warnings) == 2
        assert overlap.id in view.warnings[0]
        assert unknown.id in view.warnings[1]
        assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2
        assert view.rounds[0].matches[0].home.participant_id == "p1"

    def test_screen_results_keeps_good_ones(self, payload, group_results):
        usable, warnings = screen_results(payload, group_results)
        assert len(usable) == len(group_results)
        assert warnings == []


class TestCurrentOpponent:
    """Tests for the "who do I play next" query."""

    def test_ready(self, payload, group_results, quarterfinals):
        view = resolve_knockout(payload, group_results + quarterfinals)
        query = current_opponent(view, "p1")
        assert query.status == OPPONENT_READY
        assert query.opponent_id == "p6"
        assert query.match_id == "R2-M1"
        assert query.round_name == "半决赛"

    def test_eliminated(self, payload, group_results, quarterfinals):
        view = resolve_knockout(payload, group_results + quarterfinals)
        query = current_opponent(view, "p5")
        assert query.status == OPPONENT_ELIMINATED
        assert query.match_id == "R1-M1"
        assert query.round_name == "1/4 决赛"

    def test_not_entered(self, payload, group_results):
        view = resolve_knockout(payload, group_results)
        assert current_opponent(view, "p9").status == OPPONENT_NOT_ENTERED

    def test_waiting_for_other_semifinal(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        semi = make_snapshot("p1", "p6", phase="knockout")
        view = resolve_knockout(payload, group_results + quarterfinals + [semi])
        query = current_opponent(view, "p1")
        assert query.status == OPPONENT_WAITING
        assert query.opponent_id is None
        assert query.opponent_label == "胜者 R2-M2"
        assert query.round_name == "决赛"

    def test_waiting_for_group_to_finish(self, payload, group_results):
        view = resolve_knockout(payload, group_results[:-1])
        assert current_opponent(view, "p1").status == OPPONENT_WAITING

    def test_finished_and_runner_up(
        self, payload, group_results, quarterfinals, make_snapshot
    ):
        results = group_results + quarterfinals + [
            make_snapshot("p1", "p6", phase="knockout"),
            make_snapshot("p8", "p3", phase="knockout"),
            make_snapshot("p8", "p1", phase="knockout"),
        ]
        view = resolve_knockout(payload, results)
        assert current_opponent(view, "p8").status == OPPONENT_FINISHED
        runner_up = current_opponent(view, "p1")
        assert runner_up.status == OPPONENT_ELIMINATED
        assert runner_up.round_name == "决赛"

    def test_eliminated_opponent_never_offered(self, make_snapshot):
        """A concrete slot naming an already eliminated player means waiting."""
        players = [SeedPlayer(pid, pid.upper(), 1500) for pid in ("a", "b", "c", "d")]
        payload = GroupingPayload(
            generated_at=PUBLISHED,
            format=FORMAT_GROUP_THEN_KNOCKOUT,
            group_count=1,
            groups=[Group(name="第 1 组", players=players, average_points=0)],
            qualifiers_per_group=1,
            knockout=KnockoutSkeleton(
                stage="半决赛",
                bracket_size=4,
                rounds=[
                    BracketRound(
                        name="半决赛",
                        matches=[
                            BracketMatch("R1-M1", "A", "B", "a", "b"),
                            BracketMatch("R1-M2", "C", "D", "c", "d"),
                        ],
                    ),
                    BracketRound(
                        name="决赛",
                        matches=[BracketMatch("R2-M1", "胜者 R1-M1", "C", None, "c")],
                    ),
                ],
            ),
        )
        results = [
            make_snapshot("a", "b", phase="knockout"),
            make_snapshot("d", "c", phase="knockout"),
        ]
        view = resolve_knockout(payload, results)
        query = current_opponent(view, "a")
        assert query.status == OPPONENT_WAITING
        assert query.opponent_id is None


class TestSerialisation:
    """Tests for BracketView.to_dict()."""

    def test_match_keys(self, payload, group_results, quarterfinals):
        data = resolve_knockout(payload, group_results + quarterfinals).to_dict()
        assert set(data) == {"rounds", "finished", "championId", "warnings"}
        decided = data["rounds"][0]["matches"][0]
        assert decided["homePlayerId"] == "p1"
        assert decided["homeOutcome"] == "winner"
        assert decided["homeScoreText"] == "3:1"
        assert decided["awaySourceLabel"] == "第 4 组第 2 名"
        pending = data["rounds"][1]["matches"][0]
        assert pending["homeFilled"] is True
        assert "homeOutcome" not in pending
