"""
Unit tests for result confirmation and rating settlement.

Runs against the SQLite test database from conftest.py.
"""

from datetime import datetime

import pytest
from sqlalchemy import Update, text

from courtside.db.models import MatchResult, RatingHistory
from courtside.rating.settlement import ResultNotFoundError, confirm_result

NOW = datetime(2026, 3, 3, 18, 30)


@pytest.fixture
def make_result(db_session):
    def _make(winners, losers, confirmed=False):
        result = MatchResult(
            winner_ids=[p.id for p in winners],
            loser_ids=[p.id for p in losers],
            score={"text": "3:1", "winnerScore": 3, "loserScore": 1},
            confirmed=confirmed,
            created_at=datetime(2026, 3, 3, 18, 0),
        )
        db_session.add(result)
        db_session.flush()
        return result
    return _make


def _history(db_session, result_id):
    return (
        db_session.query(RatingHistory)
        .filter(RatingHistory.match_result_id == result_id)
        .all()
    )


class TestConfirmSingles:
    """Tests for confirming a one-on-one result."""

    def test_applies_deltas_and_counters(self, db_session, make_participant, make_result):
        """Two newcomers at 1500 play with K=40: +20 / -20."""
        alice = make_participant("Alice")
        bob = make_participant("Bob")
        result = make_result([alice], [bob])

        outcome = confirm_result(db_session, result.id, verifier_id=bob.id, now=NOW)

        assert outcome.applied
        assert not outcome.already_confirmed
        assert [d.delta for d in outcome.batch.deltas] == [20, -20]

        assert alice.rating == 1520 and bob.rating == 1480
        assert alice.matches_played == 1 and bob.matches_played == 1
        assert alice.wins == 1 and alice.losses == 0
        assert bob.wins == 0 and bob.losses == 1

        assert result.confirmed
        assert result.verified_at == NOW
        assert result.verifier_id == bob.id

    def test_writes_history(self, db_session, make_participant, make_result):
        alice = make_participant("Alice", rating=1600, matches_played=150)
        bob = make_participant("Bob", rating=1500, matches_played=150)
        result = make_result([bob], [alice])

        confirm_result(db_session, result.id, now=NOW)

        rows = {r.participant_id: r for r in _history(db_session, result.id)}
        assert set(rows) == {alice.id, bob.id}
        assert rows[bob.id].rating_before == 1500
        assert rows[bob.id].rating_after == bob.rating
        assert rows[bob.id].delta > 10
        assert rows[alice.id].delta < -10
        assert rows[alice.id].created_at == NOW

    def test_second_confirmation_is_noop(self, db_session, make_participant, make_result):
        alice = make_participant("Alice")
        bob = make_participant("Bob")
        result = make_result([alice], [bob])

        confirm_result(db_session, result.id, now=NOW)
        again = confirm_result(db_session, result.id, now=NOW)

        assert not again.applied
        assert again.already_confirmed
        assert again.batch is None
        assert alice.rating == 1520
        assert alice.matches_played == 1
        assert len(_history(db_session, result.id)) == 2

    def test_missing_result(self, db_session):
        with pytest.raises(ResultNotFoundError):
            confirm_result(db_session, "does-not-exist")

    def test_missing_is_lookup_error(self, db_session):
        with pytest.raises(LookupError):
            confirm_result(db_session, "does-not-exist")

    def test_empty_side_rejected(self, db_session, make_participant, make_result):
        alice = make_participant("Alice")
        result = make_result([alice], [])
        with pytest.raises(ValueError):
            confirm_result(db_session, result.id)
        assert not result.confirmed


class TestConfirmDoubles:
    """Tests for confirming a team result."""

    def test_every_member_settled(self, db_session, make_participant, make_result):
        a, b, c, d = (make_participant(name) for name in ("A", "B", "C", "D"))
        veteran = make_participant("Vet", matches_played=150)
        result = make_result([a, veteran], [c, d])

        outcome = confirm_result(db_session, result.id, now=NOW)

        assert outcome.applied
        assert len(outcome.batch.deltas) == 4
        assert a.rating == 1520
        assert veteran.rating == 1510
        assert c.rating == 1480 and d.rating == 1480
        assert b.matches_played == 0
        assert veteran.matches_played == 151
        assert len(_history(db_session, result.id)) == 4


class TestConcurrentConfirmation:
    """Two confirmers read the same unconfirmed row; only one may settle."""

    def test_lost_race_is_noop(self, db_session, monkeypatch, make_participant, make_result):
        """
        The other confirmer flips the row between our locked read and our
        guarded UPDATE, so the UPDATE matches nothing.
        """
        alice = make_participant("Alice")
        bob = make_participant("Bob")
        result = make_result([alice], [bob])
        result_id = result.id

        execute = db_session.execute

        def confirm_elsewhere_first(statement, *args, **kwargs):
            if isinstance(statement, Update):
                execute(
                    text("UPDATE match_results SET confirmed = 1 WHERE id = :id"),
                    {"id": result_id},
                )
            return execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", confirm_elsewhere_first)

        outcome = confirm_result(db_session, result_id, verifier_id=bob.id, now=NOW)

        assert not outcome.applied
        assert outcome.already_confirmed
        assert outcome.batch is None
        assert alice.rating == 1500 and bob.rating == 1500
        assert alice.matches_played == 0 and bob.matches_played == 0
        assert alice.wins == 0 and bob.losses == 0
        assert _history(db_session, result_id) == []

        db_session.refresh(result)
        assert result.confirmed
        assert result.verifier_id is None
