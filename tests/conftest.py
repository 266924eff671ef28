"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from courtside.db.models import Base, Participant, Registration, Tournament
from courtside.grouping import SeedPlayer
from courtside.scores import build_score_payload
from courtside.standings import ResultSnapshot


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features (row locks are a no-op there).
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
    )
    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_participant(db_session):
    """Factory for persisted participants."""
    def _make(display_name, rating=1500, points=0, matches_played=0):
        participant = Participant(
            display_name=display_name,
            rating=rating,
            points=points,
            matches_played=matches_played,
        )
        db_session.add(participant)
        db_session.flush()
        return participant
    return _make


@pytest.fixture
def make_tournament(db_session):
    """Factory for a persisted tournament with the given participants registered."""
    def _make(participants, title="Club Open", match_type="single", format=None):
        tournament = Tournament(title=title, match_type=match_type, format=format)
        db_session.add(tournament)
        db_session.flush()
        for offset, participant in enumerate(participants):
            db_session.add(
                Registration(
                    tournament_id=tournament.id,
                    participant_id=participant.id,
                    created_at=datetime(2026, 1, 1, 9, 0, offset),
                )
            )
        db_session.flush()
        return tournament
    return _make


@pytest.fixture
def seed_players():
    """Factory for in-memory seeding snapshots p1..pN (p1 strongest)."""
    def _make(count, base_rating=1600):
        return [
            SeedPlayer(
                id=f"p{i}",
                display_name=f"Player {i}",
                rating=base_rating - i,
                points=(count - i) * 10,
            )
            for i in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def make_snapshot():
    """
    Factory for engine result snapshots.

    Each call gets a creation time one minute after the previous one, so
    "most recent" is simply the last snapshot made.
    """
    counter = {"n": 0}

    def _make(winner, loser, score="3:1", confirmed=True, phase=None, created_at=None, rid=None):
        counter["n"] += 1
        n = counter["n"]
        winners = winner if isinstance(winner, tuple) else (winner,)
        losers = loser if isinstance(loser, tuple) else (loser,)
        payload = build_score_payload(score, phase=phase) if score else None
        created = created_at or datetime(2026, 3, 2, 9, 0) + timedelta(minutes=n)
        return ResultSnapshot(
            id=rid or f"r{n:03d}",
            winner_ids=winners,
            loser_ids=losers,
            confirmed=confirmed,
            score=payload,
            created_at=created,
            verified_at=created if confirmed else None,
        )
    return _make


@pytest.fixture
def complete_groups(make_snapshot):
    """
    Confirmed group-stage results finishing every group of a payload.

    Within each group the earlier-listed player always wins 3:1, so final
    group order equals payload order.
    """
    def _make(payload):
        results = []
        for group in payload.groups:
            players = group.players
            for i, better in enumerate(players):
                for worse in players[i + 1:]:
                    results.append(make_snapshot(better.id, worse.id, phase="group"))
        return results
    return _make
