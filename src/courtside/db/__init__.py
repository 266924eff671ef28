"""
Database module for Courtside.

Provides SQLAlchemy ORM models and session management.

Usage:
    from courtside.db import get_session, Tournament, MatchResult

    with get_session() as session:
        tournament = session.get(Tournament, tournament_id)
"""

from courtside.db.models import (
    Base,
    MatchResult,
    Participant,
    RatingHistory,
    Registration,
    Tournament,
)
from courtside.db.session import SessionLocal, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Participant",
    "Tournament",
    "Registration",
    "MatchResult",
    "RatingHistory",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
