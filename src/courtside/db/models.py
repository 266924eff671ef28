"""
SQLAlchemy ORM models for Courtside.

The schema keeps the engine's inputs and its one persisted side effect:

Tables:
- participants: Player records with their live rating and counters
- tournaments: Tournament settings plus the published grouping payload
- registrations: Which participants entered which tournament
- match_results: Reported results (tournament or casual), confirmed or pending
- rating_history: Append-only audit of every rating change

Key design decisions:
- Ids are uuid4 strings so results can be referenced before they are flushed
- Winner/loser sides are JSON id lists (one id for singles, two for doubles)
- The grouping payload is stored verbatim as JSON and never edited in place
- All timestamps are naive UTC
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from courtside.config import settings
from courtside.statuses import MATCH_TYPE_SINGLE, TOURNAMENT_REGISTRATION

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


def starting_rating() -> int:
    return settings.default_rating


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Participant Models
# =============================================================================

class Participant(Base):
    """
    A player who can register for tournaments and report results.

    rating, matches_played, wins and losses are only ever changed by result
    confirmation (see rating/settlement.py). points is the seeding points
    total maintained outside this package.
    """
    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=starting_rating)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    registrations: Mapped[list["Registration"]] = relationship(
        back_populates="participant", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, name='{self.display_name}', rating={self.rating})>"


# =============================================================================
# Tournament Models
# =============================================================================

class Tournament(Base):
    """
    A tournament and its published grouping.

    grouping_payload holds GroupingPayload.to_dict() once the organiser
    publishes the draw; it is the only input (besides results) the bracket
    engine needs. status moves registration -> ongoing -> finished.
    """
    __tablename__ = "tournaments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)

    match_type: Mapped[str] = mapped_column(String(10), nullable=False, default=MATCH_TYPE_SINGLE)
    format: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    qualifiers_per_group: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TOURNAMENT_REGISTRATION
    )

    grouping_payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    grouping_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    registrations: Mapped[list["Registration"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan"
    )
    results: Mapped[list["MatchResult"]] = relationship(back_populates="tournament")

    __table_args__ = (
        Index("idx_tournaments_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, title='{self.title}', status='{self.status}')>"


class Registration(Base):
    """A participant entered into a tournament."""
    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[str] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )
    participant_id: Mapped[str] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    tournament: Mapped["Tournament"] = relationship(back_populates="registrations")
    participant: Mapped["Participant"] = relationship(back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("tournament_id", "participant_id", name="uq_registration_tournament_participant"),
    )

    def __repr__(self) -> str:
        return f"<Registration(tournament={self.tournament_id}, participant={self.participant_id})>"


# =============================================================================
# Result Models
# =============================================================================

class MatchResult(Base):
    """
    A reported match result.

    Results start unconfirmed. Confirmation (by the opponent, or an
    organiser) settles ratings exactly once and stamps verified_at.
    tournament_id is NULL for casual matches played outside a tournament.

    score is the JSON payload built by courtside.scores.build_score_payload:
    {text, winnerScore, loserScore, phase, groupName, knockoutRound}
    """
    __tablename__ = "match_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tournament_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("tournaments.id", ondelete="SET NULL"), nullable=True
    )

    winner_ids: Mapped[list] = mapped_column(JSONType, nullable=False)
    loser_ids: Mapped[list] = mapped_column(JSONType, nullable=False)
    score: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    reported_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    verifier_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    tournament: Mapped[Optional["Tournament"]] = relationship(back_populates="results")

    __table_args__ = (
        Index("idx_match_results_tournament", "tournament_id"),
        Index("idx_match_results_confirmed_created", "confirmed", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MatchResult(id={self.id}, winners={self.winner_ids}, "
            f"losers={self.loser_ids}, confirmed={self.confirmed})>"
        )


class RatingHistory(Base):
    """
    One rating change caused by one confirmed result.

    Append-only. The unique constraint makes a second settlement of the same
    result for the same participant fail loudly instead of double counting.
    """
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    participant_id: Mapped[str] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    match_result_id: Mapped[str] = mapped_column(
        ForeignKey("match_results.id", ondelete="CASCADE"), nullable=False
    )
    rating_before: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_after: Mapped[int] = mapped_column(Integer, nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    participant: Mapped["Participant"] = relationship()

    __table_args__ = (
        UniqueConstraint("participant_id", "match_result_id", name="uq_rating_history_participant_result"),
        Index("idx_rating_history_participant", "participant_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RatingHistory(participant={self.participant_id}, "
            f"{self.rating_before} -> {self.rating_after})>"
        )
