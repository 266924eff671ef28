"""
Tournament service: grouping publication and bracket views.

Translates between the ORM rows and the pure engine snapshots:

- load_seed_players / load_result_snapshots: rows -> engine inputs
- preview_grouping: generate a payload without saving it
- publish_grouping: generate, store and lock in the payload
- tournament_view: everything a bracket page needs, recomputed from history
- participant_view: one participant's progress through the tournament

Usage:
    from courtside.services import publish_grouping, tournament_view

    with get_session() as session:
        publish_grouping(session, tournament_id, format="group_then_knockout")
        view = tournament_view(session, tournament_id)
        print(view.summary())
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from courtside.bracket import BracketView, resolve_knockout
from courtside.config import settings
from courtside.db.models import MatchResult, Participant, Registration, Tournament
from courtside.grouping import (
    FORMAT_GROUP_ONLY,
    FORMAT_GROUP_THEN_KNOCKOUT,
    GroupingPayload,
    SeedPlayer,
    generate_grouping_payload,
)
from courtside.progress import (
    GroupBattleTable,
    GroupPairing,
    KnockoutPairing,
    ParticipantProgress,
    build_group_battle_tables,
    eligible_match_options,
    participant_progress,
    tournament_finished,
)
from courtside.standings import ResultSnapshot
from courtside.statuses import TOURNAMENT_FINISHED, TOURNAMENT_ONGOING

logger = logging.getLogger(__name__)


class TournamentNotFoundError(LookupError):
    """No tournament has the requested id."""


class GroupingLockedError(RuntimeError):
    """The published grouping already has results recorded against it."""


class GroupingNotPublishedError(RuntimeError):
    """The tournament has no published grouping yet."""


@dataclass
class TournamentView:
    """Recomputed state of a tournament with a published grouping."""
    tournament_id: str
    title: str
    status: str
    payload: GroupingPayload
    bracket: BracketView
    battle_tables: list[GroupBattleTable]
    group_options: list[GroupPairing] = field(default_factory=list)
    knockout_options: list[KnockoutPairing] = field(default_factory=list)
    finished: bool = False

    @property
    def warnings(self) -> list[str]:
        return self.bracket.warnings

    def summary(self) -> str:
        """Return a human-readable summary of the tournament state."""
        completed = sum(1 for g in self.bracket.groups if g.completed)
        decided = sum(1 for m in self.bracket.iter_matches() if m.decided)
        total = sum(1 for _ in self.bracket.iter_matches())
        lines = [
            f"{self.title} ({self.status}):",
            f"  Format:                   {self.payload.format}",
            f"  Groups completed:         {completed}/{len(self.bracket.groups)}",
            f"  Knockout matches decided: {decided}/{total}",
            f"  Pending group pairings:   {len(self.group_options)}",
            f"  Pending knockout matches: {len(self.knockout_options)}",
            f"  Finished:                 {self.finished}",
        ]
        if self.bracket.champion_id:
            lines.append(f"  Champion:                 {self.bracket.champion_id}")
        if self.warnings:
            lines.append(f"  Warnings: {len(self.warnings)}")
            for warning in self.warnings[:5]:
                lines.append(f"    - {warning}")
            if len(self.warnings) > 5:
                lines.append(f"    ... and {len(self.warnings) - 5} more")
        return "\n".join(lines)


# =============================================================================
# Loading
# =============================================================================

def get_tournament(session: Session, tournament_id: str) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise TournamentNotFoundError("Tournament not found")
    return tournament


def load_seed_players(session: Session, tournament_id: str) -> list[SeedPlayer]:
    """Registered participants as seeding snapshots, in registration order."""
    rows = (
        session.query(Participant)
        .join(Registration, Registration.participant_id == Participant.id)
        .filter(Registration.tournament_id == tournament_id)
        .order_by(Registration.created_at, Registration.id)
        .all()
    )
    return [
        SeedPlayer(id=p.id, display_name=p.display_name, rating=p.rating, points=p.points)
        for p in rows
    ]


def snapshot_of(result: MatchResult) -> ResultSnapshot:
    return ResultSnapshot(
        id=result.id,
        winner_ids=tuple(str(pid) for pid in (result.winner_ids or [])),
        loser_ids=tuple(str(pid) for pid in (result.loser_ids or [])),
        confirmed=bool(result.confirmed),
        score=result.score,
        created_at=result.created_at,
        verified_at=result.verified_at,
    )


def load_result_snapshots(
    session: Session,
    tournament_id: str,
    include_unconfirmed: bool = True,
) -> list[ResultSnapshot]:
    """A tournament's results, newest first."""
    query = session.query(MatchResult).filter(MatchResult.tournament_id == tournament_id)
    if not include_unconfirmed:
        query = query.filter(MatchResult.confirmed.is_(True))
    rows = query.order_by(MatchResult.created_at.desc(), MatchResult.id).all()
    return [snapshot_of(r) for r in rows]


def load_payload(tournament: Tournament) -> GroupingPayload:
    if not tournament.grouping_payload:
        raise GroupingNotPublishedError("The grouping has not been published yet")
    return GroupingPayload.from_dict(tournament.grouping_payload)


# =============================================================================
# Grouping
# =============================================================================

def _ideal_group_size(format: str) -> int:
    if format == FORMAT_GROUP_ONLY:
        return settings.group_size_group_only
    return settings.group_size_knockout


def preview_grouping(
    session: Session,
    tournament_id: str,
    format: Optional[str] = None,
    group_count: Optional[int] = None,
    qualifiers_per_group: Optional[int] = None,
    now: Optional[datetime] = None,
) -> GroupingPayload:
    """
    Generate a grouping for the registered participants without saving it.

    format and qualifiers_per_group default to the tournament's own settings
    (then to group_then_knockout and the configured default).

    Raises:
        TournamentNotFoundError: If the tournament does not exist
        GroupingInputError: If the registrations cannot form a valid grouping
    """
    tournament = get_tournament(session, tournament_id)
    format = format or tournament.format or FORMAT_GROUP_THEN_KNOCKOUT
    if qualifiers_per_group is None:
        qualifiers_per_group = (
            tournament.qualifiers_per_group or settings.default_qualifiers_per_group
        )

    players = load_seed_players(session, tournament_id)
    payload = generate_grouping_payload(
        format,
        players,
        group_count=group_count,
        qualifiers_per_group=qualifiers_per_group,
        generated_at=now or datetime.now(timezone.utc),
        ideal_group_size=_ideal_group_size(format),
        max_groups=settings.max_groups,
        max_bracket_size=settings.max_bracket_size,
    )
    logger.debug(
        "Previewed grouping for tournament %s: %d players in %d groups",
        tournament_id,
        len(players),
        payload.group_count,
    )
    return payload


def publish_grouping(
    session: Session,
    tournament_id: str,
    format: Optional[str] = None,
    group_count: Optional[int] = None,
    qualifiers_per_group: Optional[int] = None,
    now: Optional[datetime] = None,
) -> GroupingPayload:
    """
    Generate and store the tournament's grouping, moving it to ongoing.

    A grouping can be regenerated until the first result is reported
    against the tournament; after that it is locked.

    Raises:
        GroupingLockedError: If results already exist for this tournament
        GroupingInputError: If the registrations cannot form a valid grouping
    """
    tournament = get_tournament(session, tournament_id)

    has_results = (
        session.query(MatchResult.id)
        .filter(MatchResult.tournament_id == tournament_id)
        .first()
        is not None
    )
    if tournament.grouping_payload and has_results:
        raise GroupingLockedError(
            "The grouping cannot be regenerated once results have been reported"
        )

    payload = preview_grouping(
        session,
        tournament_id,
        format=format,
        group_count=group_count,
        qualifiers_per_group=qualifiers_per_group,
        now=now,
    )

    tournament.grouping_payload = payload.to_dict()
    tournament.grouping_generated_at = (
        payload.generated_at.astimezone(timezone.utc).replace(tzinfo=None)
        if payload.generated_at.tzinfo
        else payload.generated_at
    )
    tournament.format = payload.format
    tournament.qualifiers_per_group = payload.qualifiers_per_group
    tournament.status = TOURNAMENT_ONGOING
    session.flush()

    logger.info(
        "Published grouping for tournament %s: %d groups, bracket size %s",
        tournament_id,
        payload.group_count,
        payload.knockout.bracket_size if payload.knockout else "-",
    )
    return payload


# =============================================================================
# Views
# =============================================================================

def tournament_view(
    session: Session,
    tournament_id: str,
    mark_finished: bool = False,
) -> TournamentView:
    """
    Recompute the whole tournament from its payload and result history.

    Args:
        session: Database session
        tournament_id: Tournament to view
        mark_finished: Move the tournament to finished when nothing is left
                       to play

    Raises:
        TournamentNotFoundError: If the tournament does not exist
        GroupingNotPublishedError: If no grouping has been published
    """
    tournament = get_tournament(session, tournament_id)
    payload = load_payload(tournament)
    results = load_result_snapshots(session, tournament_id)

    bracket = resolve_knockout(payload, results)
    group_options, knockout_options = eligible_match_options(payload, bracket, results)
    finished = tournament_finished(payload, bracket)

    if mark_finished and finished and tournament.status != TOURNAMENT_FINISHED:
        tournament.status = TOURNAMENT_FINISHED
        session.flush()
        logger.info("Tournament %s finished", tournament_id)

    return TournamentView(
        tournament_id=tournament.id,
        title=tournament.title,
        status=tournament.status,
        payload=payload,
        bracket=bracket,
        battle_tables=build_group_battle_tables(payload, results),
        group_options=group_options,
        knockout_options=knockout_options,
        finished=finished,
    )


def participant_view(
    session: Session,
    tournament_id: str,
    participant_id: str,
) -> ParticipantProgress:
    """
    One participant's progress in a tournament.

    Raises:
        TournamentNotFoundError: If the tournament does not exist
        GroupingNotPublishedError: If no grouping has been published
        ValueError: If the participant is not in the grouping
    """
    tournament = get_tournament(session, tournament_id)
    payload = load_payload(tournament)
    results = load_result_snapshots(session, tournament_id)
    return participant_progress(payload, results, participant_id)
