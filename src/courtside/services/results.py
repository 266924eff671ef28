"""
Result service: reporting, confirming and rejecting match results.

A result is reported by one side and stays unconfirmed until it is
confirmed (rating settlement happens then, exactly once) or rejected
(the row is deleted). Unconfirmed casual results expire after the
configured timeout.

Usage:
    from courtside.services import report_result, confirm_reported_result

    with get_session() as session:
        result = report_result(session, [winner_id], [loser_id], score_text="3:1",
                               tournament_id=tournament_id, reported_by=winner_id)
        outcome = confirm_reported_result(session, result.id, verifier_id=loser_id)
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from courtside.config import settings
from courtside.db.models import MatchResult, Participant, Registration, Tournament
from courtside.rating.settlement import ConfirmationOutcome, ResultNotFoundError, confirm_result
from courtside.scores import build_score_payload
from courtside.statuses import MATCH_TYPE_DOUBLE, MATCH_TYPE_SINGLE, TOURNAMENT_FINISHED

logger = logging.getLogger(__name__)

TEAM_SIZES = {MATCH_TYPE_SINGLE: 1, MATCH_TYPE_DOUBLE: 2}


class ResultInputError(ValueError):
    """A reported result is malformed or not allowed."""


def _validate_sides(winner_ids: Sequence[str], loser_ids: Sequence[str]) -> None:
    if not winner_ids or not loser_ids:
        raise ResultInputError("Both the winning and the losing side need at least one player")
    if len(set(winner_ids)) != len(winner_ids) or len(set(loser_ids)) != len(loser_ids):
        raise ResultInputError("A player cannot appear twice on the same side")
    if set(winner_ids) & set(loser_ids):
        raise ResultInputError("A player cannot be on both the winning and the losing side")
    if len(winner_ids) != len(loser_ids):
        raise ResultInputError("Both sides must have the same number of players")
    if len(winner_ids) not in TEAM_SIZES.values():
        raise ResultInputError("Only singles and doubles results can be reported")


def report_result(
    session: Session,
    winner_ids: Sequence[str],
    loser_ids: Sequence[str],
    score_text: Optional[str] = None,
    tournament_id: Optional[str] = None,
    reported_by: Optional[str] = None,
    phase: Optional[str] = None,
    group_name: Optional[str] = None,
    knockout_round: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MatchResult:
    """
    Record an unconfirmed result.

    Tournament results must match the tournament's match type, only involve
    registered participants, and cannot be reported once it has finished.

    Raises:
        ResultInputError: If the sides, participants or tournament are invalid
        ScoreParseError: If the score text is empty, too long, or has a bad phase
    """
    winner_ids = [str(pid) for pid in winner_ids]
    loser_ids = [str(pid) for pid in loser_ids]
    _validate_sides(winner_ids, loser_ids)

    all_ids = set(winner_ids) | set(loser_ids)
    found = session.query(Participant.id).filter(Participant.id.in_(all_ids)).count()
    if found != len(all_ids):
        raise ResultInputError("Every player on the result must be a known participant")

    if tournament_id is not None:
        tournament = session.get(Tournament, tournament_id)
        if tournament is None:
            raise ResultInputError("Tournament not found")
        if tournament.status == TOURNAMENT_FINISHED:
            raise ResultInputError("This tournament has already finished")
        expected = TEAM_SIZES.get(tournament.match_type, 1)
        if len(winner_ids) != expected:
            raise ResultInputError(
                f"This tournament expects {expected} player(s) per side"
            )
        registered = (
            session.query(Registration.participant_id)
            .filter(
                Registration.tournament_id == tournament_id,
                Registration.participant_id.in_(all_ids),
            )
            .count()
        )
        if registered != len(all_ids):
            raise ResultInputError("Every player on the result must be registered for the tournament")

    score = None
    if score_text is not None:
        score = build_score_payload(
            score_text,
            phase=phase,
            group_name=group_name,
            knockout_round=knockout_round,
        )

    result = MatchResult(
        tournament_id=tournament_id,
        winner_ids=winner_ids,
        loser_ids=loser_ids,
        score=score,
        confirmed=False,
        reported_by=reported_by,
        created_at=now or datetime.utcnow(),
    )
    session.add(result)
    session.flush()

    logger.info(
        "Reported result %s (%s) in %s",
        result.id,
        "doubles" if len(winner_ids) == 2 else "singles",
        f"tournament {tournament_id}" if tournament_id else "a casual match",
    )
    return result


def confirm_reported_result(
    session: Session,
    result_id: str,
    verifier_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConfirmationOutcome:
    """
    Confirm a result and settle ratings.

    Repeated or concurrent confirmations are a successful no-op; check
    outcome.applied to know whether this call settled the ratings.

    Raises:
        ResultNotFoundError: If no result has this id
    """
    outcome = confirm_result(session, result_id, verifier_id=verifier_id, now=now)
    if outcome.already_confirmed:
        logger.debug("Confirmation of %s was a no-op", result_id)
    return outcome


def reject_result(session: Session, result_id: str) -> None:
    """
    Reject (delete) an unconfirmed result.

    Raises:
        ResultNotFoundError: If no result has this id
        ResultInputError: If the result is already confirmed
    """
    result = (
        session.query(MatchResult)
        .filter(MatchResult.id == result_id)
        .with_for_update()
        .first()
    )
    if result is None:
        raise ResultNotFoundError("Match result not found")
    if result.confirmed:
        raise ResultInputError("A confirmed result cannot be rejected")

    session.delete(result)
    session.flush()
    logger.info("Rejected result %s", result_id)


def purge_stale_results(
    session: Session,
    now: Optional[datetime] = None,
    timeout_hours: Optional[int] = None,
) -> int:
    """
    Delete unconfirmed casual results older than the confirmation timeout.

    Tournament results are left for the organiser to confirm or reject.

    Returns:
        Number of results deleted
    """
    now = now or datetime.utcnow()
    if timeout_hours is None:
        timeout_hours = settings.result_confirmation_timeout_hours
    cutoff = now - timedelta(hours=timeout_hours)

    deleted = (
        session.query(MatchResult)
        .filter(
            MatchResult.confirmed.is_(False),
            MatchResult.tournament_id.is_(None),
            MatchResult.created_at < cutoff,
        )
        .delete(synchronize_session=False)
    )
    session.flush()

    if deleted:
        logger.info("Purged %d unconfirmed result(s) older than %dh", deleted, timeout_hours)
    return deleted
