"""Result confirmation and its one-time rating settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from courtside.db.models import MatchResult, Participant, RatingHistory
from courtside.rating.calculator import RatedPlayer, SettlementBatch, build_settlement

logger = logging.getLogger(__name__)


class ResultNotFoundError(LookupError):
    """The result to confirm or reject does not exist."""


@dataclass
class ConfirmationOutcome:
    """
    What a confirmation call did.

    applied is True only for the call that actually settled ratings. A
    repeated or concurrent confirmation gets applied=False and
    already_confirmed=True, which callers should treat as success.
    """
    result_id: str
    applied: bool
    already_confirmed: bool
    batch: Optional[SettlementBatch] = None


def confirm_result(
    session: Session,
    result_id: str,
    verifier_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConfirmationOutcome:
    """
    Confirm a reported result and settle ratings exactly once.

    Runs inside the caller's transaction:
    1. Lock the result row; return a no-op outcome if it is already confirmed
    2. Flip confirmed with a guarded UPDATE (WHERE confirmed = false) so only
       one concurrent confirmer gets a row back
    3. Lock the participant rows in id order
    4. Apply every delta, bump the counters, append rating history

    The caller commits (or rolls back on error).

    Raises:
        ResultNotFoundError: If no result has this id
        ValueError: If the stored sides are unusable (empty or overlapping)
        LookupError: If a participant on the result no longer exists
    """
    now = now or datetime.utcnow()

    result = (
        session.query(MatchResult)
        .filter(MatchResult.id == result_id)
        .with_for_update()
        .first()
    )
    if result is None:
        raise ResultNotFoundError("Match result not found")

    if result.confirmed:
        logger.info("Result %s already confirmed, nothing to settle", result_id)
        return ConfirmationOutcome(result_id=result_id, applied=False, already_confirmed=True)

    winner_ids = [str(pid) for pid in (result.winner_ids or [])]
    loser_ids = [str(pid) for pid in (result.loser_ids or [])]
    if not winner_ids or not loser_ids:
        raise ValueError("A result needs at least one winner and one loser")

    claimed = session.execute(
        update(MatchResult)
        .where(MatchResult.id == result_id, MatchResult.confirmed.is_(False))
        .values(confirmed=True, verified_at=now, verifier_id=verifier_id)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        logger.info("Result %s was confirmed concurrently, nothing to settle", result_id)
        return ConfirmationOutcome(result_id=result_id, applied=False, already_confirmed=True)
    session.refresh(result)

    all_ids = sorted(set(winner_ids) | set(loser_ids))
    participants = (
        session.query(Participant)
        .filter(Participant.id.in_(all_ids))
        .order_by(Participant.id)
        .with_for_update()
        .all()
    )
    by_id = {p.id: p for p in participants}
    missing = [pid for pid in all_ids if pid not in by_id]
    if missing:
        raise LookupError(f"{len(missing)} participant(s) on this result no longer exist")

    def rated(pid: str) -> RatedPlayer:
        p = by_id[pid]
        return RatedPlayer(participant_id=p.id, rating=p.rating, matches_played=p.matches_played)

    batch = build_settlement(
        result_id,
        [rated(pid) for pid in winner_ids],
        [rated(pid) for pid in loser_ids],
    )

    for delta in batch.deltas:
        participant = by_id[delta.participant_id]
        participant.rating = delta.after
        participant.matches_played += 1
        if delta.won:
            participant.wins += 1
        else:
            participant.losses += 1

    for entry in batch.history:
        session.add(
            RatingHistory(
                participant_id=entry.participant_id,
                match_result_id=entry.match_ref,
                rating_before=entry.before,
                rating_after=entry.after,
                delta=entry.delta,
                created_at=now,
            )
        )

    session.flush()

    logger.info(
        "Confirmed result %s: %s",
        result_id,
        ", ".join(f"{d.participant_id} {d.delta:+d}" for d in batch.deltas),
    )
    return ConfirmationOutcome(
        result_id=result_id,
        applied=True,
        already_confirmed=False,
        batch=batch,
    )
