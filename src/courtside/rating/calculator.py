"""
Elo rating calculator for club matches.

Implements the standard Elo formula with a dynamic, per-player K factor:
- Newcomers swing more than veterans
- Highly rated players swing less
- Team (doubles) matches use the average rating of each side for the
  expectation, but each member keeps their own K

The Elo formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / 400))
  Delta:          D_A = round(K_A * (actual - E_A))

Deltas are whole rating points. Each side is computed with its own K, so a
match is only zero-sum when both sides share the same K.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from courtside.rating.constants import (
    BASE_K,
    EXPERIENCE_TIERS,
    MAX_K,
    MIN_K,
    RATING_SPREAD,
    RATING_TIERS,
)


@dataclass(frozen=True)
class RatedPlayer:
    """A participant's rating state going into a match."""
    participant_id: str
    rating: int
    matches_played: int = 0


@dataclass(frozen=True)
class RatingDelta:
    """
    Result of a rating calculation for one participant.

    Contains everything the persistence layer needs to apply the change
    and write the history row.
    """
    participant_id: str
    before: int
    after: int
    delta: int
    k: int
    won: bool

    def __repr__(self) -> str:
        sign = "+" if self.delta >= 0 else ""
        return (
            f"<RatingDelta({self.participant_id}: {self.before} -> {self.after} "
            f"({sign}{self.delta}), k={self.k})>"
        )


@dataclass(frozen=True)
class RatingHistoryEntry:
    """Immutable history row, one per participant per confirmed result."""
    participant_id: str
    match_ref: str
    before: int
    after: int
    delta: int


@dataclass
class SettlementBatch:
    """
    Everything produced by settling one confirmed result.

    The caller must apply the whole batch atomically and exactly once.
    """
    match_ref: str
    deltas: list[RatingDelta] = field(default_factory=list)
    history: list[RatingHistoryEntry] = field(default_factory=list)

    @property
    def winner_deltas(self) -> list[RatingDelta]:
        return [d for d in self.deltas if d.won]

    @property
    def loser_deltas(self) -> list[RatingDelta]:
        return [d for d in self.deltas if not d.won]


def _round_half_up(value: float) -> int:
    # -2.5 rounds to -2, 2.5 rounds to 3
    return math.floor(value + 0.5)


def dynamic_k(rating: float, matches_played: int) -> int:
    """
    Calculate the K factor for one participant.

    Args:
        rating: Current rating
        matches_played: Confirmed matches the participant has played

    Returns:
        K factor, clamped to [MIN_K, MAX_K]

    Examples:
        dynamic_k(1500, 0)     # -> 40 (newcomer)
        dynamic_k(1500, 50)    # -> 28
        dynamic_k(1500, 150)   # -> 20
        dynamic_k(2250, 150)   # -> 12
    """
    k = BASE_K
    for threshold, tier_k in EXPERIENCE_TIERS:
        if matches_played < threshold:
            k = tier_k
            break

    for threshold, penalty in RATING_TIERS:
        if rating >= threshold:
            k -= penalty
            break

    return max(MIN_K, min(MAX_K, k))


def expected_score(self_rating: float, opponent_rating: float) -> float:
    """Probability that a player rated self_rating beats opponent_rating."""
    try:
        return 1.0 / (1.0 + 10.0 ** ((opponent_rating - self_rating) / RATING_SPREAD))
    except OverflowError:
        return 0.0


def _delta_for(player: RatedPlayer, expected: float, won: bool) -> RatingDelta:
    k = dynamic_k(player.rating, player.matches_played)
    actual = 1.0 if won else 0.0
    delta = _round_half_up(k * (actual - expected))
    return RatingDelta(
        participant_id=player.participant_id,
        before=player.rating,
        after=player.rating + delta,
        delta=delta,
        k=k,
        won=won,
    )


def settle_singles(winner: RatedPlayer, loser: RatedPlayer) -> tuple[RatingDelta, RatingDelta]:
    """
    Calculate rating changes for a one-on-one match.

    Each side uses its own K and its own expected score, so the two deltas
    only cancel out exactly when both players share a K.

    Args:
        winner: Winner's pre-match state
        loser: Loser's pre-match state

    Returns:
        (winner_delta, loser_delta)

    Example:
        # Two established 1500 players (K=28 each)
        w, l = settle_singles(
            RatedPlayer("a", 1500, 50),
            RatedPlayer("b", 1500, 50),
        )
        # w.delta == +14, l.delta == -14
    """
    if winner.participant_id == loser.participant_id:
        raise ValueError("A participant cannot play against themselves")

    winner_exp = expected_score(winner.rating, loser.rating)
    loser_exp = expected_score(loser.rating, winner.rating)

    return (
        _delta_for(winner, winner_exp, won=True),
        _delta_for(loser, loser_exp, won=False),
    )


def settle_team(
    winner_team: Sequence[RatedPlayer],
    loser_team: Sequence[RatedPlayer],
) -> list[RatingDelta]:
    """
    Calculate rating changes for a team (doubles) match.

    The expectation is computed once from each team's average rating. Every
    member then gets a delta from that shared expectation scaled by their
    own K, so a newer partner moves further than a veteran on the same
    result.

    Returns:
        Winner deltas (in team order) followed by loser deltas.

    Raises:
        ValueError: If either team is empty
    """
    if not winner_team or not loser_team:
        raise ValueError("Both teams must have at least one member")

    winner_avg = sum(p.rating for p in winner_team) / len(winner_team)
    loser_avg = sum(p.rating for p in loser_team) / len(loser_team)

    winner_exp = expected_score(winner_avg, loser_avg)
    loser_exp = expected_score(loser_avg, winner_avg)

    deltas = [_delta_for(p, winner_exp, won=True) for p in winner_team]
    deltas.extend(_delta_for(p, loser_exp, won=False) for p in loser_team)
    return deltas


def build_settlement(
    match_ref: str,
    winners: Sequence[RatedPlayer],
    losers: Sequence[RatedPlayer],
    singles: Optional[bool] = None,
) -> SettlementBatch:
    """
    Settle one confirmed result into a batch of deltas and history entries.

    Args:
        match_ref: Identifier of the confirmed result (stored on history rows)
        winners: Winning side, in reported order
        losers: Losing side, in reported order
        singles: Force the singles or team formula. By default singles is
                 used for one-on-one results and the team formula otherwise.

    Returns:
        SettlementBatch with one delta and one history entry per participant
    """
    winner_ids = {p.participant_id for p in winners}
    if winner_ids & {p.participant_id for p in losers}:
        raise ValueError("Winner and loser sides must not share participants")

    if singles is None:
        singles = len(winners) == 1 and len(losers) == 1

    if singles:
        deltas = list(settle_singles(winners[0], losers[0]))
    else:
        deltas = settle_team(winners, losers)

    history = [
        RatingHistoryEntry(
            participant_id=d.participant_id,
            match_ref=match_ref,
            before=d.before,
            after=d.after,
            delta=d.delta,
        )
        for d in deltas
    ]
    return SettlementBatch(match_ref=match_ref, deltas=deltas, history=history)
