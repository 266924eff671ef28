"""
Group standings calculator.

Ranks the players of one round-robin group from the confirmed results
between them. The tie-break order is fixed:

    1. wins                      (desc)
    2. set differential          (desc)
    3. sets won                  (desc)
    4. rating                    (desc)

Head-to-head is deliberately not a tie-break. Results reported without
numeric set counts still count as a win/loss, they just add no sets.

Only single-winner/single-loser results between two members of the group
are considered, and only the earliest confirmed one per pair. Results
tagged with the knockout phase are ignored, and a later untagged rematch
between group-mates cannot reshuffle a finished table either.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from courtside.grouping import SeedPlayer
from courtside.scores import PHASE_KNOCKOUT, extract_phase, extract_set_scores


@dataclass(frozen=True)
class ResultSnapshot:
    """
    Read-only view of a reported result.

    winner_ids/loser_ids hold one id each for singles and two for doubles.
    score is the opaque JSON payload (see scores.py).
    """
    id: str
    winner_ids: tuple[str, ...]
    loser_ids: tuple[str, ...]
    confirmed: bool
    score: Optional[dict]
    created_at: datetime
    verified_at: Optional[datetime] = None

    @property
    def is_singles(self) -> bool:
        return len(self.winner_ids) == 1 and len(self.loser_ids) == 1

    @property
    def winner_id(self) -> str:
        return self.winner_ids[0]

    @property
    def loser_id(self) -> str:
        return self.loser_ids[0]

    @property
    def participant_ids(self) -> set[str]:
        return set(self.winner_ids) | set(self.loser_ids)

    @property
    def has_overlap(self) -> bool:
        return bool(set(self.winner_ids) & set(self.loser_ids))


@dataclass
class StandingRow:
    id: str
    display_name: str
    rating: int
    wins: int = 0
    losses: int = 0
    set_wins: int = 0
    set_losses: int = 0

    @property
    def set_difference(self) -> int:
        return self.set_wins - self.set_losses

    @property
    def played(self) -> int:
        return self.wins + self.losses

    def sort_key(self) -> tuple[int, int, int, int]:
        return (-self.wins, -self.set_difference, -self.set_wins, -self.rating)


@dataclass
class GroupProgress:
    """Standings plus completion state for one group."""
    name: str
    standings: list[StandingRow]
    confirmed_pairs: int
    required_matches: int

    @property
    def completed(self) -> bool:
        return self.required_matches > 0 and self.confirmed_pairs >= self.required_matches

    def qualifiers(self, count: int) -> list[StandingRow]:
        """Top `count` rows, or nothing while the group is still playing."""
        if not self.completed:
            return []
        return self.standings[: min(count, len(self.standings))]


def pair_key(id_a: str, id_b: str) -> tuple[str, str]:
    """Order-independent key for a pair of participants."""
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)


def required_matches(group_size: int) -> int:
    """Round-robin match count; groups of one or zero need none."""
    if group_size <= 1:
        return 0
    return group_size * (group_size - 1) // 2


def _result_order(result: ResultSnapshot) -> tuple[datetime, str]:
    return (result.created_at, str(result.id))


def group_results(
    player_ids: set[str],
    results: Iterable[ResultSnapshot],
) -> list[ResultSnapshot]:
    """
    Confirmed singles results between two members of the group.

    Returns at most one result per pair: the earliest by creation time,
    ties broken by result id.
    """
    selected: dict[tuple[str, str], ResultSnapshot] = {}
    for result in results:
        if not result.confirmed or not result.is_singles:
            continue
        if result.winner_id == result.loser_id:
            continue
        if result.winner_id not in player_ids or result.loser_id not in player_ids:
            continue
        if extract_phase(result.score) == PHASE_KNOCKOUT:
            continue
        key = pair_key(result.winner_id, result.loser_id)
        current = selected.get(key)
        if current is None or _result_order(result) < _result_order(current):
            selected[key] = result
    return list(selected.values())


def build_group_standings(
    players: Sequence[SeedPlayer],
    results: Iterable[ResultSnapshot],
) -> list[StandingRow]:
    """
    Rank a group's players from its results.

    Args:
        players: The group's players (from the grouping payload)
        results: Any results; irrelevant ones are filtered out here

    Returns:
        Standing rows, best first. Recomputing from the same results always
        yields the same order (players fully tied keep payload order).
    """
    rows = {
        p.id: StandingRow(id=p.id, display_name=p.display_name, rating=p.rating)
        for p in players
    }

    for result in group_results(set(rows), results):
        winner = rows[result.winner_id]
        loser = rows[result.loser_id]
        winner.wins += 1
        loser.losses += 1

        sets = extract_set_scores(result.score)
        if sets is not None:
            winner.set_wins += sets.winner
            winner.set_losses += sets.loser
            loser.set_wins += sets.loser
            loser.set_losses += sets.winner

    return sorted(rows.values(), key=StandingRow.sort_key)


def group_progress(
    name: str,
    players: Sequence[SeedPlayer],
    results: Iterable[ResultSnapshot],
) -> GroupProgress:
    """
    Standings and completion for one group.

    A group is complete once every pair of members has at least one
    confirmed result between them.
    """
    results = list(results)
    player_ids = {p.id for p in players}
    pairs = {
        pair_key(r.winner_id, r.loser_id)
        for r in group_results(player_ids, results)
    }
    return GroupProgress(
        name=name,
        standings=build_group_standings(players, results),
        confirmed_pairs=len(pairs),
        required_matches=required_matches(len(players)),
    )
