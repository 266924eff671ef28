"""
Participant-facing and organiser-facing views built on the bracket engine.

- participant_progress: where one participant stands (group table, who they
  still have to play, whether they qualified, their knockout state)
- build_group_battle_tables: the round-robin grid of every group, with each
  cell confirmed / pending / still to play
- eligible_match_options: the pairings an organiser can still enter results
  for, in the groups and in the bracket
- tournament_finished: whether nothing is left to play

All functions are pure and take the same (payload, results) snapshot as
resolve_knockout(). Pass a precomputed BracketView to avoid resolving twice.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from courtside.bracket import (
    BracketView,
    OpponentQuery,
    as_naive_utc,
    current_opponent,
    resolve_knockout,
)
from courtside.draw import qualifier_label
from courtside.grouping import GroupingPayload
from courtside.scores import (
    PHASE_GROUP,
    PHASE_KNOCKOUT,
    extract_phase,
    extract_score_text,
    extract_set_scores,
)
from courtside.standings import ResultSnapshot, StandingRow, group_results, pair_key
from courtside.statuses import (
    CELL_CONFIRMED,
    CELL_LABELS,
    CELL_PENDING,
    CELL_TODO,
    LOSS_LABEL,
    OPPONENT_ELIMINATED,
    OPPONENT_FINISHED,
    OPPONENT_NOT_ENTERED,
    OPPONENT_READY,
    PROGRESS_ELIMINATED,
    PROGRESS_FINISHED,
    PROGRESS_GROUP,
    PROGRESS_READY,
    PROGRESS_WAITING,
    WIN_LABEL,
)


@dataclass(frozen=True)
class GroupOpponent:
    id: str
    display_name: str
    played: bool


@dataclass
class ParticipantProgress:
    participant_id: str
    group_name: str
    standings: list[StandingRow]
    group_completed: bool
    opponents: list[GroupOpponent]
    qualified: bool
    state: str
    reason: str = ""
    knockout: Optional[OpponentQuery] = None

    @property
    def rank(self) -> Optional[int]:
        for position, row in enumerate(self.standings, start=1):
            if row.id == self.participant_id:
                return position
        return None

    @property
    def remaining_opponents(self) -> list[GroupOpponent]:
        return [o for o in self.opponents if not o.played]


@dataclass(frozen=True)
class BattleCell:
    status: str
    label: str
    score_text: str = ""


@dataclass
class GroupBattleTable:
    """Round-robin grid; cells are keyed by (row participant, column participant)."""
    group_name: str
    players: list[tuple[str, str]]
    cells: dict[tuple[str, str], BattleCell] = field(default_factory=dict)

    def cell(self, row_id: str, col_id: str) -> Optional[BattleCell]:
        return self.cells.get((row_id, col_id))


@dataclass(frozen=True)
class GroupPairing:
    group_name: str
    player_a_id: str
    player_a_name: str
    player_b_id: str
    player_b_name: str


@dataclass(frozen=True)
class KnockoutPairing:
    match_id: str
    round_name: str
    player_a_id: str
    player_a_name: str
    player_b_id: str
    player_b_name: str


def _first_round_labels(payload: GroupingPayload) -> set[str]:
    if not payload.knockout or not payload.knockout.rounds:
        return set()
    labels = set()
    for match in payload.knockout.rounds[0].matches:
        labels.add(match.home_label)
        labels.add(match.away_label)
    return labels


def participant_progress(
    payload: GroupingPayload,
    results: Sequence[ResultSnapshot],
    participant_id: str,
    view: Optional[BracketView] = None,
) -> ParticipantProgress:
    """
    Summarise one participant's tournament.

    States:
        group       - their group is still being played
        ready       - knockout opponent known
        waiting     - qualified, knockout opponent not decided yet
        eliminated  - out, in the group stage or the bracket
        finished    - nothing left to play (group-only tournament over for
                      them, or knockout champion)

    Raises:
        ValueError: If the participant is not in any group of the payload
    """
    group = payload.group_of(participant_id)
    if group is None:
        raise ValueError("Participant is not part of this tournament's grouping")

    if view is None:
        view = resolve_knockout(payload, results)
    progress = view.group(group.name)

    opponents = []
    for player in group.players:
        if player.id == participant_id:
            continue
        played = any(
            r.confirmed
            and r.is_singles
            and {r.winner_id, r.loser_id} == {participant_id, player.id}
            and extract_phase(r.score) != PHASE_KNOCKOUT
            for r in results
        )
        opponents.append(GroupOpponent(id=player.id, display_name=player.display_name, played=played))

    qualifiers_per_group = payload.qualifiers_per_group or 1
    qualified_rows = progress.qualifiers(qualifiers_per_group)
    rank = next(
        (i for i, row in enumerate(qualified_rows, start=1) if row.id == participant_id),
        None,
    )
    has_knockout = bool(payload.knockout and payload.knockout.rounds)
    qualified = (
        rank is not None
        and has_knockout
        and qualifier_label(group.name, rank) in _first_round_labels(payload)
    )

    result = ParticipantProgress(
        participant_id=participant_id,
        group_name=group.name,
        standings=progress.standings,
        group_completed=progress.completed,
        opponents=opponents,
        qualified=qualified,
        state=PROGRESS_GROUP,
    )

    if not progress.completed:
        remaining = len(result.remaining_opponents)
        result.reason = f"Group stage in progress: {remaining} match(es) left to play"
        return result

    if not has_knockout:
        result.state = PROGRESS_FINISHED
        result.reason = "All group matches have been played"
        return result

    query = current_opponent(view, participant_id)
    result.knockout = query

    if query.status == OPPONENT_NOT_ENTERED:
        if qualified:
            result.state = PROGRESS_WAITING
            result.reason = "Qualified from the group; the knockout draw is not ready yet"
        else:
            result.state = PROGRESS_ELIMINATED
            result.reason = "Did not qualify from the group stage"
    elif query.status == OPPONENT_ELIMINATED:
        result.state = PROGRESS_ELIMINATED
        result.reason = f"Knocked out in {query.round_name}"
    elif query.status == OPPONENT_FINISHED:
        result.state = PROGRESS_FINISHED
        result.reason = "Won the tournament"
    elif query.status == OPPONENT_READY:
        result.state = PROGRESS_READY
        result.reason = f"Next: {query.opponent_label} in {query.round_name}"
    else:
        result.state = PROGRESS_WAITING
        result.reason = "The next knockout opponent has not been decided yet"

    return result


def build_group_battle_tables(
    payload: GroupingPayload,
    results: Iterable[ResultSnapshot],
) -> list[GroupBattleTable]:
    """
    Round-robin grids for every group.

    For each pair the confirmed result counted in the standings wins over
    any pending one. Labels and score text read from the row player's side.
    """
    results = list(results)
    tables = []

    for group in payload.groups:
        ids = group.player_ids
        confirmed = {
            pair_key(r.winner_id, r.loser_id): r for r in group_results(ids, results)
        }
        pending: dict[tuple[str, str], ResultSnapshot] = {}

        for result in results:
            if result.confirmed or not result.is_singles or result.has_overlap:
                continue
            if extract_phase(result.score) == PHASE_KNOCKOUT:
                continue
            if result.winner_id not in ids or result.loser_id not in ids:
                continue
            pending.setdefault(pair_key(result.winner_id, result.loser_id), result)

        table = GroupBattleTable(
            group_name=group.name,
            players=[(p.id, p.display_name) for p in group.players],
        )
        for row in group.players:
            for col in group.players:
                if row.id == col.id:
                    continue
                key = pair_key(row.id, col.id)
                if key in confirmed:
                    result = confirmed[key]
                    row_won = result.winner_id == row.id
                    table.cells[(row.id, col.id)] = BattleCell(
                        status=CELL_CONFIRMED,
                        label=WIN_LABEL if row_won else LOSS_LABEL,
                        score_text=_score_from_side(result, row_won),
                    )
                elif key in pending:
                    result = pending[key]
                    table.cells[(row.id, col.id)] = BattleCell(
                        status=CELL_PENDING,
                        label=CELL_LABELS[CELL_PENDING],
                        score_text=_score_from_side(result, result.winner_id == row.id),
                    )
                else:
                    table.cells[(row.id, col.id)] = BattleCell(
                        status=CELL_TODO,
                        label=CELL_LABELS[CELL_TODO],
                    )
        tables.append(table)

    return tables


def _score_from_side(result: ResultSnapshot, from_winner: bool) -> str:
    sets = extract_set_scores(result.score)
    if sets is not None:
        return sets.as_text(from_winner=from_winner)
    return extract_score_text(result.score)


def eligible_match_options(
    payload: GroupingPayload,
    view: BracketView,
    results: Iterable[ResultSnapshot],
) -> tuple[list[GroupPairing], list[KnockoutPairing]]:
    """
    Pairings still awaiting a result.

    Group pairings are those with no singles result yet (confirmed or
    pending, ignoring knockout-tagged ones). Knockout pairings are resolved,
    undecided bracket matches with no result for the pair reported since
    the grouping was published.
    """
    results = list(results)
    group_pairs = {
        pair_key(r.winner_id, r.loser_id)
        for r in results
        if r.is_singles and extract_phase(r.score) != PHASE_KNOCKOUT
    }

    since = as_naive_utc(payload.generated_at)
    knockout_pairs = set()
    for r in results:
        if not r.is_singles or extract_phase(r.score) == PHASE_GROUP:
            continue
        if since is not None and as_naive_utc(r.created_at) < since:
            continue
        knockout_pairs.add(pair_key(r.winner_id, r.loser_id))

    group_options = []
    for group in payload.groups:
        players = group.players
        for i, player_a in enumerate(players):
            for player_b in players[i + 1:]:
                if pair_key(player_a.id, player_b.id) in group_pairs:
                    continue
                group_options.append(
                    GroupPairing(
                        group_name=group.name,
                        player_a_id=player_a.id,
                        player_a_name=player_a.display_name,
                        player_b_id=player_b.id,
                        player_b_name=player_b.display_name,
                    )
                )

    knockout_options = []
    for round_ in view.rounds:
        for match in round_.matches:
            home_id = match.home.participant_id
            away_id = match.away.participant_id
            if not home_id or not away_id or match.decided:
                continue
            if pair_key(home_id, away_id) in knockout_pairs:
                continue
            knockout_options.append(
                KnockoutPairing(
                    match_id=match.id,
                    round_name=round_.name,
                    player_a_id=home_id,
                    player_a_name=match.home.label,
                    player_b_id=away_id,
                    player_b_name=match.away.label,
                )
            )

    return group_options, knockout_options


def tournament_finished(payload: GroupingPayload, view: BracketView) -> bool:
    """
    Whether the tournament has nothing left to play.

    Knockout tournaments finish when the final is decided. Group-only
    tournaments finish when every group that needs matches is complete.
    """
    if payload.knockout and payload.knockout.rounds:
        return view.is_finished
    playable = [g for g in view.groups if g.required_matches > 0]
    return bool(playable) and all(g.completed for g in playable)
