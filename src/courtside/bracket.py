"""
Bracket resolution engine.

Given the immutable GroupingPayload and the full result history, rebuilds a
"filled" view of every knockout round:

1. Every completed group maps its top-K qualifier slots to participants.
2. Rounds are walked in order. Each slot label is parsed into a slot source
   (qualifier, winner of a match, concrete participant) and resolved
   against the qualifiers and the winners found so far.
3. When both sides of a match are known, the most recently verified
   confirmed singles result between exactly that pair, created on or after
   the grouping was published, decides the match. Its winner feeds the
   "胜者 <match id>" slot of the next round.

Nothing is mutated in place: resolve_knockout() is a pure function of
(payload, results) and is safe to call from any read path, as often as
needed. Adding confirmed results can only resolve more matches, never
un-resolve one.

The publish-time boundary is how a knockout rematch is told apart from an
earlier meeting of the same two players. It is a heuristic: an untagged
group match between the same pair played after publishing also counts.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from courtside.draw import (
    ConcreteParticipant,
    QualifierSlot,
    SlotSource,
    WinnerOfMatch,
    parse_slot_label,
)
from courtside.grouping import GroupingPayload
from courtside.scores import PHASE_GROUP, extract_phase, extract_set_scores
from courtside.standings import GroupProgress, ResultSnapshot, group_progress
from courtside.statuses import (
    OPPONENT_ELIMINATED,
    OPPONENT_FINISHED,
    OPPONENT_NOT_ENTERED,
    OPPONENT_READY,
    OPPONENT_WAITING,
    OUTCOME_LOSER,
    OUTCOME_WINNER,
)

logger = logging.getLogger(__name__)


# =============================================================================
# View types
# =============================================================================

@dataclass
class FilledSlot:
    """
    One side of a knockout match after resolution.

    Attributes:
        label: Display text (participant name once resolved, else the label)
        source_label: The original symbolic label from the payload
        participant_id: Resolved participant, or None
        outcome: OUTCOME_WINNER / OUTCOME_LOSER once the match is decided
        score_text: "sets for:sets against" from this side, '' if unknown
    """
    label: str
    source_label: str
    source: SlotSource
    participant_id: Optional[str] = None
    outcome: Optional[str] = None
    score_text: str = ""

    @property
    def filled(self) -> bool:
        return self.participant_id is not None


@dataclass
class FilledMatch:
    id: str
    home: FilledSlot
    away: FilledSlot
    result_id: Optional[str] = None

    @property
    def decided(self) -> bool:
        return self.home.outcome is not None or self.away.outcome is not None

    @property
    def winner_id(self) -> Optional[str]:
        for side in (self.home, self.away):
            if side.outcome == OUTCOME_WINNER:
                return side.participant_id
        return None

    def side_of(self, participant_id: str) -> Optional[tuple[FilledSlot, FilledSlot]]:
        """(own side, other side) for a participant, or None if absent."""
        if self.home.participant_id == participant_id:
            return self.home, self.away
        if self.away.participant_id == participant_id:
            return self.away, self.home
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "homeLabel": self.home.label,
            "awayLabel": self.away.label,
            "homeFilled": self.home.filled,
            "awayFilled": self.away.filled,
            "homePlayerId": self.home.participant_id,
            "awayPlayerId": self.away.participant_id,
            "homeSourceLabel": self.home.source_label,
            "awaySourceLabel": self.away.source_label,
        }
        if self.decided:
            data["homeOutcome"] = self.home.outcome
            data["awayOutcome"] = self.away.outcome
            data["homeScoreText"] = self.home.score_text
            data["awayScoreText"] = self.away.score_text
        return data


@dataclass
class FilledRound:
    name: str
    matches: list[FilledMatch]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "matches": [m.to_dict() for m in self.matches]}


@dataclass
class BracketView:
    """
    The bracket as it stands after the given results.

    groups holds the progress of every group (in payload order) and
    warnings lists results that were skipped as inconsistent.
    """
    rounds: list[FilledRound]
    groups: list[GroupProgress]
    qualifiers: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def final(self) -> Optional[FilledMatch]:
        if not self.rounds or not self.rounds[-1].matches:
            return None
        return self.rounds[-1].matches[-1]

    @property
    def is_finished(self) -> bool:
        final = self.final
        return final is not None and final.decided

    @property
    def champion_id(self) -> Optional[str]:
        final = self.final
        return final.winner_id if final is not None else None

    @property
    def eliminated_ids(self) -> set[str]:
        eliminated = set()
        for match in self.iter_matches():
            for side in (match.home, match.away):
                if side.outcome == OUTCOME_LOSER and side.participant_id:
                    eliminated.add(side.participant_id)
        return eliminated

    def iter_matches(self) -> Iterable[FilledMatch]:
        for round_ in self.rounds:
            yield from round_.matches

    def group(self, name: str) -> Optional[GroupProgress]:
        for progress in self.groups:
            if progress.name == name:
                return progress
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rounds": [r.to_dict() for r in self.rounds],
            "finished": self.is_finished,
            "championId": self.champion_id,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class OpponentQuery:
    """Answer to "who does this participant play next"."""
    status: str
    opponent_id: Optional[str] = None
    opponent_label: Optional[str] = None
    match_id: Optional[str] = None
    round_name: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================

def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC datetime; naive inputs are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def screen_results(
    payload: GroupingPayload,
    results: Iterable[ResultSnapshot],
) -> tuple[list[ResultSnapshot], list[str]]:
    """
    Keep the confirmed results the engine can use.

    Confirmed results whose sides overlap, or that name participants outside
    every group, are skipped and reported as warnings.
    """
    known = payload.all_player_ids
    usable: list[ResultSnapshot] = []
    warnings: list[str] = []

    for result in results:
        if not result.confirmed:
            continue
        if not result.winner_ids or not result.loser_ids or result.has_overlap:
            warnings.append(
                f"Result {result.id} skipped: winner and loser sides overlap or are empty"
            )
            continue
        unknown = result.participant_ids - known
        if unknown:
            warnings.append(
                f"Result {result.id} skipped: {len(unknown)} participant(s) not in any group"
            )
            continue
        usable.append(result)

    for message in warnings:
        logger.warning(message)
    return usable, warnings


def find_deciding_result(
    id_a: str,
    id_b: str,
    results: Iterable[ResultSnapshot],
    since: Optional[datetime] = None,
) -> Optional[ResultSnapshot]:
    """
    Most recently verified confirmed singles result between exactly id_a and id_b.

    Only results created at or after `since` (the grouping publish time)
    are considered, and results tagged as group-stage matches never decide
    a knockout match. Results without a verification time fall back to
    their creation time; ties are broken by result id so the choice is
    stable.
    """
    pair = {id_a, id_b}
    since = as_naive_utc(since)
    candidates = []
    for result in results:
        if not result.confirmed or not result.is_singles:
            continue
        if {result.winner_id, result.loser_id} != pair:
            continue
        if extract_phase(result.score) == PHASE_GROUP:
            continue
        if since is not None and as_naive_utc(result.created_at) < since:
            continue
        candidates.append(result)

    if not candidates:
        return None
    return max(
        candidates,
        key=lambda r: (as_naive_utc(r.verified_at or r.created_at), str(r.id)),
    )


def _qualifier_map(
    payload: GroupingPayload,
    groups: list[GroupProgress],
) -> dict[QualifierSlot, tuple[str, str]]:
    count = payload.qualifiers_per_group or 1
    mapping: dict[QualifierSlot, tuple[str, str]] = {}
    for progress in groups:
        for rank, row in enumerate(progress.qualifiers(count), start=1):
            mapping[QualifierSlot(group=progress.name, rank=rank)] = (row.id, row.display_name)
    return mapping


def _resolve_slot(
    label: str,
    participant_id: Optional[str],
    qualifiers: dict[QualifierSlot, tuple[str, str]],
    winners: dict[str, tuple[str, str]],
) -> FilledSlot:
    source = parse_slot_label(label, participant_id)

    resolved: Optional[tuple[str, str]] = None
    if isinstance(source, QualifierSlot):
        resolved = qualifiers.get(source)
    elif isinstance(source, WinnerOfMatch):
        resolved = winners.get(source.match_id)
    elif isinstance(source, ConcreteParticipant) and source.participant_id:
        resolved = (source.participant_id, source.display_name)

    if resolved is None:
        return FilledSlot(label=label, source_label=label, source=source)
    return FilledSlot(
        label=resolved[1],
        source_label=label,
        source=source,
        participant_id=resolved[0],
    )


def _apply_result(match: FilledMatch, result: ResultSnapshot) -> None:
    home_won = result.winner_id == match.home.participant_id
    winner, loser = (match.home, match.away) if home_won else (match.away, match.home)
    winner.outcome = OUTCOME_WINNER
    loser.outcome = OUTCOME_LOSER

    sets = extract_set_scores(result.score)
    if sets is not None:
        winner.score_text = sets.as_text(from_winner=True)
        loser.score_text = sets.as_text(from_winner=False)
    match.result_id = result.id


# =============================================================================
# Public API
# =============================================================================

def resolve_knockout(
    payload: GroupingPayload,
    results: Iterable[ResultSnapshot],
) -> BracketView:
    """
    Recompute the filled bracket from the payload and the result history.

    Args:
        payload: The published grouping payload
        results: Every result of the tournament (unconfirmed ones are ignored)

    Returns:
        BracketView with group progress, resolved rounds and warnings.
        Group-only payloads produce a view with no rounds.
    """
    usable, warnings = screen_results(payload, results)

    groups = [group_progress(g.name, g.players, usable) for g in payload.groups]
    qualifiers = _qualifier_map(payload, groups)

    rounds: list[FilledRound] = []
    winners: dict[str, tuple[str, str]] = {}

    skeleton_rounds = payload.knockout.rounds if payload.knockout else []
    for skeleton in skeleton_rounds:
        filled_matches = []
        for skeleton_match in skeleton.matches:
            match = FilledMatch(
                id=skeleton_match.id,
                home=_resolve_slot(
                    skeleton_match.home_label,
                    skeleton_match.home_participant_id,
                    qualifiers,
                    winners,
                ),
                away=_resolve_slot(
                    skeleton_match.away_label,
                    skeleton_match.away_participant_id,
                    qualifiers,
                    winners,
                ),
            )

            home_id = match.home.participant_id
            away_id = match.away.participant_id
            if home_id and away_id and home_id != away_id:
                deciding = find_deciding_result(
                    home_id, away_id, usable, since=payload.generated_at
                )
                if deciding is not None:
                    _apply_result(match, deciding)
                    winner_side = match.home if match.home.outcome == OUTCOME_WINNER else match.away
                    winners[match.id] = (winner_side.participant_id, winner_side.label)

            filled_matches.append(match)
        rounds.append(FilledRound(name=skeleton.name, matches=filled_matches))

    logger.debug(
        "Resolved bracket: %d rounds, %d decided matches, %d qualifiers, %d warnings",
        len(rounds),
        len(winners),
        len(qualifiers),
        len(warnings),
    )

    return BracketView(
        rounds=rounds,
        groups=groups,
        qualifiers={source.label: pid for source, (pid, _) in qualifiers.items()},
        warnings=warnings,
    )


def current_opponent(view: BracketView, participant_id: str) -> OpponentQuery:
    """
    Who a participant must play next in the knockout stage.

    Walks the rounds in order. The first match the participant occupies
    that has no outcome yet gives the opponent (READY) or, if the other
    side is still unresolved, WAITING. A recorded loss gives ELIMINATED.
    Winning every match they appear in gives FINISHED, and not appearing
    at all gives NOT_ENTERED.

    An eliminated participant is never returned as an opponent.
    """
    eliminated = view.eliminated_ids
    entered = False

    for round_ in view.rounds:
        for match in round_.matches:
            sides = match.side_of(participant_id)
            if sides is None:
                continue
            own, other = sides
            entered = True

            if own.outcome == OUTCOME_LOSER:
                return OpponentQuery(
                    status=OPPONENT_ELIMINATED,
                    match_id=match.id,
                    round_name=round_.name,
                )
            if own.outcome == OUTCOME_WINNER:
                continue

            opponent_id = other.participant_id
            if opponent_id is None or opponent_id in eliminated:
                return OpponentQuery(
                    status=OPPONENT_WAITING,
                    opponent_label=other.label,
                    match_id=match.id,
                    round_name=round_.name,
                )
            return OpponentQuery(
                status=OPPONENT_READY,
                opponent_id=opponent_id,
                opponent_label=other.label,
                match_id=match.id,
                round_name=round_.name,
            )

    if entered:
        return OpponentQuery(status=OPPONENT_FINISHED)
    return OpponentQuery(status=OPPONENT_NOT_ENTERED)
