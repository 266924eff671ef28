"""
Seeding and grouping generator.

Turns the registered participants of a tournament into a GroupingPayload:
balanced round-robin groups and, for knockout formats, a bracket skeleton
whose slots are still symbolic ("第 1 组第 1 名", "胜者 R1-M1").

The payload is produced once, when registration closes, and is immutable
afterwards. Everything later (standings, bracket, progress) is recomputed
from this payload plus the confirmed results.

Groups are filled with a snake (serpentine) distribution. With 3 groups and
participants ranked 1..9:

    Group 1: 1 6 7
    Group 2: 2 5 8
    Group 3: 3 4 9

which keeps the average strength of each group close, unlike slicing the
ranking into consecutive chunks.

Usage:
    payload = generate_grouping_payload(FORMAT_GROUP_THEN_KNOCKOUT, players)
    stored = payload.to_dict()          # JSON-ready, stable camelCase keys
    payload = GroupingPayload.from_dict(stored)
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from courtside.draw import (
    first_round_pairings,
    get_feeder_matches,
    group_name,
    largest_bracket_size,
    match_id,
    qualifier_label,
    round_name,
    winner_label,
)

FORMAT_GROUP_ONLY = "group_only"
FORMAT_GROUP_THEN_KNOCKOUT = "group_then_knockout"
VALID_FORMATS = (FORMAT_GROUP_ONLY, FORMAT_GROUP_THEN_KNOCKOUT)

# Ideal group size per format
IDEAL_GROUP_SIZE = {
    FORMAT_GROUP_THEN_KNOCKOUT: 4,
    FORMAT_GROUP_ONLY: 6,
}
MAX_GROUPS = 16
MAX_BRACKET_SIZE = 64
DEFAULT_QUALIFIERS_PER_GROUP = 2


class GroupingInputError(ValueError):
    """Raised when a grouping cannot be generated from the given input."""
    pass


# =============================================================================
# Payload types
# =============================================================================

@dataclass(frozen=True)
class SeedPlayer:
    """Participant snapshot used for seeding and display."""
    id: str
    display_name: str
    rating: int
    points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nickname": self.display_name,
            "points": self.points,
            "eloRating": self.rating,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeedPlayer":
        return cls(
            id=str(data["id"]),
            display_name=str(data.get("nickname") or data.get("displayName") or data["id"]),
            rating=int(data.get("eloRating", data.get("rating", 0)) or 0),
            points=int(data.get("points", 0) or 0),
        )


@dataclass
class Group:
    name: str
    players: list[SeedPlayer]
    average_points: int

    @property
    def player_ids(self) -> set[str]:
        return {p.id for p in self.players}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
            "averagePoints": self.average_points,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Group":
        players = [SeedPlayer.from_dict(p) for p in data.get("players", [])]
        average = data.get("averagePoints")
        return cls(
            name=str(data["name"]),
            players=players,
            average_points=int(average) if average is not None else average_points(players),
        )


@dataclass
class BracketMatch:
    """
    One knockout match in the skeleton.

    home_participant_id/away_participant_id are only set for slots whose
    occupant was already known when the payload was generated.
    """
    id: str
    home_label: str
    away_label: str
    home_participant_id: Optional[str] = None
    away_participant_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "homeLabel": self.home_label,
            "awayLabel": self.away_label,
        }
        if self.home_participant_id:
            data["homeParticipantId"] = self.home_participant_id
        if self.away_participant_id:
            data["awayParticipantId"] = self.away_participant_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BracketMatch":
        return cls(
            id=str(data["id"]),
            home_label=str(data["homeLabel"]),
            away_label=str(data["awayLabel"]),
            home_participant_id=data.get("homeParticipantId"),
            away_participant_id=data.get("awayParticipantId"),
        )


@dataclass
class BracketRound:
    name: str
    matches: list[BracketMatch]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "matches": [m.to_dict() for m in self.matches]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BracketRound":
        return cls(
            name=str(data["name"]),
            matches=[BracketMatch.from_dict(m) for m in data.get("matches", [])],
        )


@dataclass
class KnockoutSkeleton:
    stage: str
    bracket_size: int
    rounds: list[BracketRound]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "bracketSize": self.bracket_size,
            "rounds": [r.to_dict() for r in self.rounds],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnockoutSkeleton":
        return cls(
            stage=str(data.get("stage", "")),
            bracket_size=int(data.get("bracketSize", 0)),
            rounds=[BracketRound.from_dict(r) for r in data.get("rounds", [])],
        )


@dataclass
class GroupingPayload:
    """
    Immutable seed payload published when registration closes.

    Serialised with stable camelCase field names so it can be stored as
    JSON and fed back into later resolution calls.
    """
    generated_at: datetime
    format: str
    group_count: int
    groups: list[Group]
    qualifiers_per_group: Optional[int] = None
    knockout: Optional[KnockoutSkeleton] = None

    @property
    def all_player_ids(self) -> set[str]:
        ids: set[str] = set()
        for group in self.groups:
            ids |= group.player_ids
        return ids

    def group_of(self, participant_id: str) -> Optional[Group]:
        for group in self.groups:
            if participant_id in group.player_ids:
                return group
        return None

    def to_dict(self) -> dict[str, Any]:
        config: dict[str, Any] = {"groupCount": self.group_count}
        if self.qualifiers_per_group is not None:
            config["qualifiersPerGroup"] = self.qualifiers_per_group
        data: dict[str, Any] = {
            "generatedAt": self.generated_at.isoformat(),
            "format": self.format,
            "config": config,
            "groups": [g.to_dict() for g in self.groups],
        }
        if self.knockout is not None:
            data["knockout"] = self.knockout.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GroupingPayload":
        groups = [Group.from_dict(g) for g in data.get("groups", [])]
        config = data.get("config") or {}
        knockout = data.get("knockout")
        generated_at = data.get("generatedAt")
        if not generated_at:
            raise GroupingInputError("Stored grouping has no generatedAt timestamp")
        if isinstance(generated_at, str):
            generated_at = datetime.fromisoformat(generated_at.replace("Z", "+00:00"))
        qualifiers = config.get("qualifiersPerGroup")
        return cls(
            generated_at=generated_at,
            format=str(data.get("format", FORMAT_GROUP_ONLY)),
            group_count=int(config.get("groupCount", len(groups))),
            groups=groups,
            qualifiers_per_group=int(qualifiers) if qualifiers is not None else None,
            knockout=KnockoutSkeleton.from_dict(knockout) if knockout else None,
        )


# =============================================================================
# Generation
# =============================================================================

def sort_for_seeding(players: Sequence[SeedPlayer]) -> list[SeedPlayer]:
    """Order by points desc, then rating desc; ties keep input order."""
    return sorted(players, key=lambda p: (-p.points, -p.rating))


def snake_distribute(players: Sequence[SeedPlayer], group_count: int) -> list[list[SeedPlayer]]:
    """
    Deal ranked players into groups, reversing direction every round.

    Round 0 fills groups left to right, round 1 right to left, and so on.
    Group sizes never differ by more than one.
    """
    groups: list[list[SeedPlayer]] = [[] for _ in range(group_count)]
    for index, player in enumerate(players):
        snake_round, offset = divmod(index, group_count)
        target = offset if snake_round % 2 == 0 else group_count - 1 - offset
        groups[target].append(player)
    return groups


def average_points(players: Sequence[SeedPlayer]) -> int:
    if not players:
        return 0
    # Half rounds up, matching the published tables
    return math.floor(sum(p.points for p in players) / len(players) + 0.5)


def default_group_count(
    total: int,
    format: str,
    ideal_group_size: Optional[int] = None,
    max_groups: int = MAX_GROUPS,
) -> int:
    """
    Number of groups for `total` participants: ceil(total / ideal) in [1, max_groups].

    Examples:
        >>> default_group_count(9, FORMAT_GROUP_ONLY)
        2
        >>> default_group_count(16, FORMAT_GROUP_THEN_KNOCKOUT)
        4
    """
    size = ideal_group_size or IDEAL_GROUP_SIZE[format]
    return max(1, min(max_groups, math.ceil(total / size)))


def qualifier_labels(groups: Sequence[Group], qualifiers_per_group: int) -> list[str]:
    """
    Qualifier labels in seed order.

    All group winners come first (in group order), then all runners-up, and
    so on, so truncating to a smaller bracket drops the lowest finishers
    rather than whole groups.
    """
    # Rank-major, not group-major: round 1 pairs are the same, later rounds differ
    return [
        qualifier_label(group.name, rank)
        for rank in range(1, qualifiers_per_group + 1)
        for group in groups
    ]


def build_bracket_rounds(seeded_labels: Sequence[str]) -> list[BracketRound]:
    """
    Build every knockout round from labels already in seed order.

    Round 1 references the labels directly; each later round references the
    winners of the two feeding matches.
    """
    size = len(seeded_labels)
    current = [
        BracketMatch(
            id=match_id(1, number),
            home_label=seeded_labels[home_seed - 1],
            away_label=seeded_labels[away_seed - 1],
        )
        for number, (home_seed, away_seed) in enumerate(first_round_pairings(size), start=1)
    ]
    rounds = [BracketRound(name=round_name(size, is_first_round=True), matches=current)]

    round_number = 2
    while len(current) > 1:
        nxt = []
        for number in range(1, len(current) // 2 + 1):
            home_feeder, away_feeder = get_feeder_matches(round_number, number)
            nxt.append(
                BracketMatch(
                    id=match_id(round_number, number),
                    home_label=winner_label(home_feeder),
                    away_label=winner_label(away_feeder),
                )
            )
        rounds.append(BracketRound(name=round_name(len(nxt) * 2), matches=nxt))
        current = nxt
        round_number += 1

    return rounds


def generate_grouping_payload(
    format: str,
    participants: Sequence[SeedPlayer],
    group_count: Optional[int] = None,
    qualifiers_per_group: Optional[int] = None,
    generated_at: Optional[datetime] = None,
    ideal_group_size: Optional[int] = None,
    max_groups: int = MAX_GROUPS,
    max_bracket_size: int = MAX_BRACKET_SIZE,
) -> GroupingPayload:
    """
    Generate the grouping payload for a tournament.

    Args:
        format: FORMAT_GROUP_ONLY or FORMAT_GROUP_THEN_KNOCKOUT
        participants: Registered participants in any order
        group_count: Explicit number of groups chosen by the organiser.
                     Defaults to ceil(total / ideal group size).
        qualifiers_per_group: Players advancing from each group (knockout
                              formats only, default 2)
        generated_at: Publish timestamp (defaults to now, UTC)
        ideal_group_size: Override the per-format ideal group size
        max_groups: Upper bound on the number of groups
        max_bracket_size: Largest bracket to generate

    Returns:
        GroupingPayload with groups and, for knockout formats, the bracket

    Raises:
        GroupingInputError: If the input cannot produce a valid grouping
    """
    if format not in VALID_FORMATS:
        raise GroupingInputError(f"Unknown tournament format '{format}'")

    ids = [p.id for p in participants]
    if len(ids) != len(set(ids)):
        raise GroupingInputError("Each participant can only be registered once")

    total = len(participants)
    if total < 2:
        raise GroupingInputError(
            "Cannot generate grouping: at least 2 participants are required"
        )

    if group_count is None:
        group_count = default_group_count(total, format, ideal_group_size, max_groups)
    if group_count < 1:
        raise GroupingInputError("Group count must be a positive number")
    if group_count > max_groups:
        raise GroupingInputError(f"Group count cannot exceed {max_groups}")
    if group_count > total:
        raise GroupingInputError(
            f"Group count ({group_count}) cannot exceed the number of participants ({total})"
        )

    ranked = sort_for_seeding(participants)
    groups = [
        Group(name=group_name(index), players=players, average_points=average_points(players))
        for index, players in enumerate(snake_distribute(ranked, group_count))
    ]

    payload = GroupingPayload(
        generated_at=generated_at or datetime.now(timezone.utc),
        format=format,
        group_count=group_count,
        groups=groups,
    )

    if format == FORMAT_GROUP_THEN_KNOCKOUT:
        qualifiers = (
            DEFAULT_QUALIFIERS_PER_GROUP if qualifiers_per_group is None else qualifiers_per_group
        )
        if qualifiers < 1:
            raise GroupingInputError("Qualifiers per group must be at least 1")
        smallest = min(len(g.players) for g in groups)
        if qualifiers > smallest:
            raise GroupingInputError(
                f"Qualifiers per group ({qualifiers}) exceeds the smallest group size "
                f"({smallest}); reduce the group count or the qualifiers per group"
            )

        labels = qualifier_labels(groups, qualifiers)
        bracket_size = largest_bracket_size(len(labels), max_bracket_size)
        if bracket_size < 2:
            raise GroupingInputError(
                "A knockout stage needs at least 2 qualifiers in total"
            )

        rounds = build_bracket_rounds(labels[:bracket_size])
        payload.qualifiers_per_group = qualifiers
        payload.knockout = KnockoutSkeleton(
            stage=rounds[0].name,
            bracket_size=bracket_size,
            rounds=rounds,
        )

    return payload
