"""
Draw bracket utility functions.

Provides positional math and slot references for knockout brackets. Seeds
are 1-indexed and round 1 follows standard single-elimination seeding:

    Seed i  plays  seed (size + 1 - i)

so in an 8-draw: 1v8, 2v7, 3v6, 4v5. Match ids are "R<round>-M<number>";
the winners of R<r>-M<2m-1> and R<r>-M<2m> meet in R<r+1>-M<m>.

Bracket slots are stored in the grouping payload as display labels:

    "第 1 组第 2 名"   second place of group 1 (qualifier slot)
    "胜者 R1-M3"       winner of match R1-M3 (winner slot)
    anything else      a concrete participant's name

parse_slot_label() turns a label into a tagged SlotSource once, so the
resolution engine never pattern-matches strings itself.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union


# Round names by number of players still in the draw
ROUND_NAME_BY_PLAYERS = {
    2: "决赛",
    4: "半决赛",
}
# A quarterfinal only gets its own name when it opens the bracket
FIRST_ROUND_NAME_BY_PLAYERS = {**ROUND_NAME_BY_PLAYERS, 8: "1/4 决赛"}
FIRST_ROUND_NAME = "淘汰赛首轮"

WINNER_PREFIX = "胜者"

_QUALIFIER_LABEL_RE = re.compile(r"^(.+?)第\s*(\d+)\s*名$")
_WINNER_LABEL_RE = re.compile(rf"^{WINNER_PREFIX}\s+(\S.*)$")


# =============================================================================
# Slot sources
# =============================================================================

@dataclass(frozen=True)
class QualifierSlot:
    """The participant finishing at `rank` (1-based) in `group`."""
    group: str
    rank: int

    @property
    def label(self) -> str:
        return qualifier_label(self.group, self.rank)


@dataclass(frozen=True)
class WinnerOfMatch:
    """Whoever wins the knockout match `match_id`."""
    match_id: str

    @property
    def label(self) -> str:
        return winner_label(self.match_id)


@dataclass(frozen=True)
class ConcreteParticipant:
    """A slot already occupied at generation time."""
    display_name: str
    participant_id: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name


SlotSource = Union[QualifierSlot, WinnerOfMatch, ConcreteParticipant]


def group_name(index: int) -> str:
    """Display name of the group at 0-based `index`."""
    return f"第 {index + 1} 组"


def qualifier_label(group: str, rank: int) -> str:
    """
    Label for a qualifier slot.

    Examples:
        >>> qualifier_label("第 1 组", 2)
        '第 1 组第 2 名'
    """
    return f"{group}第 {rank} 名"


def winner_label(match_id: str) -> str:
    """
    Label for a winner slot.

    Examples:
        >>> winner_label("R1-M3")
        '胜者 R1-M3'
    """
    return f"{WINNER_PREFIX} {match_id}"


def match_id(round_number: int, match_number: int) -> str:
    """Id of a knockout match; both arguments are 1-indexed."""
    return f"R{round_number}-M{match_number}"


def parse_slot_label(label: str, participant_id: Optional[str] = None) -> SlotSource:
    """
    Turn a stored slot label into a tagged slot source.

    Args:
        label: Label from the grouping payload
        participant_id: Concrete participant id stored alongside the label,
                        if the generator already knew the occupant

    Examples:
        >>> parse_slot_label("第 2 组第 1 名")
        QualifierSlot(group='第 2 组', rank=1)
        >>> parse_slot_label("胜者 R1-M2")
        WinnerOfMatch(match_id='R1-M2')
    """
    if participant_id:
        return ConcreteParticipant(display_name=label, participant_id=participant_id)

    text = label.strip()

    winner_match = _WINNER_LABEL_RE.match(text)
    if winner_match:
        return WinnerOfMatch(match_id=winner_match.group(1).strip())

    qualifier_match = _QUALIFIER_LABEL_RE.match(text)
    if qualifier_match:
        return QualifierSlot(
            group=qualifier_match.group(1).strip(),
            rank=int(qualifier_match.group(2)),
        )

    return ConcreteParticipant(display_name=text)


# =============================================================================
# Bracket math
# =============================================================================

def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def largest_bracket_size(qualified: int, max_size: int = 64) -> int:
    """
    Largest power of two not above min(max_size, qualified).

    Returns 0 when fewer than two players qualify (no bracket possible).

    Examples:
        >>> largest_bracket_size(8)
        8
        >>> largest_bracket_size(6)
        4
        >>> largest_bracket_size(100)
        64
        >>> largest_bracket_size(1)
        0
    """
    limit = min(max_size, qualified)
    if limit < 2:
        return 0
    size = 1
    while size * 2 <= limit:
        size *= 2
    return size


def first_round_pairings(bracket_size: int) -> list[tuple[int, int]]:
    """
    Seed pairings for round 1, highest seed against lowest.

    Examples:
        >>> first_round_pairings(8)
        [(1, 8), (2, 7), (3, 6), (4, 5)]
    """
    if not is_power_of_two(bracket_size) or bracket_size < 2:
        raise ValueError(f"Bracket size must be a power of two >= 2, got {bracket_size}")
    return [(i, bracket_size + 1 - i) for i in range(1, bracket_size // 2 + 1)]


def get_feeder_matches(round_number: int, match_number: int) -> tuple[str, str]:
    """
    Ids of the two previous-round matches feeding this match.

    Match m in round r+1 is fed by matches 2m-1 and 2m in round r.

    Examples:
        >>> get_feeder_matches(2, 1)
        ('R1-M1', 'R1-M2')
        >>> get_feeder_matches(3, 1)
        ('R2-M1', 'R2-M2')
    """
    if round_number < 2:
        raise ValueError("Round 1 matches have no feeder matches")
    return (
        match_id(round_number - 1, 2 * match_number - 1),
        match_id(round_number - 1, 2 * match_number),
    )


def round_name(players_in_round: int, is_first_round: bool = False) -> str:
    """
    Display name of a round by how many players it starts with.

    Examples:
        >>> round_name(2)
        '决赛'
        >>> round_name(8, is_first_round=True)
        '1/4 决赛'
        >>> round_name(8)
        '8 强赛'
        >>> round_name(16)
        '16 强赛'
        >>> round_name(16, is_first_round=True)
        '淘汰赛首轮'
    """
    if is_first_round:
        return FIRST_ROUND_NAME_BY_PLAYERS.get(players_in_round, FIRST_ROUND_NAME)
    if players_in_round in ROUND_NAME_BY_PLAYERS:
        return ROUND_NAME_BY_PLAYERS[players_in_round]
    return f"{players_in_round} 强赛"
