"""
Score payload utilities.

Club results are reported as free text and come in a few shapes:
- Set count: "3:1", "3-1", "2比0", "3：1" (full-width colon)
- Per-set scores: "11-9 9-11 11-7" or "6-4 6-3"
- Anything else ("walkover", "opponent retired") is kept as text only

A result's score is stored as an opaque JSON payload:
    {"text": "3:1", "winnerScore": 3, "loserScore": 1,
     "phase": "group", "groupName": "第 1 组", "knockoutRound": None}

winnerScore/loserScore are always oriented from the winner's perspective.
Standings and bracket code only ever read the payload through
extract_set_scores() and extract_score_text().
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional


PHASE_GROUP = "group"
PHASE_KNOCKOUT = "knockout"
VALID_PHASES = (PHASE_GROUP, PHASE_KNOCKOUT)

MAX_SCORE_TEXT_LENGTH = 40


class ScoreParseError(ValueError):
    """Raised when a score cannot be parsed."""
    pass


@dataclass(frozen=True)
class SetScores:
    """
    Sets won by each side of a result.

    Attributes:
        winner: Sets won by the winning side
        loser: Sets won by the losing side
    """
    winner: int
    loser: int

    def as_text(self, from_winner: bool = True) -> str:
        """Render as 'a:b', from the winner's or the loser's perspective."""
        if from_winner:
            return f"{self.winner}:{self.loser}"
        return f"{self.loser}:{self.winner}"


# "3:1", "3-1", "3比1", "3：1", optionally with spaces around the separator
_SET_COUNT_RE = re.compile(r"^(\d{1,2})\s*[:：\-比]\s*(\d{1,2})$")
# A single per-set score inside a longer list: "11-9"
_GAME_SCORE_RE = re.compile(r"^(\d{1,2})[-:：](\d{1,2})$")


def parse_score_text(score_str: str) -> SetScores:
    """
    Parse reported score text into winner/loser set counts.

    The larger count is always taken as the winner's, so "1:3" reported by
    the losing side parses the same as "3:1".

    Args:
        score_str: Raw score text as typed by the reporter

    Returns:
        SetScores oriented from the winner's perspective

    Raises:
        ScoreParseError: If the text holds no recognisable score, or a
                         per-set list ends level

    Examples:
        >>> parse_score_text("3:1")
        SetScores(winner=3, loser=1)
        >>> parse_score_text("11-9 9-11 11-7")
        SetScores(winner=2, loser=1)
    """
    if not score_str or not score_str.strip():
        raise ScoreParseError("Empty score string")

    score = score_str.strip()

    count_match = _SET_COUNT_RE.match(score)
    if count_match:
        a, b = int(count_match.group(1)), int(count_match.group(2))
        if a == b:
            raise ScoreParseError(f"Score has no winner: {score_str}")
        return SetScores(winner=max(a, b), loser=min(a, b))

    parts = re.split(r"[\s,，]+", score)
    sets_a = 0
    sets_b = 0
    for part in parts:
        game_match = _GAME_SCORE_RE.match(part)
        if not game_match:
            raise ScoreParseError(f"Could not parse set '{part}' in '{score_str}'")
        games_a, games_b = int(game_match.group(1)), int(game_match.group(2))
        if games_a > games_b:
            sets_a += 1
        elif games_b > games_a:
            sets_b += 1

    if sets_a == sets_b:
        raise ScoreParseError(f"Score has no winner: {score_str}")
    return SetScores(winner=max(sets_a, sets_b), loser=min(sets_a, sets_b))


def build_score_payload(
    text: str,
    phase: Optional[str] = None,
    group_name: Optional[str] = None,
    knockout_round: Optional[str] = None,
) -> dict[str, Any]:
    """
    Build the JSON payload stored on a reported result.

    Numeric set counts are included only when the text parses; otherwise the
    result still counts as a win/loss but contributes no sets to standings.

    Raises:
        ScoreParseError: If the text is empty or too long, or phase is unknown
    """
    text = (text or "").strip()
    if not text:
        raise ScoreParseError("Please enter a score")
    if len(text) > MAX_SCORE_TEXT_LENGTH:
        raise ScoreParseError(
            f"Score text cannot be longer than {MAX_SCORE_TEXT_LENGTH} characters"
        )
    if phase is not None and phase not in VALID_PHASES:
        raise ScoreParseError(f"Unknown phase '{phase}', expected one of {VALID_PHASES}")

    payload: dict[str, Any] = {"text": text}
    try:
        sets = parse_score_text(text)
    except ScoreParseError:
        sets = None
    if sets is not None:
        payload["winnerScore"] = sets.winner
        payload["loserScore"] = sets.loser
    if phase:
        payload["phase"] = phase
    if group_name:
        payload["groupName"] = group_name
    if knockout_round:
        payload["knockoutRound"] = knockout_round
    return payload


def extract_set_scores(payload: Any) -> Optional[SetScores]:
    """
    Read numeric set counts from a stored payload.

    Returns None unless both winnerScore and loserScore are present, finite
    and whole. Booleans are not treated as numbers.
    """
    if not isinstance(payload, dict):
        return None

    values = []
    for key in ("winnerScore", "loserScore"):
        raw = payload.get(key)
        if isinstance(raw, bool) or raw is None:
            return None
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number) or not number.is_integer():
            return None
        values.append(int(number))

    return SetScores(winner=values[0], loser=values[1])


def extract_score_text(payload: Any) -> str:
    """Display text of a stored payload ('' when there is none)."""
    if isinstance(payload, dict):
        text = payload.get("text")
        return "" if text is None else str(text)
    if isinstance(payload, str):
        return payload
    return ""


def extract_phase(payload: Any) -> Optional[str]:
    """The phase a result was reported under, if the reporter tagged one."""
    if isinstance(payload, dict):
        phase = payload.get("phase")
        if phase in VALID_PHASES:
            return phase
    return None
