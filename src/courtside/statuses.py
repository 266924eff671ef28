"""Shared status definitions.

This module is the single source of truth for the status vocabularies used by
the engine and the persistence layer.
"""

# Tournament lifecycle stored on the tournaments table.
TOURNAMENT_REGISTRATION = "registration"
TOURNAMENT_ONGOING = "ongoing"
TOURNAMENT_FINISHED = "finished"

# Match types.
MATCH_TYPE_SINGLE = "single"
MATCH_TYPE_DOUBLE = "double"

# Knockout side outcomes.
OUTCOME_WINNER = "winner"
OUTCOME_LOSER = "loser"

# Answers to "who do I play next" in the knockout stage.
OPPONENT_READY = "ready"              # opponent known, match not yet decided
OPPONENT_WAITING = "waiting"          # in the bracket, opponent slot unresolved
OPPONENT_ELIMINATED = "eliminated"    # lost a knockout match
OPPONENT_FINISHED = "finished"        # won every bracket match (champion)
OPPONENT_NOT_ENTERED = "not_entered"  # not (yet) placed in the bracket

# A participant's overall stage, as shown on their progress view.
PROGRESS_GROUP = "group"
PROGRESS_READY = OPPONENT_READY
PROGRESS_WAITING = OPPONENT_WAITING
PROGRESS_ELIMINATED = OPPONENT_ELIMINATED
PROGRESS_FINISHED = OPPONENT_FINISHED

# Cells of a group battle table.
CELL_CONFIRMED = "confirmed"
CELL_PENDING = "pending"
CELL_TODO = "todo"

CELL_LABELS: dict[str, str] = {
    CELL_PENDING: "待确认",
    CELL_TODO: "未进行",
}
WIN_LABEL = "胜"
LOSS_LABEL = "负"

