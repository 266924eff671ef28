"""
Courtside services: the database-facing side of the tournament engine.

Tournament lifecycle:
1. Publish: generate the grouping from registrations and lock it in
2. Report: record unconfirmed results
3. Confirm / reject: settle ratings once, or discard the report
4. View: recompute standings and the bracket from the result history

Usage:
    from courtside.services import (
        publish_grouping,
        report_result,
        confirm_reported_result,
        tournament_view,
    )
"""

from courtside.services.tournaments import (
    GroupingLockedError,
    GroupingNotPublishedError,
    TournamentNotFoundError,
    TournamentView,
    load_result_snapshots,
    load_seed_players,
    participant_view,
    preview_grouping,
    publish_grouping,
    tournament_view,
)
from courtside.services.results import (
    ResultInputError,
    confirm_reported_result,
    purge_stale_results,
    reject_result,
    report_result,
)

__all__ = [
    # Tournaments
    "GroupingLockedError",
    "GroupingNotPublishedError",
    "TournamentNotFoundError",
    "TournamentView",
    "load_result_snapshots",
    "load_seed_players",
    "participant_view",
    "preview_grouping",
    "publish_grouping",
    "tournament_view",
    # Results
    "ResultInputError",
    "confirm_reported_result",
    "purge_stale_results",
    "reject_result",
    "report_result",
]
