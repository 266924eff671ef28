#!/usr/bin/env python3
"""
Show the current state of a tournament, recomputed from its results.

Whole tournament:
    python scripts/bracket_status.py <tournament-id>

One participant's progress:
    python scripts/bracket_status.py <tournament-id> --participant <participant-id>

Mark the tournament finished when nothing is left to play:
    python scripts/bracket_status.py <tournament-id> --mark-finished

Purge unconfirmed casual results past the confirmation timeout:
    python scripts/bracket_status.py --purge-stale
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from courtside.config import settings
from courtside.db import get_session
from courtside.services import (
    GroupingNotPublishedError,
    TournamentNotFoundError,
    participant_view,
    purge_stale_results,
    tournament_view,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show standings, bracket and progress for a tournament.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("tournament_id", nargs="?", default=None, help="Tournament to show.")
    parser.add_argument("--participant", default=None, help="Show one participant's progress.")
    parser.add_argument(
        "--mark-finished",
        action="store_true",
        help="Move the tournament to finished if nothing is left to play.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the filled bracket as JSON instead of text.",
    )
    parser.add_argument(
        "--purge-stale",
        action="store_true",
        help="Delete unconfirmed casual results older than the timeout.",
    )
    return parser


def _print_tournament(view) -> None:
    print(view.summary())
    for progress in view.bracket.groups:
        print("-" * 60)
        state = "completed" if progress.completed else f"{progress.confirmed_pairs}/{progress.required_matches}"
        print(f"{progress.name} [{state}]")
        for position, row in enumerate(progress.standings, start=1):
            print(
                f"  {position}. {row.display_name:<20} W{row.wins} L{row.losses} "
                f"sets {row.set_wins}-{row.set_losses} ({row.rating})"
            )
    for round_ in view.bracket.rounds:
        print("-" * 60)
        print(round_.name)
        for match in round_.matches:
            score = f"  {match.home.score_text}" if match.decided else ""
            print(f"  {match.id}: {match.home.label} vs {match.away.label}{score}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    if args.purge_stale:
        with get_session() as session:
            deleted = purge_stale_results(session)
        print(f"Purged stale results: {deleted}")
        if args.tournament_id is None:
            return 0

    if args.tournament_id is None:
        parser.error("tournament_id is required unless --purge-stale is given")

    try:
        with get_session() as session:
            if args.participant:
                progress = participant_view(session, args.tournament_id, args.participant)
                print(f"{progress.group_name}: rank {progress.rank}, state={progress.state}")
                print(progress.reason)
                for opponent in progress.remaining_opponents:
                    print(f"  still to play: {opponent.display_name}")
                return 0

            view = tournament_view(
                session, args.tournament_id, mark_finished=args.mark_finished
            )
            if args.json:
                print(json.dumps(view.bracket.to_dict(), indent=2, ensure_ascii=False))
            else:
                _print_tournament(view)
    except (TournamentNotFoundError, GroupingNotPublishedError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
