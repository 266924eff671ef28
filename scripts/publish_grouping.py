#!/usr/bin/env python3
"""
Generate (and optionally publish) a tournament's grouping.

Preview only (nothing is written):
    python scripts/publish_grouping.py <tournament-id>

Publish with an explicit layout:
    python scripts/publish_grouping.py <tournament-id> --publish \\
        --format group_then_knockout --groups 4 --qualifiers 2

Write the payload JSON to a file:
    python scripts/publish_grouping.py <tournament-id> --json-out grouping.json
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
from courtside.grouping import VALID_FORMATS, GroupingInputError
from courtside.services import (
    GroupingLockedError,
    TournamentNotFoundError,
    preview_grouping,
    publish_grouping,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a tournament grouping from its registrations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("tournament_id", help="Tournament to group.")
    parser.add_argument(
        "--format",
        choices=VALID_FORMATS,
        default=None,
        help="Tournament format (defaults to the tournament's own setting).",
    )
    parser.add_argument(
        "--groups",
        type=int,
        default=None,
        help="Number of groups (defaults to the ideal group size rule).",
    )
    parser.add_argument(
        "--qualifiers",
        type=int,
        default=None,
        help="Players advancing from each group (knockout formats).",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Store the grouping and start the tournament.",
    )
    parser.add_argument(
        "--json-out",
        default=None,
        help="Write the payload JSON to this path.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    action = publish_grouping if args.publish else preview_grouping

    try:
        with get_session() as session:
            payload = action(
                session,
                args.tournament_id,
                format=args.format,
                group_count=args.groups,
                qualifiers_per_group=args.qualifiers,
            )
    except (GroupingInputError, GroupingLockedError, TournamentNotFoundError) as exc:
        logger.error("%s", exc)
        return 1

    print(f"{'PUBLISHED' if args.publish else 'PREVIEW'}  format={payload.format}")
    print("-" * 60)
    for group in payload.groups:
        names = ", ".join(p.display_name for p in group.players)
        print(f"{group.name} (avg {group.average_points} pts): {names}")
    if payload.knockout:
        print("-" * 60)
        print(f"Knockout: {payload.knockout.stage}, bracket of {payload.knockout.bracket_size}")
        for round_ in payload.knockout.rounds:
            print(f"  {round_.name}")
            for match in round_.matches:
                print(f"    {match.id}: {match.home_label} vs {match.away_label}")

    if args.json_out:
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            json.dumps(payload.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.info("Wrote payload to %s", out_path)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
