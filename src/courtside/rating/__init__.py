"""
Rating module.

Implements the Elo settlement applied when a result is confirmed:
- Dynamic K-factor from experience and rating level
- Singles settlement with independent K per side
- Team (doubles) settlement from average team ratings
- Atomic, idempotent confirmation against the database
"""

from courtside.rating.calculator import (
    RatedPlayer,
    RatingDelta,
    RatingHistoryEntry,
    SettlementBatch,
    build_settlement,
    dynamic_k,
    expected_score,
    settle_singles,
    settle_team,
)
from courtside.rating.constants import DEFAULT_RATING

__all__ = [
    "RatedPlayer",
    "RatingDelta",
    "RatingHistoryEntry",
    "SettlementBatch",
    "build_settlement",
    "dynamic_k",
    "expected_score",
    "settle_singles",
    "settle_team",
    "DEFAULT_RATING",
]
