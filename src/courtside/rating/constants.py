"""
Rating system constants.

K factor: Controls rating volatility (how much ratings change per match)
  - Newcomers get a high K so their rating converges quickly
  - Established players settle on the base K
  - Strong players lose a few points of K so the top of the ladder is stable

The final K is always clamped to [MIN_K, MAX_K].

Spread: the rating difference at which the favourite is expected to win
ten times out of eleven. 400 is the classic chess value.
"""

# Default starting rating for new participants
DEFAULT_RATING = 1500

# Rating difference scale in the logistic expected-score formula
RATING_SPREAD = 400

MIN_K = 12
MAX_K = 48

# Experience tiers: (matches played below this, K)
# Checked in order; participants past every threshold use BASE_K
BASE_K = 20
EXPERIENCE_TIERS: tuple[tuple[int, int], ...] = (
    (30, 40),
    (100, 28),
)

# Rating tiers: (rating at or above this, K penalty)
# Checked in order; only the first matching tier applies
RATING_TIERS: tuple[tuple[int, int], ...] = (
    (2200, 8),
    (2000, 4),
)
