import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

DEFAULT_QUALITY_WEIGHT = 0.75

# length factor when a game has no HLTB time: halfway between the worst
# possible value (0) and an average length game (5)
UNKNOWN_LENGTH_FACTOR = 2.5

# decay so that 0.1h -> 10 and every further 18h divides the factor by 5
_DECAY = math.log(5) / 18


def round_tenth(value: float) -> float:
    """One decimal, ties away from zero, judged on the float's exact binary value (1.25 -> 1.3)."""
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def length_factor(hltb_score: Optional[float]) -> float:
    if not hltb_score:
        return UNKNOWN_LENGTH_FACTOR
    return 10 * math.exp(-_DECAY * (hltb_score - 0.1))


def boil_rating(hltb_score: Optional[float], rating: float, quality_weight: Optional[float] = DEFAULT_QUALITY_WEIGHT) -> float:
    """
    Blend a review score (0-100) with how long the game takes to beat.
    quality_weight is the share the review score counts for; falsy -> 0.75.
    """
    quality_weight = quality_weight or DEFAULT_QUALITY_WEIGHT
    lf = length_factor(hltb_score)
    return round_tenth(rating * quality_weight + lf * (1 - quality_weight) * 10)
