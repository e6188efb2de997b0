"""Market pricing: stake bounds and the stake-weighted consensus probability.

Pure functions, no I/O. A market's price is the stake-weighted mean of the
probabilities of every open bet on it.

Bet replacement and a fresh bet share one code path: the caller passes
"everyone else" (all other open bets, with the bet being replaced already
filtered out) plus the incoming bet. There is no subtract-old-bet term.
"""

import math
from collections.abc import Sequence

from src.pm_common.errors import InvalidProbabilityError

MIN_STAKE: int = 1
MAX_STAKE: int = 100
DEFAULT_PROBABILITY: float = 0.5


def clamp_stake(desired: int) -> int:
    """Clamp a requested stake into [MIN_STAKE, MAX_STAKE]."""
    return max(MIN_STAKE, min(desired, MAX_STAKE))


def validate_probability(probability: float) -> None:
    """Raise InvalidProbabilityError unless 0 <= probability <= 1."""
    if math.isnan(probability) or not (0.0 <= probability <= 1.0):
        raise InvalidProbabilityError(probability)


def recompute_probability(
    other_stakes: Sequence[int],
    other_probs: Sequence[float],
    new_stake: int,
    new_prob: float,
) -> float:
    """Market probability after adding (new_stake, new_prob) to the other bets.

    other_stakes/other_probs are parallel and must not include the bet being
    replaced. When nobody else has stake the first bet sets the price outright.
    """
    if len(other_stakes) != len(other_probs):
        raise ValueError("other_stakes and other_probs must have the same length")

    total = sum(other_stakes)
    if total == 0:
        return new_prob

    new_total = total + new_stake
    if new_total == 0:
        return DEFAULT_PROBABILITY
    weighted = sum(s * p for s, p in zip(other_stakes, other_probs)) + new_stake * new_prob
    return weighted / new_total


def weighted_probability(stakes: Sequence[int], probs: Sequence[float]) -> float:
    """Stake-weighted mean of probs; DEFAULT_PROBABILITY with no stake."""
    total = sum(stakes)
    if total == 0:
        return DEFAULT_PROBABILITY
    return sum(s * p for s, p in zip(stakes, probs)) / total
