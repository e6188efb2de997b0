"""Market settlement: per-bet payout and the user stat update it drives.

Payout rule:
    accuracy = p        if the market resolved YES
             = 1 - p    if it resolved NO
    payout   = floor(stake * (1 + accuracy))

accuracy is never negative, so the worst case hands back the original stake.
A bettor forfeits profit, never principal.

"Correct" is directional: p > 0.5 on a YES outcome, p < 0.5 on a NO outcome.
A bet at exactly 0.5 is not correct, so it counts as placed, not won, and
breaks the streak.
"""

import math
from dataclasses import dataclass, replace

from src.pm_ledger.domain.models import Bet, User


@dataclass(frozen=True)
class BetSettlement:
    user_id: str
    stake: int
    probability: float
    accuracy: float
    payout: int
    was_correct: bool

    @property
    def profit(self) -> int:
        return self.payout - self.stake


def settle_bet(bet: Bet, outcome: bool) -> BetSettlement:
    accuracy = bet.probability if outcome else 1.0 - bet.probability
    payout = math.floor(bet.stake * (1 + accuracy))
    was_correct = (outcome and bet.probability > 0.5) or (
        not outcome and bet.probability < 0.5
    )
    return BetSettlement(
        user_id=bet.user_id,
        stake=bet.stake,
        probability=bet.probability,
        accuracy=accuracy,
        payout=payout,
        was_correct=was_correct,
    )


def apply_settlement(user: User, settlement: BetSettlement) -> User:
    """Return a copy of user with the settlement's stake released and stats rolled."""
    bets_placed = user.bets_placed + 1
    bets_won = user.bets_won + (1 if settlement.was_correct else 0)
    streak = user.prediction_streak + 1 if settlement.was_correct else 0
    return replace(
        user,
        bankroll=user.bankroll + settlement.payout,
        total_staked=user.total_staked - settlement.stake,
        bets_placed=bets_placed,
        bets_won=bets_won,
        accuracy=bets_won / bets_placed,
        total_profit=user.total_profit + settlement.profit,
        biggest_win=max(user.biggest_win, settlement.payout),
        prediction_streak=streak,
        best_streak=max(user.best_streak, streak),
    )
