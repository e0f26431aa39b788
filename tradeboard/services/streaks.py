"""
Win/loss streak calculation.

Streaks are signed: positive counts consecutive wins, negative counts
consecutive losses. A breakeven ends any run.
"""

from typing import Iterable

from tradeboard.models.trade import TradeOutcome


def compute_streaks(outcomes: Iterable[str]) -> tuple[int, int]:
    """
    Calculate current and longest streak from chronological outcomes.

    Args:
        outcomes: WIN / LOSS / BREAKEVEN values, oldest first

    Returns:
        Tuple of (current_streak, longest_streak). The longest streak
        keeps the sign of the earliest run of maximal length.

    Example:
        >>> compute_streaks(["WIN", "WIN", "LOSS", "WIN"])
        (1, 2)
    """
    current = 0
    longest = 0

    for outcome in outcomes:
        outcome = getattr(outcome, "value", outcome)

        if outcome == TradeOutcome.WIN.value:
            current = current + 1 if current > 0 else 1
        elif outcome == TradeOutcome.LOSS.value:
            current = current - 1 if current < 0 else -1
        else:
            current = 0

        if abs(current) > abs(longest):
            longest = current

    return current, longest
