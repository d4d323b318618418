# services/debt_netting.py
"""Real-money compensation between the two teams.

The in-game balance never drops below zero, so a loss the balance can't
cover turns into real money owed. No database access here.
"""

import math
from typing import Dict

from services.constants import REAL_MONEY_BASE, REAL_MONEY_UNIT, SDS_BONUS


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def real_money_owed(balance: int, prize: int, has_bonus: bool) -> int:
    """
    Amount owed by a team given its balance *after* prize and bonus were
    booked: 5 + round(max(0, (|prize| - (balance + bonus)) / 100,000)).
    """
    account = balance + (SDS_BONUS if has_bonus else 0)
    shortfall = (abs(prize) - account) / REAL_MONEY_UNIT
    if shortfall < 0:
        shortfall = 0
    return REAL_MONEY_BASE + _round_half_up(shortfall)


def net_debt(winner_debt: int, loser_debt: int, loser_owed: int) -> Dict[str, int]:
    """
    Offset what the loser owes against the winner's outstanding debt.

    Returns:
        netted          -- amount taken off the winner's debt
        winner_debt     -- winner's debt afterwards
        remainder       -- part of loser_owed not absorbed by netting
        loser_debt      -- loser's debt afterwards
    """
    winner_debt = winner_debt or 0
    loser_debt = loser_debt or 0

    netted = min(winner_debt, loser_owed)
    remainder = loser_owed - netted
    return {
        "netted": netted,
        "winner_debt": max(0, winner_debt - netted),
        "remainder": remainder,
        "loser_debt": loser_debt + max(0, remainder),
    }
