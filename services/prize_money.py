# services/prize_money.py
"""
Prize money and player-of-the-match bonus.

Pure functions, no database access:
  - calculate_prize_money: score + cards -> signed prize per team
  - calculate_bonus: owning team of the player of the match -> bonus per team
"""

from typing import Any, Dict, Optional

from services.constants import (
    LOSER_BASE_PENALTY,
    PER_GOAL,
    PER_RED,
    PER_YELLOW,
    SDS_BONUS,
    TEAM_A,
    TEAM_B,
    WINNER_BASE_PRIZE,
)


def _winner_prize(goals_against: int, yellow: int, red: int) -> int:
    return WINNER_BASE_PRIZE - goals_against * PER_GOAL - yellow * PER_YELLOW - red * PER_RED


def _loser_prize(goals_of_winner: int, yellow: int, red: int) -> int:
    return -(LOSER_BASE_PENALTY + goals_of_winner * PER_GOAL + yellow * PER_YELLOW + red * PER_RED)


def calculate_prize_money(
    goalsa: int,
    goalsb: int,
    yellowa: int = 0,
    reda: int = 0,
    yellowb: int = 0,
    redb: int = 0,
    teama: str = TEAM_A,
    teamb: str = TEAM_B,
) -> Dict[str, Any]:
    """
    Prize for each side of a finished match.

    The winner earns 1,000,000 minus 50,000 per goal conceded and its own
    card deductions; the loser pays 500,000 plus 50,000 per goal of the
    winner and its own card deductions. Equal scores produce no prize and
    no winner.

    Returns:
        {"prize_a", "prize_b", "winner", "loser"} where winner/loser are
        team names or None.
    """
    prize_a = prize_b = 0
    winner = loser = None

    if goalsa > goalsb:
        winner, loser = teama, teamb
        prize_a = _winner_prize(goalsb, yellowa, reda)
        prize_b = _loser_prize(goalsa, yellowb, redb)
    elif goalsb > goalsa:
        winner, loser = teamb, teama
        prize_b = _winner_prize(goalsa, yellowb, redb)
        prize_a = _loser_prize(goalsb, yellowa, reda)

    return {"prize_a": prize_a, "prize_b": prize_b, "winner": winner, "loser": loser}


def calculate_bonus(
    award_team: Optional[str],
    teama: str = TEAM_A,
    teamb: str = TEAM_B,
) -> Dict[str, int]:
    """Flat bonus for the team owning the player of the match (if any)."""
    return {
        teama: SDS_BONUS if award_team == teama else 0,
        teamb: SDS_BONUS if award_team == teamb else 0,
    }
