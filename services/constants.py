# services/constants.py
import os

# The two clubs of the league. Match rows store prizes in prizeaek / prizereal,
# which always belong to TEAM_A / TEAM_B respectively.
TEAM_A = os.getenv("TEAM_A", "AEK")
TEAM_B = os.getenv("TEAM_B", "Real")

# ---------------------------------------------------------------------------
# Prize money
# ---------------------------------------------------------------------------
WINNER_BASE_PRIZE = 1_000_000
LOSER_BASE_PENALTY = 500_000
PER_GOAL = 50_000
PER_YELLOW = 20_000
PER_RED = 50_000

# Player of the match
SDS_BONUS = 100_000

# ---------------------------------------------------------------------------
# Real-money compensation
# ---------------------------------------------------------------------------
REAL_MONEY_BASE = 5
REAL_MONEY_UNIT = 100_000

# ---------------------------------------------------------------------------
# Transaction types
# ---------------------------------------------------------------------------
TX_PRIZE = "Preisgeld"
TX_SDS_BONUS = "SdS Bonus"
TX_SDS_BONUS_LEGACY = "Bonus SdS"
TX_REAL_MONEY = "Echtgeld-Ausgleich"
TX_REAL_MONEY_NETTED = "Echtgeld-Ausgleich (getilgt)"

DEBT_TRANSACTION_TYPES = frozenset({TX_REAL_MONEY, TX_REAL_MONEY_NETTED})

# Scorer entries standing in for goals a team conceded to itself,
# e.g. "Eigentore_AEK" sits in the opponent's scorer list.
OWN_GOAL_PREFIX = "Eigentore_"
