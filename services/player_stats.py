# services/player_stats.py
"""
Goal and player-of-the-match bookkeeping.

Scorer lists come in two shapes:
  - current: [{"player": "Walker", "count": 2}, ...]
  - legacy:  ["Walker", "Walker", "Messi"]   (one entry per goal)

Own-goal placeholders (names starting with "Eigentore_") count towards
the team score but are never attributed to a player.

A single player's update failing is logged and skipped; the remaining
players are still processed.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from services.constants import OWN_GOAL_PREFIX
from services.scope import StorageScope, get_tables

logger = logging.getLogger("app")


# ---------------------------------------------------------------------------
# Scorer lists
# ---------------------------------------------------------------------------

def is_own_goal(player: str) -> bool:
    return bool(player) and player.startswith(OWN_GOAL_PREFIX)


def own_goal_placeholder(team: str) -> str:
    return f"{OWN_GOAL_PREFIX}{team}"


def normalize_scorers(goals_list) -> List[Dict[str, Any]]:
    """Return the list in {player, count} form, dropping blank entries."""
    if goals_list is None:
        return []
    if isinstance(goals_list, str):
        goals_list = json.loads(goals_list) if goals_list.strip() else []
    if not isinstance(goals_list, list):
        raise ValueError("Scorer list must be a list")

    scorers: List[Dict[str, Any]] = []
    for entry in goals_list:
        if isinstance(entry, dict):
            player = entry.get("player")
            if not isinstance(player, str):
                continue
            player = player.strip()
            try:
                count = int(entry.get("count") or 1)
            except (TypeError, ValueError):
                count = 1
        elif isinstance(entry, str):
            player, count = entry.strip(), 1
        else:
            continue
        if not player or count <= 0:
            continue
        scorers.append({"player": player, "count": count})
    return scorers


def goal_counts(goals_list, include_own_goals: bool = False) -> Dict[str, int]:
    """Aggregate goals per distinct player name."""
    counts: Dict[str, int] = {}
    for entry in normalize_scorers(goals_list):
        if is_own_goal(entry["player"]) and not include_own_goals:
            continue
        counts[entry["player"]] = counts.get(entry["player"], 0) + entry["count"]
    return counts


def total_goals(goals_list) -> int:
    return sum(goal_counts(goals_list, include_own_goals=True).values())


def scored_in(goals_list, player: str) -> bool:
    return any(e["player"] == player for e in normalize_scorers(goals_list))


# ---------------------------------------------------------------------------
# Player goals
# ---------------------------------------------------------------------------

def _change_goals(engine, scope: StorageScope, goals_list, team: str, sign: int) -> Dict[str, int]:
    players = get_tables(engine, scope)["players"]
    updated: Dict[str, int] = {}

    for name, count in goal_counts(goals_list).items():
        try:
            with engine.begin() as conn:
                row = conn.execute(
                    select(players.c.id, players.c.goals)
                    .where(players.c.name == name, players.c.team == team)
                    .limit(1)
                ).first()
                if not row:
                    logger.warning("player_stats: %s not found in team %s, skipping", name, team)
                    continue
                old_goals = row._mapping["goals"] or 0
                new_goals = max(0, old_goals + sign * count)
                conn.execute(
                    update(players)
                    .where(players.c.id == row._mapping["id"])
                    .values(goals=new_goals)
                )
            updated[name] = new_goals
            logger.info("player_stats: goals %s (%s) %d -> %d", name, team, old_goals, new_goals)
        except SQLAlchemyError:
            logger.exception("player_stats: failed to update goals for %s (%s), skipping", name, team)

    return updated


def apply_goals(engine, scope: StorageScope, goals_list, team: str) -> Dict[str, int]:
    """Add each scorer's goals to their running total. Returns new totals."""
    return _change_goals(engine, scope, goals_list, team, +1)


def reverse_goals(engine, scope: StorageScope, goals_list, team: str) -> Dict[str, int]:
    """Subtract each scorer's goals, never going below zero."""
    return _change_goals(engine, scope, goals_list, team, -1)


# ---------------------------------------------------------------------------
# Player of the match ("Spieler des Spiels")
# ---------------------------------------------------------------------------

def lookup_player_team(engine, scope: StorageScope, player: str) -> Optional[str]:
    players = get_tables(engine, scope)["players"]
    with engine.connect() as conn:
        row = conn.execute(
            select(players.c.team).where(players.c.name == player).limit(1)
        ).first()
    return row._mapping["team"] if row else None


def resolve_award_team(engine, scope: StorageScope, player: str, *,
                       goalslista, goalslistb, teama: str, teamb: str) -> Optional[str]:
    """
    Team of the player of the match: a scorer belongs to the side whose list
    names them, otherwise fall back to the players table.
    """
    if not player:
        return None
    if scored_in(goalslista, player):
        return teama
    if scored_in(goalslistb, player):
        return teamb
    try:
        team = lookup_player_team(engine, scope, player)
    except SQLAlchemyError:
        logger.exception("player_stats: team lookup failed for %s", player)
        return None
    if team is None:
        logger.warning("player_stats: %s not found for player-of-the-match team", player)
    return team


def apply_award(engine, scope: StorageScope, player: str, team: str) -> int:
    sds = get_tables(engine, scope)["spieler_des_spiels"]
    with engine.begin() as conn:
        row = conn.execute(
            select(sds.c.id, sds.c.count)
            .where(sds.c.name == player, sds.c.team == team)
            .limit(1)
        ).first()
        if row:
            new_count = (row._mapping["count"] or 0) + 1
            conn.execute(
                update(sds).where(sds.c.id == row._mapping["id"]).values(count=new_count)
            )
        else:
            new_count = 1
            conn.execute(sds.insert().values(name=player, team=team, count=1))
    logger.info("player_stats: award %s (%s) -> %d", player, team, new_count)
    return new_count


def reverse_award(engine, scope: StorageScope, player: str, team: str) -> Optional[int]:
    sds = get_tables(engine, scope)["spieler_des_spiels"]
    with engine.begin() as conn:
        row = conn.execute(
            select(sds.c.id, sds.c.count)
            .where(sds.c.name == player, sds.c.team == team)
            .limit(1)
        ).first()
        if not row:
            logger.warning("player_stats: no award entry for %s in team %s", player, team)
            return None
        new_count = max(0, (row._mapping["count"] or 0) - 1)
        conn.execute(
            update(sds).where(sds.c.id == row._mapping["id"]).values(count=new_count)
        )
    logger.info("player_stats: award %s (%s) -> %d", player, team, new_count)
    return new_count
