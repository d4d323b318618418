# services/settlement.py
"""
Settle a finished match: store it, book its money, update statistics.

Every monetary movement is written to the ledger with the match id, which
is what services.reversal replays backwards to undo the match. Steps run
strictly one after another; a store failure after the match row has been
inserted leaves the earlier steps applied and is re-raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.constants import (
    TEAM_A,
    TEAM_B,
    TX_PRIZE,
    TX_REAL_MONEY,
    TX_REAL_MONEY_NETTED,
    TX_SDS_BONUS,
)
from services.debt_netting import net_debt, real_money_owed
from services.ledger import (
    floor_zero,
    get_team_finance,
    insert_transaction,
    set_team_balance,
    set_team_debt,
)
from services.match_store import insert_match
from services.player_stats import (
    apply_award,
    apply_goals,
    normalize_scorers,
    own_goal_placeholder,
    resolve_award_team,
    total_goals,
)
from services.prize_money import calculate_bonus, calculate_prize_money
from services.reversal import reverse_match
from services.scope import StorageScope
from services.suspensions import advance_active_suspensions

logger = logging.getLogger("app")


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

def _non_negative_int(value) -> int:
    if value is None or value == "":
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return number if number > 0 else 0


def _parse_date(value) -> date:
    if value is None or value == "":
        return date.today()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"Invalid match date {value!r}, expected YYYY-MM-DD")


def check_teams(teama, teamb) -> None:
    """A match is always the two league clubs, in either order."""
    if teama == teamb:
        raise ValueError("A match needs two different teams")
    if {teama, teamb} != {TEAM_A, TEAM_B}:
        raise ValueError(
            f"Teams must be {TEAM_A} and {TEAM_B}, got {teama!r} and {teamb!r}"
        )


def _text_field(body: Dict[str, Any], key: str) -> Optional[str]:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value.strip() or None


def _scorer_field(body: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = body.get(key)
    if value is not None and not isinstance(value, (list, str)):
        raise ValueError(f"{key} must be a list of scorers")
    return normalize_scorers(value)


@dataclass
class MatchDraft:
    """A validated, not yet stored match."""

    date: date
    teama: str = TEAM_A
    teamb: str = TEAM_B
    goalslista: List[Dict[str, Any]] = field(default_factory=list)
    goalslistb: List[Dict[str, Any]] = field(default_factory=list)
    goalsa: Optional[int] = None
    goalsb: Optional[int] = None
    own_goals_a: int = 0
    own_goals_b: int = 0
    yellowa: int = 0
    reda: int = 0
    yellowb: int = 0
    redb: int = 0
    manofthematch: Optional[str] = None

    @classmethod
    def from_payload(cls, body: Dict[str, Any]) -> "MatchDraft":
        teama = _text_field(body, "teama") or TEAM_A
        teamb = _text_field(body, "teamb") or TEAM_B
        check_teams(teama, teamb)

        goals = {}
        for key in ("goalsa", "goalsb"):
            raw = body.get(key)
            if raw is None or raw == "":
                goals[key] = None
                continue
            try:
                goals[key] = int(raw)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be an integer")
            if goals[key] < 0:
                raise ValueError(f"{key} must not be negative")

        return cls(
            date=_parse_date(body.get("date")),
            teama=teama,
            teamb=teamb,
            goalslista=_scorer_field(body, "goalslista"),
            goalslistb=_scorer_field(body, "goalslistb"),
            goalsa=goals["goalsa"],
            goalsb=goals["goalsb"],
            own_goals_a=_non_negative_int(body.get("own_goals_a")),
            own_goals_b=_non_negative_int(body.get("own_goals_b")),
            yellowa=_non_negative_int(body.get("yellowa")),
            reda=_non_negative_int(body.get("reda")),
            yellowb=_non_negative_int(body.get("yellowb")),
            redb=_non_negative_int(body.get("redb")),
            manofthematch=_text_field(body, "manofthematch"),
        )

    def scorer_lists(self):
        """Scorer lists as stored, own-goal placeholders appended to the opponent's list."""
        list_a = [dict(e) for e in normalize_scorers(self.goalslista)]
        list_b = [dict(e) for e in normalize_scorers(self.goalslistb)]
        if self.own_goals_a > 0:
            list_b.append({"player": own_goal_placeholder(self.teama), "count": self.own_goals_a})
        if self.own_goals_b > 0:
            list_a.append({"player": own_goal_placeholder(self.teamb), "count": self.own_goals_b})
        return list_a, list_b


# ---------------------------------------------------------------------------
# Finance steps
# ---------------------------------------------------------------------------

def _read_finances(engine, scope: StorageScope, teams) -> Dict[str, Dict[str, int]]:
    finances = {}
    for team in teams:
        fin = get_team_finance(engine, scope, team)
        if fin is None:
            logger.warning("settlement: no finance row for team %s, assuming zero", team)
            fin = {}
        finances[team] = {
            "balance": fin.get("balance") or 0,
            "debt": fin.get("debt") or 0,
        }
    return finances


def _book(engine, scope, booked: List[Dict[str, Any]], *, tx_date, tx_type, team, amount, match_id):
    tx_id = insert_transaction(
        engine, scope,
        tx_date=tx_date, tx_type=tx_type, team=team, amount=amount, match_id=match_id,
    )
    booked.append({"id": tx_id, "type": tx_type, "team": team, "amount": amount})


def _settle_finances(engine, scope: StorageScope, *, match_id: int, teams, prizes, bonus,
                     winner, loser, tx_date: date) -> Dict[str, Any]:
    finances = _read_finances(engine, scope, teams)
    balances = {team: finances[team]["balance"] for team in teams}
    booked: List[Dict[str, Any]] = []

    for team in teams:
        if bonus[team]:
            balances[team] += bonus[team]
            _book(engine, scope, booked, tx_date=tx_date, tx_type=TX_SDS_BONUS,
                  team=team, amount=bonus[team], match_id=match_id)
            set_team_balance(engine, scope, team, balances[team])

    for team in teams:
        if prizes[team]:
            balances[team] = floor_zero(balances[team] + prizes[team])
            _book(engine, scope, booked, tx_date=tx_date, tx_type=TX_PRIZE,
                  team=team, amount=prizes[team], match_id=match_id)
            set_team_balance(engine, scope, team, balances[team])

    real_money = None
    if winner and loser:
        owed = {
            team: real_money_owed(balances[team], prizes[team], bool(bonus[team]))
            for team in teams
        }
        netting = net_debt(finances[winner]["debt"], finances[loser]["debt"], owed[loser])

        set_team_debt(engine, scope, winner, netting["winner_debt"])

        if netting["remainder"] > 0:
            _book(engine, scope, booked, tx_date=tx_date, tx_type=TX_REAL_MONEY,
                  team=loser, amount=netting["remainder"], match_id=match_id)
            set_team_debt(engine, scope, loser, netting["loser_debt"])

        if netting["netted"] > 0:
            # audit trail only, the winner's debt was already written above
            _book(engine, scope, booked, tx_date=tx_date, tx_type=TX_REAL_MONEY_NETTED,
                  team=winner, amount=-netting["netted"], match_id=match_id)

        real_money = {"owed": owed, **netting}

    return {"balances": balances, "transactions": booked, "real_money": real_money}


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def settle_match(engine, scope: StorageScope, draft: MatchDraft,
                 edit_id=None) -> Dict[str, Any]:
    """
    Store a match and apply its full effect.

    With edit_id the old match is reversed first (an edit replaces the
    whole match). Returns a summary with the new match id.
    """
    check_teams(draft.teama, draft.teamb)
    if edit_id is not None:
        logger.info("settlement: edit mode, reversing match %s first", edit_id)
        reverse_match(engine, scope, edit_id)

    teama, teamb = draft.teama, draft.teamb
    teams = (teama, teamb)
    goalslista, goalslistb = draft.scorer_lists()
    goalsa = draft.goalsa if draft.goalsa is not None else total_goals(goalslista)
    goalsb = draft.goalsb if draft.goalsb is not None else total_goals(goalslistb)

    prize = calculate_prize_money(
        goalsa, goalsb, draft.yellowa, draft.reda, draft.yellowb, draft.redb,
        teama=teama, teamb=teamb,
    )
    prizes = {teama: prize["prize_a"], teamb: prize["prize_b"]}

    match_id = insert_match(engine, scope, {
        "date": draft.date,
        "teama": teama,
        "teamb": teamb,
        "goalsa": goalsa,
        "goalsb": goalsb,
        "goalslista": goalslista,
        "goalslistb": goalslistb,
        "yellowa": draft.yellowa,
        "reda": draft.reda,
        "yellowb": draft.yellowb,
        "redb": draft.redb,
        "manofthematch": draft.manofthematch,
        # prize columns belong to the clubs, not to the A/B sides
        "prizeaek": prizes[TEAM_A],
        "prizereal": prizes[TEAM_B],
    })
    logger.info(
        "settlement: inserted match %s %s %d:%d %s", match_id, teama, goalsa, goalsb, teamb
    )

    try:
        apply_goals(engine, scope, goalslista, teama)
        apply_goals(engine, scope, goalslistb, teamb)

        award_team = None
        if draft.manofthematch:
            award_team = resolve_award_team(
                engine, scope, draft.manofthematch,
                goalslista=goalslista, goalslistb=goalslistb, teama=teama, teamb=teamb,
            )
            if award_team:
                apply_award(engine, scope, draft.manofthematch, award_team)
        bonus = calculate_bonus(award_team, teama=teama, teamb=teamb)

        booked = _settle_finances(
            engine, scope,
            match_id=match_id,
            teams=teams,
            prizes=prizes,
            bonus=bonus,
            winner=prize["winner"],
            loser=prize["loser"],
            tx_date=date.today(),
        )

        bans_advanced = advance_active_suspensions(engine, scope)
    except SQLAlchemyError:
        logger.exception("settlement: store failure after inserting match %s, partial state left", match_id)
        raise

    logger.info(
        "settlement: done match_id=%s winner=%s transactions=%d",
        match_id, prize["winner"], len(booked["transactions"]),
    )
    return {
        "match_id": match_id,
        "winner": prize["winner"],
        "loser": prize["loser"],
        "goals": {teama: goalsa, teamb: goalsb},
        "prizes": prizes,
        "bonus": bonus,
        "award_team": award_team,
        "real_money": booked["real_money"],
        "balances": booked["balances"],
        "transactions": booked["transactions"],
        "bans_advanced": bans_advanced,
    }
