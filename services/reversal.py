# services/reversal.py
"""
Undo everything a settled match did.

Used for deletion and as the first half of an edit (edit = reverse, then
settle the new draft). The store has no multi-row transactions, so each
step commits on its own; the ledger rows tagged with the match id are what
make the reversal possible.

Order:
  1. read the match row (missing -> MatchNotFoundError)
  2. read its ledger rows
  3. undo each ledger row against balance or debt (floored at 0)
  4. undo prize fields stored on the match for teams with no prize row
  5. delete the ledger rows and verify
  6. undo goal attribution
  7. undo the player-of-the-match award
  8. delete the match row and verify

Served suspension matches are not given back.
"""

import logging
from typing import Any, Dict, Iterable, List, Set

from sqlalchemy.exc import SQLAlchemyError

from services.constants import DEBT_TRANSACTION_TYPES, TEAM_A, TEAM_B, TX_PRIZE
from services.errors import (
    InvalidMatchIdError,
    MatchDeletionFailedError,
    MatchNotFoundError,
    SettlementError,
    TransactionDeletionIncompleteError,
)
from services.ledger import (
    count_match_transactions,
    delete_match_transactions,
    floor_zero,
    get_match_transactions,
    get_team_finance,
    set_team_balance,
    set_team_debt,
)
from services.match_store import delete_match_row, find_match_ids_from, get_match, match_exists
from services.player_stats import resolve_award_team, reverse_award, reverse_goals
from services.scope import StorageScope

logger = logging.getLogger("app")


def coerce_match_id(match_id) -> int:
    """Accept an int or a numeric string; anything else is rejected."""
    if match_id is None or isinstance(match_id, bool):
        raise InvalidMatchIdError("No match ID provided")
    if isinstance(match_id, str):
        if not match_id.strip():
            raise InvalidMatchIdError("Empty string provided as match ID")
        try:
            match_id = int(match_id.strip(), 10)
        except ValueError:
            raise InvalidMatchIdError(f"Invalid match ID string: {match_id!r}")
    elif not isinstance(match_id, int):
        raise InvalidMatchIdError(
            f"Unsupported match ID type: {type(match_id).__name__}"
        )
    if match_id <= 0:
        raise InvalidMatchIdError(f"Invalid match ID {match_id}: must be a positive integer")
    return match_id


# ---------------------------------------------------------------------------
# Finance reversal
# ---------------------------------------------------------------------------

def _reverse_transaction(engine, scope: StorageScope, tx: Dict[str, Any]) -> bool:
    team = tx["team"]
    amount = tx["amount"] or 0

    fin = get_team_finance(engine, scope, team)
    if fin is None:
        logger.warning("reversal: no finance row for team %s, skipping tx %s", team, tx.get("id"))
        return False

    if tx["type"] in DEBT_TRANSACTION_TYPES:
        old = fin["debt"] or 0
        new = floor_zero(old - amount)
        set_team_debt(engine, scope, team, new)
        logger.info("reversal: %s debt %d -> %d (%s)", team, old, new, tx["type"])
    else:
        old = fin["balance"] or 0
        new = floor_zero(old - amount)
        set_team_balance(engine, scope, team, new)
        logger.info("reversal: %s balance %d -> %d (%s)", team, old, new, tx["type"])
    return True


def _reverse_stored_prize(engine, scope: StorageScope, team: str, prize) -> bool:
    if not isinstance(prize, int) or isinstance(prize, bool) or prize == 0:
        return False
    fin = get_team_finance(engine, scope, team)
    if fin is None:
        logger.warning("reversal: no finance row for team %s, stored prize not reversed", team)
        return False
    old = fin["balance"] or 0
    new = floor_zero(old - prize)
    set_team_balance(engine, scope, team, new)
    logger.info("reversal: %s balance %d -> %d (stored prize fallback)", team, old, new)
    return True


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def reverse_match(engine, scope: StorageScope, match_id) -> Dict[str, Any]:
    """
    Fully undo a settled match and delete it.

    Raises:
        InvalidMatchIdError: match_id is not a positive integer.
        MatchNotFoundError: no such match in this scope.
        TransactionDeletionIncompleteError / MatchDeletionFailedError:
            a delete reported success but rows are still there.
        SQLAlchemyError: a store call failed; earlier steps stay applied.
    """
    match_id = coerce_match_id(match_id)
    logger.info("reversal: start match_id=%s season_prefix='%s'", match_id, scope.prefix)

    match = get_match(engine, scope, match_id)
    if match is None:
        logger.warning("reversal: match %s not found", match_id)
        raise MatchNotFoundError(match_id)

    teama = match.get("teama") or TEAM_A
    teamb = match.get("teamb") or TEAM_B

    try:
        transactions = get_match_transactions(engine, scope, match_id)
        logger.info(
            "reversal: %d transactions to reverse: %s",
            len(transactions),
            ", ".join(f"{t['type']}: {t['amount']} ({t['team']})" for t in transactions),
        )

        reversed_count = 0
        prize_teams: Set[str] = set()
        for tx in transactions:
            if tx["type"] == TX_PRIZE:
                prize_teams.add(tx["team"])
            try:
                if _reverse_transaction(engine, scope, tx):
                    reversed_count += 1
            except SQLAlchemyError:
                logger.exception(
                    "reversal: failed to reverse tx %s for team %s, skipping",
                    tx.get("id"), tx["team"],
                )

        fallback_teams: List[str] = []
        for team, prize in ((TEAM_A, match.get("prizeaek")), (TEAM_B, match.get("prizereal"))):
            if team in prize_teams:
                continue
            try:
                if _reverse_stored_prize(engine, scope, team, prize):
                    fallback_teams.append(team)
            except SQLAlchemyError:
                logger.exception("reversal: stored prize fallback failed for team %s", team)

        delete_match_transactions(engine, scope, match_id)
        remaining = count_match_transactions(engine, scope, match_id)
        if remaining:
            logger.error("reversal: %d transactions survived deletion for match %s", remaining, match_id)
            raise TransactionDeletionIncompleteError(match_id, remaining)

        reverse_goals(engine, scope, match.get("goalslista"), teama)
        reverse_goals(engine, scope, match.get("goalslistb"), teamb)

        award_reversed = False
        player = match.get("manofthematch")
        if player:
            award_team = resolve_award_team(
                engine, scope, player,
                goalslista=match.get("goalslista"),
                goalslistb=match.get("goalslistb"),
                teama=teama,
                teamb=teamb,
            )
            if award_team:
                award_reversed = reverse_award(engine, scope, player, award_team) is not None
            else:
                logger.warning("reversal: player of the match %s has no team, award not reversed", player)

        delete_match_row(engine, scope, match_id)
        if match_exists(engine, scope, match_id):
            logger.error("reversal: match %s still exists after delete", match_id)
            raise MatchDeletionFailedError(match_id)
    except SQLAlchemyError:
        logger.exception("reversal: store failure for match %s, partial state left in place", match_id)
        raise

    finances = {}
    for team in (teama, teamb):
        fin = get_team_finance(engine, scope, team)
        if fin is not None:
            finances[team] = {"balance": fin["balance"], "debt": fin["debt"]}

    logger.info(
        "reversal: done match_id=%s transactions=%d prize_fallback=%s",
        match_id, reversed_count, fallback_teams,
    )
    return {
        "match_id": match_id,
        "transactions_reversed": reversed_count,
        "prize_fallback_teams": fallback_teams,
        "award_reversed": award_reversed,
        "finances": finances,
    }


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------

def reverse_matches(engine, scope: StorageScope, match_ids: Iterable) -> Dict[str, Any]:
    """Reverse several matches one after another, continuing past failures."""
    results = []
    deleted = failed = 0
    for match_id in match_ids:
        try:
            reverse_match(engine, scope, match_id)
            results.append({"match_id": match_id, "status": "deleted"})
            deleted += 1
        except (SettlementError, SQLAlchemyError) as e:
            logger.warning("reversal: bulk delete of match %s failed: %s", match_id, e)
            results.append({"match_id": match_id, "status": "failed", "error": str(e)})
            failed += 1
    logger.info("reversal: bulk delete finished, %d deleted, %d failed", deleted, failed)
    return {"deleted": deleted, "failed": failed, "results": results}


def reverse_matches_from(engine, scope: StorageScope, min_id: int) -> Dict[str, Any]:
    min_id = coerce_match_id(min_id)
    return reverse_matches(engine, scope, find_match_ids_from(engine, scope, min_id))
