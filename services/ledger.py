# services/ledger.py
"""
Transaction ledger and team finance rows.

Every function is exactly one round trip and commits on its own
(`engine.begin()` per call). Nothing here spans rows: the caller has to
cope with one write landing and the next one failing.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select, update

from services.scope import StorageScope, get_tables

logger = logging.getLogger("app")


def floor_zero(value) -> int:
    return value if value > 0 else 0


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def insert_transaction(engine, scope: StorageScope, *, tx_date: date, tx_type: str,
                       team: str, amount: int, match_id: Optional[int] = None,
                       info: Optional[str] = None) -> int:
    """Append one ledger row and return its id."""
    tx = get_tables(engine, scope)["transactions"]
    with engine.begin() as conn:
        result = conn.execute(
            tx.insert().values(
                date=tx_date,
                type=tx_type,
                team=team,
                amount=amount,
                match_id=match_id,
                info=info if info is not None else tx_type,
            )
        )
    tx_id = result.lastrowid
    logger.info(
        "ledger: %s %s %+d (match_id=%s, tx_id=%s)", team, tx_type, amount, match_id, tx_id
    )
    return tx_id


def get_match_transactions(engine, scope: StorageScope, match_id: int) -> List[Dict[str, Any]]:
    tx = get_tables(engine, scope)["transactions"]
    with engine.connect() as conn:
        rows = conn.execute(
            select(tx).where(tx.c.match_id == match_id).order_by(tx.c.id)
        ).all()
    return [dict(r._mapping) for r in rows]


def count_match_transactions(engine, scope: StorageScope, match_id: int) -> int:
    tx = get_tables(engine, scope)["transactions"]
    with engine.connect() as conn:
        return conn.execute(
            select(func.count()).select_from(tx).where(tx.c.match_id == match_id)
        ).scalar_one()


def delete_match_transactions(engine, scope: StorageScope, match_id: int) -> int:
    tx = get_tables(engine, scope)["transactions"]
    with engine.begin() as conn:
        result = conn.execute(tx.delete().where(tx.c.match_id == match_id))
    return result.rowcount


def list_transactions(engine, scope: StorageScope, match_id: Optional[int] = None,
                      team: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
    tx = get_tables(engine, scope)["transactions"]
    stmt = select(tx)
    if match_id is not None:
        stmt = stmt.where(tx.c.match_id == match_id)
    if team:
        stmt = stmt.where(tx.c.team == team)
    stmt = stmt.order_by(desc(tx.c.id)).limit(limit)
    with engine.connect() as conn:
        rows = conn.execute(stmt).all()
    return [dict(r._mapping) for r in rows]


# ---------------------------------------------------------------------------
# Team finances
# ---------------------------------------------------------------------------

def get_team_finance(engine, scope: StorageScope, team: str) -> Optional[Dict[str, Any]]:
    fin = get_tables(engine, scope)["finances"]
    with engine.connect() as conn:
        row = conn.execute(
            select(fin).where(fin.c.team == team).limit(1)
        ).first()
    return dict(row._mapping) if row else None


def get_team_finances(engine, scope: StorageScope) -> List[Dict[str, Any]]:
    fin = get_tables(engine, scope)["finances"]
    with engine.connect() as conn:
        rows = conn.execute(select(fin).order_by(fin.c.team)).all()
    return [dict(r._mapping) for r in rows]


def _update_finance(engine, scope: StorageScope, team: str, **values) -> bool:
    fin = get_tables(engine, scope)["finances"]
    with engine.begin() as conn:
        result = conn.execute(
            update(fin).where(fin.c.team == team).values(**values)
        )
    if result.rowcount == 0:
        logger.warning("ledger: no finance row for team=%s, %s not persisted", team, values)
        return False
    return True


def set_team_balance(engine, scope: StorageScope, team: str, balance: int) -> bool:
    return _update_finance(engine, scope, team, balance=floor_zero(balance))


def set_team_debt(engine, scope: StorageScope, team: str, debt: int) -> bool:
    return _update_finance(engine, scope, team, debt=floor_zero(debt))
