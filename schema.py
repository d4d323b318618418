# schema.py
"""
Table definitions for one storage scope.

Production databases already carry these tables (the services reflect them);
this module exists to bootstrap a fresh database or season and for tests.
"""

import logging
from typing import Dict

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    Date,
    Integer,
    MetaData,
    String,
    Table,
    select,
)

from services.constants import TEAM_A, TEAM_B
from services.scope import COLLECTIONS, StorageScope

log = logging.getLogger("app")


def build_tables(md: MetaData, scope: StorageScope) -> Dict[str, Table]:
    t = scope.table_name
    return {
        "matches": Table(
            t("matches"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("date", Date, nullable=True),
            Column("teama", String(32), nullable=False),
            Column("teamb", String(32), nullable=False),
            Column("goalsa", Integer, nullable=False, server_default="0"),
            Column("goalsb", Integer, nullable=False, server_default="0"),
            Column("goalslista", JSON, nullable=True),
            Column("goalslistb", JSON, nullable=True),
            Column("yellowa", Integer, nullable=False, server_default="0"),
            Column("reda", Integer, nullable=False, server_default="0"),
            Column("yellowb", Integer, nullable=False, server_default="0"),
            Column("redb", Integer, nullable=False, server_default="0"),
            Column("manofthematch", String(128), nullable=True),
            Column("prizeaek", BigInteger, nullable=True),
            Column("prizereal", BigInteger, nullable=True),
            # deleted match ids are never reused
            sqlite_autoincrement=True,
        ),
        "transactions": Table(
            t("transactions"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("date", Date, nullable=True),
            Column("type", String(64), nullable=False),
            Column("team", String(32), nullable=False),
            Column("amount", BigInteger, nullable=False),
            Column("match_id", Integer, nullable=True, index=True),
            Column("info", String(255), nullable=True),
            sqlite_autoincrement=True,
        ),
        "finances": Table(
            t("finances"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("team", String(32), nullable=False, unique=True),
            Column("balance", BigInteger, nullable=False, server_default="0"),
            Column("debt", BigInteger, nullable=False, server_default="0"),
        ),
        "players": Table(
            t("players"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("name", String(128), nullable=False),
            Column("team", String(32), nullable=False),
            Column("position", String(16), nullable=True),
            Column("goals", Integer, nullable=False, server_default="0"),
        ),
        "spieler_des_spiels": Table(
            t("spieler_des_spiels"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("name", String(128), nullable=False),
            Column("team", String(32), nullable=False),
            Column("count", Integer, nullable=False, server_default="0"),
        ),
        "bans": Table(
            t("bans"), md,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("player", String(128), nullable=False),
            Column("team", String(32), nullable=True),
            Column("type", String(32), nullable=True),
            Column("totalgames", Integer, nullable=False, server_default="1"),
            Column("matchesserved", Integer, nullable=False, server_default="0"),
        ),
    }


def create_schema(engine, scope: StorageScope) -> Dict[str, Table]:
    """Create the scope's tables if they don't exist yet."""
    md = MetaData()
    tables = build_tables(md, scope)
    md.create_all(engine)
    log.info("schema: ensured %d tables for season prefix '%s'", len(tables), scope.prefix)
    return tables


def init_season(engine, scope: StorageScope, teams=(TEAM_A, TEAM_B)) -> Dict[str, int]:
    """
    Bootstrap a season: create its tables and a zeroed finance row for each
    team that has none. Safe to run more than once.
    """
    fin = create_schema(engine, scope)["finances"]
    created = 0
    with engine.begin() as conn:
        existing = {r._mapping["team"] for r in conn.execute(select(fin.c.team)).all()}
        for team in teams:
            if team not in existing:
                conn.execute(fin.insert().values(team=team, balance=0, debt=0))
                created += 1
    log.info("schema: season prefix '%s' initialised, %d finance rows created", scope.prefix, created)
    return {"tables": len(COLLECTIONS), "finance_rows_created": created}
