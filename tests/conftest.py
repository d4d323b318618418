"""
Pytest fixtures for the match settlement engine.
Provides an in-memory database with both the legacy and the fc26 season
tables, seeded teams, players and bans, plus a Flask test client.
"""

import os
import sys

import pytest
from sqlalchemy import create_engine, insert, select, update
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import db
from app import Config, create_app
from schema import create_schema
from services.scope import LEGACY, StorageScope, clear_table_cache, get_tables

FC26 = StorageScope("fc26")

PLAYERS = [
    ("Walker", "AEK"),
    ("Kante", "AEK"),
    ("Messi", "Real"),
    ("Modric", "Real"),
    ("Benzema", "Real"),
]


class TestConfig(Config):
    TESTING = True
    DATABASE_URL = None
    DEFAULT_SEASON = "legacy"
    ENABLE_PROMETHEUS = False


def _seed(engine, scope, aek=(2_000_000, 0), real=(1_500_000, 3)):
    t = get_tables(engine, scope)
    with engine.begin() as conn:
        conn.execute(insert(t["finances"]), [
            {"team": "AEK", "balance": aek[0], "debt": aek[1]},
            {"team": "Real", "balance": real[0], "debt": real[1]},
        ])
        conn.execute(insert(t["players"]), [
            {"name": name, "team": team, "goals": 0} for name, team in PLAYERS
        ])
        conn.execute(insert(t["bans"]), [
            {"player": "Modric", "team": "Real", "type": "Rot", "totalgames": 3, "matchesserved": 1},
            {"player": "Walker", "team": "AEK", "type": "Gelb-Rot", "totalgames": 2, "matchesserved": 2},
        ])


# ==================== Database Fixtures ====================

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database per test."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True,
    )
    create_schema(eng, LEGACY)
    create_schema(eng, FC26)
    clear_table_cache()
    _seed(eng, LEGACY)
    _seed(eng, FC26, aek=(500_000, 0), real=(500_000, 0))
    yield eng
    clear_table_cache()
    db.set_engine(None)
    eng.dispose()


@pytest.fixture
def scope():
    return LEGACY


@pytest.fixture
def tables(engine, scope):
    return get_tables(engine, scope)


# ==================== Query Helpers ====================

class Store:
    """Small read/write helper so tests can inspect the tables directly."""

    def __init__(self, engine, scope):
        self.engine = engine
        self.t = get_tables(engine, scope)

    def finance(self, team):
        fin = self.t["finances"]
        with self.engine.connect() as conn:
            row = conn.execute(select(fin).where(fin.c.team == team)).first()
        return dict(row._mapping)

    def set_finance(self, team, **values):
        fin = self.t["finances"]
        with self.engine.begin() as conn:
            conn.execute(update(fin).where(fin.c.team == team).values(**values))

    def goals(self, name):
        p = self.t["players"]
        with self.engine.connect() as conn:
            return conn.execute(select(p.c.goals).where(p.c.name == name)).scalar_one()

    def award_count(self, name, team):
        sds = self.t["spieler_des_spiels"]
        with self.engine.connect() as conn:
            return conn.execute(
                select(sds.c.count).where(sds.c.name == name, sds.c.team == team)
            ).scalar_one_or_none()

    def transactions(self, match_id=None):
        tx = self.t["transactions"]
        stmt = select(tx).order_by(tx.c.id)
        if match_id is not None:
            stmt = stmt.where(tx.c.match_id == match_id)
        with self.engine.connect() as conn:
            return [dict(r._mapping) for r in conn.execute(stmt).all()]

    def bans(self):
        b = self.t["bans"]
        with self.engine.connect() as conn:
            return {
                r._mapping["player"]: r._mapping["matchesserved"]
                for r in conn.execute(select(b)).all()
            }

    def match_count(self):
        m = self.t["matches"]
        with self.engine.connect() as conn:
            return len(conn.execute(select(m.c.id)).all())

    def delete_player(self, name):
        p = self.t["players"]
        with self.engine.begin() as conn:
            conn.execute(p.delete().where(p.c.name == name))


@pytest.fixture
def store(engine, scope):
    return Store(engine, scope)


@pytest.fixture
def fc26_scope():
    return FC26


@pytest.fixture
def fc26_store(engine):
    return Store(engine, FC26)


# ==================== Application Fixtures ====================

@pytest.fixture
def app(engine):
    application = create_app(TestConfig, engine=engine)
    yield application


@pytest.fixture
def client(app):
    return app.test_client()
