# db.py
import os
import logging
from datetime import date
from sqlalchemy import create_engine


_engine = None


def _normalize_url(database_url: str) -> str:
    # force PyMySQL if someone pasted mysql://
    if database_url.startswith("mysql://"):
        database_url = "mysql+pymysql://" + database_url[len("mysql://"):]
        logging.getLogger("app").info("Normalized DATABASE_URL to PyMySQL")
    return database_url


def build_engine(database_url: str):
    database_url = _normalize_url(database_url)
    if database_url.startswith("sqlite"):
        return create_engine(database_url, future=True)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE_S", "1800")),  # recycle connections every 30m
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
        future=True,
    )


def get_engine():
    global _engine
    if _engine is None:
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set")
        _engine = build_engine(database_url)
    return _engine


def set_engine(engine):
    """Install an already-built engine (app factory, tests)."""
    global _engine
    _engine = engine


def row_to_dict(row):
    """Row mapping as a JSON-ready dict (dates as ISO strings)."""
    out = dict(row)
    for k, v in out.items():
        if isinstance(v, date):
            out[k] = v.isoformat()
    return out
