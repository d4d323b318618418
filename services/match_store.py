# services/match_store.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from services.scope import StorageScope, get_tables

logger = logging.getLogger("app")


def insert_match(engine, scope: StorageScope, values: Dict[str, Any]) -> int:
    matches = get_tables(engine, scope)["matches"]
    with engine.begin() as conn:
        result = conn.execute(matches.insert().values(**values))
    return result.lastrowid


def get_match(engine, scope: StorageScope, match_id: int) -> Optional[Dict[str, Any]]:
    matches = get_tables(engine, scope)["matches"]
    with engine.connect() as conn:
        row = conn.execute(
            select(matches).where(matches.c.id == match_id)
        ).first()
    return dict(row._mapping) if row else None


def match_exists(engine, scope: StorageScope, match_id: int) -> bool:
    matches = get_tables(engine, scope)["matches"]
    with engine.connect() as conn:
        row = conn.execute(
            select(matches.c.id).where(matches.c.id == match_id)
        ).first()
    return row is not None


def delete_match_row(engine, scope: StorageScope, match_id: int) -> int:
    matches = get_tables(engine, scope)["matches"]
    with engine.begin() as conn:
        result = conn.execute(matches.delete().where(matches.c.id == match_id))
    return result.rowcount


def find_match_ids_from(engine, scope: StorageScope, min_id: int) -> List[int]:
    """Ids of all matches with id >= min_id, ascending."""
    matches = get_tables(engine, scope)["matches"]
    with engine.connect() as conn:
        rows = conn.execute(
            select(matches.c.id).where(matches.c.id >= min_id).order_by(matches.c.id)
        ).all()
    return [r._mapping["id"] for r in rows]
