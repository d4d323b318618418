# services/scope.py
"""
Storage scope: which season's collections a call reads and writes.

The legacy season uses the bare table names (``matches``, ``transactions``,
...). Every other season prefixes them, e.g. ``fc26_matches``. A scope is
always passed explicitly into the services; there is no "current season".
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import MetaData, Table

LEGACY_SEASON = "legacy"

COLLECTIONS = (
    "matches",
    "transactions",
    "finances",
    "players",
    "spieler_des_spiels",
    "bans",
)


@dataclass(frozen=True)
class StorageScope:
    season: Optional[str] = None

    @property
    def prefix(self) -> str:
        if not self.season or self.season == LEGACY_SEASON:
            return ""
        return f"{self.season}_"

    def table_name(self, collection: str) -> str:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        return f"{self.prefix}{collection}"

    @classmethod
    def from_value(cls, season: Optional[str]) -> "StorageScope":
        season = (season or "").strip().lower()
        if not season or season == LEGACY_SEASON:
            return cls()
        if not season.replace("_", "").isalnum():
            raise ValueError(f"Invalid season '{season}'")
        return cls(season)


LEGACY = StorageScope()


# ---------------------------------------------------------------------------
# Table reflection (cached per engine and scope)
# ---------------------------------------------------------------------------

# keyed on the engine itself so a new engine never inherits another's tables
_table_cache: Dict[Tuple[Any, str], Dict[str, Table]] = {}


def get_tables(engine, scope: StorageScope) -> Dict[str, Table]:
    key = (engine, scope.prefix)
    if key not in _table_cache:
        md = MetaData()
        _table_cache[key] = {
            name: Table(scope.table_name(name), md, autoload_with=engine)
            for name in COLLECTIONS
        }
    return _table_cache[key]


def clear_table_cache() -> None:
    _table_cache.clear()
