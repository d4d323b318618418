# services/suspensions.py
import logging

from sqlalchemy import update

from services.scope import StorageScope, get_tables

logger = logging.getLogger("app")


def advance_active_suspensions(engine, scope: StorageScope) -> int:
    """
    Count one more served match for every suspension that isn't fully
    served yet. League-wide: not limited to the two teams that played.
    Returns the number of suspensions advanced.
    """
    bans = get_tables(engine, scope)["bans"]
    with engine.begin() as conn:
        result = conn.execute(
            update(bans)
            .where(bans.c.matchesserved < bans.c.totalgames)
            .values(matchesserved=bans.c.matchesserved + 1)
        )
    logger.info("suspensions: advanced %d active bans", result.rowcount)
    return result.rowcount
