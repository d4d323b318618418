# finances/__init__.py
import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from db import get_engine, row_to_dict
from services.ledger import get_team_finances, list_transactions
from services.scope import StorageScope

finances_bp = Blueprint("finances", __name__)
log = logging.getLogger("app")


def _scope_or_error():
    season = (
        request.args.get("season")
        or request.headers.get("X-Season")
        or current_app.config.get("DEFAULT_SEASON")
    )
    try:
        return StorageScope.from_value(season), None
    except ValueError as e:
        return None, (jsonify(error="validation", message=str(e)), 400)


# ---------------------------------------------------------------------------
# GET /api/v1/finances
# ---------------------------------------------------------------------------
@finances_bp.get("/finances")
def get_finances():
    scope, err = _scope_or_error()
    if err:
        return err
    try:
        rows = get_team_finances(get_engine(), scope)
    except SQLAlchemyError:
        log.exception("finances: db error")
        return jsonify(error="db_unavailable", message="Database temporarily unavailable"), 503
    return jsonify(finances=[row_to_dict(r) for r in rows]), 200


# ---------------------------------------------------------------------------
# GET /api/v1/transactions?match_id=&team=&limit=
# ---------------------------------------------------------------------------
@finances_bp.get("/transactions")
def get_transactions():
    scope, err = _scope_or_error()
    if err:
        return err

    match_id = request.args.get("match_id", type=int)
    team = request.args.get("team")
    limit = request.args.get("limit", default=200, type=int)
    if limit is None or limit <= 0 or limit > 1000:
        return jsonify(error="validation", message="limit must be between 1 and 1000"), 400

    try:
        rows = list_transactions(get_engine(), scope, match_id=match_id, team=team, limit=limit)
    except SQLAlchemyError:
        log.exception("transactions: db error")
        return jsonify(error="db_unavailable", message="Database temporarily unavailable"), 503
    return jsonify(transactions=[row_to_dict(r) for r in rows], count=len(rows)), 200
