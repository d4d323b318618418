# matches/__init__.py
"""
Match blueprint: settle, edit, delete and inspect matches.
All endpoints under /matches/ and scoped by the ?season= parameter.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from db import get_engine, row_to_dict
from services.errors import MatchNotFoundError, VerificationError
from services.ledger import list_transactions
from services.match_store import get_match
from services.reversal import reverse_match, reverse_matches, reverse_matches_from
from services.scope import StorageScope
from services.settlement import MatchDraft, settle_match

matches_bp = Blueprint("matches", __name__)
log = logging.getLogger("app")


def _scope_from_request() -> StorageScope:
    season = (
        request.args.get("season")
        or request.headers.get("X-Season")
        or current_app.config.get("DEFAULT_SEASON")
    )
    return StorageScope.from_value(season)


def _run(fn, success_status=200):
    """Run a service call and map the error taxonomy onto HTTP responses."""
    try:
        return jsonify(fn()), success_status
    except MatchNotFoundError as e:
        return jsonify(error="not_found", message=str(e)), 404
    except VerificationError as e:
        log.error("matches: verification failed: %s", e)
        return jsonify(error="verification_failed", message=str(e)), 409
    except ValueError as e:
        return jsonify(error="validation", message=str(e)), 400
    except SQLAlchemyError:
        log.exception("matches: db error")
        return jsonify(error="db_error", message="Database error"), 500


# -----------------------------------------------------------------------
# Settlement
# -----------------------------------------------------------------------

@matches_bp.post("/matches")
def api_create_match():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify(error="invalid_body", message="JSON object body required"), 400

    def _settle():
        draft = MatchDraft.from_payload(body)
        return settle_match(get_engine(), _scope_from_request(), draft)

    return _run(_settle, success_status=201)


@matches_bp.put("/matches/<int:match_id>")
def api_edit_match(match_id: int):
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify(error="invalid_body", message="JSON object body required"), 400

    def _edit():
        draft = MatchDraft.from_payload(body)
        return settle_match(get_engine(), _scope_from_request(), draft, edit_id=match_id)

    return _run(_edit)


# -----------------------------------------------------------------------
# Reversal
# -----------------------------------------------------------------------

@matches_bp.delete("/matches/<int:match_id>")
def api_delete_match(match_id: int):
    return _run(lambda: reverse_match(get_engine(), _scope_from_request(), match_id))


@matches_bp.post("/matches/bulk-delete")
def api_bulk_delete():
    body = request.get_json(silent=True) or {}
    match_ids = body.get("match_ids")
    min_id = body.get("min_id")

    if match_ids is None and min_id is None:
        return jsonify(error="missing_fields", fields=["match_ids", "min_id"]), 400
    if match_ids is not None and not isinstance(match_ids, list):
        return jsonify(error="validation", message="match_ids must be a list"), 400

    def _bulk():
        engine = get_engine()
        scope = _scope_from_request()
        if match_ids is not None:
            return reverse_matches(engine, scope, match_ids)
        return reverse_matches_from(engine, scope, min_id)

    return _run(_bulk)


# -----------------------------------------------------------------------
# Read
# -----------------------------------------------------------------------

@matches_bp.get("/matches/<int:match_id>")
def api_get_match(match_id: int):
    def _get():
        engine = get_engine()
        scope = _scope_from_request()
        match = get_match(engine, scope, match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        out = row_to_dict(match)
        out["transactions"] = [
            row_to_dict(t) for t in list_transactions(engine, scope, match_id=match_id)
        ]
        return out

    return _run(_get)
