"""
Tests for match reversal (services/reversal.py).
"""

from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

import services.reversal as reversal
from services.constants import TX_SDS_BONUS_LEGACY
from services.errors import (
    InvalidMatchIdError,
    MatchDeletionFailedError,
    MatchNotFoundError,
    TransactionDeletionIncompleteError,
)
from services.ledger import insert_transaction
from services.match_store import get_match, insert_match
from services.player_stats import apply_goals
from services.reversal import coerce_match_id, reverse_match, reverse_matches, reverse_matches_from
from services.settlement import MatchDraft, settle_match


def _settle(engine, scope, **kwargs):
    kwargs.setdefault("date", date(2025, 3, 1))
    return settle_match(engine, scope, MatchDraft(**kwargs))["match_id"]


def _snapshot(store):
    return {
        team: (store.finance(team)["balance"], store.finance(team)["debt"])
        for team in ("AEK", "Real")
    }


class TestRoundTrip:
    def test_simple_win_is_fully_undone(self, engine, scope, store):
        before = _snapshot(store)
        match_id = _settle(engine, scope, goalsa=2, goalsb=0,
                           goalslista=[{"player": "Walker", "count": 2}])

        result = reverse_match(engine, scope, match_id)

        assert _snapshot(store) == before
        assert store.goals("Walker") == 0
        assert store.transactions() == []
        assert get_match(engine, scope, match_id) is None
        assert result["transactions_reversed"] == 3
        assert result["prize_fallback_teams"] == []
        assert result["finances"]["Real"] == {"balance": 1_500_000, "debt": 3}

    def test_bonus_and_netting_are_undone(self, engine, scope, store):
        before = _snapshot(store)
        match_id = _settle(
            engine, scope, goalsa=1, goalsb=3,
            goalslista=[{"player": "Walker", "count": 1}],
            goalslistb=[{"player": "Messi", "count": 2}, {"player": "Benzema", "count": 1}],
            yellowa=1, redb=1, manofthematch="Messi",
        )

        result = reverse_match(engine, scope, match_id)

        assert _snapshot(store) == before
        assert result["award_reversed"] is True
        assert store.award_count("Messi", "Real") == 0
        assert [store.goals(p) for p in ("Walker", "Messi", "Benzema")] == [0, 0, 0]

    def test_served_suspensions_stay_served(self, engine, scope, store):
        match_id = _settle(engine, scope, goalsa=1, goalsb=0)
        reverse_match(engine, scope, match_id)
        assert store.bans()["Modric"] == 2

    def test_clamped_balance_is_not_restored(self, engine, scope, store):
        store.set_finance("Real", balance=100_000)
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        assert store.finance("Real")["balance"] == 0

        reverse_match(engine, scope, match_id)

        # the 500,000 clamped away at settlement time comes back as a gain
        assert store.finance("Real")["balance"] == 600_000
        assert store.finance("Real")["debt"] == 3
        assert store.finance("AEK")["balance"] == 2_000_000

    def test_string_id_is_accepted(self, engine, scope):
        match_id = _settle(engine, scope, goalsa=1, goalsb=0)
        assert reverse_match(engine, scope, str(match_id))["match_id"] == match_id


class TestMissingMatches:
    def test_second_reversal_fails_without_side_effects(self, engine, scope, store):
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        reverse_match(engine, scope, match_id)
        after_first = _snapshot(store)

        with pytest.raises(MatchNotFoundError):
            reverse_match(engine, scope, match_id)
        with pytest.raises(MatchNotFoundError):
            reverse_match(engine, scope, match_id)
        assert _snapshot(store) == after_first

    def test_unknown_id(self, engine, scope):
        with pytest.raises(MatchNotFoundError, match="Match with ID 999 not found"):
            reverse_match(engine, scope, 999)

    def test_other_season_is_not_touched(self, engine, scope, fc26_scope):
        match_id = _settle(engine, scope, goalsa=1, goalsb=0)
        with pytest.raises(MatchNotFoundError):
            reverse_match(engine, fc26_scope, match_id)
        assert get_match(engine, scope, match_id) is not None


class TestAward:
    def test_player_without_team_does_not_abort(self, engine, scope, store):
        match_id = _settle(engine, scope, goalsa=1, goalsb=0, manofthematch="Kante")
        store.delete_player("Kante")

        result = reverse_match(engine, scope, match_id)

        assert result["award_reversed"] is False
        assert store.award_count("Kante", "AEK") == 1
        assert get_match(engine, scope, match_id) is None


class TestVerification:
    def test_surviving_transactions_are_reported(self, engine, scope, store, monkeypatch):
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        monkeypatch.setattr(reversal, "delete_match_transactions", lambda *a, **k: 0)

        with pytest.raises(TransactionDeletionIncompleteError) as exc:
            reverse_match(engine, scope, match_id)

        assert exc.value.remaining == 3
        assert get_match(engine, scope, match_id) is not None

    def test_surviving_match_row_is_reported(self, engine, scope, store, monkeypatch):
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        monkeypatch.setattr(reversal, "delete_match_row", lambda *a, **k: 0)

        with pytest.raises(MatchDeletionFailedError):
            reverse_match(engine, scope, match_id)

        assert store.transactions(match_id) == []


class TestLegacyMatches:
    def _legacy_row(self, engine, scope, **overrides):
        values = {
            "date": date(2023, 5, 1),
            "teama": "AEK",
            "teamb": "Real",
            "goalsa": 2,
            "goalsb": 0,
            "goalslista": ["Walker", "Walker"],
            "goalslistb": [],
            "prizeaek": 1_000_000,
            "prizereal": -600_000,
        }
        values.update(overrides)
        return insert_match(engine, scope, values)

    def test_stored_prizes_are_used_without_ledger_rows(self, engine, scope, store):
        apply_goals(engine, scope, [{"player": "Walker", "count": 5}], "AEK")
        match_id = self._legacy_row(engine, scope)

        result = reverse_match(engine, scope, match_id)

        assert result["prize_fallback_teams"] == ["AEK", "Real"]
        assert store.finance("AEK")["balance"] == 1_000_000
        assert store.finance("Real")["balance"] == 2_100_000
        assert store.goals("Walker") == 3

    def test_old_bonus_spelling_is_reversed_against_balance(self, engine, scope, store):
        match_id = self._legacy_row(engine, scope, goalsa=0, prizeaek=None, prizereal=None)
        insert_transaction(
            engine, scope, tx_date=date(2023, 5, 1), tx_type=TX_SDS_BONUS_LEGACY,
            team="Real", amount=100_000, match_id=match_id,
        )

        result = reverse_match(engine, scope, match_id)

        assert result["transactions_reversed"] == 1
        assert store.finance("Real") == {"id": 2, "team": "Real", "balance": 1_400_000, "debt": 3}

    def test_missing_stored_prizes_are_ignored(self, engine, scope, store):
        match_id = self._legacy_row(engine, scope, prizeaek=None, prizereal=0)
        result = reverse_match(engine, scope, match_id)
        assert result["prize_fallback_teams"] == []
        assert store.finance("AEK")["balance"] == 2_000_000


class TestCoerceMatchId:
    @pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (" 7 ", 7)])
    def test_valid(self, value, expected):
        assert coerce_match_id(value) == expected

    @pytest.mark.parametrize("value", [None, True, "", "   ", "abc", 0, -3, 1.5, [1]])
    def test_invalid(self, value):
        with pytest.raises(InvalidMatchIdError):
            coerce_match_id(value)

    def test_invalid_id_is_a_value_error(self):
        with pytest.raises(ValueError):
            coerce_match_id("x")


class TestBulk:
    def test_failures_do_not_stop_the_batch(self, engine, scope, store):
        first = _settle(engine, scope, goalsa=1, goalsb=0)
        second = _settle(engine, scope, goalsa=0, goalsb=1)

        result = reverse_matches(engine, scope, [first, 999, second])

        assert result["deleted"] == 2
        assert result["failed"] == 1
        assert [r["status"] for r in result["results"]] == ["deleted", "failed", "deleted"]
        assert store.match_count() == 0

    def test_reverse_from_min_id(self, engine, scope, store):
        ids = [_settle(engine, scope, goalsa=1, goalsb=0) for _ in range(3)]

        result = reverse_matches_from(engine, scope, ids[1])

        assert result["deleted"] == 2
        assert store.match_count() == 1
        assert get_match(engine, scope, ids[0]) is not None


class TestSwappedSides:
    def test_round_trip_with_real_as_side_a(self, engine, scope, store):
        before = _snapshot(store)
        draft = MatchDraft.from_payload({
            "teama": "Real", "teamb": "AEK", "goalsa": 2, "goalsb": 0,
            "goalslista": [{"player": "Messi", "count": 2}],
        })
        match_id = settle_match(engine, scope, draft)["match_id"]

        reverse_match(engine, scope, match_id)

        assert _snapshot(store) == before
        assert store.goals("Messi") == 0

    def test_stored_prizes_follow_the_club_columns(self, engine, scope, store):
        match_id = insert_match(engine, scope, {
            "teama": "Real", "teamb": "AEK", "goalsa": 2, "goalsb": 0,
            "prizeaek": -600_000, "prizereal": 1_000_000,
        })

        reverse_match(engine, scope, match_id)

        assert store.finance("AEK")["balance"] == 2_600_000
        assert store.finance("Real")["balance"] == 500_000


class TestMatchIds:
    def test_deleted_ids_are_not_reused(self, engine, scope):
        first = _settle(engine, scope, goalsa=1, goalsb=0)
        reverse_match(engine, scope, first)

        second = _settle(engine, scope, goalsa=1, goalsb=0)

        assert second > first
        assert get_match(engine, scope, first) is None

    def test_card_and_goal_columns_default_to_zero(self, engine, scope):
        match_id = insert_match(engine, scope, {"teama": "AEK", "teamb": "Real"})
        match = get_match(engine, scope, match_id)
        assert [match[c] for c in ("goalsa", "goalsb", "yellowa", "reda", "yellowb", "redb")] == [0] * 6


class TestPartialFailures:
    @staticmethod
    def _fail_balance_for(monkeypatch, failing_team):
        real_set_balance = reversal.set_team_balance

        def set_balance(engine, scope, team, balance):
            if team == failing_team:
                raise SQLAlchemyError(f"finance row for {team} unavailable")
            return real_set_balance(engine, scope, team, balance)

        monkeypatch.setattr(reversal, "set_team_balance", set_balance)

    def test_one_team_failing_does_not_stop_the_other(self, engine, scope, store, monkeypatch):
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        self._fail_balance_for(monkeypatch, "Real")

        result = reverse_match(engine, scope, match_id)

        # Real's prize row is skipped, its debt row is still reversed
        assert result["transactions_reversed"] == 2
        assert store.finance("AEK")["balance"] == 2_000_000
        assert store.finance("Real")["balance"] == 900_000
        assert store.finance("Real")["debt"] == 3
        assert get_match(engine, scope, match_id) is None
        assert store.transactions() == []

    def test_failed_prize_row_does_not_trigger_the_fallback(self, engine, scope, store, monkeypatch):
        match_id = _settle(engine, scope, goalsa=2, goalsb=0)
        self._fail_balance_for(monkeypatch, "Real")

        result = reverse_match(engine, scope, match_id)

        assert result["prize_fallback_teams"] == []

    def test_stored_prize_failure_is_skipped_per_team(self, engine, scope, store, monkeypatch):
        match_id = insert_match(engine, scope, {
            "teama": "AEK", "teamb": "Real", "goalsa": 2, "goalsb": 0,
            "prizeaek": 1_000_000, "prizereal": -600_000,
        })
        self._fail_balance_for(monkeypatch, "AEK")

        result = reverse_match(engine, scope, match_id)

        assert result["prize_fallback_teams"] == ["Real"]
        assert store.finance("AEK")["balance"] == 2_000_000
        assert store.finance("Real")["balance"] == 2_100_000
