# services/__init__.py
"""
Domain service layer for the league tracker API.

This package holds the match settlement logic shared across blueprints:
  - prize_money / debt_netting: pure money rules
  - ledger / match_store: single-statement store access
  - player_stats / suspensions: statistics side effects
  - settlement / reversal: the orchestrators
"""
