# services/errors.py
"""
Errors raised by the settlement / reversal services.

Validation errors subclass ValueError / LookupError so callers that only
know the builtin types still handle them. Store failures are not wrapped:
they surface as sqlalchemy.exc.SQLAlchemyError.
"""


class SettlementError(Exception):
    pass


class InvalidMatchIdError(SettlementError, ValueError):
    pass


class MatchNotFoundError(SettlementError, LookupError):
    def __init__(self, match_id):
        super().__init__(f"Match with ID {match_id} not found")
        self.match_id = match_id


class VerificationError(SettlementError):
    """A delete reported success but the rows are still there."""


class TransactionDeletionIncompleteError(VerificationError):
    def __init__(self, match_id, remaining: int):
        super().__init__(
            f"Transaction deletion incomplete: {remaining} transactions still exist "
            f"for match {match_id}"
        )
        self.match_id = match_id
        self.remaining = remaining


class MatchDeletionFailedError(VerificationError):
    def __init__(self, match_id):
        super().__init__(f"Match deletion failed: match {match_id} still exists")
        self.match_id = match_id
