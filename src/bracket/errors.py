"""
Errors raised by bracket generation, advancement and the store.

Every error carries a ``message`` that is safe to show to the user.
"""


class BracketError(Exception):
    """Base class for all bracket engine errors."""

    message = "Bracket error"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotEnoughEntriesError(BracketError, ValueError):
    message = "Not enough entries for this tournament type"


class OutOfOrderError(BracketError, ValueError):
    message = "Matches must be decided in order"


class MatchAlreadyDecidedError(OutOfOrderError):
    message = "Match has already been decided"


class InvalidWinnerError(BracketError, ValueError):
    message = "Winner is not part of this match"


class NotFoundError(BracketError, LookupError):
    message = "Not found"


class PersistenceError(BracketError):
    """Store or transaction failure. The message never includes internals."""

    message = "Internal Server Error"
