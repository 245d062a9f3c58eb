"""
Bracket engine errors.

Every engine error is a ValueError so callers that already guard service
calls with `except ValueError` keep working; routes map the subclasses to
HTTP status codes.
"""


class BracketError(ValueError):
    """Base class for bracket engine errors."""


class NotFoundError(BracketError):
    """Bracket, round or heat does not exist for the given key."""


class InvalidRacerCountError(BracketError):
    pass


class OverCapacityError(BracketError):
    """A heat holds more racers than restructuring can resolve."""


class HeatStateError(BracketError):
    """Illegal heat lifecycle transition."""


class InvalidResultError(BracketError):
    """A result references racers or outcome kinds the heat cannot accept."""


class MissingSeedTimesError(BracketError):
    pass


class BracketExistsError(BracketError):
    pass
