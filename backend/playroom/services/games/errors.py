"""Game engine errors.

Every failure an inbound action can hit is a subclass of GameError so the
HTTP blueprint and the socket handlers can translate them in one place.
"""


class GameError(Exception):
    """Base class for caller-facing game failures."""
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)

    @property
    def code(self):
        return self.__class__.__name__

    def to_dict(self):
        return {'error': str(self), 'code': self.code}


# ---- Room lifecycle ----

class InvalidGameType(GameError):
    """Unsupported game type for this mode"""


class RoomClosed(GameError):
    """Game already in progress"""


class RoomFull(GameError):
    """Game room is full"""


class SessionNotFound(GameError):
    """Game not found"""
    status_code = 404

    def __init__(self, key):
        self.key = key
        super().__init__(f"Game {key} not found")


class CodeAllocationExhausted(GameError):
    """Could not allocate a unique room code"""
    status_code = 503


# ---- Participation and moves ----

class NotAParticipant(GameError):
    """Player not in game"""
    status_code = 403


class NotInProgress(GameError):
    """Game is not in progress"""


class NotYourTurn(GameError):
    """Not your turn"""


class IllegalMove(GameError):
    """Invalid move"""


# ---- Storage ----

class PersistenceFailure(GameError):
    """Storage update failed"""
    status_code = 500
