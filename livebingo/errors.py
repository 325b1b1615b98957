"""Game error taxonomy.

The service layer raises these; the Socket.IO layer decides who hears
about them. None of them ever reaches other players of the room.
"""


class BingoError(Exception):
    """Base class for every rejected game action."""
    code = 'error'

    def __init__(self, message=None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class RoomNotFound(BingoError):
    """Room not found. It may have been closed."""
    code = 'not_found'

    def __init__(self, room_code=None, message=None):
        self.room_code = room_code
        super().__init__(message or 'Room not found. It may have been closed.')


class NotAuthorized(BingoError):
    """Only the host can do that."""
    code = 'unauthorized'


class IllegalState(BingoError):
    """That action is not allowed right now."""
    code = 'illegal_state'


class ValidationFailed(BingoError):
    """Invalid request."""
    code = 'validation'


class NumbersExhausted(BingoError):
    """All numbers called!"""
    code = 'exhausted'


class SessionExpired(BingoError):
    """Player session not found in this room."""
    code = 'session_expired'
