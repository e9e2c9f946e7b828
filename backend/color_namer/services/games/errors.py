"""Error taxonomy raised by the game engine.

Handlers at the transport edge (REST routes, socket events) catch
``GameError`` and report ``message`` to the requester only; the session
document is never touched when one of these is raised.
"""


class GameError(Exception):
    kind = 'error'
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class ValidationError(GameError):
    """Malformed input: bad clue, color out of range, missing field."""
    kind = 'validation'
    status_code = 400


class StateConflictError(GameError):
    """Action not valid for the current phase or actor."""
    kind = 'conflict'
    status_code = 409


class GameNotFoundError(GameError):
    kind = 'not_found'
    status_code = 404

    def __init__(self, game_id: str = None):
        super().__init__('Game not found')
        self.game_id = game_id


class TransientStoreError(GameError):
    """Store or transport failure; the caller may retry."""
    kind = 'transient'
    status_code = 503
