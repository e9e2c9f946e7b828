"""Roster changes layered on the phase machine.

Players are appended on join, flagged ``connected=False`` on transport
loss, and only removed by an explicit leave.
"""

from typing import List, Optional

from .errors import GameNotFoundError, ValidationError
from .state import ACTIVE_PHASES, GUESSING, LOBBY, PICKING, GameState, Player
from . import state_machine

MAX_NAME_LENGTH = 32
# Matches the game_update.player_id column
MAX_PLAYER_ID_LENGTH = 64


def clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Player name is required')
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'Player name must be at most {MAX_NAME_LENGTH} characters')
    return name


def clean_player_id(player_id) -> str:
    if not isinstance(player_id, str) or not player_id.strip():
        raise ValidationError('player_id is required')
    if len(player_id) > MAX_PLAYER_ID_LENGTH:
        raise ValidationError(f'player_id must be at most {MAX_PLAYER_ID_LENGTH} characters')
    return player_id


def join(game: GameState, player_id: str, name: str, now: float) -> Player:
    existing = game.player(player_id)
    if existing is not None:
        return reconnect(game, player_id, now, name=name)

    player = Player(id=player_id, name=clean_name(name), order=len(game.players), last_seen=now)
    game.players.append(player)
    if game.host_id is None:
        game.host_id = player.id
    return player


def reconnect(game: GameState, player_id: str, now: float,
              name: Optional[str] = None, avatar_color: Optional[str] = None) -> Player:
    player = game.player(player_id)
    if player is None:
        raise GameNotFoundError(game.id)
    if name:
        player.name = clean_name(name)
    if avatar_color:
        player.avatar_color = avatar_color
    player.connected = True
    player.last_seen = now
    return player


def heartbeat(game: GameState, player_id: str, now: float) -> None:
    player = game.player(player_id)
    if player is not None:
        player.last_seen = now


def _after_absence(game: GameState, player_id: str) -> None:
    # Absent picker loses the turn; an absent guesser may be the last one awaited
    if game.picker_id == player_id:
        state_machine.skip_turn(game)
    if game.phase == GUESSING:
        state_machine.maybe_reveal(game)


def disconnect(game: GameState, player_id: str, now: float) -> bool:
    player = game.player(player_id)
    if player is None or not player.connected:
        return False
    player.connected = False
    player.last_seen = now
    _after_absence(game, player_id)
    return True


def leave(game: GameState, player_id: str, min_players: int = 2) -> bool:
    """Remove a player outright. Returns True when the roster is now empty."""
    idx = game.index_of(player_id)
    if idx < 0:
        return not game.players

    was_picker = idx == game.picker_index
    game.players.pop(idx)
    game.guesses.pop(player_id, None)

    if not game.players:
        game.picker_index = 0
        game.host_id = None
        return True

    if idx < game.picker_index:
        game.picker_index -= 1
    game.picker_index %= len(game.players)

    if game.host_id == player_id:
        game.host_id = min(game.players, key=lambda p: p.order).id

    if game.phase in ACTIVE_PHASES and len(game.players) < min_players:
        game.phase = LOBBY
        game.round_number = 0
        game.clear_round()
        return False

    if was_picker and game.phase in (PICKING, GUESSING):
        # The slot now holds the next player; make sure they are present
        if game.phase == PICKING:
            game.picked_color = None
        if not game.picker.connected:
            state_machine.skip_turn(game)
        game.guesses.pop(game.picker_id, None)
    if game.phase == GUESSING:
        state_machine.maybe_reveal(game)
    return False


def expire_silent_players(game: GameState, now: float, timeout: float) -> List[str]:
    expired = []
    for player in list(game.players):
        if player.connected and now - player.last_seen > timeout:
            disconnect(game, player.id, now)
            expired.append(player.id)
    return expired
