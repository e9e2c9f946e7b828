"""Phase transitions for a single game session.

LOBBY -> PICKING -> GUESSING -> REVEAL -> PICKING -> ...

Every function mutates the ``GameState`` it is given and raises a
``GameError`` before touching anything when the action is not allowed.
The picker is always ``players[picker_index]``; turn order never depends
on a player's position being 0.
"""

from typing import List, Optional

from .colors import Color
from .errors import StateConflictError, ValidationError
from .scoring import RoundResult, score_current_round
from .state import (
    DIFFICULTIES, GUESSING, LOBBY, PICKING, REVEAL, GameState,
)


def _require_player(game: GameState, player_id: str):
    player = game.player(player_id)
    if player is None:
        raise StateConflictError('You are not a player in this game')
    return player


def _require_host(game: GameState, player_id: str) -> None:
    _require_player(game, player_id)
    if game.host_id != player_id:
        raise StateConflictError('Only the host may do that')


def _require_picker(game: GameState, player_id: str) -> None:
    _require_player(game, player_id)
    if game.picker_id != player_id:
        raise StateConflictError('Only the current picker may do that')


def start(game: GameState, actor_id: str, seed: int, min_players: int = 2) -> None:
    _require_host(game, actor_id)
    if game.phase != LOBBY:
        raise StateConflictError('Game has already started')
    if len(game.players) < min_players:
        raise StateConflictError(f'At least {min_players} players are required to start')

    game.phase = PICKING
    game.round_number = 1
    game.picker_index = 0
    game.round_seed = seed
    game.clear_round()


def set_color(game: GameState, actor_id: str, color: Color) -> None:
    """Store the picker's private choice without leaving PICKING."""
    _require_picker(game, actor_id)
    if game.phase != PICKING:
        raise StateConflictError('Colors can only be picked during picking')
    game.picked_color = color


def set_color_and_clue(game: GameState, actor_id: str, clue: str, color: Optional[Color] = None) -> None:
    _require_picker(game, actor_id)
    if game.phase != PICKING:
        raise StateConflictError('Not accepting clues at this time')
    if color is not None:
        game.picked_color = color
    if game.picked_color is None:
        raise StateConflictError('Pick a color before giving a clue')
    if not clue:
        raise ValidationError('clue is required')

    game.clue = clue
    game.guesses = {}
    game.target = None
    game.phase = GUESSING


def eligible_guessers(game: GameState) -> List[str]:
    picker_id = game.picker_id
    return [
        p.id for p in game.players
        if p.id != picker_id and (p.connected or p.id in game.guesses)
    ]


def all_guessed(game: GameState) -> bool:
    guessers = eligible_guessers(game)
    return bool(guessers) and all(pid in game.guesses for pid in guessers)


def reveal(game: GameState) -> List[RoundResult]:
    """Close the round: expose the target and award points.

    Returns an empty list when the round was already revealed.
    """
    if game.phase == REVEAL:
        return []
    if game.phase != GUESSING:
        raise StateConflictError('There is no round to reveal')
    game.target = game.picked_color
    game.phase = REVEAL
    return score_current_round(game)


def maybe_reveal(game: GameState) -> bool:
    if game.phase == GUESSING and all_guessed(game):
        reveal(game)
        return True
    return False


def submit_guess(game: GameState, actor_id: str, color: Color) -> bool:
    """Record (or overwrite) a guess; reveals once every guesser is in."""
    _require_player(game, actor_id)
    if game.phase != GUESSING:
        raise StateConflictError('Not accepting guesses at this time')
    if actor_id == game.picker_id:
        raise StateConflictError('The picker cannot guess')
    game.guesses[actor_id] = color
    return maybe_reveal(game)


def next_round(game: GameState, actor_id: str, seed: int) -> None:
    _require_host(game, actor_id)
    if game.phase == PICKING:
        # A duplicate "next round" after the advance already happened
        return
    if game.phase != REVEAL:
        raise StateConflictError('The round has not been revealed yet')

    game.picker_index = (game.picker_index + 1) % len(game.players)
    game.round_number += 1
    game.round_seed = seed
    game.clear_round()
    game.phase = PICKING


def skip_turn(game: GameState) -> bool:
    """Hand the picker turn to the next connected player, phase unchanged."""
    if game.phase not in (PICKING, GUESSING) or not game.players:
        return False
    count = len(game.players)
    for step in range(1, count):
        idx = (game.picker_index + step) % count
        if game.players[idx].connected:
            game.picker_index = idx
            # The new picker's own guess no longer counts
            game.guesses.pop(game.players[idx].id, None)
            if game.phase == PICKING:
                # A private pick belongs to the player who made it
                game.picked_color = None
            return True
    return False


def set_difficulty(game: GameState, actor_id: str, difficulty: str) -> None:
    _require_host(game, actor_id)
    if difficulty not in DIFFICULTIES:
        raise ValidationError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    if game.phase == PICKING:
        raise StateConflictError('Difficulty cannot change while the picker is choosing')
    game.difficulty = difficulty
