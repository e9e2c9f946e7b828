"""The single mutation path for game sessions.

Every client intent runs as one read-modify-write unit under a per-game
lock: re-read the document from the Store, apply the transition, write it
back, and only then notify the room through the Transport. A transition
that raises leaves the stored document exactly as it was.
"""

import logging
import random
import string
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Tuple

from . import lifecycle, state_machine
from .colors import Color
from .errors import GameNotFoundError, StateConflictError, ValidationError
from .palette import generate
from .scoring import compute_results
from .state import REVEAL, GameState

GAME_CODE_LENGTH = 6
DEFAULT_PALETTE_SIZES = {'easy': 6, 'hard': 12}


def _random_seed() -> int:
    return random.randrange(2 ** 31)


def generate_game_code(length: int = GAME_CODE_LENGTH) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


class _GameLock:
    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class _Transaction:
    def __init__(self, game: GameState):
        self.game = game
        self.event: Optional[str] = None
        self.player_id: Optional[str] = None
        self.dispose = False
        self.changed = True
        self.quiet = False


class GameEngine:
    def __init__(self, store, transport, update_log=None, clue_validator=None,
                 min_players: int = 2, palette_sizes: Optional[Dict[str, int]] = None,
                 player_timeout: float = 120.0, idle_timeout: float = 1800.0,
                 seed_source: Callable[[], int] = _random_seed,
                 clock: Callable[[], float] = time.time, logger=None):
        self.store = store
        self.transport = transport
        self.update_log = update_log
        self.clue_validator = clue_validator
        self.min_players = min_players
        self.palette_sizes = dict(palette_sizes or DEFAULT_PALETTE_SIZES)
        self.player_timeout = player_timeout
        self.idle_timeout = idle_timeout
        self.seed_source = seed_source
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._locks: Dict[str, _GameLock] = {}
        self._locks_guard = threading.Lock()

    # ---- plumbing ----

    @contextmanager
    def _locked(self, game_id: str):
        # Entries live only while someone holds or waits on them
        with self._locks_guard:
            entry = self._locks.get(game_id)
            if entry is None:
                entry = self._locks[game_id] = _GameLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    self._locks.pop(game_id, None)

    def _read(self, game_id: str) -> GameState:
        doc = self.store.get(game_id)
        if doc is None:
            raise GameNotFoundError(game_id)
        return GameState.from_dict(doc)

    @contextmanager
    def _session(self, game_id: str, create: bool = False):
        game_id = normalize_code(game_id)
        with self._locked(game_id):
            if create:
                if self.store.get(game_id) is not None:
                    raise ValidationError(f'Game {game_id} already exists')
                now = self.clock()
                game = GameState(id=game_id, created_at=now, last_activity=now)
            else:
                game = self._read(game_id)
            txn = _Transaction(game)
            yield txn
            if not txn.changed:
                return
            now = self.clock()
            if txn.dispose:
                self.store.delete(game_id)
                if self.update_log is not None:
                    self.update_log.drop(game_id)
            else:
                game.last_activity = now
                self.store.put(game_id, game.to_dict())
                if self.update_log is not None and txn.event:
                    self._log_update(game_id, txn, now)
        if txn.dispose:
            self._notify_ended(game_id)
        elif not txn.quiet:
            self._broadcast(game)

    def _log_update(self, game_id: str, txn: _Transaction, now: float) -> None:
        try:
            self.update_log.append(game_id, {
                'timestamp': now,
                'type': txn.event,
                'player_id': txn.player_id,
            })
        except Exception:
            # Diagnostic only; the document write already landed
            self.logger.exception(f'[update-log-failed] game={game_id} type={txn.event}')

    def _broadcast(self, game: GameState) -> None:
        try:
            self.transport.broadcast(game.id, {
                'type': 'session_update',
                'game': self.public_state(game),
                'results': [r.to_dict() for r in compute_results(game)] if game.phase == REVEAL else [],
            })
        except Exception:
            # The write already landed; clients resync from the next update
            self.logger.exception(f'[broadcast-failed] game={game.id}')

    def _notify_ended(self, game_id: str) -> None:
        try:
            self.transport.broadcast(game_id, {'type': 'session_ended', 'game_id': game_id})
        except Exception:
            self.logger.exception(f'[broadcast-failed] game={game_id} session_ended')

    def _send(self, connection_id: Optional[str], message: dict) -> None:
        if connection_id is None:
            return
        try:
            self.transport.send(connection_id, message)
        except Exception:
            self.logger.exception(f"[send-failed] sid={connection_id} type={message.get('type')}")

    def _ack(self, connection_id: Optional[str], intent: str) -> None:
        self._send(connection_id, {'type': 'ack', 'intent': intent, 'timestamp': self.clock()})

    def public_state(self, game: GameState) -> dict:
        payload = game.to_public_dict(self.min_players)
        payload['palette_size'] = self.palette_size(game)
        return payload

    def palette_size(self, game: GameState) -> int:
        return self.palette_sizes.get(game.difficulty, DEFAULT_PALETTE_SIZES['easy'])

    # ---- queries ----

    def get_state(self, game_id: str) -> GameState:
        return self._read(normalize_code(game_id))

    def results(self, game_id: str):
        return compute_results(self.get_state(game_id))

    def palette(self, game_id: str, count: Optional[int] = None) -> List[Color]:
        game = self.get_state(game_id)
        if game.round_seed is None:
            return []
        return generate(game.round_seed, self.palette_size(game) if count is None else count)

    def updates_since(self, game_id: str, since: float = 0.0) -> List[dict]:
        game_id = normalize_code(game_id)
        self._read(game_id)
        if self.update_log is None:
            return []
        return self.update_log.since(game_id, since)

    # ---- lifecycle intents ----

    def create_game(self, game_id: Optional[str] = None) -> GameState:
        if game_id is None:
            game_id = generate_game_code()
            while self.store.get(game_id) is not None:
                game_id = generate_game_code()
        with self._session(game_id, create=True) as txn:
            txn.event = 'GAME_CREATED'
        self.logger.info(f'[create] game={txn.game.id}')
        return txn.game

    def join(self, name: str, game_id: Optional[str] = None, player_id: Optional[str] = None,
             connection_id: Optional[str] = None) -> Tuple[str, str]:
        name = lifecycle.clean_name(name)
        player_id = lifecycle.clean_player_id(player_id or str(uuid.uuid4()))
        if game_id is None:
            game_id = self.create_game().id
        with self._session(game_id) as txn:
            lifecycle.join(txn.game, player_id, name, self.clock())
            txn.event, txn.player_id = 'PLAYER_JOINED', player_id
        self._send(connection_id, {'type': 'joined', 'game_id': txn.game.id, 'player_id': player_id})
        self.logger.info(f'[join] game={txn.game.id} player={player_id} name={name!r}')
        self._ack(connection_id, 'join_game')
        return txn.game.id, player_id

    def reconnect(self, game_id: str, player_id: str, name: Optional[str] = None,
                  avatar_color: Optional[str] = None, connection_id: Optional[str] = None) -> GameState:
        player_id = lifecycle.clean_player_id(player_id)
        with self._session(game_id) as txn:
            lifecycle.reconnect(txn.game, player_id, self.clock(), name=name, avatar_color=avatar_color)
            txn.event, txn.player_id = 'PLAYER_RECONNECTED', player_id
        self._send(connection_id, {'type': 'reconnected', 'game_id': txn.game.id, 'player_id': player_id})
        self.logger.info(f'[reconnect] game={txn.game.id} player={player_id}')
        self._ack(connection_id, 'reconnect_game')
        return txn.game

    def heartbeat(self, game_id: str, player_id: str, connection_id: Optional[str] = None) -> None:
        with self._session(game_id) as txn:
            lifecycle.heartbeat(txn.game, player_id, self.clock())
            # Liveness only; peers do not need a fresh document for it
            txn.quiet = True
        self._ack(connection_id, 'heartbeat')

    def disconnect(self, game_id: str, player_id: str) -> GameState:
        with self._session(game_id) as txn:
            picker_before = txn.game.picker_id
            txn.changed = lifecycle.disconnect(txn.game, player_id, self.clock())
            txn.event, txn.player_id = 'PLAYER_DISCONNECTED', player_id
        if txn.changed:
            self.logger.info(f'[disconnect] game={txn.game.id} player={player_id}')
            if picker_before != txn.game.picker_id:
                self.logger.info(f'[turn-skip] game={txn.game.id} skipped={player_id} picker={txn.game.picker_id}')
        return txn.game

    def leave(self, game_id: str, player_id: str, connection_id: Optional[str] = None) -> Optional[GameState]:
        with self._session(game_id) as txn:
            txn.dispose = lifecycle.leave(txn.game, player_id, self.min_players)
            txn.event, txn.player_id = 'PLAYER_LEFT', player_id
        self.logger.info(f'[leave] game={txn.game.id} player={player_id} disposed={txn.dispose}')
        self._ack(connection_id, 'leave_game')
        return None if txn.dispose else txn.game

    # ---- phase intents ----

    def start(self, game_id: str, player_id: str, connection_id: Optional[str] = None) -> GameState:
        with self._session(game_id) as txn:
            state_machine.start(txn.game, player_id, self.seed_source(), self.min_players)
            txn.event, txn.player_id = 'GAME_STARTED', player_id
        self.logger.info(f'[start] game={txn.game.id} players={len(txn.game.players)} seed={txn.game.round_seed}')
        self._ack(connection_id, 'start_game')
        return txn.game

    def set_color(self, game_id: str, player_id: str, color: Color,
                  connection_id: Optional[str] = None) -> GameState:
        with self._session(game_id) as txn:
            state_machine.set_color(txn.game, player_id, color)
            txn.event, txn.player_id = 'COLOR_PICKED', player_id
        self._ack(connection_id, 'set_color')
        return txn.game

    def set_color_and_clue(self, game_id: str, player_id: str, clue: str, color: Optional[Color] = None,
                           connection_id: Optional[str] = None) -> GameState:
        clue = clue.strip() if isinstance(clue, str) else clue
        if self.clue_validator is not None:
            problem = self.clue_validator.validate(clue)
            if problem:
                raise ValidationError(problem)
        elif not clue:
            raise ValidationError('A clue is required')
        with self._session(game_id) as txn:
            state_machine.set_color_and_clue(txn.game, player_id, clue, color)
            txn.event, txn.player_id = 'CLUE_GIVEN', player_id
        self.logger.info(f'[clue] game={txn.game.id} round={txn.game.round_number} picker={player_id}')
        self._ack(connection_id, 'set_color_and_clue')
        return txn.game

    def submit_guess(self, game_id: str, player_id: str, color: Color,
                     connection_id: Optional[str] = None) -> GameState:
        with self._session(game_id) as txn:
            revealed = state_machine.submit_guess(txn.game, player_id, color)
            txn.event, txn.player_id = ('ROUND_REVEALED' if revealed else 'GUESS_SUBMITTED'), player_id
        if revealed:
            self.logger.info(f'[reveal] game={txn.game.id} round={txn.game.round_number} all guessed')
        self._ack(connection_id, 'submit_guess')
        return txn.game

    def reveal(self, game_id: str, player_id: str, connection_id: Optional[str] = None) -> GameState:
        """Force the reveal before every guess is in (picker or host only)."""
        with self._session(game_id) as txn:
            game = txn.game
            if game.phase == REVEAL:
                txn.changed = False
            else:
                if game.player(player_id) is None or player_id not in (game.picker_id, game.host_id):
                    raise StateConflictError('Only the picker or the host may reveal early')
                state_machine.reveal(game)
                txn.event, txn.player_id = 'ROUND_REVEALED', player_id
        self._ack(connection_id, 'reveal')
        return txn.game

    def next_round(self, game_id: str, player_id: str, connection_id: Optional[str] = None) -> GameState:
        with self._session(game_id) as txn:
            state_machine.next_round(txn.game, player_id, self.seed_source())
            txn.event, txn.player_id = 'NEXT_ROUND', player_id
        self.logger.info(f'[next_round] game={txn.game.id} round={txn.game.round_number} picker={txn.game.picker_id}')
        self._ack(connection_id, 'next_round')
        return txn.game

    def set_difficulty(self, game_id: str, player_id: str, difficulty: str,
                       connection_id: Optional[str] = None) -> GameState:
        with self._session(game_id) as txn:
            state_machine.set_difficulty(txn.game, player_id, difficulty)
            txn.event, txn.player_id = 'DIFFICULTY_CHANGED', player_id
        self._ack(connection_id, 'set_difficulty')
        return txn.game

    # ---- sweeps ----

    def expire_silent_players(self, now: Optional[float] = None) -> Dict[str, List[str]]:
        """Mark players with no heartbeat inside ``player_timeout`` as disconnected."""
        expired: Dict[str, List[str]] = {}
        for game_id in self.store.keys():
            try:
                with self._session(game_id) as txn:
                    ids = lifecycle.expire_silent_players(txn.game, now or self.clock(), self.player_timeout)
                    txn.changed = bool(ids)
                    txn.event = 'PLAYERS_TIMED_OUT'
            except GameNotFoundError:
                continue
            if ids:
                expired[game_id] = ids
                self.logger.info(f'[timeout] game={game_id} players={ids}')
        return expired

    def evict_idle_games(self, now: Optional[float] = None) -> List[str]:
        """Delete games with nobody connected and no activity inside ``idle_timeout``."""
        evicted = []
        for game_id in self.store.keys():
            try:
                with self._session(game_id) as txn:
                    game = txn.game
                    # Decided on the document just re-read under the lock
                    idle = (now or self.clock()) - game.last_activity > self.idle_timeout
                    abandoned = all(not p.connected for p in game.players)
                    txn.dispose = idle and abandoned
                    txn.changed = txn.dispose
            except GameNotFoundError:
                continue
            if txn.dispose:
                evicted.append(game_id)
                self.logger.info(f'[evict] game={game_id} idle')
        return evicted


def normalize_code(game_id) -> str:
    if not isinstance(game_id, str) or not game_id.strip():
        raise ValidationError('game_id is required')
    return game_id.strip().upper()
