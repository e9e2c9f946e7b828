from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Any, Callable, Dict, Optional, Set, Tuple
import threading
import time
import uuid

from color_namer.services.games.colors import Color
from color_namer.services.games.errors import GameError, TransientStoreError, ValidationError

NAMESPACE = '/ws'


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


class SocketIOTransport:
    """Engine transport over Socket.IO rooms.

    Also remembers which game/player each socket belongs to, so socket
    events only need to carry the intent payload. A player may hold more
    than one socket while a dropped connection is being replaced.
    """

    def __init__(self, sio, namespace: str = NAMESPACE):
        self.sio = sio
        self.namespace = namespace
        self._connections: Dict[str, Tuple[str, str]] = {}
        self._sockets: Dict[Tuple[str, str], Set[str]] = {}
        self._guard = threading.Lock()

    def broadcast(self, session_id: str, message: Dict[str, Any]) -> None:
        self.sio.emit(message['type'], message, to=room_for(session_id), namespace=self.namespace)

    def send(self, connection_id: str, message: Dict[str, Any]) -> None:
        self.sio.emit(message['type'], message, to=connection_id, namespace=self.namespace)

    def bind(self, sid: str, game_id: str, player_id: str) -> None:
        with self._guard:
            self._forget(sid)
            self._connections[sid] = (game_id, player_id)
            self._sockets.setdefault((game_id, player_id), set()).add(sid)

    def lookup(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._guard:
            return self._connections.get(sid)

    def unbind(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._guard:
            return self._forget(sid)

    def is_bound(self, game_id: str, player_id: str) -> bool:
        """True while any socket still speaks for this player."""
        with self._guard:
            return bool(self._sockets.get((game_id, player_id)))

    def _forget(self, sid: str) -> Optional[Tuple[str, str]]:
        ctx = self._connections.pop(sid, None)
        if ctx is not None:
            sids = self._sockets.get(ctx, set())
            sids.discard(sid)
            if not sids:
                self._sockets.pop(ctx, None)
        return ctx


def _engine():
    return current_app.extensions['game_engine']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _run(intent: str, action: Callable[[], Any]):
    """Run one engine call for the requesting socket.

    Transient store failures are retried with exponential backoff; every
    other GameError goes back to the requester only.
    """
    cfg = current_app.config
    attempts = max(1, int(cfg.get('STORE_RETRY_ATTEMPTS', 3)))
    base_ms = int(cfg.get('STORE_RETRY_BASE_MS', 50))
    for attempt in range(attempts):
        try:
            return action()
        except TransientStoreError as exc:
            if attempt + 1 >= attempts:
                current_app.logger.warning(f"[{intent}] giving up after {attempts} attempts: {exc.message}")
                emit('error', {'message': exc.message, 'kind': exc.kind, 'intent': intent})
                return None
            time.sleep(base_ms * (2 ** attempt) / 1000.0)
        except GameError as exc:
            emit('error', {'message': exc.message, 'kind': exc.kind, 'intent': intent})
            return None
        except Exception:
            current_app.logger.exception(f"[{intent}] sid={_get_sid()} failed")
            emit('error', {'message': 'Something went wrong', 'kind': 'internal', 'intent': intent})
            return None


def _context():
    ctx = _engine().transport.lookup(_get_sid())
    if not ctx:
        raise ValidationError('Join a game first')
    return ctx


def _color(data, key='color', required=True):
    raw = (data or {}).get(key)
    if raw is None and not required:
        return None
    return Color.from_dict(raw)


def _send_snapshot(engine, game_id: str) -> None:
    game = engine.get_state(game_id)
    results = [r.to_dict() for r in engine.results(game_id)]
    emit('session_update', {'type': 'session_update', 'game': engine.public_state(game), 'results': results})


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    engine = _engine()
    ctx = engine.transport.unbind(_get_sid())
    if not ctx:
        return
    game_id, player_id = ctx
    if engine.transport.is_bound(game_id, player_id):
        # The player already came back on another socket
        current_app.logger.info(f"[disconnect-stale] game={game_id} player={player_id} sid={_get_sid()}")
        return
    _run('disconnect', lambda: engine.disconnect(game_id, player_id))


def handle_join_game(data):
    data = data or {}
    engine = _engine()
    sid = _get_sid()
    # Fixed up front so a retried join cannot add the same device twice
    requested_player_id = data.get('player_id') or str(uuid.uuid4())

    def _join():
        game_id, player_id = engine.join(
            data.get('name'),
            game_id=data.get('game_id') or None,
            player_id=requested_player_id,
            connection_id=sid,
        )
        join_room(room_for(game_id))
        engine.transport.bind(sid, game_id, player_id)
        _send_snapshot(engine, game_id)
        return game_id

    _run('join_game', _join)


def handle_reconnect_game(data):
    data = data or {}
    engine = _engine()
    sid = _get_sid()

    def _reconnect():
        game_id, player_id = data.get('game_id'), data.get('player_id')
        if not player_id:
            raise ValidationError('player_id is required')
        game = engine.reconnect(
            game_id, player_id,
            name=data.get('name'),
            avatar_color=data.get('avatar_color'),
            connection_id=sid,
        )
        join_room(room_for(game.id))
        engine.transport.bind(sid, game.id, player_id)
        _send_snapshot(engine, game.id)

    _run('reconnect_game', _reconnect)


def handle_leave_game(data=None):
    engine = _engine()
    sid = _get_sid()

    def _leave():
        game_id, player_id = _context()
        engine.leave(game_id, player_id, connection_id=sid)
        engine.transport.unbind(sid)
        leave_room(room_for(game_id))
        emit('left', {'room': room_for(game_id)})

    _run('leave_game', _leave)


def handle_start_game(data=None):
    engine = _engine()

    def _start():
        game_id, player_id = _context()
        engine.start(game_id, player_id, connection_id=_get_sid())

    _run('start_game', _start)


def handle_set_color(data):
    engine = _engine()

    def _set_color():
        game_id, player_id = _context()
        engine.set_color(game_id, player_id, _color(data), connection_id=_get_sid())

    _run('set_color', _set_color)


def handle_set_color_and_clue(data):
    engine = _engine()

    def _set_color_and_clue():
        game_id, player_id = _context()
        engine.set_color_and_clue(
            game_id, player_id, (data or {}).get('clue'),
            color=_color(data, required=False),
            connection_id=_get_sid(),
        )

    _run('set_color_and_clue', _set_color_and_clue)


def handle_submit_guess(data):
    engine = _engine()

    def _guess():
        game_id, player_id = _context()
        engine.submit_guess(game_id, player_id, _color(data), connection_id=_get_sid())

    _run('submit_guess', _guess)


def handle_reveal(data=None):
    engine = _engine()

    def _reveal():
        game_id, player_id = _context()
        engine.reveal(game_id, player_id, connection_id=_get_sid())

    _run('reveal', _reveal)


def handle_next_round(data=None):
    engine = _engine()

    def _next():
        game_id, player_id = _context()
        engine.next_round(game_id, player_id, connection_id=_get_sid())

    _run('next_round', _next)


def handle_set_difficulty(data):
    engine = _engine()

    def _difficulty():
        game_id, player_id = _context()
        engine.set_difficulty(game_id, player_id, (data or {}).get('difficulty'), connection_id=_get_sid())

    _run('set_difficulty', _difficulty)


def handle_heartbeat(data=None):
    engine = _engine()

    def _beat():
        game_id, player_id = _context()
        engine.heartbeat(game_id, player_id, connection_id=_get_sid())

    _run('heartbeat', _beat)


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_game': handle_join_game,
    'reconnect_game': handle_reconnect_game,
    'leave_game': handle_leave_game,
    'start_game': handle_start_game,
    'set_color': handle_set_color,
    'set_color_and_clue': handle_set_color_and_clue,
    'submit_guess': handle_submit_guess,
    'reveal': handle_reveal,
    'next_round': handle_next_round,
    'set_difficulty': handle_set_difficulty,
    'heartbeat': handle_heartbeat,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from color_namer import socketio

    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)

    if testing:
        # Test-only mirror on default namespace
        for event, handler in HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
