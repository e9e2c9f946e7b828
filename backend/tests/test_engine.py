import pytest

from color_namer.services.games.colors import Color
from color_namer.services.games.errors import (
    GameNotFoundError, StateConflictError, TransientStoreError, ValidationError,
)
from color_namer.services.games.palette import generate
from color_namer.services.games.scoring import picker_score
from color_namer.services.games.state import GUESSING, PICKING, REVEAL


def _three_player_game(engine):
    game_id, a = engine.join('Alice', connection_id='sid-a')
    _, b = engine.join('Bob', game_id=game_id)
    _, c = engine.join('Cara', game_id=game_id)
    return game_id, a, b, c


def test_end_to_end_round(engine, transport):
    game_id, a, b, c = _three_player_game(engine)
    game = engine.get_state(game_id)
    assert [p.order for p in game.players] == [0, 1, 2]

    engine.start(game_id, a)
    engine.set_color_and_clue(game_id, a, 'ocean whisper', Color(50, 10, 20))
    engine.submit_guess(game_id, b, Color(70, -20, 40))
    assert engine.get_state(game_id).phase == GUESSING
    engine.submit_guess(game_id, c, Color(52, 12, 18))

    game = engine.get_state(game_id)
    assert game.phase == REVEAL
    assert game.target == Color(50, 10, 20)

    results = engine.results(game_id)
    assert [r.player_id for r in results] == [c, b]
    assert results[0].distance <= results[1].distance

    scores = {p.id: p.score for p in game.players}
    earned = {r.player_id: r.points_earned for r in results}
    assert scores[b] == earned[b]
    assert scores[c] == earned[c]
    assert scores[a] == picker_score([earned[b], earned[c]])

    update = transport.last_update(game_id)
    assert update['game']['phase'] == REVEAL
    assert [r['player_id'] for r in update['results']] == [c, b]
    assert 'picked_color' not in update['game']


def test_joined_and_ack_go_to_requester_only(engine, transport):
    game_id, player_id = engine.join('Alice', connection_id='sid-a')
    sent_types = [m['type'] for sid, m in transport.sent if sid == 'sid-a']
    assert 'joined' in sent_types and 'ack' in sent_types
    joined = next(m for _, m in transport.sent if m['type'] == 'joined')
    assert joined == {'type': 'joined', 'game_id': game_id, 'player_id': player_id}


def test_unknown_game_is_not_created(engine):
    with pytest.raises(GameNotFoundError):
        engine.join('Zed', game_id='NOPE42')
    with pytest.raises(GameNotFoundError):
        engine.reconnect('NOPE42', 'someone')
    assert 'NOPE42' not in engine.store.keys()


def test_game_codes_are_case_insensitive(engine):
    game_id, _ = engine.join('Alice')
    assert engine.get_state(game_id.lower()).id == game_id


def test_rejected_intent_leaves_document_untouched(engine, transport):
    game_id, a, b, c = _three_player_game(engine)
    before = engine.store.get(game_id)
    broadcasts = len(transport.broadcasts)
    with pytest.raises(StateConflictError):
        engine.start(game_id, b)
    with pytest.raises(ValidationError):
        engine.set_color_and_clue(game_id, a, 'bright red', Color(50, 0, 0))
    assert engine.store.get(game_id) == before
    assert len(transport.broadcasts) == broadcasts


def test_failed_write_is_not_applied(engine):
    game_id, a, b, c = _three_player_game(engine)
    engine.start(game_id, a)
    engine.set_color_and_clue(game_id, a, 'ocean whisper', Color(50, 10, 20))

    store = engine.store
    real_put = store.put

    def broken_put(key, doc):
        raise TransientStoreError('store unavailable')

    store.put = broken_put
    with pytest.raises(TransientStoreError):
        engine.submit_guess(game_id, b, Color(40, 0, 0))
    store.put = real_put

    assert engine.get_state(game_id).guesses == {}
    engine.submit_guess(game_id, b, Color(40, 0, 0))
    assert b in engine.get_state(game_id).guesses


def test_disconnect_skips_picker_turn(engine):
    game_id, a, b, c = _three_player_game(engine)
    engine.start(game_id, a)
    engine.disconnect(game_id, a)
    game = engine.get_state(game_id)
    assert game.phase == PICKING
    assert game.picker_id == b
    assert game.player(a).connected is False


def test_reconnect_restores_player(engine, transport):
    game_id, a, b, c = _three_player_game(engine)
    engine.disconnect(game_id, b)
    engine.reconnect(game_id, b, name='Bobby', connection_id='sid-b')
    player = engine.get_state(game_id).player(b)
    assert player.connected and player.name == 'Bobby'
    assert ('sid-b', {'type': 'reconnected', 'game_id': game_id, 'player_id': b}) in transport.sent


def test_heartbeat_is_not_broadcast(engine, transport, clock):
    game_id, a, b, c = _three_player_game(engine)
    broadcasts = len(transport.broadcasts)
    clock.advance(30)
    engine.heartbeat(game_id, b)
    assert len(transport.broadcasts) == broadcasts
    assert engine.get_state(game_id).player(b).last_seen == clock.now


def test_forced_reveal_and_duplicate_reveal(engine):
    game_id, a, b, c = _three_player_game(engine)
    engine.start(game_id, a)
    engine.set_color_and_clue(game_id, a, 'ocean whisper', Color(50, 10, 20))
    engine.submit_guess(game_id, b, Color(50, 10, 20))
    with pytest.raises(StateConflictError):
        engine.reveal(game_id, c)
    engine.reveal(game_id, a)
    scores = {p.id: p.score for p in engine.get_state(game_id).players}
    assert scores[b] == 500
    assert scores[a] == 250
    engine.reveal(game_id, a)
    assert {p.id: p.score for p in engine.get_state(game_id).players} == scores


def test_last_leave_disposes_session(engine, transport):
    game_id, a = engine.join('Alice')
    _, b = engine.join('Bob', game_id=game_id)
    engine.leave(game_id, a)
    assert engine.get_state(game_id).host_id == b
    assert engine.leave(game_id, b) is None
    with pytest.raises(GameNotFoundError):
        engine.get_state(game_id)
    assert transport.broadcasts[-1] == (game_id, {'type': 'session_ended', 'game_id': game_id})


def test_palette_follows_round_seed_and_difficulty(engine):
    game_id, a, b, c = _three_player_game(engine)
    assert engine.palette(game_id) == []
    engine.set_difficulty(game_id, a, 'hard')
    engine.start(game_id, a)
    game = engine.get_state(game_id)
    assert engine.palette(game_id) == generate(game.round_seed, 12)


def test_update_log(engine):
    game_id, a, b, c = _three_player_game(engine)
    engine.start(game_id, a)
    types = [u['type'] for u in engine.updates_since(game_id)]
    assert types == ['GAME_CREATED', 'PLAYER_JOINED', 'PLAYER_JOINED', 'PLAYER_JOINED', 'GAME_STARTED']


def test_sweeps_time_out_players_and_evict_idle_games(engine, clock):
    game_id, a, b, c = _three_player_game(engine)
    busy_id, d = engine.join('Dana')

    clock.advance(200)
    engine.heartbeat(busy_id, d)
    expired = engine.expire_silent_players()
    assert sorted(expired[game_id]) == sorted([a, b, c])
    assert busy_id not in expired

    clock.advance(engine.idle_timeout + 1)
    assert engine.evict_idle_games() == [game_id]
    assert engine.store.get(game_id) is None
    # Still has a connected player
    assert engine.store.get(busy_id) is not None


def test_unknown_games_leave_no_locks_behind(engine):
    for i in range(20):
        with pytest.raises(GameNotFoundError):
            engine.heartbeat(f'BOGUS{i}', 'p')
    assert engine._locks == {}

    game_id, a, b, c = _three_player_game(engine)
    engine.start(game_id, a)
    engine.leave(game_id, c)
    assert engine._locks == {}


def test_update_log_failure_does_not_hide_the_write(engine, transport):
    game_id, a, b, c = _three_player_game(engine)
    broadcasts = len(transport.broadcasts)

    def broken_append(key, entry):
        raise TransientStoreError('log unavailable')

    engine.update_log.append = broken_append
    engine.start(game_id, a)

    assert engine.get_state(game_id).phase == PICKING
    assert len(transport.broadcasts) == broadcasts + 1
    assert transport.last_update(game_id)['game']['phase'] == PICKING


def test_player_ids_are_length_checked(engine):
    with pytest.raises(ValidationError):
        engine.join('Alice', player_id='x' * 65)
    assert engine.store.keys() == []

    game_id, _ = engine.join('Alice', player_id='d' * 64)
    with pytest.raises(ValidationError):
        engine.reconnect(game_id, 'x' * 65)
