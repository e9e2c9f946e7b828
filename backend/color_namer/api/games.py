from flask import Blueprint, jsonify, request, current_app

from color_namer.services.games.colors import Color, lab_to_hex
from color_namer.services.games.errors import GameError, ValidationError
from color_namer.services.games.scoring import DEFAULT_RING_LEVELS, score_rings


games = Blueprint('games', __name__)


def _engine():
    return current_app.extensions['game_engine']


@games.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


def _color_payload(color: Color) -> dict:
    payload = color.to_dict()
    payload['hex'] = lab_to_hex(color)
    return payload


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')


@games.route('/create', methods=['POST'])
def create_game():
    game = _engine().create_game()
    return jsonify({
        'message': 'New game created!',
        'game_id': game.id,
    }), 201


@games.route('/<string:game_id>/state', methods=['GET'])
def get_game_state(game_id):
    engine = _engine()
    game = engine.get_state(game_id)
    payload = engine.public_state(game)
    payload['results'] = [r.to_dict() for r in engine.results(game.id)]
    return jsonify(payload)


@games.route('/<string:game_id>/results', methods=['GET'])
def get_results(game_id):
    results = _engine().results(game_id)
    return jsonify({'results': [r.to_dict() for r in results]})


@games.route('/<string:game_id>/palette', methods=['GET'])
def get_palette(game_id):
    """The current round's picker palette, derived from round_seed."""
    count = _int_arg('count')
    if count is not None and not 1 <= count <= 64:
        raise ValidationError('count must be between 1 and 64')
    engine = _engine()
    game = engine.get_state(game_id)
    colors = engine.palette(game.id, count)
    return jsonify({
        'round_number': game.round_number,
        'seed': game.round_seed,
        'colors': [_color_payload(c) for c in colors],
    })


@games.route('/<string:game_id>/updates', methods=['GET'])
def get_updates(game_id):
    """Diagnostic polling of the last few updates; not authoritative."""
    try:
        since = float(request.args.get('since', 0))
    except ValueError:
        raise ValidationError('since must be a number')
    return jsonify({'updates': _engine().updates_since(game_id, since)})


@games.route('/scoring/rings', methods=['GET'])
def get_score_rings():
    raw = request.args.get('levels')
    if raw:
        try:
            levels = [int(v) for v in raw.split(',') if v.strip()]
        except ValueError:
            raise ValidationError('levels must be a comma separated list of integers')
    else:
        levels = list(DEFAULT_RING_LEVELS)
    return jsonify({'rings': score_rings(levels)})
