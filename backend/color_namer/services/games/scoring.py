import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .colors import Color, color_distance, round_half_up
from .state import GameState

MAX_SCORE = 500
MAX_DISTANCE = 55
SCORE_CURVE_MIDPOINT = 17
SCORE_CURVE_STEEPNESS = 5.5
INVERSE_ITERATIONS = 28

DEFAULT_RING_LEVELS = (400, 300, 200, 100)


def _sigmoid(distance: float) -> float:
    return 1 / (1 + math.exp((distance - SCORE_CURVE_MIDPOINT) / SCORE_CURVE_STEEPNESS))


_TOP = _sigmoid(0)
_BOTTOM = _sigmoid(MAX_DISTANCE)


def guesser_score_continuous(distance: float) -> float:
    """Smooth S-curve: a plateau for close guesses, a steep middle, a soft tail.

    Normalized so that distance 0 scores MAX_SCORE and MAX_DISTANCE scores 0.
    """
    if distance >= MAX_DISTANCE:
        return 0.0
    t = (_sigmoid(max(0.0, distance)) - _BOTTOM) / (_TOP - _BOTTOM)
    return MAX_SCORE * max(0.0, min(1.0, t))


def guesser_score(distance: float) -> int:
    return round_half_up(guesser_score_continuous(distance))


def distance_for_guesser_score(points: float) -> float:
    """Inverse of the curve by bisection; used for rings, never for awards."""
    target = max(0.0, min(float(MAX_SCORE), points))
    if target >= MAX_SCORE:
        return 0.0
    if target <= 0:
        return float(MAX_DISTANCE)

    low, high = 0.0, float(MAX_DISTANCE)
    for _ in range(INVERSE_ITERATIONS):
        mid = (low + high) / 2
        if guesser_score_continuous(mid) > target:
            low = mid
        else:
            high = mid
    return (low + high) / 2


def picker_score(guesser_scores: Sequence[int]) -> int:
    # Half the mean: a clue nobody gets earns nothing, a trivial one is capped
    if not guesser_scores:
        return 0
    return round_half_up(sum(guesser_scores) / len(guesser_scores) / 2)


def score_rings(levels: Iterable[int] = DEFAULT_RING_LEVELS) -> List[Dict[str, float]]:
    return [{'points': p, 'distance': distance_for_guesser_score(p)} for p in levels]


@dataclass
class RoundResult:
    player_id: str
    name: str
    avatar_color: str
    guessed_color: Color
    distance: float
    points_earned: int

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'name': self.name,
            'avatar_color': self.avatar_color,
            'guessed_color': self.guessed_color.to_dict(),
            'distance': self.distance,
            'points_earned': self.points_earned,
        }


def compute_results(game: GameState) -> List[RoundResult]:
    """Score every recorded guess against the target, closest first.

    The current picker never guesses, so any entry under their id is ignored.
    """
    if game.target is None:
        return []
    picker_id = game.picker_id
    results = []
    for player in game.players:
        if player.id == picker_id:
            continue
        guess = game.guesses.get(player.id)
        if guess is None:
            continue
        dist = color_distance(guess, game.target)
        results.append(RoundResult(
            player_id=player.id,
            name=player.name,
            avatar_color=player.avatar_color,
            guessed_color=guess,
            distance=dist,
            points_earned=guesser_score(dist),
        ))
    return sorted(results, key=lambda r: r.distance)


def score_current_round(game: GameState) -> List[RoundResult]:
    """Apply scoring for the current round.

    +points_earned to each guesser; picker_score of those points to the
    current picker. Caller sets ``target`` first.
    """
    results = compute_results(game)
    for r in results:
        game.player(r.player_id).score += r.points_earned
    picker = game.picker
    if picker is not None:
        picker.score += picker_score([r.points_earned for r in results])
    return results
