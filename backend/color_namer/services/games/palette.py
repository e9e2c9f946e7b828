"""Seeded palette generation for the picker.

``generate(seed, count)`` is pure: the same seed and count give the same
colors in every process, so clients and server can agree on a round's
palette by sharing only ``round_seed``.
"""

import math
from typing import List

from .colors import Color, color_distance, is_gamut_safe
from .errors import ValidationError

_MASK32 = 0xFFFFFFFF

LIGHTNESS_MIN = 8.0
LIGHTNESS_SPAN = 86.0
CHROMA_PEAK = 90.0
CHROMA_FLOOR = 20.0
CHROMA_MIN_FRACTION = 0.55
MIN_POOL_SPACING = 6.0
LIGHTNESS_WEIGHT = 0.45

GOLDEN_ANGLE_DEG = 137.508
FALLBACK_LIGHTNESS_STEPS = (30.0, 45.0, 60.0, 75.0, 90.0)
FALLBACK_CHROMA = 35.0


class Mulberry32:
    """Small 32-bit generator; one ``random()`` call consumes one step."""

    def __init__(self, seed: int):
        self.state = int(seed) & _MASK32

    def random(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & _MASK32
        t = self.state
        t = ((t ^ (t >> 15)) * (t | 1)) & _MASK32
        t = ((t + (((t ^ (t >> 7)) * (t | 61)) & _MASK32)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296.0


def max_chroma(lightness: float) -> float:
    """Tent-shaped chroma ceiling: widest at mid lightness."""
    spread = 1 - abs(lightness - 50) / 50
    return CHROMA_FLOOR + (CHROMA_PEAK - CHROMA_FLOOR) * max(0.0, spread)


def sample_candidate(rng: Mulberry32) -> Color:
    lightness = LIGHTNESS_MIN + LIGHTNESS_SPAN * rng.random()
    ceiling = max_chroma(lightness)
    chroma = ceiling * (CHROMA_MIN_FRACTION + (1 - CHROMA_MIN_FRACTION) * rng.random())
    hue = 2 * math.pi * rng.random()
    return Color(lightness, chroma * math.cos(hue), chroma * math.sin(hue))


def _build_pool(rng: Mulberry32, count: int) -> List[Color]:
    pool_size = max(36 * count, 60)
    budget = max(300, 260 * count)
    pool: List[Color] = []
    for _ in range(budget):
        if len(pool) >= pool_size:
            break
        candidate = sample_candidate(rng)
        if not is_gamut_safe(candidate):
            continue
        if any(color_distance(candidate, c) <= MIN_POOL_SPACING for c in pool):
            continue
        pool.append(candidate)
    return pool


def _diversity(candidate: Color, selected: List[Color]) -> float:
    nearest = min(color_distance(candidate, c) for c in selected)
    nearest_lightness = min(abs(candidate.lightness - c.lightness) for c in selected)
    return nearest + LIGHTNESS_WEIGHT * nearest_lightness


def _fallback_color(slot: int) -> Color:
    hue = math.radians((slot * GOLDEN_ANGLE_DEG) % 360)
    lightness = FALLBACK_LIGHTNESS_STEPS[slot % len(FALLBACK_LIGHTNESS_STEPS)]
    candidate = Color(lightness, FALLBACK_CHROMA * math.cos(hue), FALLBACK_CHROMA * math.sin(hue))
    if is_gamut_safe(candidate):
        return candidate
    return Color(lightness, 0.0, 0.0)


def generate(seed: int, count: int) -> List[Color]:
    """Return ``count`` well-separated, displayable colors for ``seed``."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError('count must be an integer')
    if count < 0:
        raise ValidationError('count must not be negative')
    if count == 0:
        return []

    rng = Mulberry32(seed)
    pool = _build_pool(rng, count)

    selected: List[Color] = []
    if pool:
        first = min(int(rng.random() * len(pool)), len(pool) - 1)
        selected.append(pool.pop(first))
        while pool and len(selected) < count:
            best_index = 0
            best_score = -1.0
            for index, candidate in enumerate(pool):
                score = _diversity(candidate, selected)
                if score > best_score:
                    best_index, best_score = index, score
            selected.append(pool.pop(best_index))

    slot = len(selected)
    while len(selected) < count:
        selected.append(_fallback_color(slot))
        slot += 1
    return selected
