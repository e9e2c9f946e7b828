import pytest

from color_namer.services.games.colors import (
    Color, avatar_color, color_distance, is_gamut_safe, lab_to_hex, lab_to_rgb, round_half_up,
    rgb_to_hsl, rgb_to_lab,
)
from color_namer.services.games.errors import ValidationError


def test_lab_to_rgb_extremes():
    assert lab_to_rgb(100, 0, 0) == (255, 255, 255)
    assert lab_to_rgb(0, 0, 0) == (0, 0, 0)


def test_lab_to_rgb_clamps_out_of_gamut_channels():
    r, g, b = lab_to_rgb(50, 128, -128)
    for channel in (r, g, b):
        assert 0 <= channel <= 255
        assert isinstance(channel, int)


def test_rgb_to_lab_white_and_black():
    lightness, a, b = rgb_to_lab(255, 255, 255)
    assert abs(lightness - 100) < 0.5
    assert abs(a) < 0.5 and abs(b) < 0.5
    lightness, a, b = rgb_to_lab(0, 0, 0)
    assert abs(lightness) < 1e-9


def test_round_trip_through_rgb_is_close_for_mid_gray():
    lightness, a, b = rgb_to_lab(*lab_to_rgb(50, 0, 0))
    assert abs(lightness - 50) < 1
    assert abs(a) < 1 and abs(b) < 1


def test_rgb_to_hsl():
    assert rgb_to_hsl(255, 0, 0) == (0.0, 100.0, 50.0)
    hue, sat, light = rgb_to_hsl(0, 255, 0)
    assert hue == pytest.approx(120.0)
    assert sat == pytest.approx(100.0)
    hue, sat, light = rgb_to_hsl(128, 128, 128)
    assert (hue, sat) == (0.0, 0.0)
    assert light == pytest.approx(50.196, abs=0.01)


def test_gamut_safety():
    assert is_gamut_safe(Color(50, 0, 0))
    assert is_gamut_safe(Color(60, 20, 20))
    assert not is_gamut_safe(Color(50, 128, -128))
    assert not is_gamut_safe(Color(95, -120, 120))


def test_color_distance_and_equality():
    assert color_distance(Color(0, 0, 0), Color(3, 4, 0)) == 5
    assert Color(1, 2, 3) == Color(1.0, 2.0, 3.0)


def test_lab_to_hex():
    assert lab_to_hex(Color(100, 0, 0)) == '#ffffff'
    assert lab_to_hex(Color(0, 0, 0)) == '#000000'


def test_avatar_color_uses_golden_angle():
    assert avatar_color(0) == 'hsl(0, 70%, 50%)'
    assert avatar_color(1) == 'hsl(138, 70%, 50%)'


def test_color_from_dict_validates():
    assert Color.from_dict({'lightness': 50, 'a': 10, 'b': -20}) == Color(50, 10, -20)
    with pytest.raises(ValidationError):
        Color.from_dict({'lightness': 101, 'a': 0, 'b': 0})
    with pytest.raises(ValidationError):
        Color.from_dict({'lightness': 50, 'a': -129, 'b': 0})
    with pytest.raises(ValidationError):
        Color.from_dict({'lightness': 50, 'a': 0})
    with pytest.raises(ValidationError):
        Color.from_dict({'lightness': '50', 'a': 0, 'b': 0})
    with pytest.raises(ValidationError):
        Color.from_dict(None)


def test_halves_round_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
    assert round_half_up(127.5) == 128
