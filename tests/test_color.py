"""Tests for CSS colour parsing into native hue/sat/bri."""

import pytest

from core.color import NativeColor, brightness_to_native, parse_color, round_half_up


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("red", (0, 254, 254)),
        ("RED", (0, 254, 254)),
        ("blue", (43690, 254, 254)),
        ("#00ff00", (21845, 254, 254)),
        ("#0f0", (21845, 254, 254)),
        ("rgb(255,0,0)", (0, 254, 254)),
        ("rgb(100%, 0%, 0%)", (0, 254, 254)),
        ("hsl(120,100%,50%)", (21845, 254, 254)),
        ("hsl(0.5turn 100% 50%)", (32768, 254, 254)),
    ],
)
def test_parse_color_opaque(expression, expected):
    assert parse_color(expression) == NativeColor(*expected)


def test_rgba_alpha_sets_brightness():
    assert parse_color("rgba(255,0,0,0.5)") == NativeColor(hue=0, sat=254, bri=127)


def test_hex_alpha_sets_brightness():
    # 0x80 / 255 * 254 = 127.498...
    assert parse_color("#ff000080") == NativeColor(hue=0, sat=254, bri=127)


def test_hue_keeps_fractional_degrees():
    # 38.82 deg, not 39 deg (which would give 7100)
    assert parse_color("rgb(255,165,0)") == NativeColor(hue=7067, sat=254, bri=254)


def test_hsla_and_slash_syntax_agree():
    assert parse_color("hsla(240,100%,50%,0.75)") == NativeColor(hue=43690, sat=254, bri=191)
    assert parse_color("hsl(240 100% 50% / 75%)") == NativeColor(hue=43690, sat=254, bri=191)


def test_negative_and_full_turn_hues_wrap():
    assert parse_color("hsl(360,100%,50%)").hue == 0
    assert parse_color("hsl(-120,100%,50%)").hue == 43690


def test_greys_carry_no_hue():
    assert parse_color("hsl(200,0%,50%)") == NativeColor(hue=0, sat=0, bri=254)
    assert parse_color("white").sat == 0


def test_zero_alpha_keeps_minimum_brightness():
    assert parse_color("rgba(0,0,255,0)").bri == 1
    assert parse_color("transparent").bri == 1


@pytest.mark.parametrize(
    "expression",
    ["notacolor", "", "   ", "#12345", "#ggg", "rgb(1,2)", "rgb(255,0,0", "hsl(a,b,c)", "rgb(1 2 3 /)", 42, None],
)
def test_malformed_expressions_return_none(expression):
    assert parse_color(expression) is None


@pytest.mark.parametrize(
    "expression",
    ["red", "#123456", "rgba(12,200,99,0.3)", "hsl(720deg,150%,50%)", "hsla(1rad,40%,40%,2)", "coral"],
)
def test_native_ranges(expression):
    color = parse_color(expression)
    assert 0 <= color.hue <= 65535
    assert 0 <= color.sat <= 254
    assert 1 <= color.bri <= 254


def test_as_state():
    assert NativeColor(1, 2, 3).as_state() == {"hue": 1, "sat": 2, "bri": 3}


@pytest.mark.parametrize("fraction, native", [(0.0, 1), (1.0, 254), (0.5, 127), (0.25, 64), (0.001, 1)])
def test_brightness_to_native(fraction, native):
    assert brightness_to_native(fraction) == native


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
