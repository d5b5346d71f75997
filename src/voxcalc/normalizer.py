"""
Expression normalization.

Rewrites keypad/dictation text into the primary evaluator's syntax and builds
the function scope for the current angle mode. Also holds the keypad mapping
tables that the "2nd" modifier selects between.
"""

import math
from dataclasses import dataclass
from typing import Callable

from voxcalc.models import AngleMode, ScientificModifier


# Applied in order. No replacement produces text matched by another, so the
# rewrite is idempotent on its own output.
SYMBOL_REWRITES: list[tuple[str, str]] = [
    ("×", "*"),
    ("÷", "/"),
    ("−", "-"),
    ("π", "pi"),
    ("lg(", "log10("),
    ("ln(", "log("),
]

BASE_FUNCTIONS: dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "sqrt": math.sqrt,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
    "abs": abs,
}

_TO_RADIANS = math.pi / 180
_TO_DEGREES = 180 / math.pi

DEGREE_FUNCTIONS: dict[str, Callable[[float], float]] = {
    "sin": lambda x: math.sin(x * _TO_RADIANS),
    "cos": lambda x: math.cos(x * _TO_RADIANS),
    "tan": lambda x: math.tan(x * _TO_RADIANS),
    "asin": lambda x: math.asin(x) * _TO_DEGREES,
    "acos": lambda x: math.acos(x) * _TO_DEGREES,
    "atan": lambda x: math.atan(x) * _TO_DEGREES,
}


# =============================================================================
# Keypad Tables
# =============================================================================

FUNCTION_KEYS: dict[str, dict[ScientificModifier, str]] = {
    "sin": {ScientificModifier.PRIMARY: "sin(", ScientificModifier.SECOND: "asin("},
    "cos": {ScientificModifier.PRIMARY: "cos(", ScientificModifier.SECOND: "acos("},
    "tan": {ScientificModifier.PRIMARY: "tan(", ScientificModifier.SECOND: "atan("},
    "lg": {ScientificModifier.PRIMARY: "lg(", ScientificModifier.SECOND: "10^"},
    "ln": {ScientificModifier.PRIMARY: "ln(", ScientificModifier.SECOND: "e^"},
    "√": {ScientificModifier.PRIMARY: "sqrt(", ScientificModifier.SECOND: "^2"},
}

LITERAL_KEYS: dict[str, str] = {
    "(": "(",
    ")": ")",
    "x^y": "^",
    "!": "!",
    "1/x": "1/",
    "e": "e",
    "π": "π",
}


def keypad_insertion(key: str, modifier: ScientificModifier) -> str | None:
    """Text a function/literal key inserts, or None if the key is not in the tables."""
    if key in FUNCTION_KEYS:
        return FUNCTION_KEYS[key][modifier]
    return LITERAL_KEYS.get(key)


# =============================================================================
# Normalization
# =============================================================================

@dataclass(frozen=True)
class NormalizedExpression:
    """Expression text in evaluator syntax plus its function scope."""
    text: str
    scope: dict[str, Callable[[float], float]]


def rewrite_symbols(raw: str) -> str:
    """Replace display glyphs and keypad aliases with evaluator names."""
    text = raw
    for glyph, replacement in SYMBOL_REWRITES:
        text = text.replace(glyph, replacement)
    return text


def build_scope(angle_mode: AngleMode) -> dict[str, Callable[[float], float]]:
    """Function scope with trig bindings for the given angle mode."""
    scope = dict(BASE_FUNCTIONS)
    if angle_mode == AngleMode.DEGREES:
        scope.update(DEGREE_FUNCTIONS)
    return scope


def normalize(raw: str, angle_mode: AngleMode = AngleMode.RADIANS) -> NormalizedExpression:
    """Normalize raw buffer text for the primary evaluator."""
    return NormalizedExpression(text=rewrite_symbols(raw), scope=build_scope(angle_mode))
