"""
VoxCalc - Keypad & Voice Expression Evaluator

Turns typed keypad input or dictated speech into a canonical arithmetic
expression, evaluates it with a deterministic local engine, and falls back to
a natural-language interpretation service when the local grammar cannot parse
the input. Each result is rendered with bounded precision and becomes the seed
for the next expression.
"""

__version__ = "1.0.0"
__author__ = "VoxCalc Team"
