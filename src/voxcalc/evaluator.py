"""
Primary expression evaluator.

A recursive descent parser/evaluator for the calculator grammar:

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary | <implicit> power)*
    unary      := ("-" | "+") unary | power
    power      := postfix ("^" unary)?
    postfix    := primary "!"*
    primary    := NUMBER | NAME | NAME "(" expression ")" | "(" expression ")"

Function names resolve through the caller's scope; ``e`` and ``pi`` are
built-in constants. Every failure surfaces as ParseError.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from voxcalc.errors import ParseError


CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

MAX_FACTORIAL = 170  # 171! overflows a float

# ASCII only; str.isdigit() also accepts superscripts and other scripts
DIGITS = "0123456789"


class TokenType(Enum):
    NUMBER = "NUMBER"
    NAME = "NAME"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


@dataclass
class Token:
    type: TokenType
    value: str | float
    position: int


def _scan_number(expression: str, start: int) -> int:
    """Return the end index of the numeric literal starting at ``start``."""
    j = start
    length = len(expression)

    while j < length and expression[j] in DIGITS:
        j += 1
    if j < length and expression[j] == ".":
        j += 1
        while j < length and expression[j] in DIGITS:
            j += 1

    # Exponent only when digits follow; otherwise "e" is the constant
    if j < length and expression[j] in "eE":
        k = j + 1
        if k < length and expression[k] in "+-":
            k += 1
        if k < length and expression[k] in DIGITS:
            while k < length and expression[k] in DIGITS:
                k += 1
            j = k

    return j


def tokenize(expression: str) -> list[Token]:
    """Convert an expression string into tokens."""
    tokens = []
    i = 0

    while i < len(expression):
        char = expression[i]

        if char.isspace():
            i += 1

        elif char in DIGITS or (char == "." and i + 1 < len(expression) and expression[i + 1] in DIGITS):
            j = _scan_number(expression, i)
            literal = expression[i:j]
            if literal.endswith("."):
                literal += "0"
            tokens.append(Token(TokenType.NUMBER, float(literal), i))
            i = j

        elif char.isalpha() or char == "_":
            j = i
            while j < len(expression) and (expression[j].isalnum() or expression[j] == "_"):
                j += 1
            tokens.append(Token(TokenType.NAME, expression[i:j], i))
            i = j

        elif char in "+-*/^!":
            tokens.append(Token(TokenType.OPERATOR, char, i))
            i += 1
        elif char == "(":
            tokens.append(Token(TokenType.LPAREN, char, i))
            i += 1
        elif char == ")":
            tokens.append(Token(TokenType.RPAREN, char, i))
            i += 1
        else:
            raise ParseError(f"Unexpected character at position {i}: {char}", i)

    return tokens


def factorial(x: float) -> float:
    """Factorial; exact for non-negative integers, gamma-based otherwise."""
    if x == int(x):
        if x < 0:
            raise ParseError("Factorial of a negative integer is undefined")
        if x > MAX_FACTORIAL:
            raise ParseError("Factorial result too large")
        return float(math.factorial(int(x)))
    return math.gamma(x + 1)


class ExpressionParser:
    """Single-use parser over a token list."""

    def __init__(self, tokens: list[Token], scope: Mapping[str, Callable[[float], float]]):
        self.tokens = tokens
        self.scope = scope
        self.pos = 0

    def parse(self) -> float:
        if not self.tokens:
            raise ParseError("Empty expression")

        result = self._parse_expression()

        if self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if token.type == TokenType.RPAREN:
                raise ParseError("Unmatched ')'", token.position)
            raise ParseError(f"Unexpected token: {token.value}", token.position)

        return result

    def _current_token(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _consume_token(self) -> Token | None:
        token = self._current_token()
        if token:
            self.pos += 1
        return token

    def _at_operator(self, symbols: str) -> bool:
        token = self._current_token()
        return token is not None and token.type == TokenType.OPERATOR and token.value in symbols

    def _parse_expression(self) -> float:
        """Additive level (lowest precedence)."""
        left = self._parse_term()

        while self._at_operator("+-"):
            op = self._consume_token().value
            right = self._parse_term()
            left = left + right if op == "+" else left - right

        return left

    def _parse_term(self) -> float:
        """Multiplicative level, including implicit multiplication like ``2pi``."""
        left = self._parse_unary()

        while True:
            token = self._current_token()
            if self._at_operator("*/"):
                op = self._consume_token().value
                right = self._parse_unary()
                if op == "*":
                    left = left * right
                else:
                    if right == 0:
                        raise ParseError("Division by zero", token.position)
                    left = left / right
            elif token is not None and token.type in (TokenType.NAME, TokenType.LPAREN):
                left = left * self._parse_power()
            else:
                break

        return left

    def _parse_unary(self) -> float:
        if self._at_operator("-"):
            self._consume_token()
            return -self._parse_unary()
        if self._at_operator("+"):
            self._consume_token()
            return self._parse_unary()
        return self._parse_power()

    def _parse_power(self) -> float:
        """Exponentiation; right associative, exponent may carry a sign."""
        base = self._parse_postfix()

        if self._at_operator("^"):
            self._consume_token()
            exponent = self._parse_unary()
            return math.pow(base, exponent)

        return base

    def _parse_postfix(self) -> float:
        value = self._parse_primary()

        while self._at_operator("!"):
            self._consume_token()
            value = factorial(value)

        return value

    def _parse_primary(self) -> float:
        token = self._current_token()

        if token is None:
            raise ParseError("Unexpected end of expression")

        if token.type == TokenType.NUMBER:
            self._consume_token()
            return token.value

        if token.type == TokenType.NAME:
            self._consume_token()
            name = token.value
            following = self._current_token()

            if following is not None and following.type == TokenType.LPAREN:
                func = self.scope.get(name)
                if func is None:
                    raise ParseError(f"Unknown function: {name}", token.position)
                argument = self._parse_group()
                return func(argument)

            if name in CONSTANTS:
                return CONSTANTS[name]
            if name in self.scope:
                raise ParseError(f"Expected '(' after function {name}", token.position)
            raise ParseError(f"Unknown identifier: {name}", token.position)

        if token.type == TokenType.LPAREN:
            return self._parse_group()

        raise ParseError(f"Unexpected token: {token.value}", token.position)

    def _parse_group(self) -> float:
        """Parenthesized sub-expression."""
        opening = self._consume_token()
        result = self._parse_expression()

        closing = self._current_token()
        if closing is None or closing.type != TokenType.RPAREN:
            raise ParseError("Mismatched parentheses", opening.position)
        self._consume_token()

        return result


def evaluate(expression: str, scope: Mapping[str, Callable[[float], float]]) -> float:
    """
    Parse and evaluate a normalized expression.

    Args:
        expression: Expression in evaluator syntax (see ``normalizer.normalize``)
        scope: Function name to one-argument implementation

    Returns:
        The numeric value, always finite

    Raises:
        ParseError: On any syntax, resolution or arithmetic failure
    """
    try:
        tokens = tokenize(expression)
        value = ExpressionParser(tokens, scope).parse()
    except ParseError:
        raise
    except RecursionError as e:
        raise ParseError("Expression is nested too deeply") from e
    except (ArithmeticError, ValueError, TypeError) as e:
        raise ParseError(f"Evaluation failed: {e}") from e

    if not math.isfinite(value):
        raise ParseError("Result is not a finite number")

    return float(value)
