"""
Transcript canonicalization.

Turns a spoken transcript ("two plus three times four") into calculator
grammar ("2+3*4"). Replacements run in a fixed order with whole-word
matching; anything left that is not part of the grammar is dropped.
"""

import re

import structlog

logger = structlog.get_logger()


# Ordered (alternate spellings, symbol). Homophones are resolved by this
# order alone: "to" always becomes 2, even inside "to the power of".
SPOKEN_TOKENS: list[tuple[tuple[str, ...], str]] = [
    (("one", "won"), "1"),
    (("two", "to", "too"), "2"),
    (("three",), "3"),
    (("four", "for"), "4"),
    (("five",), "5"),
    (("six",), "6"),
    (("seven",), "7"),
    (("eight",), "8"),
    (("nine",), "9"),
    (("zero",), "0"),
    (("plus", "add"), "+"),
    (("minus", "subtract"), "-"),
    (("times", "multiply", "multiplied by"), "*"),
    (("divided by", "divide", "over"), "/"),
    (("point", "dot"), "."),
    (("x",), "*"),
    (("power", "to the power of"), "^"),
    (("open parenthesis",), "("),
    (("close parenthesis",), ")"),
]

_RULES = [
    (re.compile(r"\b(" + "|".join(re.escape(word) for word in words) + r")\b"), symbol)
    for words, symbol in SPOKEN_TOKENS
]

_DISALLOWED = re.compile(r"[^0-9+\-*/^().]")


def canonicalize_transcript(transcript: str | None) -> str:
    """
    Convert a spoken transcript into calculator tokens.

    Returns only characters from ``0-9 + - * / ^ ( ) .``. Words that have
    no mapping are dropped silently, so an unrecognized utterance yields an
    empty string.
    """
    if not transcript:
        return ""

    text = transcript.lower()
    for pattern, symbol in _RULES:
        text = pattern.sub(symbol, text)

    canonical = _DISALLOWED.sub("", text)

    if not canonical:
        logger.debug("Transcript produced no tokens", transcript=transcript)

    return canonical
