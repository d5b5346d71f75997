"""
Tests for transcript canonicalization.
"""

from voxcalc.transcript import canonicalize_transcript


class TestNumberWords:
    """Test spoken digits and their homophones."""

    def test_simple_expression(self):
        assert canonicalize_transcript("two plus three times four") == "2+3*4"

    def test_digits_zero_to_nine(self):
        spoken = "zero one two three four five six seven eight nine"
        assert canonicalize_transcript(spoken) == "0123456789"

    def test_homophones_use_fixed_spelling(self):
        assert canonicalize_transcript("won to for") == "124"

    def test_too_is_two(self):
        assert canonicalize_transcript("too minus one") == "2-1"

    def test_already_numeric_words_pass_through(self):
        assert canonicalize_transcript("12 plus 30") == "12+30"


class TestOperatorWords:
    """Test operator phrases."""

    def test_division_phrases(self):
        assert canonicalize_transcript("eight divided by two") == "8/2"
        assert canonicalize_transcript("eight over two") == "8/2"

    def test_multiplication_phrases(self):
        assert canonicalize_transcript("three multiplied by five") == "3*5"
        assert canonicalize_transcript("three x five") == "3*5"

    def test_subtract_and_add(self):
        assert canonicalize_transcript("nine subtract one add two") == "9-1+2"

    def test_decimal_point(self):
        assert canonicalize_transcript("three point one four") == "3.14"
        assert canonicalize_transcript("zero dot five") == "0.5"

    def test_parentheses(self):
        spoken = "open parenthesis one plus two close parenthesis times three"
        assert canonicalize_transcript(spoken) == "(1+2)*3"

    def test_power(self):
        assert canonicalize_transcript("two power three") == "2^3"

    def test_to_is_resolved_before_power_phrase(self):
        # "to" is claimed by the digit rule first
        assert canonicalize_transcript("two to the power of three") == "22^3"


class TestFiltering:
    """Test that only calculator characters survive."""

    def test_word_boundaries_protect_longer_words(self):
        # "one" inside "someone", "to" inside "total" stay untouched
        assert canonicalize_transcript("someone total") == ""

    def test_unmapped_words_are_dropped(self):
        assert canonicalize_transcript("what is five plus five please") == "5+5"

    def test_empty_transcript(self):
        assert canonicalize_transcript("") == ""
        assert canonicalize_transcript(None) == ""

    def test_unrecognized_transcript(self):
        assert canonicalize_transcript("hello world") == ""

    def test_upper_case_is_lowered(self):
        assert canonicalize_transcript("Two Plus Two") == "2+2"

    def test_output_alphabet(self):
        result = canonicalize_transcript("one, two; three! plus % four & x")
        assert set(result) <= set("0123456789+-*/^().")
