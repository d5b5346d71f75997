"""
Tests for the two-stage expression pipeline.
"""

import asyncio

from voxcalc.fallback import FallbackInterpreter
from voxcalc.models import AngleMode, Failure, FailureKind, FallbackReason, Success
from voxcalc.pipeline import ExpressionPipeline, evaluate_primary

from conftest import ScriptedProvider


class TestPrimaryStage:
    """Test the deterministic stage on its own."""

    def test_success_is_formatted(self):
        assert evaluate_primary("0.1+0.2") == Success(text="0.3")

    def test_glyphs_are_normalized(self):
        assert evaluate_primary("2×3÷4") == Success(text="1.5")

    def test_angle_mode(self):
        assert evaluate_primary("sin(90)", AngleMode.DEGREES) == Success(text="1")
        assert evaluate_primary("sin(pi/2)", AngleMode.RADIANS) == Success(text="1")

    def test_parse_error_variant(self):
        result = evaluate_primary("(2+3")
        assert isinstance(result, Failure)
        assert result.kind == FailureKind.PARSE_ERROR


class TestPipeline:
    """Test when and how the fallback stage runs."""

    def setup_method(self):
        self.provider = ScriptedProvider(reply="5")
        self.pipeline = ExpressionPipeline(FallbackInterpreter(self.provider))

    def test_primary_success_skips_fallback(self):
        result = asyncio.run(self.pipeline.run("2+3*4"))

        assert result == Success(text="14")
        assert self.provider.calls == []

    def test_parse_error_calls_fallback_once(self):
        result = asyncio.run(self.pipeline.run("(2+3"))

        assert result == Success(text="5", via_fallback=True)
        assert self.provider.calls == ["(2+3"]

    def test_fallback_receives_unnormalized_text(self):
        asyncio.run(self.pipeline.run("2×(3"))
        assert self.provider.calls == ["2×(3"]

    def test_fallback_error_marker(self):
        self.provider.reply = "Error"
        result = asyncio.run(self.pipeline.run("(2+3"))

        assert isinstance(result, Failure)
        assert result.kind == FailureKind.FALLBACK_ERROR
        assert result.reason == FallbackReason.DECLINED
        assert len(self.provider.calls) == 1

    def test_deterministic(self):
        results = [asyncio.run(self.pipeline.run("sqrt(2)*pi^2/7")) for _ in range(3)]
        assert results[0] == results[1] == results[2]
        assert self.provider.calls == []
