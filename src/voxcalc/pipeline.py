"""
Expression interpretation pipeline for VoxCalc.

NORMALIZE → EVALUATE → (on ParseError) FALLBACK → FORMAT

The second stage runs only on the ParseError variant of the first and never
speculatively.
"""

from datetime import datetime

import structlog

from voxcalc.errors import ParseError
from voxcalc.evaluator import evaluate
from voxcalc.fallback import FallbackInterpreter, get_fallback_interpreter
from voxcalc.formatter import format_result
from voxcalc.models import AngleMode, EvaluationResult, Failure, FailureKind, Success
from voxcalc.normalizer import normalize

logger = structlog.get_logger()


def evaluate_primary(raw_input: str, angle_mode: AngleMode = AngleMode.RADIANS) -> EvaluationResult:
    """
    Run the deterministic stage only.

    Returns Success with formatted text, or Failure(PARSE_ERROR).
    """
    expression = normalize(raw_input, angle_mode)

    try:
        value = evaluate(expression.text, expression.scope)
    except ParseError as e:
        logger.debug("Primary evaluation failed", expression=expression.text, error=str(e))
        return Failure(FailureKind.PARSE_ERROR, detail=str(e))

    return Success(text=format_result(value))


class ExpressionPipeline:
    """Two-stage evaluator: local grammar first, fallback interpreter second."""

    def __init__(self, fallback: FallbackInterpreter | None = None):
        self._fallback = fallback

    @property
    def fallback(self) -> FallbackInterpreter:
        if self._fallback is None:
            self._fallback = get_fallback_interpreter()
        return self._fallback

    async def run(self, raw_input: str, angle_mode: AngleMode = AngleMode.RADIANS) -> EvaluationResult:
        """
        Evaluate raw input text.

        Args:
            raw_input: Buffer text exactly as composed by the user
            angle_mode: Trig binding for the primary stage

        Returns:
            Success(text, via_fallback) or Failure(FALLBACK_ERROR)
        """
        start_time = datetime.utcnow()
        result = evaluate_primary(raw_input, angle_mode)

        if isinstance(result, Failure) and result.kind == FailureKind.PARSE_ERROR:
            # The service sees what the user typed, not the normalized form
            result = await self.fallback.interpret(raw_input)

        duration = (datetime.utcnow() - start_time).total_seconds()
        logger.info(
            "Evaluation complete",
            success=isinstance(result, Success),
            via_fallback=isinstance(result, Success) and result.via_fallback,
            angle_mode=angle_mode.value,
            duration_s=duration,
        )

        return result
