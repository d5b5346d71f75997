"""
Calculator session state for VoxCalc.

A session owns the input buffer, the displayed result, the mode selectors,
the bounded history and the voice channel. All mutation goes through the
methods below; while an evaluation is in flight the buffer is frozen and
keypad/dictation input is ignored.
"""

from datetime import datetime
from uuid import UUID, uuid4

import structlog

from voxcalc.config import settings
from voxcalc.errors import CaptureError
from voxcalc.models import (
    AngleMode,
    DisplayState,
    EvaluationResult,
    Failure,
    FallbackReason,
    HistoryEntry,
    ScientificModifier,
    SessionStatus,
    Success,
)
from voxcalc.normalizer import keypad_insertion
from voxcalc.pipeline import ExpressionPipeline
from voxcalc.transcript import canonicalize_transcript
from voxcalc.voice import SpeechBackend, VoiceCapture

logger = structlog.get_logger()

INITIAL_RESULT = "0"
DECLINED_MARKER = "Error"
UNAVAILABLE_MARKER = "API Error"

# Keys that extend a displayed result instead of starting a new expression
CONTINUATION_OPERATORS = ("+", "-", "×", "÷", "%", "^")


def failure_marker(failure: Failure) -> str:
    """Display marker for a failed evaluation."""
    return DECLINED_MARKER if failure.reason == FallbackReason.DECLINED else UNAVAILABLE_MARKER


class History:
    """Most-recent-first list of evaluations with a fixed cap."""

    def __init__(self, limit: int | None = None):
        self.limit = limit if limit is not None else settings.history_limit
        self._entries: list[HistoryEntry] = []

    def add(self, entry: HistoryEntry) -> None:
        self._entries = [entry, *self._entries][:self.limit]

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> HistoryEntry:
        return self._entries[index]


class CalculatorSession:
    """
    One user's calculator.

    Lifecycle: create → mutate via keypad, dictation and evaluation → discard.
    """

    def __init__(
        self,
        pipeline: ExpressionPipeline | None = None,
        speech_backend: SpeechBackend | None = None,
        history_limit: int | None = None,
    ):
        self.session_id: UUID = uuid4()
        self.created_at = datetime.utcnow()
        self.pipeline = pipeline or ExpressionPipeline()

        self.buffer = ""
        self.result = INITIAL_RESULT
        self.status = SessionStatus.IDLE
        self.angle_mode = AngleMode.RADIANS
        self.modifier = ScientificModifier.PRIMARY
        self.is_fallback_result = False
        self.notification: str | None = None
        self.history = History(history_limit)

        self.speech_backend = speech_backend
        self.voice = VoiceCapture(
            speech_backend,
            on_transcript=self.dictate,
            on_error=self._on_capture_error,
        )

    @property
    def is_evaluating(self) -> bool:
        return self.status == SessionStatus.EVALUATING

    def display(self) -> DisplayState:
        """Current render tick for the presentation layer."""
        return DisplayState(
            input_text=self.buffer,
            result_text=self.result,
            is_fallback_result=self.is_fallback_result,
            is_loading=self.is_evaluating,
            angle_mode=self.angle_mode,
            modifier=self.modifier,
            is_listening=self.voice.is_listening,
            notification=self.notification,
        )

    # =========================================================================
    # Buffer Editing
    # =========================================================================

    def append(self, text: str) -> bool:
        """Append text to the buffer. Ignored while evaluating."""
        if self.is_evaluating:
            return False
        self.buffer += text
        return True

    def delete_last(self) -> bool:
        if self.is_evaluating:
            return False
        self.buffer = self.buffer[:-1]
        return True

    def clear(self) -> bool:
        if self.is_evaluating:
            return False
        self.buffer = ""
        self.result = INITIAL_RESULT
        self.is_fallback_result = False
        return True

    def type_literal(self, value: str) -> bool:
        """
        Digit/operator key.

        Right after an evaluation the buffer holds the result; a new operand
        then starts a fresh expression while an operator continues from it.
        """
        if self.is_evaluating:
            return False
        if (
            self.result != INITIAL_RESULT
            and self.buffer == self.result
            and value not in CONTINUATION_OPERATORS
        ):
            self.buffer = value
        else:
            self.buffer += value
        return True

    def toggle_angle_mode(self) -> AngleMode:
        self.angle_mode = AngleMode.RADIANS if self.angle_mode == AngleMode.DEGREES else AngleMode.DEGREES
        return self.angle_mode

    def toggle_modifier(self) -> ScientificModifier:
        self.modifier = (
            ScientificModifier.PRIMARY
            if self.modifier == ScientificModifier.SECOND
            else ScientificModifier.SECOND
        )
        return self.modifier

    # =========================================================================
    # Keypad
    # =========================================================================

    async def press(self, key: str) -> bool:
        """
        Dispatch one keypad event.

        Returns False when the event was ignored (an evaluation is in flight).
        """
        if self.is_evaluating:
            logger.debug("Key ignored while evaluating", key=key)
            return False

        insertion = keypad_insertion(key, self.modifier)
        if insertion is not None:
            return self.append(insertion)

        if key == "AC":
            return self.clear()
        if key == "=":
            await self.evaluate()
            return True
        if key == "DEL":
            return self.delete_last()
        if key == "Deg":
            self.toggle_angle_mode()
            return True
        if key == "2nd":
            self.toggle_modifier()
            return True
        if key == "MIC":
            await self.toggle_capture()
            return True

        return self.type_literal(key)

    # =========================================================================
    # Evaluation
    # =========================================================================

    async def evaluate(self) -> EvaluationResult | None:
        """
        Evaluate the buffer.

        Returns None when there is nothing to evaluate or an evaluation is
        already running.
        """
        if self.is_evaluating or not self.buffer:
            return None

        raw_input = self.buffer
        self.status = SessionStatus.EVALUATING
        self.result = ""

        try:
            outcome = await self.pipeline.run(raw_input, self.angle_mode)
        finally:
            self.status = SessionStatus.IDLE

        if isinstance(outcome, Success):
            self.result = outcome.text
            self.buffer = outcome.text
            self.is_fallback_result = outcome.via_fallback
            self.history.add(HistoryEntry(input_text=raw_input, result_text=outcome.text))
        else:
            self.result = failure_marker(outcome)
            self.buffer = ""
            self.is_fallback_result = False
            logger.info("Evaluation failed", session_id=str(self.session_id), reason=outcome.reason)

        return outcome

    def select_history(self, index: int) -> HistoryEntry:
        """
        Restore a history entry's result into the buffer and display.

        Raises IndexError for an unknown index.
        """
        entry = self.history[index]
        self.buffer = entry.result_text
        self.result = entry.result_text
        self.is_fallback_result = False
        return entry

    # =========================================================================
    # Voice
    # =========================================================================

    def dictate(self, transcript: str) -> str:
        """Append a canonicalized transcript. Returns the appended text."""
        if self.is_evaluating:
            logger.debug("Transcript ignored while evaluating")
            return ""
        canonical = canonicalize_transcript(transcript)
        self.buffer += canonical
        return canonical

    async def start_capture(self) -> bool:
        """Start listening; failures become a notification."""
        self.notification = None
        try:
            await self.voice.start()
        except CaptureError as e:
            self._on_capture_error(e)
            return False
        return True

    async def stop_capture(self) -> None:
        await self.voice.stop()

    async def toggle_capture(self) -> None:
        if self.voice.is_listening:
            await self.stop_capture()
        else:
            await self.start_capture()

    def _on_capture_error(self, error: CaptureError) -> None:
        logger.warning("Capture error surfaced", session_id=str(self.session_id), code=error.code)
        self.notification = str(error)

    async def close(self) -> None:
        """Release the voice channel."""
        await self.voice.stop()
