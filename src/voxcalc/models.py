"""
Core data models for VoxCalc.

Defines the mode selectors, the evaluation result variant, history entries
and the display/API schemas exchanged with the presentation layer.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class AngleMode(str, Enum):
    """Angle unit used by the trigonometric function bindings."""
    DEGREES = "degrees"
    RADIANS = "radians"


class ScientificModifier(str, Enum):
    """Keypad "2nd" selector: which meaning a function key inserts."""
    PRIMARY = "primary"
    SECOND = "second"


class FailureKind(str, Enum):
    """Why an evaluation attempt did not produce a result."""
    PARSE_ERROR = "parse_error"
    FALLBACK_ERROR = "fallback_error"


class FallbackReason(str, Enum):
    """Detail for a fallback failure; selects the display marker."""
    DECLINED = "declined"  # Service answered with the "Error" marker
    UNAVAILABLE = "unavailable"  # Transport failure, timeout, malformed reply


class SessionStatus(str, Enum):
    """Session lifecycle state."""
    IDLE = "idle"
    EVALUATING = "evaluating"


# =============================================================================
# Evaluation Result
# =============================================================================

@dataclass(frozen=True)
class Success:
    """Canonical result text, either formatted locally or returned by the fallback."""
    text: str
    via_fallback: bool = False


@dataclass(frozen=True)
class Failure:
    """An evaluation attempt that produced no value."""
    kind: FailureKind
    reason: FallbackReason | None = None
    detail: str | None = None


EvaluationResult = Success | Failure


# =============================================================================
# History
# =============================================================================

class HistoryEntry(BaseModel):
    """A completed evaluation. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    input_text: str
    result_text: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# Presentation Models
# =============================================================================

class DisplayState(BaseModel):
    """Render tick for the presentation layer."""
    input_text: str
    result_text: str
    is_fallback_result: bool = False
    is_loading: bool = False
    angle_mode: AngleMode = AngleMode.RADIANS
    modifier: ScientificModifier = ScientificModifier.PRIMARY
    is_listening: bool = False
    notification: str | None = None


# =============================================================================
# API Models
# =============================================================================

class SessionView(BaseModel):
    """Session identifier plus its current display."""
    session_id: UUID
    display: DisplayState


class KeyPress(BaseModel):
    """Request model for a keypad event."""
    key: str = Field(..., min_length=1, max_length=8)


class TranscriptSubmit(BaseModel):
    """Request model for a recognized utterance from the voice surface."""
    transcript: str
    is_final: bool = True


class FallbackRequest(BaseModel):
    """Request sent to an HTTP fallback interpretation service."""
    input: str


class FallbackResponse(BaseModel):
    """Response expected from the fallback interpretation service."""
    result: str
