"""
Exception taxonomy for VoxCalc.

ParseError is recoverable and only ever routes an expression to the fallback
interpreter. FallbackError ends an evaluation attempt. CaptureError belongs to
the voice channel and never touches the input buffer.
"""


class VoxCalcError(Exception):
    """Base exception for VoxCalc errors."""
    pass


class ParseError(VoxCalcError):
    """Raised when the primary evaluator cannot parse or evaluate an expression."""

    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.position = position


class FallbackError(VoxCalcError):
    """Raised when the fallback interpretation service fails or declines."""

    def __init__(self, message: str, declined: bool = False):
        super().__init__(message)
        self.declined = declined


class CaptureError(VoxCalcError):
    """Raised when voice capture cannot start or is interrupted."""

    def __init__(self, message: str, code: str = "unknown"):
        super().__init__(message)
        self.code = code


class SessionLimitError(VoxCalcError):
    """Raised when the session registry is full."""
    pass
