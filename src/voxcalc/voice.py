"""
Voice capture for VoxCalc.

A capture session consumes finalized utterances from a speech backend and
hands each transcript to the calculator session. Only one capture runs at a
time per session; stopping a capture that already ended is a no-op.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Callable

import structlog

from voxcalc.config import voice_config
from voxcalc.errors import CaptureError

logger = structlog.get_logger()


@dataclass
class RecognitionResult:
    """One recognizer output; partial results have ``is_final`` False."""
    text: str
    is_final: bool = True
    confidence: float = 0.0


class SpeechBackend(ABC):
    """Abstract source of recognition results."""

    @abstractmethod
    async def open(self, language: str) -> None:
        """Begin listening. Raises CaptureError if the device is unavailable."""
        pass

    @abstractmethod
    def results(self) -> AsyncIterator[RecognitionResult]:
        """Recognition results until the backend is closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop listening. Must be idempotent."""
        pass


_CLOSED = object()


class QueueSpeechBackend(SpeechBackend):
    """
    Backend fed by an external recognizer.

    The recognizer (a browser, a client app, the CLI) pushes transcripts with
    ``submit``; device problems are reported with ``fail``.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._open = False
        self.language: str | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, language: str) -> None:
        self._queue = asyncio.Queue()
        self.language = language
        self._open = True

    def submit(self, text: str, is_final: bool = True, confidence: float = 0.0) -> bool:
        """Queue a recognition result. Returns False when nothing is listening."""
        if not self._open:
            return False
        self._queue.put_nowait(RecognitionResult(text=text, is_final=is_final, confidence=confidence))
        return True

    def fail(self, code: str, message: str | None = None) -> bool:
        """Report a recognizer error (e.g. ``not-allowed``, ``aborted``)."""
        if not self._open:
            return False
        self._queue.put_nowait(CaptureError(message or f"Speech recognition error: {code}", code=code))
        return True

    async def results(self) -> AsyncIterator[RecognitionResult]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, CaptureError):
                raise item
            yield item

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self._queue.put_nowait(_CLOSED)


class VoiceCapture:
    """
    Lifecycle of one session's voice channel.

    Args:
        backend: Speech backend, or None when the platform has no recognizer
        on_transcript: Called with each finalized, lower-cased transcript
        on_error: Called with capture errors worth surfacing to the user
        continuous: Keep listening after the first utterance
    """

    def __init__(
        self,
        backend: SpeechBackend | None,
        on_transcript: Callable[[str], None],
        on_error: Callable[[CaptureError], None] | None = None,
        continuous: bool | None = None,
    ):
        self.backend = backend
        self.on_transcript = on_transcript
        self.on_error = on_error
        self.continuous = voice_config.continuous if continuous is None else continuous
        self._task: asyncio.Task | None = None

    @property
    def is_listening(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start a capture. No-op if one is already running."""
        if self.is_listening:
            return
        if self.backend is None or not voice_config.enabled:
            raise CaptureError("Speech recognition is not supported", code="not-supported")

        await self.backend.open(voice_config.language)
        self._task = asyncio.create_task(self._run())
        logger.info("Voice capture started", language=voice_config.language, continuous=self.continuous)

    async def stop(self) -> None:
        """Stop the running capture, if any."""
        if self._task is None:
            return
        if self.backend is not None:
            await self.backend.close()
        await self._task

    async def wait(self) -> None:
        """Wait for the current capture to end on its own."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        try:
            async for result in self.backend.results():
                if not result.is_final:
                    continue
                self.on_transcript(result.text.lower())
                if not self.continuous:
                    break
        except CaptureError as e:
            if e.code == "aborted":
                logger.info("Voice capture aborted")
            else:
                logger.warning("Voice capture failed", code=e.code, error=str(e))
                if self.on_error:
                    self.on_error(e)
        finally:
            await self.backend.close()
            logger.info("Voice capture ended")
