"""
Session registry for the VoxCalc server.

Holds independent calculator sessions, each with its own buffer, history and
voice channel. Sessions share nothing but the fallback interpreter.
"""

import asyncio
from uuid import UUID

import structlog

from voxcalc.config import settings
from voxcalc.errors import SessionLimitError
from voxcalc.pipeline import ExpressionPipeline
from voxcalc.session import CalculatorSession
from voxcalc.voice import QueueSpeechBackend

logger = structlog.get_logger()


class SessionRegistry:
    """
    In-memory registry of calculator sessions.

    Server sessions get a queue-fed speech backend: the client runs the
    recognizer and posts finalized transcripts.
    """

    def __init__(self, max_sessions: int | None = None, pipeline: ExpressionPipeline | None = None):
        self.max_sessions = max_sessions or settings.max_sessions
        self.pipeline = pipeline
        self._sessions: dict[UUID, CalculatorSession] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> CalculatorSession:
        async with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise SessionLimitError("Maximum session limit reached")

            session = CalculatorSession(
                pipeline=self.pipeline or ExpressionPipeline(),
                speech_backend=QueueSpeechBackend(),
            )
            self._sessions[session.session_id] = session

        logger.info("Session created", session_id=str(session.session_id), active=len(self._sessions))
        return session

    def get(self, session_id: UUID) -> CalculatorSession | None:
        return self._sessions.get(session_id)

    async def remove(self, session_id: UUID) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        await session.close()
        logger.info("Session discarded", session_id=str(session_id), active=len(self._sessions))
        return True

    async def cleanup(self) -> None:
        """Discard every session."""
        for session_id in list(self._sessions):
            await self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


# Global registry
_registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Get the global session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
