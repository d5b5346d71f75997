"""
Shared fixtures for the VoxCalc tests.
"""

import asyncio

import pytest
import structlog

from voxcalc.fallback import FallbackInterpreter, FallbackProvider
from voxcalc.pipeline import ExpressionPipeline
from voxcalc.session import CalculatorSession
from voxcalc.voice import QueueSpeechBackend


class ScriptedProvider(FallbackProvider):
    """Fallback provider that records calls and replays a fixed answer."""

    name = "scripted"

    def __init__(
        self,
        reply: str = "Error",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
        delay: float | None = None,
    ):
        self.reply = reply
        self.error = error
        self.gate = gate
        self.delay = delay
        self.calls: list[str] = []

    async def interpret(self, text: str) -> str:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay is not None:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


def make_session(provider: FallbackProvider | None = None, **kwargs) -> CalculatorSession:
    provider = provider or ScriptedProvider()
    kwargs.setdefault("speech_backend", QueueSpeechBackend())
    return CalculatorSession(pipeline=ExpressionPipeline(FallbackInterpreter(provider)), **kwargs)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def pipeline(provider):
    return ExpressionPipeline(FallbackInterpreter(provider))


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration made by a test (e.g. the CLI binding a captured stderr)."""
    yield
    structlog.reset_defaults()
