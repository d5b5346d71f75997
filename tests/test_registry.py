"""
Tests for the session registry.
"""

import asyncio

import pytest

from voxcalc.errors import SessionLimitError
from voxcalc.fallback import FallbackInterpreter
from voxcalc.pipeline import ExpressionPipeline
from voxcalc.registry import SessionRegistry

from conftest import ScriptedProvider


class TestSessionRegistry:
    """Test session creation, lookup and disposal."""

    def setup_method(self):
        self.pipeline = ExpressionPipeline(FallbackInterpreter(ScriptedProvider()))

    def test_create_and_get(self):
        registry = SessionRegistry(max_sessions=4, pipeline=self.pipeline)
        session = asyncio.run(registry.create())

        assert registry.get(session.session_id) is session
        assert len(registry) == 1

    def test_session_limit(self):
        async def scenario():
            registry = SessionRegistry(max_sessions=2, pipeline=self.pipeline)
            await registry.create()
            await registry.create()
            with pytest.raises(SessionLimitError):
                await registry.create()
            return registry

        registry = asyncio.run(scenario())
        assert len(registry) == 2

    def test_remove(self):
        async def scenario():
            registry = SessionRegistry(pipeline=self.pipeline)
            session = await registry.create()
            removed = await registry.remove(session.session_id)
            removed_again = await registry.remove(session.session_id)
            return registry, session, removed, removed_again

        registry, session, removed, removed_again = asyncio.run(scenario())
        assert removed is True
        assert removed_again is False
        assert registry.get(session.session_id) is None

    def test_sessions_are_isolated(self):
        async def scenario():
            registry = SessionRegistry(pipeline=self.pipeline)
            first = await registry.create()
            second = await registry.create()
            first.append("6*7")
            await first.evaluate()
            await second.press("Deg")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.result == "42"
        assert len(first.history) == 1
        assert second.buffer == ""
        assert second.result == "0"
        assert len(second.history) == 0
        assert first.angle_mode != second.angle_mode

    def test_cleanup_stops_capture(self):
        async def scenario():
            registry = SessionRegistry(pipeline=self.pipeline)
            session = await registry.create()
            await session.start_capture()
            await registry.cleanup()
            return registry, session

        registry, session = asyncio.run(scenario())
        assert len(registry) == 0
        assert session.voice.is_listening is False
