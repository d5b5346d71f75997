"""
Tests for voice capture.
"""

import asyncio

import pytest

from voxcalc.errors import CaptureError
from voxcalc.voice import QueueSpeechBackend, VoiceCapture

from conftest import make_session


class TestVoiceCapture:
    """Test the capture lifecycle on its own."""

    def test_missing_backend_is_not_supported(self):
        async def scenario():
            capture = VoiceCapture(None, on_transcript=lambda text: None)
            with pytest.raises(CaptureError) as exc_info:
                await capture.start()
            return exc_info.value

        error = asyncio.run(scenario())
        assert error.code == "not-supported"

    def test_transcripts_are_lower_cased(self):
        async def scenario():
            seen = []
            backend = QueueSpeechBackend()
            capture = VoiceCapture(backend, on_transcript=seen.append, continuous=False)
            await capture.start()
            backend.submit("Two PLUS Three")
            await capture.wait()
            return seen, capture, backend

        seen, capture, backend = asyncio.run(scenario())
        assert seen == ["two plus three"]
        assert capture.is_listening is False
        assert backend.is_open is False

    def test_start_twice_keeps_one_capture(self):
        async def scenario():
            backend = QueueSpeechBackend()
            capture = VoiceCapture(backend, on_transcript=lambda text: None)
            await capture.start()
            first = capture._task
            await capture.start()
            second = capture._task
            await capture.stop()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is second

    def test_stop_is_idempotent(self):
        async def scenario():
            backend = QueueSpeechBackend()
            capture = VoiceCapture(backend, on_transcript=lambda text: None)
            await capture.stop()
            await capture.start()
            await capture.stop()
            await capture.stop()
            return capture

        capture = asyncio.run(scenario())
        assert capture.is_listening is False

    def test_submit_without_listener_is_rejected(self):
        backend = QueueSpeechBackend()
        assert backend.submit("two") is False
        assert backend.fail("aborted") is False


class TestSessionDictation:
    """Test voice capture wired into a calculator session."""

    def test_final_transcript_is_appended(self):
        async def scenario():
            session = make_session()
            assert await session.start_capture() is True
            assert session.display().is_listening is True
            session.speech_backend.submit("two plus three")
            await session.voice.wait()
            return session

        session = asyncio.run(scenario())
        assert session.buffer == "2+3"
        assert session.display().is_listening is False

    def test_partial_results_are_ignored(self):
        async def scenario():
            session = make_session()
            await session.start_capture()
            session.speech_backend.submit("two", is_final=False)
            session.speech_backend.submit("three")
            await session.voice.wait()
            return session

        session = asyncio.run(scenario())
        assert session.buffer == "3"

    def test_continuous_capture(self):
        async def scenario():
            session = make_session()
            session.voice.continuous = True
            await session.start_capture()
            session.speech_backend.submit("seven times")
            session.speech_backend.submit("six")
            await asyncio.sleep(0.01)
            assert session.voice.is_listening is True
            await session.stop_capture()
            return session

        session = asyncio.run(scenario())
        assert session.buffer == "7*6"
        assert session.voice.is_listening is False

    def test_mic_key_toggles_capture(self):
        async def scenario():
            session = make_session()
            await session.press("MIC")
            listening = session.voice.is_listening
            await session.press("MIC")
            return listening, session.voice.is_listening

        assert asyncio.run(scenario()) == (True, False)

    def test_unsupported_platform_notifies(self):
        async def scenario():
            session = make_session(speech_backend=None)
            started = await session.start_capture()
            return started, session

        started, session = asyncio.run(scenario())
        assert started is False
        assert session.notification == "Speech recognition is not supported"
        assert session.display().is_listening is False

    def test_aborted_capture_is_silent(self):
        async def scenario():
            session = make_session()
            await session.start_capture()
            session.speech_backend.fail("aborted")
            await session.voice.wait()
            return session

        session = asyncio.run(scenario())
        assert session.notification is None
        assert session.buffer == ""

    def test_capture_error_is_surfaced(self):
        async def scenario():
            session = make_session()
            await session.start_capture()
            session.speech_backend.fail("not-allowed", "Microphone permission denied")
            await session.voice.wait()
            return session

        session = asyncio.run(scenario())
        assert session.notification == "Microphone permission denied"
        assert session.voice.is_listening is False

    def test_restart_after_error_clears_notification(self):
        async def scenario():
            session = make_session()
            await session.start_capture()
            session.speech_backend.fail("network")
            await session.voice.wait()
            surfaced = session.notification
            await session.start_capture()
            cleared = session.notification
            await session.stop_capture()
            return surfaced, cleared

        surfaced, cleared = asyncio.run(scenario())
        assert surfaced == "Speech recognition error: network"
        assert cleared is None
