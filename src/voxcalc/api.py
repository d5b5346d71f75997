"""
FastAPI application and API routes for VoxCalc.
"""

import asyncio
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from voxcalc import __version__
from voxcalc.config import settings, voice_config
from voxcalc.errors import SessionLimitError
from voxcalc.models import DisplayState, HistoryEntry, KeyPress, SessionView, TranscriptSubmit
from voxcalc.registry import SessionRegistry, get_registry
from voxcalc.session import CalculatorSession
from voxcalc.voice import QueueSpeechBackend


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Shutdown
    await get_registry().cleanup()


app = FastAPI(
    title="VoxCalc",
    description="Keypad & voice expression evaluator",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/api/v1/config")
async def get_config():
    """Get public configuration."""
    return {
        "app_name": settings.app_name,
        "history_limit": settings.history_limit,
        "result_decimals": settings.result_decimals,
        "fallback_provider": settings.fallback_provider,
        "voice_enabled": voice_config.enabled,
        "voice_language": voice_config.language,
    }


# =============================================================================
# Sessions API
# =============================================================================

async def get_session(
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
) -> CalculatorSession:
    """Resolve a session or fail with 404."""
    session = registry.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _view(session: CalculatorSession) -> SessionView:
    return SessionView(session_id=session.session_id, display=session.display())


@app.post("/api/v1/sessions", response_model=SessionView, status_code=201)
async def create_session(registry: SessionRegistry = Depends(get_registry)):
    """Create a new calculator session."""
    try:
        session = await registry.create()
    except SessionLimitError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _view(session)


@app.get("/api/v1/sessions/{session_id}", response_model=SessionView)
async def get_session_view(session: CalculatorSession = Depends(get_session)):
    """Get the current display for a session."""
    return _view(session)


@app.delete("/api/v1/sessions/{session_id}", status_code=204)
async def delete_session(
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
):
    """Discard a session."""
    if not await registry.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")


@app.post("/api/v1/sessions/{session_id}/keys", response_model=DisplayState)
async def press_key(
    key_press: KeyPress,
    session: CalculatorSession = Depends(get_session),
):
    """Send one keypad event. Events during an evaluation are ignored."""
    await session.press(key_press.key)
    return session.display()


@app.post("/api/v1/sessions/{session_id}/evaluate", response_model=DisplayState)
async def evaluate(session: CalculatorSession = Depends(get_session)):
    """Evaluate the current buffer (the "=" key)."""
    await session.evaluate()
    return session.display()


# =============================================================================
# History API
# =============================================================================

@app.get("/api/v1/sessions/{session_id}/history", response_model=list[HistoryEntry])
async def get_history(session: CalculatorSession = Depends(get_session)):
    """History entries, newest first."""
    return list(session.history.entries)


@app.post("/api/v1/sessions/{session_id}/history/{index}/select", response_model=DisplayState)
async def select_history(
    index: int,
    session: CalculatorSession = Depends(get_session),
):
    """Load a history entry's result into the buffer and display."""
    if index < 0 or index >= len(session.history):
        raise HTTPException(status_code=404, detail="History entry not found")
    session.select_history(index)
    return session.display()


# =============================================================================
# Voice Capture API
# =============================================================================

@app.post("/api/v1/sessions/{session_id}/capture/start", response_model=DisplayState)
async def start_capture(session: CalculatorSession = Depends(get_session)):
    """Start listening for dictation. Failures appear in ``notification``."""
    await session.start_capture()
    return session.display()


@app.post("/api/v1/sessions/{session_id}/capture/stop", response_model=DisplayState)
async def stop_capture(session: CalculatorSession = Depends(get_session)):
    """Stop listening. Stopping an ended capture is a no-op."""
    await session.stop_capture()
    return session.display()


@app.post("/api/v1/sessions/{session_id}/capture/transcripts", response_model=DisplayState)
async def submit_transcript(
    submission: TranscriptSubmit,
    session: CalculatorSession = Depends(get_session),
):
    """Deliver a recognizer result to the session's active capture."""
    backend = session.speech_backend
    if isinstance(backend, QueueSpeechBackend) and backend.submit(submission.transcript, submission.is_final):
        if submission.is_final and not session.voice.continuous:
            await session.voice.wait()
        else:
            # Let the capture task consume the queued result
            await asyncio.sleep(0)
    return session.display()
