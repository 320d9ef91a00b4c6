"""FastAPI application for Living Loom"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from loom.chat.chat_pipeline import ChatPipeline
from loom.core.config import settings
from loom.core.errors import InvalidConsent, InvalidPhaseTransition, SessionNotFound, StorageFailure
from loom.core.logging import configure_logging
from loom.core.models import (
    BlockType,
    ChatMessage,
    ChatTurnResult,
    Conversation,
    Interaction,
    MemoryBlock,
    MetricsContext,
    MetricsUpdateResult,
    Phase,
    ReflectionDepth,
    ReflectionScaffold,
    Session,
    SessionCreationResult,
    TeachingDirective,
)
from loom.pipeline.session_pipeline import SessionPipeline
from loom.storage.sqlite_store import LoomStore


# Global state
store: LoomStore = None
sessions: SessionPipeline = None
chat: ChatPipeline = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup/shutdown)"""
    global store, sessions, chat

    # Startup
    configure_logging()
    store = LoomStore(settings.DB_PATH)
    await store.connect()

    sessions = SessionPipeline(store)
    chat = ChatPipeline(store, sessions)

    yield

    # Shutdown
    await store.close()


app = FastAPI(
    title="Living Loom",
    description="Consciousness metrics, memory chains and reflection for chat sessions",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(InvalidConsent)
async def invalid_consent_handler(request: Request, exc: InvalidConsent):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidPhaseTransition)
async def invalid_phase_handler(request: Request, exc: InvalidPhaseTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def _sessions() -> SessionPipeline:
    if not sessions:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return sessions


def _chat() -> ChatPipeline:
    if not chat:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return chat


# Request models
class ConsentRequest(BaseModel):
    """Request to open a session"""
    phrase: str
    device_fingerprint: Optional[str] = None
    client_key: Optional[str] = None


class MetricsUpdateRequest(BaseModel):
    """Partial metrics plus optional context"""
    metrics: Dict[str, float] = Field(default_factory=dict)
    context: Optional[MetricsContext] = None


class ReflectionRequest(BaseModel):
    interactions: List[Interaction]
    reflection_depth: ReflectionDepth = ReflectionDepth.DEEP


class EventRequest(BaseModel):
    """Memory chain append"""
    type: BlockType
    content: Dict[str, Any] = Field(default_factory=dict)
    significance: float = Field(ge=0.0, le=1.0)
    signature: str = "system"


class PhaseRequest(BaseModel):
    phase: Phase


class SendMessageRequest(BaseModel):
    message: str
    session_id: Optional[str] = None


class ChainVerification(BaseModel):
    session_id: str
    valid: bool


# Endpoints
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Living Loom",
        "version": "0.1.0",
        "status": "running",
    }


@app.post("/consent/start", response_model=SessionCreationResult)
async def start_consent(request: ConsentRequest):
    """Open a session with the activation phrase"""
    return await _sessions().create_session(
        request.phrase, request.device_fingerprint, request.client_key,
    )


@app.get("/sessions/current", response_model=Optional[Session])
async def get_current_session(client_key: Optional[str] = None):
    """Current session for the calling client, or null"""
    return await _sessions().get_current_session(client_key)


@app.get("/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str):
    session = await _sessions().get_session(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


@app.post("/sessions/{session_id}/metrics", response_model=MetricsUpdateResult)
async def update_metrics(session_id: str, request: MetricsUpdateRequest):
    return await _sessions().update_metrics(session_id, request.metrics, request.context)


@app.post("/sessions/{session_id}/reflection", response_model=ReflectionScaffold)
async def scaffold_reflection(session_id: str, request: ReflectionRequest):
    """Extract teaching directives from an interaction batch"""
    return await _sessions().scaffold_reflection(
        session_id, request.interactions, request.reflection_depth,
    )


@app.get("/sessions/{session_id}/directives", response_model=List[TeachingDirective])
async def get_directives(session_id: str):
    return await _sessions().get_teaching_directives(session_id)


@app.post("/sessions/{session_id}/events", response_model=List[MemoryBlock])
async def append_event(session_id: str, request: EventRequest):
    """Append a block to the session's memory chain"""
    return await _sessions().append_event(
        session_id, request.type, request.content, request.significance, request.signature,
    )


@app.post("/sessions/{session_id}/phase", response_model=Session)
async def transition_phase(session_id: str, request: PhaseRequest):
    return await _sessions().transition_phase(session_id, request.phase)


@app.get("/sessions/{session_id}/chain/verify", response_model=ChainVerification)
async def verify_chain(session_id: str):
    valid = await _sessions().verify_session_chain(session_id)
    return ChainVerification(session_id=session_id, valid=valid)


@app.delete("/data", status_code=204)
async def clear_all_data():
    """Wipe all sessions, directives and chat history"""
    await _sessions().clear_all_data()


@app.get("/conversations", response_model=List[Conversation])
async def list_conversations():
    return await _chat().list_conversations()


@app.get("/conversations/{conversation_id}/messages", response_model=List[ChatMessage])
async def get_messages(conversation_id: str):
    return await _chat().get_messages(conversation_id)


@app.post("/conversations/{conversation_id}/messages", response_model=ChatTurnResult)
async def send_message(conversation_id: str, request: SendMessageRequest):
    """Send a message and receive the assistant's reply"""
    try:
        return await _chat().send_message(conversation_id, request.message, request.session_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
