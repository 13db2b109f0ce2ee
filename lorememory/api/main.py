"""
HTTP API for persona chat with lore archive and conversation memory.
"""

import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware

from .schemas import (
    ChatRequest,
    ChatTurnResponse,
    TurnStatusResponse,
    SaveTurnRequest,
    SaveTurnResponse,
    ConflictCheckRequest,
    ArchiveUploadRequest,
    ArchiveUploadResponse,
    ArchiveQueryRequest,
    ArchiveQueryResponse,
    ArchiveHitModel,
    ArchiveActionRequest,
    HealthResponse,
)
from ..chat.turn import HistoryItem
from ..core.config import VERSION, CORS_ORIGINS, debug_enabled, validate_config
from ..core.errors import ConfigError, LoreMemoryError
from ..services import MemoryServices, build_services
from ..util.logging import logger, truncate


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests and embedding applications may pre-install a service container
    if getattr(app.state, "services", None) is None:
        issues = validate_config()
        for issue in issues:
            logger.warning(f"Config issue: {issue}")
        app.state.services = build_services()
        logger.log_operation("api.startup", "success", {"version": VERSION})
    yield
    await app.state.services.turns.drain()


# Initialize the FastAPI application
app = FastAPI(
    title="Persona Memory API",
    version=VERSION,
    description="Persona chat backed by a lore archive and per-persona conversation memory",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

# Add CORS middleware to allow frontend connections
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services(request: Request) -> MemoryServices:
    return request.app.state.services


def _history(req: ChatRequest):
    return [HistoryItem(question=h.question, answer=h.answer) for h in req.history]


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(services: MemoryServices = Depends(get_services)):
    """Check system health."""
    issues = validate_config()
    return HealthResponse(
        status="healthy" if not issues else "degraded",
        version=VERSION,
        vector_provider=services.store.provider,
        vector_records=services.store.count(),
        embedding_model=services.gateway.model_name,
        embedding_dimension=services.gateway.dimension,
        pending_side_effects=services.turns.pending,
        config_issues=issues,
    )


@app.post("/chat")
async def chat_stream_endpoint(req: ChatRequest, services: MemoryServices = Depends(get_services)):
    """
    Stream the provider's SSE frames for one turn.

    The client aggregates the frames and posts the finished turn to
    /chat/save and /check-conflict.
    """
    messages = await services.turns.build_messages(req.message, req.role, _history(req))
    stream = await asyncio.to_thread(services.completion.stream, messages)
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.post("/chat/turn", response_model=ChatTurnResponse)
async def chat_turn_endpoint(req: ChatRequest, services: MemoryServices = Depends(get_services)):
    """Run a full turn server-side; memory write and consistency check run in the background."""
    record = await services.turns.run_turn(req.message, req.role, _history(req))
    return ChatTurnResponse(
        turn_id=record.turn_id,
        persona_id=record.persona_id,
        answer=record.answer,
        signal_lost=record.signal_lost,
    )


@app.get("/chat/turns/{turn_id}", response_model=TurnStatusResponse)
def get_turn_endpoint(turn_id: str, services: MemoryServices = Depends(get_services)):
    """Turn record including its consistency verdict once available."""
    record = services.turns.ledger.get(turn_id)
    if not record:
        raise HTTPException(status_code=404, detail="Turn not found")
    return TurnStatusResponse(**record.to_dict())


@app.post("/chat/save")
def save_turn_endpoint(req: SaveTurnRequest, services: MemoryServices = Depends(get_services)):
    """Store a completed turn in the persona's conversation memory."""
    if not req.question or not req.answer or not req.role:
        return JSONResponse(status_code=400, content={"error": "Missing fields"})

    try:
        record_id = services.conversations.record(req.question, req.answer, req.role)
    except LoreMemoryError as e:
        logger.log_operation("conversation.save", "failed", {
            "persona_id": req.role,
            "question": truncate(req.question),
            "error": e.message,
        })
        return JSONResponse(status_code=500, content={"error": "Failed to save"})

    return SaveTurnResponse(success=True, id=record_id)


@app.post("/check-conflict")
def check_conflict_endpoint(req: ConflictCheckRequest, services: MemoryServices = Depends(get_services)):
    """Judge content against the persona's lore archive."""
    verdict = services.validator.validate(req.content, req.role)
    return verdict.to_dict()


@app.post("/archive/upload", response_model=ArchiveUploadResponse)
def archive_upload_endpoint(req: ArchiveUploadRequest, services: MemoryServices = Depends(get_services)):
    """Chunk, embed and store a lore document."""
    count = services.archive.ingest(req.content, req.source_id, req.type)
    return ArchiveUploadResponse(success=True, chunks=count)


@app.post("/archive/query", response_model=ArchiveQueryResponse)
def archive_query_endpoint(req: ArchiveQueryRequest, services: MemoryServices = Depends(get_services)):
    """Ranked archive hits for a query."""
    hits = services.archive.query(req.query, top_k=req.top_k, filter=req.filter)
    return ArchiveQueryResponse(results=[ArchiveHitModel(**h.to_dict()) for h in hits])


@app.post("/archive")
def archive_action_endpoint(req: ArchiveActionRequest, services: MemoryServices = Depends(get_services)):
    """Combined archive endpoint: action=upload or action=query."""
    if req.action == "upload":
        if not req.content or not req.id:
            raise HTTPException(status_code=400, detail="upload requires content and id")
        count = services.archive.ingest(req.content, req.id, req.type or "character")
        return {"success": True, "chunks": count}

    if req.action == "query":
        if not req.query:
            raise HTTPException(status_code=400, detail="query requires query text")
        hits = services.archive.query(req.query, top_k=3, filter=req.filter)
        return {"results": [h.to_dict() for h in hits]}

    return JSONResponse(status_code=400, content={"error": "Invalid action"})


@app.exception_handler(LoreMemoryError)
async def memory_error_handler(request, exc: LoreMemoryError):
    """Provider failures carry their diagnostic payload back to the caller."""
    logger.log_operation("api.request", "failed", {"path": request.url.path, "error": exc.message})
    status_code = 500 if isinstance(exc, ConfigError) else 502
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logging.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)
