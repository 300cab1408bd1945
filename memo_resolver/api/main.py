"""
HTTP API for the resolver.

Endpoints are plain functions so FastAPI runs them on its worker thread
pool; a heavy forward evaluation never blocks the event loop.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .schemas import (
    AskRequest,
    AskResponse,
    ErrorResponse,
    MemoryRecord,
    MemoryListResponse,
    ClearResponse,
    HealthResponse,
    ModelDebugResponse,
)
from ..core import heartbeat
from ..core.config import (
    VERSION,
    debug_enabled,
    get_cors_origins,
    get_heartbeat_interval,
    is_heartbeat_enabled,
)
from ..core.errors import InputValidationError, PersistenceFailure
from ..core.resolver import Resolver, build_resolver
from ..util.logging import logger

_resolver: Optional[Resolver] = None


def get_resolver() -> Resolver:
    """Lazy initialization of the resolver. ConfigurationError propagates."""
    global _resolver
    if _resolver is None:
        _resolver = build_resolver()
    return _resolver


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build eagerly so a malformed model refuses to serve
    resolver = get_resolver()
    logger.info(f"Resolver ready: network {resolver.weights.network.shape}, {len(resolver.memory)} memory entries")

    if is_heartbeat_enabled():
        heartbeat.register_task("memory_status", get_heartbeat_interval(), heartbeat.memory_status_task(resolver))
        heartbeat.start_background()

    yield

    heartbeat.stop()


app = FastAPI(
    title="Memo Resolver API",
    version=VERSION,
    description="Neural intent resolver with persistent answer memory and web lookup fallback",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

# Add CORS middleware to allow the chat UI to connect
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/ask", response_model=AskResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
def ask_endpoint(request: AskRequest, resolver: Resolver = Depends(get_resolver)):
    """Resolve a question from memory, the neural model, or a web lookup."""
    result = resolver.resolve(request.query)
    return AskResponse(
        answer=result.answer,
        source=result.source,
        category=result.category,
        confidence=result.confidence,
    )


@app.get("/memory", response_model=MemoryListResponse)
def list_memory_endpoint(resolver: Resolver = Depends(get_resolver)):
    """Return every memoized answer, oldest first."""
    entries = resolver.memory.snapshot()
    return MemoryListResponse(
        entries=[MemoryRecord(**entry) for entry in entries],
        count=len(entries),
        capacity=resolver.memory.capacity,
    )


@app.delete("/memory", response_model=ClearResponse)
def clear_memory_endpoint(resolver: Resolver = Depends(get_resolver)):
    """Atomically empty the memory store."""
    resolver.memory.clear()
    return ClearResponse(success=True, message="Memory cleared")


@app.post("/memory/clear", response_model=ClearResponse)
def clear_memory_post_endpoint(resolver: Resolver = Depends(get_resolver)):
    """Same as DELETE /memory for clients that cannot send DELETE."""
    return clear_memory_endpoint(resolver)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(resolver: Resolver = Depends(get_resolver)):
    """Check system health."""
    memory_health = resolver.memory.health_check()

    return HealthResponse(
        status="healthy" if memory_health else "unhealthy",
        version=VERSION,
        memory_health=memory_health,
        memory_entries=len(resolver.memory),
        model_shape=resolver.weights.network.shape,
        heartbeat=heartbeat.get_status(),
        stats=resolver.get_stats(),
    )


@app.get("/debug/model", response_model=ModelDebugResponse)
def debug_model_endpoint(resolver: Resolver = Depends(get_resolver)):
    """Network shape and categories (only available in DEBUG mode)."""
    if not debug_enabled():
        raise HTTPException(status_code=403, detail="Debug endpoint disabled")

    network = resolver.weights.network
    return ModelDebugResponse(
        shape=network.shape,
        neurons=network.neuron_count,
        vocabulary_size=len(resolver.weights.vocabulary),
        categories=[category.tag for category in resolver.weights.categories],
        generated=resolver.weights.generated,
        threshold=resolver.output.threshold,
    )


@app.exception_handler(InputValidationError)
async def input_validation_handler(request, exc):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc):
    messages = [error.get("msg", "invalid value") for error in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request, exc):
    """The answer was computed but could not be stored durably."""
    logger.error(f"Persistence failure: {exc}")
    content = {"error": "Failed to persist answer"}
    if exc.answer is not None:
        content["answer"] = exc.answer
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    content = {"error": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(
        status_code=500,
        content=content,
    )
